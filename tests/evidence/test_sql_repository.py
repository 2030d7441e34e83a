from datetime import timedelta

import pytest

from src.evidence.domain.errors import (
    InvalidTransitionError,
    MediaBinaryDeletedError,
    MediaFileNotFoundError,
    TranscriptionAlreadyCompletedError,
    TranscriptionInProgressError,
)
from src.evidence.domain.models.media_file import TranscriptionStatus
from src.evidence.infra.db.models import Base
from src.evidence.infra.db.repositories import MediaFileFilters
from src.evidence.infra.db.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.evidence.infra.db.sql_media_files import SqlMediaFileRepository
from tests.evidence.fakes import T0, make_record


@pytest.fixture
def repository(tmp_path):
    engine = create_sqlalchemy_engine(f"sqlite:///{tmp_path / 'media.db'}")
    Base.metadata.create_all(engine)
    yield SqlMediaFileRepository(create_sqlalchemy_session_factory(engine))
    engine.dispose()


def test_add_and_get_round_trip(repository):
    record = make_record(client_id="client-7", case_number="CR-1", duration_seconds=12.5)

    repository.add(record)
    fetched = repository.get(record.id)

    assert fetched == record
    assert fetched.created_at.tzinfo is not None


def test_get_missing_returns_none(repository):
    assert repository.get(make_record().id) is None


def test_claim_resets_fields_in_one_update(repository):
    failed = make_record(
        transcription_status=TranscriptionStatus.FAILED,
        error_message="No transcription results returned",
        transcribed_at=T0,
    )
    repository.add(failed)

    claimed = repository.claim_for_processing(failed.id, T0 + timedelta(minutes=1))

    assert claimed.transcription_status == TranscriptionStatus.PROCESSING
    assert claimed.error_message is None
    assert claimed.transcribed_at is None
    assert claimed.updated_at == T0 + timedelta(minutes=1)


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"transcription_status": TranscriptionStatus.PROCESSING}, TranscriptionInProgressError),
        ({"transcription_status": TranscriptionStatus.COMPLETED, "transcript": "done"}, TranscriptionAlreadyCompletedError),
        ({"transcription_status": TranscriptionStatus.FAILED, "binary_deleted": True}, MediaBinaryDeletedError),
    ],
)
def test_claim_guard(repository, overrides, error):
    record = make_record(**overrides)
    repository.add(record)

    with pytest.raises(error):
        repository.claim_for_processing(record.id, T0)

    assert repository.get(record.id).transcription_status == record.transcription_status


def test_second_claim_loses(repository):
    record = make_record()
    repository.add(record)

    repository.claim_for_processing(record.id, T0)
    with pytest.raises(InvalidTransitionError):
        repository.claim_for_processing(record.id, T0)


def test_claim_missing_record(repository):
    with pytest.raises(MediaFileNotFoundError):
        repository.claim_for_processing(make_record().id, T0)


def test_edit_and_delete(repository):
    record = make_record()
    repository.add(record)

    repository.update_display_metadata(record.id, {"custom_filename": "Bodycam 2"}, T0)
    assert repository.get(record.id).custom_filename == "Bodycam 2"

    assert repository.delete(record.id) is True
    assert repository.delete(record.id) is False
    with pytest.raises(MediaFileNotFoundError):
        repository.update_display_metadata(record.id, {"custom_filename": "Bodycam 3"}, T0)


def test_cleanup_candidates_boundary(repository):
    cutoff = T0 + timedelta(days=30)
    ids = {}
    for label, offset in (("at", 0), ("before", -1), ("after", 1)):
        completed_at = cutoff + timedelta(seconds=offset)
        record = make_record(
            transcription_status=TranscriptionStatus.COMPLETED,
            transcript="text",
            transcript_completed_at=completed_at,
            cleanup_scheduled_at=completed_at + timedelta(days=30),
        )
        repository.add(record)
        ids[label] = record.id

    selected = {r.id for r in repository.list_cleanup_candidates(cutoff)}

    assert selected == {ids["at"], ids["before"]}


def test_mark_binary_deleted_is_idempotent(repository):
    record = make_record(transcription_status=TranscriptionStatus.COMPLETED, transcript="text")
    repository.add(record)

    first = repository.mark_binary_deleted(record.id, T0 + timedelta(days=31))
    second = repository.mark_binary_deleted(record.id, T0 + timedelta(days=32))

    assert first.binary_deleted and second.binary_deleted
    assert second.updated_at == T0 + timedelta(days=31)
    assert second.transcript == "text"


def test_list_filters_and_paginates(repository):
    for index in range(12):
        repository.add(make_record(
            original_filename=f"call-{index:02d}.mp3",
            client_id="client-a" if index % 2 else "client-b",
            created_at=T0 + timedelta(minutes=index),
            updated_at=T0 + timedelta(minutes=index),
        ))
    repository.add(make_record(
        original_filename="hearing.wav",
        transcription_status=TranscriptionStatus.COMPLETED,
        transcript="Motion to suppress is denied",
        created_at=T0 - timedelta(days=1),
        updated_at=T0 - timedelta(days=1),
    ))

    first_page = repository.list(MediaFileFilters(), page=1, limit=5)
    assert first_page.total == 13
    assert first_page.total_pages == 3
    assert first_page.items[0].original_filename == "call-11.mp3"

    client_a = repository.list(MediaFileFilters(client_id="client-a"), page=1, limit=50)
    assert client_a.total == 6

    completed = repository.list(MediaFileFilters(status=TranscriptionStatus.COMPLETED), page=1, limit=10)
    assert [r.original_filename for r in completed.items] == ["hearing.wav"]

    searched = repository.list(MediaFileFilters(search="suppress"), page=1, limit=10)
    assert searched.total == 1
