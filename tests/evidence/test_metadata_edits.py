from datetime import timedelta

import pytest

from src.evidence.domain.errors import InvalidTransitionError, MediaFileNotFoundError
from src.evidence.domain.models.media_file import TranscriptionStatus
from src.evidence.domain.models.transcription import TranscriptionResult
from src.evidence.infra.db.inmemory import InMemoryMediaFileRepository
from src.evidence.infra.db.models import Base
from src.evidence.infra.db.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.evidence.infra.db.sql_media_files import SqlMediaFileRepository
from src.evidence.infra.storage.primary import InMemoryObjectStore
from src.evidence.services.media import state_machine
from src.evidence.services.media.service import MediaFileService
from src.evidence.services.retention.cleanup import RetentionCleanupJob
from src.evidence.services.validation.gate import ValidationGate
from tests.evidence.fakes import T0, FakeClock, make_record

RETENTION = timedelta(days=30)


@pytest.fixture(params=["memory", "sql"])
def repository(request, tmp_path):
    if request.param == "memory":
        yield InMemoryMediaFileRepository()
        return
    engine = create_sqlalchemy_engine(f"sqlite:///{tmp_path / 'media.db'}")
    Base.metadata.create_all(engine)
    yield SqlMediaFileRepository(create_sqlalchemy_session_factory(engine))
    engine.dispose()


class InterleavingClock(FakeClock):
    """Runs ``before_tick`` once, the first time the time is read."""

    def __init__(self, before_tick) -> None:
        super().__init__(T0 + timedelta(days=60))
        self.before_tick = before_tick

    def __call__(self):
        hook, self.before_tick = self.before_tick, None
        if hook is not None:
            hook()
        return self.now


def media_service(repository, store, clock):
    return MediaFileService(
        repository=repository,
        primary_store=store,
        gate=ValidationGate(max_bytes=1024, allowed_types=["audio/mpeg"]),
        clock=clock,
    )


def test_edit_during_cleanup_keeps_binary_deleted(repository):
    store = InMemoryObjectStore()
    record = make_record(
        transcription_status=TranscriptionStatus.COMPLETED,
        transcript="counsel may approach the bench",
        transcript_completed_at=T0,
        cleanup_scheduled_at=T0 + RETENTION,
    )
    store.upload(record.storage_path, b"binary", content_type="audio/mpeg")
    repository.add(record)
    cleanup = RetentionCleanupJob(
        repository=repository, primary_store=store, retention=RETENTION, clock=FakeClock(T0 + timedelta(days=60))
    )
    service = media_service(repository, store, InterleavingClock(cleanup.run))

    edited = service.update_metadata(record.id, fields_set=frozenset({"case_number"}), case_number="CR-9")

    stored = repository.get(record.id)
    assert stored.binary_deleted is True
    assert stored.case_number == "CR-9"
    assert edited == stored
    assert cleanup.preview().count == 0


def test_edit_during_completion_keeps_transcript(repository):
    record = make_record(transcription_status=TranscriptionStatus.PROCESSING)
    repository.add(record)
    result = TranscriptionResult(transcript="the defendant pleads not guilty", confidence=0.92)

    def complete():
        repository.commit_processing_result(state_machine.complete(record, result, T0, RETENTION))

    service = media_service(repository, InMemoryObjectStore(), InterleavingClock(complete))

    service.update_metadata(record.id, fields_set=frozenset({"custom_filename"}), custom_filename="Plea hearing")

    stored = repository.get(record.id)
    assert stored.transcription_status == TranscriptionStatus.COMPLETED
    assert stored.transcript == "the defendant pleads not guilty"
    assert stored.cleanup_scheduled_at == T0 + RETENTION
    assert stored.custom_filename == "Plea hearing"


def test_edit_can_clear_a_field(repository):
    record = make_record(client_id="client-1", case_number="CR-1")
    repository.add(record)

    updated = repository.update_display_metadata(record.id, {"client_id": None}, T0 + timedelta(minutes=1))

    assert updated.client_id is None
    assert updated.case_number == "CR-1"
    assert updated.updated_at == T0 + timedelta(minutes=1)


def test_edit_rejects_lifecycle_fields(repository):
    record = make_record()
    repository.add(record)

    with pytest.raises(ValueError):
        repository.update_display_metadata(record.id, {"transcription_status": "completed"}, T0)

    assert repository.get(record.id).transcription_status == TranscriptionStatus.PENDING


def test_edit_of_missing_record(repository):
    with pytest.raises(MediaFileNotFoundError):
        repository.update_display_metadata(make_record().id, {"case_number": "CR-2"}, T0)


def test_processing_result_keeps_concurrent_edit(repository):
    record = make_record(transcription_status=TranscriptionStatus.PROCESSING)
    repository.add(record)
    repository.update_display_metadata(record.id, {"case_number": "CR-9"}, T0)

    failed = state_machine.fail(record, "Speech recognition failed: 503", T0 + timedelta(minutes=5))
    committed = repository.commit_processing_result(failed)

    assert committed.case_number == "CR-9"
    assert committed.transcription_status == TranscriptionStatus.FAILED
    assert committed.error_message == "Speech recognition failed: 503"
    assert repository.get(record.id) == committed


def test_processing_result_requires_processing_status(repository):
    record = make_record(transcription_status=TranscriptionStatus.PROCESSING)
    repository.add(make_record(id=record.id))
    result = TranscriptionResult(transcript="sustained", confidence=0.8)

    with pytest.raises(InvalidTransitionError):
        repository.commit_processing_result(state_machine.complete(record, result, T0, RETENTION))

    assert repository.get(record.id).transcription_status == TranscriptionStatus.PENDING


def test_processing_result_for_deleted_record(repository):
    record = make_record(transcription_status=TranscriptionStatus.PROCESSING)

    with pytest.raises(MediaFileNotFoundError):
        repository.commit_processing_result(state_machine.fail(record, "gone", T0))
