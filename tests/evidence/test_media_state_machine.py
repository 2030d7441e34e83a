import random
from datetime import timedelta

import pytest

from src.evidence.domain.errors import (
    InvalidTransitionError,
    MediaBinaryDeletedError,
    TranscriptionAlreadyCompletedError,
    TranscriptionInProgressError,
)
from src.evidence.domain.models.media_file import TranscriptionStatus
from src.evidence.domain.models.transcription import TranscriptionResult
from src.evidence.services.media import state_machine
from tests.evidence.fakes import T0, make_record

RETENTION = timedelta(days=30)
GOOD = TranscriptionResult(transcript="the defendant pleads not guilty", confidence=0.92)


def test_pending_record_can_be_claimed():
    claimed = state_machine.start_processing(make_record(), T0)
    assert claimed.transcription_status == TranscriptionStatus.PROCESSING
    assert claimed.updated_at == T0


@pytest.mark.parametrize(
    "status, error",
    [
        (TranscriptionStatus.PROCESSING, TranscriptionInProgressError),
        (TranscriptionStatus.COMPLETED, TranscriptionAlreadyCompletedError),
    ],
)
def test_claim_is_rejected_for_in_flight_or_completed(status, error):
    extra = {"transcript": "done"} if status == TranscriptionStatus.COMPLETED else {}
    with pytest.raises(error):
        state_machine.start_processing(make_record(transcription_status=status, **extra), T0)


def test_claim_is_rejected_after_binary_deletion():
    record = make_record(transcription_status=TranscriptionStatus.FAILED, binary_deleted=True)
    with pytest.raises(MediaBinaryDeletedError):
        state_machine.start_processing(record, T0)


def test_retry_from_failed_resets_previous_attempt():
    failed = make_record(
        transcription_status=TranscriptionStatus.FAILED,
        error_message="No transcription results returned",
        transcribed_at=T0,
    )

    claimed = state_machine.start_processing(failed, T0 + timedelta(hours=1))

    assert claimed.transcription_status == TranscriptionStatus.PROCESSING
    assert claimed.error_message is None
    assert claimed.transcript is None
    assert claimed.transcribed_at is None
    assert claimed.cleanup_scheduled_at is None


def test_complete_schedules_cleanup_after_retention_window():
    processing = state_machine.start_processing(make_record(), T0)
    done_at = T0 + timedelta(minutes=5)

    completed = state_machine.complete(processing, GOOD, done_at, RETENTION)

    assert completed.transcription_status == TranscriptionStatus.COMPLETED
    assert completed.transcript == GOOD.transcript
    assert completed.confidence == 0.92
    assert completed.transcribed_at == done_at
    assert completed.transcript_completed_at == done_at
    assert completed.cleanup_scheduled_at == done_at + RETENTION
    assert completed.error_message is None


def test_engine_duration_replaces_estimate():
    processing = state_machine.start_processing(make_record(duration_seconds=64.0), T0)

    without = state_machine.complete(processing, GOOD, T0, RETENTION)
    with_duration = state_machine.complete(
        processing, GOOD.model_copy(update={"duration_seconds": 61.2}), T0, RETENTION
    )

    assert without.duration_seconds == 64.0
    assert without.duration_is_estimate
    assert with_duration.duration_seconds == 61.2
    assert not with_duration.duration_is_estimate


def test_complete_requires_transcript_and_processing():
    processing = state_machine.start_processing(make_record(), T0)
    with pytest.raises(InvalidTransitionError):
        state_machine.complete(processing, TranscriptionResult(), T0, RETENTION)
    with pytest.raises(InvalidTransitionError):
        state_machine.complete(make_record(), GOOD, T0, RETENTION)


def test_fail_sets_message_and_leaves_transcript_empty():
    processing = state_machine.start_processing(make_record(), T0)

    failed = state_machine.fail(processing, "Staging bucket 'x' does not exist", T0)

    assert failed.transcription_status == TranscriptionStatus.FAILED
    assert failed.error_message == "Staging bucket 'x' does not exist"
    assert failed.transcribed_at == T0
    assert failed.transcript is None


def test_binary_deleted_flag_is_never_unset():
    record = state_machine.mark_binary_deleted(make_record(), T0)
    assert record.binary_deleted
    assert state_machine.mark_binary_deleted(record, T0 + timedelta(days=1)) is record


def test_display_metadata_values_keep_only_named_fields():
    values = state_machine.display_metadata_values(
        custom_filename="Bodycam 3",
        client_id=None,
        fields_set=frozenset({"custom_filename", "case_number"}),
    )

    assert values == {"custom_filename": "Bodycam 3", "case_number": None}


def test_lifecycle_fields_are_rejected_as_display_metadata():
    with pytest.raises(ValueError):
        state_machine.ensure_display_only({"case_number": "CR-1", "transcription_status": "pending"})


def test_lifecycle_values_exclude_display_metadata():
    values = state_machine.lifecycle_values(make_record(case_number="CR-1"))

    assert not set(values) & state_machine.DISPLAY_FIELDS
    assert values["transcription_status"] == TranscriptionStatus.PENDING


def _invariants_hold(record) -> bool:
    if record.transcript is not None and record.transcription_status != TranscriptionStatus.COMPLETED:
        return False
    if record.cleanup_scheduled_at is not None and (
        record.transcript_completed_at is None or record.cleanup_scheduled_at < record.transcript_completed_at
    ):
        return False
    return True


@pytest.mark.parametrize("seed", range(20))
def test_random_transition_walk_keeps_invariants(seed):
    rng = random.Random(seed)
    record = make_record()
    now = T0
    was_deleted = False

    for _ in range(60):
        now = now + timedelta(minutes=rng.randint(1, 600))
        action = rng.choice(["claim", "complete", "fail", "purge"])
        try:
            if action == "claim":
                record = state_machine.start_processing(record, now)
            elif action == "complete":
                result = TranscriptionResult(transcript=rng.choice(["", "order in the court"]), confidence=0.8)
                record = state_machine.complete(record, result, now, RETENTION)
            elif action == "fail":
                record = state_machine.fail(record, "engine error", now)
            elif record.transcription_status == TranscriptionStatus.COMPLETED:
                record = state_machine.mark_binary_deleted(record, now)
        except InvalidTransitionError:
            pass

        assert _invariants_hold(record)
        if was_deleted:
            assert record.binary_deleted
        was_deleted = record.binary_deleted
