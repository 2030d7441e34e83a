"""Lifecycle transitions for :class:`MediaFile` records.

::

    pending ──► processing ──► completed
                   │  ▲
                   ▼  │
                  failed

Every function here is pure: it validates the current state and returns an
updated copy. Persisting the copy atomically is the repository's job (see
``MediaFileRepository.claim_for_processing``).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from src.evidence.domain.errors import (
    InvalidTransitionError,
    MediaBinaryDeletedError,
    TranscriptionAlreadyCompletedError,
    TranscriptionInProgressError,
)
from src.evidence.domain.models.media_file import MediaFile, TranscriptionStatus
from src.evidence.domain.models.transcription import TranscriptionResult

CLAIMABLE_STATUSES = frozenset({TranscriptionStatus.PENDING, TranscriptionStatus.FAILED})

# Only these may be changed by metadata edits.
DISPLAY_FIELDS = frozenset({"custom_filename", "client_id", "case_number"})

# Written when a record leaves processing.
LIFECYCLE_FIELDS = (
    "transcription_status",
    "transcript",
    "confidence",
    "speaker_count",
    "error_message",
    "duration_seconds",
    "duration_is_estimate",
    "transcribed_at",
    "transcript_completed_at",
    "cleanup_scheduled_at",
    "updated_at",
)

# Fields cleared whenever a record (re-)enters processing.
RESET_FIELDS = {
    "transcript": None,
    "confidence": None,
    "speaker_count": None,
    "error_message": None,
    "transcribed_at": None,
    "transcript_completed_at": None,
    "cleanup_scheduled_at": None,
}


def ensure_can_start(record: MediaFile) -> None:
    if record.binary_deleted:
        raise MediaBinaryDeletedError(record.id)
    if record.transcription_status == TranscriptionStatus.PROCESSING:
        raise TranscriptionInProgressError(record.id)
    if record.transcription_status == TranscriptionStatus.COMPLETED:
        raise TranscriptionAlreadyCompletedError(record.id)
    if record.transcription_status not in CLAIMABLE_STATUSES:  # pragma: no cover - exhaustive enum
        raise InvalidTransitionError(record.id)


def start_processing(record: MediaFile, now: datetime) -> MediaFile:
    """pending|failed -> processing, with a full reset of transcript state."""

    ensure_can_start(record)
    return record.model_copy(
        update={
            **RESET_FIELDS,
            "transcription_status": TranscriptionStatus.PROCESSING,
            "updated_at": now,
        }
    )


def complete(
    record: MediaFile,
    result: TranscriptionResult,
    now: datetime,
    retention: timedelta,
) -> MediaFile:
    """processing -> completed. Schedules cleanup ``retention`` after completion."""

    _ensure_processing(record)
    if not result.transcript:
        raise InvalidTransitionError(record.id, "Cannot complete a transcription without a transcript")

    update = {
        "transcription_status": TranscriptionStatus.COMPLETED,
        "transcript": result.transcript,
        "confidence": result.confidence,
        "speaker_count": result.speaker_count,
        "error_message": None,
        "transcribed_at": now,
        "transcript_completed_at": now,
        "cleanup_scheduled_at": now + retention,
        "updated_at": now,
    }
    if result.duration_seconds > 0:
        update["duration_seconds"] = result.duration_seconds
        update["duration_is_estimate"] = False
    return record.model_copy(update=update)


def fail(record: MediaFile, message: str, now: datetime) -> MediaFile:
    """processing -> failed. The transcript stays empty."""

    _ensure_processing(record)
    return record.model_copy(
        update={
            "transcription_status": TranscriptionStatus.FAILED,
            "transcript": None,
            "confidence": None,
            "speaker_count": None,
            "error_message": message or "Unknown transcription error",
            "transcribed_at": now,
            "transcript_completed_at": None,
            "cleanup_scheduled_at": None,
            "updated_at": now,
        }
    )


def mark_binary_deleted(record: MediaFile, now: datetime) -> MediaFile:
    """Flag the binary as purged. The flag is never unset."""

    if record.binary_deleted:
        return record
    return record.model_copy(update={"binary_deleted": True, "updated_at": now})


def display_metadata_values(
    *,
    custom_filename: Optional[str] = None,
    client_id: Optional[str] = None,
    case_number: Optional[str] = None,
    fields_set: frozenset[str] = frozenset(),
) -> Dict[str, Optional[str]]:
    values = {
        "custom_filename": custom_filename,
        "client_id": client_id,
        "case_number": case_number,
    }
    return {key: value for key, value in values.items() if key in fields_set}


def ensure_display_only(values: Mapping[str, Any]) -> None:
    unknown = set(values) - DISPLAY_FIELDS
    if unknown:
        raise ValueError(f"Not display metadata: {', '.join(sorted(unknown))}")


def lifecycle_values(record: MediaFile) -> Dict[str, Any]:
    """The fields a finished pipeline run owns, taken from ``record``."""

    return {field: getattr(record, field) for field in LIFECYCLE_FIELDS}


def _ensure_processing(record: MediaFile) -> None:
    if record.transcription_status != TranscriptionStatus.PROCESSING:
        raise InvalidTransitionError(
            record.id,
            f"Expected status 'processing', found '{record.transcription_status.value}'",
        )
