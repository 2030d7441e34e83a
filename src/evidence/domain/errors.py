from __future__ import annotations

from typing import Optional
from uuid import UUID


class MediaPipelineError(Exception):
    """Base class for every error raised by the media pipeline."""


class ValidationError(MediaPipelineError):
    """Upload rejected before any state was persisted."""

    def __init__(self, reason: str, *, too_large: bool = False) -> None:
        super().__init__(reason)
        self.reason = reason
        self.too_large = too_large


class TransferError(MediaPipelineError):
    """Copying the source object into the staging bucket failed."""


class BucketMissingError(TransferError):
    """The staging bucket does not exist. It is never created on the fly."""

    def __init__(self, bucket_name: str) -> None:
        super().__init__(f"Staging bucket '{bucket_name}' does not exist")
        self.bucket_name = bucket_name


class EngineError(MediaPipelineError):
    """The speech engine rejected or failed the recognition request."""


class EngineTimeoutError(EngineError):
    """The long-running recognition operation did not finish in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Speech recognition did not finish within {timeout_seconds:g} seconds"
        )
        self.timeout_seconds = timeout_seconds


class EngineEmptyResultError(EngineError):
    """The engine finished but produced no usable transcript."""


class MediaFileNotFoundError(MediaPipelineError):
    def __init__(self, media_file_id: UUID) -> None:
        super().__init__(f"Media file {media_file_id} not found")
        self.media_file_id = media_file_id


class InvalidTransitionError(MediaPipelineError):
    """A requested status transition is not allowed for the record."""

    def __init__(self, media_file_id: UUID, message: Optional[str] = None) -> None:
        super().__init__(message or f"Invalid status transition for media file {media_file_id}")
        self.media_file_id = media_file_id


class TranscriptionInProgressError(InvalidTransitionError):
    def __init__(self, media_file_id: UUID) -> None:
        super().__init__(media_file_id, "Transcription already in progress")


class TranscriptionAlreadyCompletedError(InvalidTransitionError):
    def __init__(self, media_file_id: UUID) -> None:
        super().__init__(media_file_id, "Transcription already completed")


class MediaBinaryDeletedError(InvalidTransitionError):
    def __init__(self, media_file_id: UUID) -> None:
        super().__init__(media_file_id, "Media file has been deleted")


class ObjectStoreError(MediaPipelineError):
    """The primary object store rejected an upload, sign or delete call."""
