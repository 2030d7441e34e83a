from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field


class TranscriptionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def from_content_type(cls, content_type: str) -> "MediaKind":
        return cls.VIDEO if content_type.lower().startswith("video/") else cls.AUDIO


class MediaFile(BaseModel):
    """One uploaded audio/video evidence asset and its transcription lifecycle.

    The record outlives its binary: once the retention window has elapsed the
    object in the primary store is purged and ``binary_deleted`` is set, but
    the transcript and metadata stay.
    """

    id: UUID
    original_filename: str
    custom_filename: Optional[str] = None
    storage_path: str
    media_kind: MediaKind
    file_size: int
    content_type: Optional[str] = None

    # Best-effort only: derived from byte size unless the engine reported one.
    duration_seconds: Optional[float] = None
    duration_is_estimate: bool = True

    transcript: Optional[str] = None
    confidence: Optional[float] = None
    speaker_count: Optional[int] = None
    transcription_status: TranscriptionStatus = TranscriptionStatus.PENDING
    error_message: Optional[str] = None

    # Display metadata linking the evidence to a client/case.
    client_id: Optional[str] = None
    case_number: Optional[str] = None
    uploaded_by: Optional[str] = None

    created_at: datetime
    updated_at: datetime
    transcribed_at: Optional[datetime] = None
    transcript_completed_at: Optional[datetime] = None
    cleanup_scheduled_at: Optional[datetime] = None
    binary_deleted: bool = False

    @property
    def display_name(self) -> str:
        return self.custom_filename or self.original_filename


class MediaFilePage(BaseModel):
    items: list[MediaFile] = Field(default_factory=list)
    page: int
    limit: int
    total: int

    @computed_field  # type: ignore[misc]
    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit
