from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.evidence.domain.models.media_file import MediaFile, MediaKind, TranscriptionStatus


class Base(DeclarativeBase):
    pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class MediaFileORM(Base):
    __tablename__ = "media_files"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    original_filename: Mapped[str] = mapped_column(String, nullable=False)
    custom_filename: Mapped[str | None] = mapped_column(String, nullable=True)
    storage_path: Mapped[str] = mapped_column(String, nullable=False)
    media_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str | None] = mapped_column(String, nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    duration_is_estimate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    speaker_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transcription_status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    client_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    case_number: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    transcribed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transcript_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    cleanup_scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    binary_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @classmethod
    def from_domain(cls, media_file: MediaFile) -> "MediaFileORM":
        orm = cls(id=media_file.id)
        orm.apply(media_file)
        return orm

    def apply(self, media_file: MediaFile) -> None:
        """Copy every mutable field from the domain model onto this row."""

        self.original_filename = media_file.original_filename
        self.custom_filename = media_file.custom_filename
        self.storage_path = media_file.storage_path
        self.media_kind = media_file.media_kind.value
        self.file_size = media_file.file_size
        self.content_type = media_file.content_type
        self.duration_seconds = media_file.duration_seconds
        self.duration_is_estimate = media_file.duration_is_estimate
        self.transcript = media_file.transcript
        self.confidence = media_file.confidence
        self.speaker_count = media_file.speaker_count
        self.transcription_status = media_file.transcription_status.value
        self.error_message = media_file.error_message
        self.client_id = media_file.client_id
        self.case_number = media_file.case_number
        self.uploaded_by = media_file.uploaded_by
        self.created_at = media_file.created_at
        self.updated_at = media_file.updated_at
        self.transcribed_at = media_file.transcribed_at
        self.transcript_completed_at = media_file.transcript_completed_at
        self.cleanup_scheduled_at = media_file.cleanup_scheduled_at
        self.binary_deleted = media_file.binary_deleted

    def to_domain(self) -> MediaFile:
        return MediaFile(
            id=self.id,
            original_filename=self.original_filename,
            custom_filename=self.custom_filename,
            storage_path=self.storage_path,
            media_kind=MediaKind(self.media_kind),
            file_size=self.file_size,
            content_type=self.content_type,
            duration_seconds=self.duration_seconds,
            duration_is_estimate=self.duration_is_estimate,
            transcript=self.transcript,
            confidence=self.confidence,
            speaker_count=self.speaker_count,
            transcription_status=TranscriptionStatus(self.transcription_status),
            error_message=self.error_message,
            client_id=self.client_id,
            case_number=self.case_number,
            uploaded_by=self.uploaded_by,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            transcribed_at=_as_utc(self.transcribed_at),
            transcript_completed_at=_as_utc(self.transcript_completed_at),
            cleanup_scheduled_at=_as_utc(self.cleanup_scheduled_at),
            binary_deleted=self.binary_deleted,
        )
