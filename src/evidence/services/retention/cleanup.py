from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from src.evidence.domain.models.media_file import MediaFile
from src.evidence.infra.db.repositories import MediaFileRepository
from src.evidence.infra.storage.primary import PrimaryObjectStore
from src.evidence.services.media.service import utcnow

logger = logging.getLogger(__name__)


class CleanupCandidate(BaseModel):
    id: UUID
    original_filename: str
    custom_filename: Optional[str] = None
    transcript_completed_at: Optional[datetime] = None
    cleanup_scheduled_at: Optional[datetime] = None

    @classmethod
    def from_media_file(cls, record: MediaFile) -> "CleanupCandidate":
        return cls(
            id=record.id,
            original_filename=record.original_filename,
            custom_filename=record.custom_filename,
            transcript_completed_at=record.transcript_completed_at,
            cleanup_scheduled_at=record.cleanup_scheduled_at,
        )


class CleanupPartialFailure(BaseModel):
    """One record that could not be cleaned up. It stays eligible for the
    next run."""

    media_file_id: UUID
    filename: str
    reason: str


class CleanupPreview(BaseModel):
    cutoff: datetime
    count: int
    files: List[CleanupCandidate] = Field(default_factory=list)


class CleanupReport(BaseModel):
    cutoff: datetime
    attempted: int = 0
    succeeded: int = 0
    failures: List[CleanupPartialFailure] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def message(self) -> str:
        if self.attempted == 0:
            return "No files ready for cleanup"
        return f"Cleanup completed. {self.succeeded} of {self.attempted} files cleaned up."


class RetentionCleanupJob:
    """Purges source binaries whose retention window has elapsed.

    Eligible records are ``completed``, still have their binary and have a
    ``transcript_completed_at`` at or before ``now - retention``. The
    transcript and metadata are kept; only the stored object goes. Safe to
    run repeatedly and concurrently.
    """

    def __init__(
        self,
        *,
        repository: MediaFileRepository,
        primary_store: PrimaryObjectStore,
        retention: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._store = primary_store
        self._retention = retention
        self._clock = clock

    @property
    def retention(self) -> timedelta:
        return self._retention

    def cutoff_for(self, now: Optional[datetime] = None) -> datetime:
        return (now or self._clock()) - self._retention

    def preview(self, now: Optional[datetime] = None) -> CleanupPreview:
        """Dry run: list what :meth:`run` would purge, delete nothing."""

        cutoff = self.cutoff_for(now)
        candidates = self._repository.list_cleanup_candidates(cutoff)
        return CleanupPreview(
            cutoff=cutoff,
            count=len(candidates),
            files=[CleanupCandidate.from_media_file(record) for record in candidates],
        )

    def run(self, now: Optional[datetime] = None) -> CleanupReport:
        cutoff = self.cutoff_for(now)
        candidates = self._repository.list_cleanup_candidates(cutoff)
        report = CleanupReport(cutoff=cutoff, attempted=len(candidates))
        logger.info("Retention cleanup: %d files completed before %s", len(candidates), cutoff.isoformat())

        for record in candidates:
            failure = self._purge(record)
            if failure is None:
                report.succeeded += 1
            else:
                report.failures.append(failure)

        logger.info(
            "Retention cleanup finished: %d succeeded, %d failed",
            report.succeeded,
            len(report.failures),
        )
        return report

    def _purge(self, record: MediaFile) -> Optional[CleanupPartialFailure]:
        name = record.display_name
        try:
            self._store.delete(record.storage_path)
        except Exception as exc:
            logger.error("Failed to delete binary for %s (%s): %s", record.id, record.storage_path, exc)
            return CleanupPartialFailure(
                media_file_id=record.id,
                filename=name,
                reason=f"Failed to delete {name}: {exc}",
            )

        try:
            self._repository.mark_binary_deleted(record.id, self._clock())
        except Exception as exc:
            logger.error("Failed to update record %s after deleting its binary: %s", record.id, exc)
            return CleanupPartialFailure(
                media_file_id=record.id,
                filename=name,
                reason=f"Failed to update record for {name}: {exc}",
            )

        logger.info("Cleaned up media file %s (%s)", record.id, name)
        return None
