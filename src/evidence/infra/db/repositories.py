from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from src.evidence.domain.models.media_file import MediaFile, MediaFilePage, TranscriptionStatus


@dataclass(frozen=True)
class MediaFileFilters:
    status: Optional[TranscriptionStatus] = None
    client_id: Optional[str] = None
    # Case-insensitive match over filenames, transcript and case number.
    search: Optional[str] = None


class MediaFileRepository(ABC):
    @abstractmethod
    def add(self, media_file: MediaFile) -> MediaFile:
        raise NotImplementedError

    @abstractmethod
    def get(self, media_file_id: UUID) -> Optional[MediaFile]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, media_file_id: UUID) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list(self, filters: MediaFileFilters, *, page: int = 1, limit: int = 10) -> MediaFilePage:
        raise NotImplementedError

    @abstractmethod
    def list_cleanup_candidates(self, cutoff: datetime) -> List[MediaFile]:
        """Completed records whose binary is still present and whose
        transcript completed at or before ``cutoff``."""
        raise NotImplementedError

    @abstractmethod
    def claim_for_processing(self, media_file_id: UUID, now: datetime) -> MediaFile:
        """Atomically move a record from pending/failed to processing.

        The status check and the write happen as one compare-and-swap, so two
        concurrent triggers for the same record cannot both succeed. Raises
        MediaFileNotFoundError or an InvalidTransitionError subclass.
        """
        raise NotImplementedError

    @abstractmethod
    def update_display_metadata(
        self, media_file_id: UUID, values: Mapping[str, Any], now: datetime
    ) -> MediaFile:
        """Write only the given display fields (and ``updated_at``).

        Lifecycle fields are left as stored, so a concurrent transition or
        cleanup is never reverted. Raises MediaFileNotFoundError.
        """
        raise NotImplementedError

    @abstractmethod
    def commit_processing_result(self, media_file: MediaFile) -> MediaFile:
        """Persist the lifecycle fields of a record leaving ``processing``.

        Conditional on the stored record still being ``processing``; display
        metadata edited meanwhile is kept. Raises MediaFileNotFoundError when
        the record is gone and InvalidTransitionError when it is no longer
        processing.
        """
        raise NotImplementedError

    @abstractmethod
    def mark_binary_deleted(self, media_file_id: UUID, now: datetime) -> MediaFile:
        raise NotImplementedError
