from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from src.evidence.domain.errors import InvalidTransitionError, MediaFileNotFoundError
from src.evidence.domain.models.media_file import MediaFile, MediaFilePage, TranscriptionStatus
from src.evidence.infra.db.repositories import MediaFileFilters, MediaFileRepository
from src.evidence.services.media import state_machine


class InMemoryMediaFileRepository(MediaFileRepository):
    """Dictionary-backed repository. A single lock makes every operation,
    including the processing claim, atomic within the process."""

    def __init__(self) -> None:
        self._records: Dict[UUID, MediaFile] = {}
        self._lock = threading.Lock()

    def add(self, media_file: MediaFile) -> MediaFile:
        with self._lock:
            if media_file.id in self._records:
                raise ValueError(f"Media file {media_file.id} already exists")
            self._records[media_file.id] = media_file
        return media_file

    def get(self, media_file_id: UUID) -> Optional[MediaFile]:
        return self._records.get(media_file_id)

    def delete(self, media_file_id: UUID) -> bool:
        with self._lock:
            return self._records.pop(media_file_id, None) is not None

    def list(self, filters: MediaFileFilters, *, page: int = 1, limit: int = 10) -> MediaFilePage:
        matches = [r for r in self._records.values() if _matches(r, filters)]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        offset = max(page - 1, 0) * limit
        return MediaFilePage(
            items=matches[offset : offset + limit],
            page=page,
            limit=limit,
            total=len(matches),
        )

    def list_cleanup_candidates(self, cutoff: datetime) -> List[MediaFile]:
        candidates = [
            r
            for r in self._records.values()
            if r.transcription_status == TranscriptionStatus.COMPLETED
            and not r.binary_deleted
            and r.transcript_completed_at is not None
            and r.transcript_completed_at <= cutoff
        ]
        candidates.sort(key=lambda r: r.transcript_completed_at)  # type: ignore[arg-type, return-value]
        return candidates

    def claim_for_processing(self, media_file_id: UUID, now: datetime) -> MediaFile:
        with self._lock:
            record = self._records.get(media_file_id)
            if record is None:
                raise MediaFileNotFoundError(media_file_id)
            claimed = state_machine.start_processing(record, now)
            self._records[media_file_id] = claimed
        return claimed

    def update_display_metadata(
        self, media_file_id: UUID, values: Mapping[str, Any], now: datetime
    ) -> MediaFile:
        state_machine.ensure_display_only(values)
        with self._lock:
            record = self._records.get(media_file_id)
            if record is None:
                raise MediaFileNotFoundError(media_file_id)
            updated = record.model_copy(update={**values, "updated_at": now})
            self._records[media_file_id] = updated
        return updated

    def commit_processing_result(self, media_file: MediaFile) -> MediaFile:
        with self._lock:
            current = self._records.get(media_file.id)
            if current is None:
                raise MediaFileNotFoundError(media_file.id)
            if current.transcription_status != TranscriptionStatus.PROCESSING:
                raise InvalidTransitionError(
                    media_file.id,
                    f"Expected status 'processing', found '{current.transcription_status.value}'",
                )
            committed = current.model_copy(update=state_machine.lifecycle_values(media_file))
            self._records[media_file.id] = committed
        return committed

    def mark_binary_deleted(self, media_file_id: UUID, now: datetime) -> MediaFile:
        with self._lock:
            record = self._records.get(media_file_id)
            if record is None:
                raise MediaFileNotFoundError(media_file_id)
            updated = state_machine.mark_binary_deleted(record, now)
            self._records[media_file_id] = updated
        return updated


def _matches(record: MediaFile, filters: MediaFileFilters) -> bool:
    if filters.status is not None and record.transcription_status != filters.status:
        return False
    if filters.client_id is not None and record.client_id != filters.client_id:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = [
            record.original_filename,
            record.custom_filename,
            record.transcript,
            record.case_number,
        ]
        if not any(value and needle in value.lower() for value in haystack):
            return False
    return True
