from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Callable, Optional
from uuid import UUID, uuid4

from src.evidence.domain.errors import MediaFileNotFoundError, ValidationError
from src.evidence.domain.models.media_file import MediaFile, MediaFilePage, MediaKind
from src.evidence.infra.db.repositories import MediaFileFilters, MediaFileRepository
from src.evidence.infra.storage.primary import PrimaryObjectStore
from src.evidence.services.media import state_machine
from src.evidence.services.media.duration import estimate_duration_seconds
from src.evidence.services.validation.gate import ValidationGate

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaFileService:
    """Record-level operations around the transcription pipeline: upload,
    lookup, display-metadata edits and administrative delete."""

    def __init__(
        self,
        *,
        repository: MediaFileRepository,
        primary_store: PrimaryObjectStore,
        gate: ValidationGate,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._store = primary_store
        self._gate = gate
        self._clock = clock

    def upload(
        self,
        *,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        custom_filename: Optional[str] = None,
        client_id: Optional[str] = None,
        case_number: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> MediaFile:
        """Validate, store the binary and create a ``pending`` record.

        If the record cannot be created, the stored binary is removed again.
        """

        outcome = self._gate.check(len(content), content_type)
        if not outcome.accepted:
            raise ValidationError(outcome.reason or "File rejected", too_large=outcome.too_large)

        media_file_id = uuid4()
        original_filename = PurePosixPath(filename or "upload").name or "upload"
        storage_path = f"{media_file_id}/{original_filename}"
        mime = (content_type or "").split(";", 1)[0].strip().lower()

        self._store.upload(storage_path, content, content_type=mime)

        now = self._clock()
        record = MediaFile(
            id=media_file_id,
            original_filename=original_filename,
            custom_filename=custom_filename or None,
            storage_path=storage_path,
            media_kind=MediaKind.from_content_type(mime),
            file_size=len(content),
            content_type=mime,
            duration_seconds=estimate_duration_seconds(len(content), mime),
            duration_is_estimate=True,
            client_id=client_id or None,
            case_number=case_number or None,
            uploaded_by=uploaded_by,
            created_at=now,
            updated_at=now,
        )
        try:
            self._repository.add(record)
        except Exception:
            logger.exception("Failed to save record for %s; removing uploaded binary", storage_path)
            self._store.delete(storage_path)
            raise

        logger.info("Stored media file %s (%d bytes, %s)", record.id, record.file_size, mime)
        return record

    def get(self, media_file_id: UUID) -> Optional[MediaFile]:
        return self._repository.get(media_file_id)

    def require(self, media_file_id: UUID) -> MediaFile:
        record = self._repository.get(media_file_id)
        if record is None:
            raise MediaFileNotFoundError(media_file_id)
        return record

    def list(self, filters: MediaFileFilters, *, page: int = 1, limit: int = 10) -> MediaFilePage:
        return self._repository.list(filters, page=max(page, 1), limit=max(limit, 1))

    def update_metadata(
        self,
        media_file_id: UUID,
        *,
        fields_set: frozenset[str],
        custom_filename: Optional[str] = None,
        client_id: Optional[str] = None,
        case_number: Optional[str] = None,
    ) -> MediaFile:
        values = state_machine.display_metadata_values(
            custom_filename=custom_filename,
            client_id=client_id,
            case_number=case_number,
            fields_set=fields_set,
        )
        if not values:
            return self.require(media_file_id)
        return self._repository.update_display_metadata(media_file_id, values, self._clock())

    def delete(self, media_file_id: UUID) -> None:
        """Administrative delete: purge the binary (if still present), then
        the record."""

        record = self.require(media_file_id)
        if not record.binary_deleted:
            self._store.delete(record.storage_path)
        self._repository.delete(media_file_id)
        logger.info("Deleted media file %s", media_file_id)
