from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update

from src.evidence.domain.errors import InvalidTransitionError, MediaFileNotFoundError
from src.evidence.domain.models.media_file import MediaFile, MediaFilePage, TranscriptionStatus
from src.evidence.infra.db.models import MediaFileORM
from src.evidence.infra.db.repositories import MediaFileFilters, MediaFileRepository
from src.evidence.infra.db.session import SessionFactory
from src.evidence.services.media import state_machine

_CLAIMABLE = [status.value for status in state_machine.CLAIMABLE_STATUSES]


class SqlMediaFileRepository(MediaFileRepository):
    """SQLAlchemy-backed MediaFileRepository.

    The processing claim is a conditional ``UPDATE ... WHERE status IN
    ('pending', 'failed') AND binary_deleted = false`` checked by affected
    row count, so the database arbitrates concurrent triggers. Metadata edits
    and pipeline results are column-scoped updates that never touch each
    other's fields.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def add(self, media_file: MediaFile) -> MediaFile:
        session = self._session_factory()
        try:
            session.add(MediaFileORM.from_domain(media_file))
            session.commit()
            return media_file
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, media_file_id: UUID) -> Optional[MediaFile]:
        session = self._session_factory()
        try:
            orm = session.get(MediaFileORM, media_file_id)
            return orm.to_domain() if orm is not None else None
        finally:
            session.close()

    def delete(self, media_file_id: UUID) -> bool:
        session = self._session_factory()
        try:
            existing = session.get(MediaFileORM, media_file_id)
            if existing is None:
                return False
            session.delete(existing)
            session.commit()
            return True
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list(self, filters: MediaFileFilters, *, page: int = 1, limit: int = 10) -> MediaFilePage:
        session = self._session_factory()
        try:
            conditions = []
            if filters.status is not None:
                conditions.append(MediaFileORM.transcription_status == filters.status.value)
            if filters.client_id is not None:
                conditions.append(MediaFileORM.client_id == filters.client_id)
            if filters.search:
                pattern = f"%{filters.search}%"
                conditions.append(
                    or_(
                        MediaFileORM.original_filename.ilike(pattern),
                        MediaFileORM.custom_filename.ilike(pattern),
                        MediaFileORM.transcript.ilike(pattern),
                        MediaFileORM.case_number.ilike(pattern),
                    )
                )

            total = session.scalar(select(func.count()).select_from(MediaFileORM).where(*conditions)) or 0
            offset = max(page - 1, 0) * limit
            rows = session.scalars(
                select(MediaFileORM)
                .where(*conditions)
                .order_by(MediaFileORM.created_at.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            return MediaFilePage(
                items=[row.to_domain() for row in rows],
                page=page,
                limit=limit,
                total=total,
            )
        finally:
            session.close()

    def list_cleanup_candidates(self, cutoff: datetime) -> List[MediaFile]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(MediaFileORM)
                .where(
                    MediaFileORM.transcription_status == TranscriptionStatus.COMPLETED.value,
                    MediaFileORM.binary_deleted.is_(False),
                    MediaFileORM.transcript_completed_at.is_not(None),
                    MediaFileORM.transcript_completed_at <= cutoff,
                )
                .order_by(MediaFileORM.transcript_completed_at)
            ).all()
            return [row.to_domain() for row in rows]
        finally:
            session.close()

    def claim_for_processing(self, media_file_id: UUID, now: datetime) -> MediaFile:
        session = self._session_factory()
        try:
            values = {
                **state_machine.RESET_FIELDS,
                "transcription_status": TranscriptionStatus.PROCESSING.value,
                "updated_at": now,
            }
            result = session.execute(
                update(MediaFileORM)
                .where(
                    MediaFileORM.id == media_file_id,
                    MediaFileORM.transcription_status.in_(_CLAIMABLE),
                    MediaFileORM.binary_deleted.is_(False),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                session.commit()
                orm = session.get(MediaFileORM, media_file_id, populate_existing=True)
                if orm is None:  # pragma: no cover - deleted between commit and read
                    raise MediaFileNotFoundError(media_file_id)
                return orm.to_domain()

            session.rollback()
            orm = session.get(MediaFileORM, media_file_id)
            if orm is None:
                raise MediaFileNotFoundError(media_file_id)
            # Raises the specific guard error for the current state.
            state_machine.ensure_can_start(orm.to_domain())
            raise InvalidTransitionError(media_file_id, "Status changed concurrently; retry the request")
        finally:
            session.close()

    def update_display_metadata(
        self, media_file_id: UUID, values: Mapping[str, Any], now: datetime
    ) -> MediaFile:
        state_machine.ensure_display_only(values)
        session = self._session_factory()
        try:
            result = session.execute(
                update(MediaFileORM)
                .where(MediaFileORM.id == media_file_id)
                .values(**values, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise MediaFileNotFoundError(media_file_id)
            session.commit()
            orm = session.get(MediaFileORM, media_file_id, populate_existing=True)
            if orm is None:  # pragma: no cover - deleted between commit and read
                raise MediaFileNotFoundError(media_file_id)
            return orm.to_domain()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def commit_processing_result(self, media_file: MediaFile) -> MediaFile:
        session = self._session_factory()
        try:
            values = state_machine.lifecycle_values(media_file)
            values["transcription_status"] = media_file.transcription_status.value
            result = session.execute(
                update(MediaFileORM)
                .where(
                    MediaFileORM.id == media_file.id,
                    MediaFileORM.transcription_status == TranscriptionStatus.PROCESSING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                orm = session.get(MediaFileORM, media_file.id)
                if orm is None:
                    raise MediaFileNotFoundError(media_file.id)
                raise InvalidTransitionError(
                    media_file.id,
                    f"Expected status 'processing', found '{orm.transcription_status}'",
                )
            session.commit()
            orm = session.get(MediaFileORM, media_file.id, populate_existing=True)
            if orm is None:  # pragma: no cover - deleted between commit and read
                raise MediaFileNotFoundError(media_file.id)
            return orm.to_domain()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def mark_binary_deleted(self, media_file_id: UUID, now: datetime) -> MediaFile:
        session = self._session_factory()
        try:
            session.execute(
                update(MediaFileORM)
                .where(MediaFileORM.id == media_file_id, MediaFileORM.binary_deleted.is_(False))
                .values(binary_deleted=True, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            orm = session.get(MediaFileORM, media_file_id, populate_existing=True)
            if orm is None:
                raise MediaFileNotFoundError(media_file_id)
            return orm.to_domain()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
