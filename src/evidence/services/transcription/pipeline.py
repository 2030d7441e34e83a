from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from src.evidence.domain.errors import (
    EngineEmptyResultError,
    EngineError,
    EngineTimeoutError,
    InvalidTransitionError,
    MediaFileNotFoundError,
    MediaPipelineError,
)
from src.evidence.domain.models.media_file import MediaFile, MediaKind, TranscriptionStatus
from src.evidence.domain.models.transcription import (
    RecognitionModel,
    ResultErrorKind,
    TranscriptionOverrides,
    TranscriptionResult,
)
from src.evidence.infra.db.repositories import MediaFileRepository
from src.evidence.infra.storage.primary import PrimaryObjectStore
from src.evidence.services.media import state_machine
from src.evidence.services.media.service import utcnow
from src.evidence.services.storage.bridge import StorageBridge
from src.evidence.services.transcription.engine import TranscriptionEngineAdapter
from src.evidence.services.transcription.variants import VariantStrategy

logger = logging.getLogger(__name__)


def default_overrides_for(record: MediaFile) -> TranscriptionOverrides:
    """Calling policy used when the operator supplies no profile."""

    model = RecognitionModel.VIDEO if record.media_kind == MediaKind.VIDEO else RecognitionModel.PHONE_CALL
    return TranscriptionOverrides(
        model=model,
        enable_speaker_diarization=True,
        diarization_speaker_count=2,
    )


def error_for_result(result: TranscriptionResult, timeout_seconds: float) -> EngineError:
    if result.error_kind == ResultErrorKind.TIMEOUT:
        return EngineTimeoutError(timeout_seconds)
    if result.error_kind == ResultErrorKind.ENGINE_ERROR:
        return EngineError(result.error or "Speech recognition failed")
    return EngineEmptyResultError(result.error or "No transcription results returned")


class TranscriptionPipeline:
    """Drives one record through claim → stage → transcribe → unstage → commit.

    Staging and engine errors never escape :meth:`run`; they become a
    ``failed`` transition with a readable ``error_message``.
    """

    def __init__(
        self,
        *,
        repository: MediaFileRepository,
        primary_store: PrimaryObjectStore,
        bridge: StorageBridge,
        adapter: TranscriptionEngineAdapter,
        variants: Optional[VariantStrategy] = None,
        retention: timedelta = timedelta(days=30),
        signed_url_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._store = primary_store
        self._bridge = bridge
        self._adapter = adapter
        self._variants = variants or VariantStrategy(adapter)
        self._retention = retention
        self._signed_url_ttl = signed_url_ttl_seconds
        self._clock = clock

    def claim(self, media_file_id: UUID) -> MediaFile:
        """Atomically move the record into ``processing``.

        Raises MediaFileNotFoundError or an InvalidTransitionError subclass
        when the record cannot be transcribed right now.
        """

        record = self._repository.claim_for_processing(media_file_id, self._clock())
        logger.info("Claimed media file %s for transcription", media_file_id)
        return record

    def transcribe(
        self,
        media_file_id: UUID,
        overrides: Optional[TranscriptionOverrides] = None,
        *,
        use_variants: bool = False,
    ) -> MediaFile:
        self.claim(media_file_id)
        return self.run(media_file_id, overrides, use_variants=use_variants)

    def run(
        self,
        media_file_id: UUID,
        overrides: Optional[TranscriptionOverrides] = None,
        *,
        use_variants: bool = False,
    ) -> MediaFile:
        """Process a record that has already been claimed."""

        record = self._repository.get(media_file_id)
        if record is None:
            raise MediaFileNotFoundError(media_file_id)
        if record.transcription_status != TranscriptionStatus.PROCESSING:
            raise InvalidTransitionError(
                media_file_id, "Media file must be claimed before it is processed"
            )

        try:
            result = self._transcribe_record(record, overrides, use_variants=use_variants)
            if result.error or not result.transcript:
                raise error_for_result(result, self._adapter.timeout_seconds)
            record = state_machine.complete(record, result, self._clock(), self._retention)
            logger.info(
                "Transcription completed for %s (confidence=%.2f, cleanup at %s)",
                media_file_id,
                result.confidence,
                record.cleanup_scheduled_at.isoformat() if record.cleanup_scheduled_at else None,
            )
        except MediaPipelineError as exc:
            logger.warning("Transcription failed for %s: %s", media_file_id, exc)
            record = state_machine.fail(record, str(exc), self._clock())
        except Exception as exc:
            logger.exception("Unexpected error while transcribing %s", media_file_id)
            record = state_machine.fail(record, str(exc) or exc.__class__.__name__, self._clock())

        try:
            return self._repository.commit_processing_result(record)
        except MediaFileNotFoundError:
            logger.warning(
                "Media file %s was deleted during transcription; result discarded", media_file_id
            )
            return record

    def _transcribe_record(
        self,
        record: MediaFile,
        overrides: Optional[TranscriptionOverrides],
        *,
        use_variants: bool,
    ) -> TranscriptionResult:
        effective = default_overrides_for(record)
        if overrides is not None:
            effective = effective.model_copy(update=overrides.model_dump(exclude_none=True))

        # Signed URLs are short-lived; always mint a fresh one.
        source_url = self._store.create_signed_url(record.storage_path, expires_in=self._signed_url_ttl)

        with self._bridge.staged(
            source_url, record.original_filename, content_type=record.content_type
        ) as staged_uri:
            if use_variants:
                outcome = self._variants.transcribe(staged_uri, effective)
                logger.info(
                    "Variant strategy picked %r for %s (accepted=%s, attempts=%d)",
                    outcome.variant,
                    record.id,
                    outcome.accepted,
                    len(outcome.attempts),
                )
                return outcome.result
            return self._adapter.transcribe(staged_uri, effective)
