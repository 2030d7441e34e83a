from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx
from fastapi import Request

from src.evidence.config import settings
from src.evidence.infra.db.bootstrap import build_media_file_repository
from src.evidence.infra.db.repositories import MediaFileRepository
from src.evidence.infra.storage.primary import (
    InMemoryObjectStore,
    PrimaryObjectStore,
    get_primary_store_from_env,
)
from src.evidence.infra.storage.staging import StagingBucket, get_staging_bucket_from_env
from src.evidence.services.media.service import MediaFileService, utcnow
from src.evidence.services.retention.cleanup import RetentionCleanupJob
from src.evidence.services.storage.bridge import StorageBridge
from src.evidence.services.transcription.backends import SpeechEngine, get_speech_engine_from_env
from src.evidence.services.transcription.engine import TranscriptionEngineAdapter
from src.evidence.services.transcription.pipeline import TranscriptionPipeline
from src.evidence.services.transcription.variants import VariantStrategy
from src.evidence.services.validation.gate import ValidationGate


@dataclass
class ServiceContainer:
    """Wired services shared by the HTTP API and the cleanup job."""

    repository: MediaFileRepository
    primary_store: PrimaryObjectStore
    staging_bucket: StagingBucket
    http_client: httpx.Client
    gate: ValidationGate
    media_files: MediaFileService
    bridge: StorageBridge
    adapter: TranscriptionEngineAdapter
    variants: VariantStrategy
    pipeline: TranscriptionPipeline
    cleanup: RetentionCleanupJob

    def close(self) -> None:
        self.http_client.close()


def build_container(
    *,
    repository: Optional[MediaFileRepository] = None,
    primary_store: Optional[PrimaryObjectStore] = None,
    staging_bucket: Optional[StagingBucket] = None,
    speech_engine: Optional[SpeechEngine] = None,
    http_client: Optional[httpx.Client] = None,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContainer:
    """Build the service graph, taking anything not supplied from settings."""

    repository = repository or build_media_file_repository()
    primary_store = primary_store or get_primary_store_from_env()
    staging_bucket = staging_bucket or get_staging_bucket_from_env()
    speech_engine = speech_engine or get_speech_engine_from_env()

    if http_client is None:
        if isinstance(primary_store, InMemoryObjectStore):
            http_client = httpx.Client(transport=primary_store.transport())
        else:
            http_client = httpx.Client(timeout=settings.transfer_timeout_seconds)

    retention = timedelta(days=settings.retention_days)
    gate = ValidationGate.from_settings()
    adapter = TranscriptionEngineAdapter(
        speech_engine, timeout_seconds=settings.transcription_timeout_seconds
    )
    variants = VariantStrategy(adapter)
    bridge = StorageBridge(staging_bucket, http_client)

    return ServiceContainer(
        repository=repository,
        primary_store=primary_store,
        staging_bucket=staging_bucket,
        http_client=http_client,
        gate=gate,
        media_files=MediaFileService(
            repository=repository,
            primary_store=primary_store,
            gate=gate,
            clock=clock,
        ),
        bridge=bridge,
        adapter=adapter,
        variants=variants,
        pipeline=TranscriptionPipeline(
            repository=repository,
            primary_store=primary_store,
            bridge=bridge,
            adapter=adapter,
            variants=variants,
            retention=retention,
            signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
            clock=clock,
        ),
        cleanup=RetentionCleanupJob(
            repository=repository,
            primary_store=primary_store,
            retention=retention,
            clock=clock,
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise RuntimeError("Service container is not initialised; was the startup hook run?")
    return container
