from __future__ import annotations

import logging
import threading
from typing import Dict, Protocol, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.api_core import retry as gcp_retry
from google.cloud import storage

from src.evidence.config import settings
from src.evidence.infra.gcp import load_service_account_info

logger = logging.getLogger(__name__)


class StagingBucket(Protocol):
    """Object store the speech engine can read directly by URI."""

    name: str

    def exists(self) -> bool:  # pragma: no cover - interface
        ...

    def upload(self, object_name: str, content: bytes, *, content_type: str) -> None:  # pragma: no cover - interface
        ...

    def delete(self, object_name: str) -> None:  # pragma: no cover - interface
        ...

    def uri_for(self, object_name: str) -> str:  # pragma: no cover - interface
        ...


class GcsStagingBucket:
    """Google Cloud Storage bucket used as the transcription staging area."""

    def __init__(
        self,
        client: storage.Client,
        bucket_name: str,
        *,
        upload_timeout_seconds: float = 600.0,
    ) -> None:
        self.name = bucket_name
        self._client = client
        self._bucket = client.bucket(bucket_name)
        self._upload_timeout = upload_timeout_seconds

    def exists(self) -> bool:
        return self._bucket.exists()

    def upload(self, object_name: str, content: bytes, *, content_type: str) -> None:
        blob = self._bucket.blob(object_name)
        blob.chunk_size = 8 * 1024 * 1024
        retry = gcp_retry.Retry(
            predicate=gcp_retry.if_transient_error,
            deadline=self._upload_timeout,
        )
        blob.upload_from_string(
            content,
            content_type=content_type,
            timeout=self._upload_timeout,
            retry=retry,
        )

    def delete(self, object_name: str) -> None:
        try:
            self._bucket.blob(object_name).delete()
        except gcp_exceptions.NotFound:
            return

    def uri_for(self, object_name: str) -> str:
        return f"gs://{self.name}/{object_name}"


class InMemoryStagingBucket:
    """Staging bucket kept in process memory, for development and tests."""

    def __init__(self, name: str = "temp-transcription", *, exists: bool = True) -> None:
        self.name = name
        self.created = exists
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.created

    def upload(self, object_name: str, content: bytes, *, content_type: str) -> None:
        with self._lock:
            self.objects[object_name] = (bytes(content), content_type)

    def delete(self, object_name: str) -> None:
        with self._lock:
            self.objects.pop(object_name, None)

    def uri_for(self, object_name: str) -> str:
        return f"gs://{self.name}/{object_name}"


def get_staging_bucket_from_env() -> StagingBucket:
    """Select the staging bucket to pair with the configured speech backend.

    - SPEECH_BACKEND=google → GcsStagingBucket named TRANSCRIPTION_BUCKET, or
      "<GOOGLE_CLOUD_PROJECT_ID>-temp-transcription"
    - Anything else → InMemoryStagingBucket
    """

    if settings.speech_backend.lower() != "google":
        return InMemoryStagingBucket()

    bucket_name = settings.staging_bucket_name
    if not bucket_name:
        raise RuntimeError(
            "SPEECH_BACKEND=google requires TRANSCRIPTION_BUCKET or GOOGLE_CLOUD_PROJECT_ID"
        )
    info = load_service_account_info()
    if info is not None:
        client = storage.Client.from_service_account_info(info, project=settings.google_cloud_project_id)
    else:
        client = storage.Client(project=settings.google_cloud_project_id)
    logger.info("Using GCS staging bucket %s", bucket_name)
    return GcsStagingBucket(
        client,
        bucket_name,
        upload_timeout_seconds=settings.transfer_timeout_seconds,
    )
