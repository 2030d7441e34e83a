from __future__ import annotations

import logging
import re
import secrets
import time
from contextlib import contextmanager
from pathlib import PurePosixPath
from typing import Callable, Iterator, Optional

import httpx

from src.evidence.domain.errors import BucketMissingError, TransferError
from src.evidence.infra.storage.staging import StagingBucket

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageBridge:
    """Copies media from the primary store into the staging bucket.

    Temporary objects are named ``transcription-<unixtime>-<random>-<filename>``;
    the random part is the only collision guard, there is no locking on the
    shared bucket. The bridge never creates the staging bucket.
    """

    def __init__(
        self,
        bucket: StagingBucket,
        http_client: httpx.Client,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._bucket = bucket
        self._http = http_client
        self._clock = clock

    @property
    def bucket_name(self) -> str:
        return self._bucket.name

    def temporary_name(self, filename: str) -> str:
        base = PurePosixPath(filename or "media").name
        safe = _UNSAFE_CHARS.sub("_", base).strip("_") or "media"
        return f"transcription-{int(self._clock())}-{secrets.token_hex(8)}-{safe}"

    def stage(self, source_url: str, filename: str, *, content_type: Optional[str] = None) -> str:
        """Download ``source_url`` and upload it to the staging bucket.

        Returns the staged object's URI (``gs://bucket/name``).
        """

        try:
            bucket_exists = self._bucket.exists()
        except Exception as exc:
            raise TransferError(f"Could not check staging bucket '{self._bucket.name}': {exc}") from exc
        if not bucket_exists:
            raise BucketMissingError(self._bucket.name)

        try:
            response = self._http.get(source_url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise TransferError(f"Failed to download file: {exc}") from exc
        if response.status_code != 200:
            raise TransferError(
                f"Failed to download file: {response.status_code} {response.reason_phrase}"
            )

        content = response.content
        mime = content_type or response.headers.get("content-type") or "application/octet-stream"
        object_name = self.temporary_name(filename)

        try:
            self._bucket.upload(object_name, content, content_type=mime)
        except Exception as exc:
            raise TransferError(f"Failed to upload to staging bucket: {exc}") from exc

        staged_uri = self._bucket.uri_for(object_name)
        logger.info("Staged %d bytes at %s", len(content), staged_uri)
        return staged_uri

    def unstage(self, staged_uri: str) -> None:
        """Best-effort removal of a staged object. Never raises."""

        try:
            self._bucket.delete(self._object_name(staged_uri))
            logger.info("Removed staged object %s", staged_uri)
        except Exception:
            logger.warning("Failed to remove staged object %s", staged_uri, exc_info=True)

    @contextmanager
    def staged(
        self, source_url: str, filename: str, *, content_type: Optional[str] = None
    ) -> Iterator[str]:
        """Stage for the duration of the block; unstage exactly once on exit."""

        staged_uri = self.stage(source_url, filename, content_type=content_type)
        try:
            yield staged_uri
        finally:
            self.unstage(staged_uri)

    def _object_name(self, staged_uri: str) -> str:
        prefix = f"gs://{self._bucket.name}/"
        if staged_uri.startswith(prefix):
            return staged_uri[len(prefix):]
        return staged_uri.rsplit("/", 1)[-1]
