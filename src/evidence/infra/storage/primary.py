from __future__ import annotations

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
from urllib.parse import quote, unquote, urlsplit

import httpx

from src.evidence.config import settings
from src.evidence.domain.errors import ObjectStoreError

logger = logging.getLogger(__name__)


class PrimaryObjectStore(ABC):
    """Object store holding the uploaded evidence binaries."""

    @abstractmethod
    def upload(self, path: str, content: bytes, *, content_type: str) -> None:
        """Persist bytes under ``path``. Fails if the object already exists."""

    @abstractmethod
    def create_signed_url(self, path: str, *, expires_in: int) -> str:
        """Return a time-limited download URL for ``path``.

        Callers must request a fresh URL per operation.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete the object at ``path``.

        Deleting an object that is already gone is not an error.
        """


class SupabaseObjectStore(PrimaryObjectStore):
    """Primary store backed by the Supabase Storage REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        bucket: str,
        client: Optional[httpx.Client] = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _object_url(self, *parts: str) -> str:
        return "/".join([f"{self._base_url}/storage/v1", *parts])

    def upload(self, path: str, content: bytes, *, content_type: str) -> None:
        url = self._object_url("object", self._bucket, quote(path))
        headers = {**self._headers, "Content-Type": content_type, "x-upsert": "false"}
        try:
            response = self._client.post(url, content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise ObjectStoreError(f"Upload of {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise ObjectStoreError(
                f"Upload of {path} failed with status {response.status_code}: {response.text}"
            )

    def create_signed_url(self, path: str, *, expires_in: int) -> str:
        url = self._object_url("object", "sign", self._bucket, quote(path))
        try:
            response = self._client.post(url, json={"expiresIn": expires_in}, headers=self._headers)
        except httpx.HTTPError as exc:
            raise ObjectStoreError(f"Failed to generate signed URL for {path}: {exc}") from exc
        if response.status_code >= 400:
            raise ObjectStoreError(
                f"Failed to generate signed URL for {path}: status {response.status_code}"
            )

        try:
            signed = response.json().get("signedURL")
        except ValueError as exc:
            raise ObjectStoreError(f"Signed URL response for {path} was not JSON") from exc
        if not signed:
            raise ObjectStoreError(f"Signed URL response for {path} was empty")
        return f"{self._base_url}/storage/v1{signed}"

    def delete(self, path: str) -> None:
        url = self._object_url("object", self._bucket)
        try:
            response = self._client.request(
                "DELETE", url, json={"prefixes": [path]}, headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise ObjectStoreError(f"Delete of {path} failed: {exc}") from exc
        if response.status_code == 404:
            return
        if response.status_code >= 400:
            raise ObjectStoreError(
                f"Delete of {path} failed with status {response.status_code}: {response.text}"
            )


class InMemoryObjectStore(PrimaryObjectStore):
    """Process-local primary store for development and tests.

    Signed URLs point at a fake host; :meth:`transport` returns an
    ``httpx.MockTransport`` that serves them, so downloads go through the
    same HTTP code path as in production.
    """

    host = "object-store.local"

    def __init__(self, bucket: str = "media-files") -> None:
        self._bucket = bucket
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()

    def upload(self, path: str, content: bytes, *, content_type: str) -> None:
        with self._lock:
            if path in self._objects:
                raise ObjectStoreError(f"Object {path} already exists")
            self._objects[path] = (bytes(content), content_type)

    def create_signed_url(self, path: str, *, expires_in: int) -> str:
        with self._lock:
            if path not in self._objects:
                raise ObjectStoreError(f"Object {path} not found")
            token = secrets.token_urlsafe(16)
            self._tokens[token] = path
        return f"http://{self.host}/{self._bucket}/{quote(path)}?token={token}&expires_in={expires_in}"

    def delete(self, path: str) -> None:
        with self._lock:
            self._objects.pop(path, None)

    def exists(self, path: str) -> bool:
        return path in self._objects

    def read(self, path: str) -> bytes:
        return self._objects[path][0]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._serve)

    def _serve(self, request: httpx.Request) -> httpx.Response:
        token = request.url.params.get("token")
        prefix = f"/{self._bucket}/"
        raw_path = urlsplit(str(request.url)).path
        if not raw_path.startswith(prefix):
            return httpx.Response(404)
        path = unquote(raw_path[len(prefix):])

        with self._lock:
            if token is None or self._tokens.get(token) != path:
                return httpx.Response(403, text="Invalid signature")
            stored = self._objects.get(path)
        if stored is None:
            return httpx.Response(404, text="Object not found")

        content, content_type = stored
        headers = {"Content-Type": content_type, "Content-Length": str(len(content))}
        if request.method == "HEAD":
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, content=content, headers=headers)


def get_primary_store_from_env() -> PrimaryObjectStore:
    """Select the primary store based on STORAGE_BACKEND.

    - STORAGE_BACKEND=supabase → SupabaseObjectStore (needs SUPABASE_URL and
      SUPABASE_SERVICE_ROLE_KEY)
    - Anything else (or unset) → InMemoryObjectStore
    """

    backend_name = settings.storage_backend.lower()
    if backend_name == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
            )
        return SupabaseObjectStore(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
            bucket=settings.media_bucket,
            timeout_seconds=settings.transfer_timeout_seconds,
        )
    logger.info("Using in-memory primary object store")
    return InMemoryObjectStore(bucket=settings.media_bucket)
