from __future__ import annotations

from fastapi import HTTPException, status

from src.evidence.domain.errors import (
    InvalidTransitionError,
    MediaBinaryDeletedError,
    MediaFileNotFoundError,
    MediaPipelineError,
    ObjectStoreError,
    ValidationError,
)


def http_error_for(exc: MediaPipelineError) -> HTTPException:
    """Translate a domain error raised synchronously by a service call."""

    if isinstance(exc, ValidationError):
        code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if exc.too_large else status.HTTP_400_BAD_REQUEST
        return HTTPException(status_code=code, detail=exc.reason)
    if isinstance(exc, MediaFileNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media file not found")
    if isinstance(exc, MediaBinaryDeletedError):
        return HTTPException(status_code=status.HTTP_410_GONE, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ObjectStoreError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
