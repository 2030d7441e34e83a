from fastapi import APIRouter, Depends, HTTPException, status
from starlette.concurrency import run_in_threadpool

from src.evidence.container import ServiceContainer, get_container

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint."""
    return {"status": "ok", "version": "v1"}


@router.get("/system/staging/health")
async def staging_health_v1(container: ServiceContainer = Depends(get_container)) -> dict:
    """Check that the transcription staging bucket exists.

    The bucket is provisioned out of band; this check reports 503 rather than
    creating it.
    """

    bucket = container.staging_bucket
    try:
        exists = await run_in_threadpool(bucket.exists)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not reach staging bucket '{bucket.name}': {exc}",
        ) from exc
    if not exists:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Staging bucket '{bucket.name}' does not exist",
        )
    return {"status": "ok", "bucket": bucket.name}
