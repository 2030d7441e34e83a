from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from src.evidence.container import ServiceContainer, get_container
from src.evidence.security import get_api_key
from src.evidence.services.audit.service import audit_service
from src.evidence.services.retention.cleanup import CleanupPreview, CleanupReport

router = APIRouter(
    prefix="/retention",
    tags=["retention"],
    dependencies=[Depends(get_api_key)],
)


@router.get("/cleanup", response_model=CleanupPreview)
async def preview_cleanup(container: ServiceContainer = Depends(get_container)) -> CleanupPreview:
    """Dry run: list media whose binaries the next cleanup would delete."""

    return await run_in_threadpool(container.cleanup.preview)


@router.post("/cleanup", response_model=CleanupReport)
async def run_cleanup(container: ServiceContainer = Depends(get_container)) -> CleanupReport:
    """Delete binaries whose retention window has elapsed.

    Per-file failures are reported in the response and do not stop the batch.
    """

    report = await run_in_threadpool(container.cleanup.run)
    audit_service.log_event(
        action="cleanup",
        resource_type="retention",
        extra={
            "attempted": report.attempted,
            "succeeded": report.succeeded,
            "failed": len(report.failures),
        },
    )
    return report
