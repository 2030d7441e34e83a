from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from src.evidence.api.v1.errors import http_error_for
from src.evidence.container import ServiceContainer, get_container
from src.evidence.domain.errors import MediaPipelineError
from src.evidence.domain.models.media_file import MediaFile, MediaFilePage, TranscriptionStatus
from src.evidence.domain.models.transcription import TranscriptionOverrides
from src.evidence.infra.db.repositories import MediaFileFilters
from src.evidence.security import get_api_key, get_uploader
from src.evidence.services.audit.service import audit_service

router = APIRouter(
    prefix="/media-files",
    tags=["media-files"],
    dependencies=[Depends(get_api_key)],
)

# Services block on storage and database I/O, so handlers call them through
# the threadpool.


class UpdateMediaFileRequest(BaseModel):
    custom_filename: Optional[str] = None
    client_id: Optional[str] = None
    case_number: Optional[str] = None


class TranscribeRequest(BaseModel):
    overrides: Optional[TranscriptionOverrides] = None
    use_variants: bool = False


class MediaFileStatus(BaseModel):
    id: UUID
    transcription_status: TranscriptionStatus
    error_message: Optional[str] = None
    transcribed_at: Optional[datetime] = None
    transcript_completed_at: Optional[datetime] = None
    cleanup_scheduled_at: Optional[datetime] = None
    binary_deleted: bool = False

    @classmethod
    def from_media_file(cls, record: MediaFile) -> "MediaFileStatus":
        return cls(
            id=record.id,
            transcription_status=record.transcription_status,
            error_message=record.error_message,
            transcribed_at=record.transcribed_at,
            transcript_completed_at=record.transcript_completed_at,
            cleanup_scheduled_at=record.cleanup_scheduled_at,
            binary_deleted=record.binary_deleted,
        )


@router.post("", response_model=MediaFile, status_code=status.HTTP_201_CREATED)
async def upload_media_file(
    file: UploadFile = File(...),
    custom_filename: Optional[str] = Form(None),
    client_id: Optional[str] = Form(None),
    case_number: Optional[str] = Form(None),
    uploaded_by: str = Depends(get_uploader),
    container: ServiceContainer = Depends(get_container),
) -> MediaFile:
    """Validate and store an audio/video file, creating a ``pending`` record."""

    # Reject on the declared size before buffering the whole body.
    if file.size is not None:
        outcome = container.gate.check(file.size, file.content_type)
        if not outcome.accepted:
            code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if outcome.too_large else status.HTTP_400_BAD_REQUEST
            raise HTTPException(status_code=code, detail=outcome.reason)

    content = await file.read()
    try:
        record = await run_in_threadpool(
            container.media_files.upload,
            content=content,
            filename=file.filename or "upload",
            content_type=file.content_type,
            custom_filename=custom_filename,
            client_id=client_id,
            case_number=case_number,
            uploaded_by=uploaded_by,
        )
    except MediaPipelineError as exc:
        raise http_error_for(exc) from exc

    audit_service.log_event(
        action="upload",
        resource_type="media_file",
        resource_id=str(record.id),
        extra={"file_size": record.file_size, "media_kind": record.media_kind.value},
    )
    return record


@router.get("", response_model=MediaFilePage)
async def list_media_files(
    status_filter: Optional[TranscriptionStatus] = Query(None, alias="status"),
    client_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    container: ServiceContainer = Depends(get_container),
) -> MediaFilePage:
    filters = MediaFileFilters(status=status_filter, client_id=client_id, search=search)
    return await run_in_threadpool(container.media_files.list, filters, page=page, limit=limit)


@router.get("/{media_file_id}", response_model=MediaFile)
async def get_media_file(
    media_file_id: UUID,
    container: ServiceContainer = Depends(get_container),
) -> MediaFile:
    record = await run_in_threadpool(container.media_files.get, media_file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media file not found")
    return record


@router.get("/{media_file_id}/status", response_model=MediaFileStatus)
async def get_media_file_status(
    media_file_id: UUID,
    container: ServiceContainer = Depends(get_container),
) -> MediaFileStatus:
    """Lightweight polling endpoint for the transcription status."""

    record = await run_in_threadpool(container.media_files.get, media_file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media file not found")
    return MediaFileStatus.from_media_file(record)


@router.patch("/{media_file_id}", response_model=MediaFile)
async def update_media_file(
    media_file_id: UUID,
    request: UpdateMediaFileRequest,
    container: ServiceContainer = Depends(get_container),
) -> MediaFile:
    """Edit display metadata only. Status and transcript are not writable here."""

    try:
        record = await run_in_threadpool(
            container.media_files.update_metadata,
            media_file_id,
            fields_set=frozenset(request.model_fields_set),
            custom_filename=request.custom_filename,
            client_id=request.client_id,
            case_number=request.case_number,
        )
    except MediaPipelineError as exc:
        raise http_error_for(exc) from exc
    return record


@router.delete("/{media_file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media_file(
    media_file_id: UUID,
    container: ServiceContainer = Depends(get_container),
) -> Response:
    try:
        await run_in_threadpool(container.media_files.delete, media_file_id)
    except MediaPipelineError as exc:
        raise http_error_for(exc) from exc

    audit_service.log_event(
        action="delete",
        resource_type="media_file",
        resource_id=str(media_file_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{media_file_id}/transcribe",
    response_model=MediaFile,
    status_code=status.HTTP_202_ACCEPTED,
)
async def transcribe_media_file(
    media_file_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[TranscribeRequest] = None,
    container: ServiceContainer = Depends(get_container),
) -> MediaFile:
    """Claim the record and transcribe it in the background.

    Returns the record in ``processing``; clients poll the status endpoint
    until it becomes ``completed`` or ``failed``. A ``failed`` record may be
    submitted again.
    """

    request = request or TranscribeRequest()
    try:
        record = await run_in_threadpool(container.pipeline.claim, media_file_id)
    except MediaPipelineError as exc:
        raise http_error_for(exc) from exc

    background_tasks.add_task(
        container.pipeline.run,
        media_file_id,
        request.overrides,
        use_variants=request.use_variants,
    )

    audit_service.log_event(
        action="transcribe",
        resource_type="media_file",
        resource_id=str(media_file_id),
        extra={"use_variants": request.use_variants},
    )
    return record
