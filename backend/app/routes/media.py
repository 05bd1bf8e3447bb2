"""
SpecDate Backend — Media Route Handlers
=========================================

What:  Upload, delete and serve user media.
Who:   Profile editor (avatar, gallery), round answer composer, chat/proof.

Request Flow (upload):
    1. Client sends multipart/form-data: file, type, media_id?
    2. File content is read into memory (bounded by the per-type size limit)
    3. MediaService: type rules → FileService validate + store → media row
    4. 201 with the media row and its public URL

Files are served back from /api/files/{path}; the path is resolved under
STORAGE_ROOT and anything escaping it is refused.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_current_user
from app.models import User
from app.models.mixins import ensure_utc
from app.schemas.common import ApiResponse, ErrorResponse, ok
from app.schemas.media import MediaResponse
from app.services.file_service import file_service
from app.services.media_service import media_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Media"])


@router.post(
    "/media/upload",
    status_code=201,
    response_model=ApiResponse[MediaResponse],
    responses={
        404: {"description": "media_id does not belong to the caller", "model": ErrorResponse},
        422: {"description": "Missing, oversized or wrong-type file", "model": ErrorResponse},
    },
    summary="Upload a media file",
)
async def upload_media(
    file: Optional[UploadFile] = File(default=None, description="Any file; answer media must be an image or video"),
    type: str = Form(..., description="avatar, profile_gallery, chat, proof, round_answer_image, round_answer_video"),
    media_id: Optional[int] = Form(default=None, description="Replace this avatar / gallery item"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    content = b""
    filename = ""
    content_type = None
    if file is not None:
        try:
            content = await file.read()
            filename = file.filename or ""
            content_type = file.content_type
        finally:
            await file.close()

    logger.info(
        "Received upload: user=%d type=%s filename=%s size=%d",
        user.id,
        type,
        filename or "unknown",
        len(content),
    )
    media = await media_service.upload(
        db,
        user,
        media_type=type,
        filename=filename,
        content_type=content_type,
        content=content,
        media_id=media_id,
    )
    response = MediaResponse.model_validate(media)
    response.created_at = ensure_utc(media.created_at)
    return ok(response, "Media uploaded successfully.")


@router.delete(
    "/media/{media_id}",
    response_model=ApiResponse[None],
    responses={404: {"description": "Media not found", "model": ErrorResponse}},
)
async def delete_media(
    media_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await media_service.delete(db, user, media_id)
    return ok(message="Media deleted.")


@router.get(
    "/files/{file_path:path}",
    response_class=FileResponse,
    responses={404: {"description": "File not found", "model": ErrorResponse}},
    summary="Serve a stored media file",
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve_path(file_path)
    # media_type is guessed from the filename
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
