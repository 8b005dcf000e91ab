from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.concurrency import run_in_thread_storage
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import require_roles
from app.core.storage import StorageClient, generate_safe_key, get_storage
from app.models.upload import Upload
from app.models.user import Role, User
from app.schemas.upload import (
    ConfirmUploadRequest,
    DeleteUploadResponse,
    DownloadUrlResponse,
    PresignedUrlRequest,
    PresignedUrlResponse,
    UploadListResponse,
    UploadResponse,
)

router = APIRouter(prefix="/upload", tags=["upload"])

owner_only = require_roles(Role.OWNER)


def _check_file(size: int, content_type: str) -> None:
    if size > settings.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds maximum allowed size of {settings.MAX_FILE_SIZE} bytes",
        )
    if content_type not in settings.ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Content type '{content_type}' is not allowed. "
                f"Allowed types: {', '.join(settings.ALLOWED_MIME_TYPES)}"
            ),
        )


async def _get_owned_upload(session: AsyncSession, upload_id: str, user: User) -> Upload:
    obj = await session.scalar(select(Upload).where(Upload.id == upload_id))
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    if obj.uploaded_by_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized access to this file",
        )
    return obj


@router.post("/presigned-url", response_model=PresignedUrlResponse)
async def request_presigned_url(
    payload: PresignedUrlRequest,
    user: User = Depends(owner_only),
    storage: StorageClient = Depends(get_storage),
):
    _check_file(payload.size, payload.content_type)

    ctx = payload.context
    key = generate_safe_key(
        (ctx.type if ctx else None) or "users",
        (ctx.id if ctx else None) or user.id,
        (ctx.sub_folder if ctx else None) or "documents",
        payload.filename,
    )
    expires_in = settings.PRESIGNED_URL_EXPIRY
    upload_url = await run_in_thread_storage(
        storage.presign_put, key, payload.content_type, payload.size, expires_in
    )
    logger.bind(key=key, size=payload.size).info("upload_url_issued")
    return {
        "success": True,
        "data": {"uploadUrl": upload_url, "key": key, "expiresIn": expires_in},
    }


@router.post("/confirm", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def confirm_upload(
    payload: ConfirmUploadRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(owner_only),
):
    _check_file(payload.size, payload.content_type)
    obj = Upload(
        key=payload.key,
        filename=payload.filename,
        content_type=payload.content_type,
        size=payload.size,
        uploaded_by_id=user.id,
        context=payload.context,
    )
    session.add(obj)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Upload already confirmed"
        )
    await log_audit(
        session,
        user.id,
        "upload",
        obj.id,
        "CREATE",
        details={"key": payload.key, "size": payload.size},
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return {"success": True, "data": obj}


@router.get("", response_model=UploadListResponse)
async def list_uploads(
    session: AsyncSession = Depends(get_session),
    user: User = Depends(owner_only),
):
    result = await session.execute(
        select(Upload)
        .where(Upload.uploaded_by_id == user.id)
        .order_by(Upload.created_at.desc(), Upload.id)
    )
    return {"success": True, "data": result.scalars().all()}


@router.get("/{upload_id}/download-url", response_model=DownloadUrlResponse)
async def get_download_url(
    upload_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(owner_only),
    storage: StorageClient = Depends(get_storage),
):
    obj = await _get_owned_upload(session, upload_id, user)
    expires_in = settings.DOWNLOAD_URL_EXPIRY
    url = await run_in_thread_storage(storage.presign_get, obj.key, expires_in)
    return {"success": True, "data": {"downloadUrl": url, "expiresIn": expires_in}}


@router.delete("/{upload_id}", response_model=DeleteUploadResponse)
async def delete_upload(
    upload_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(owner_only),
    storage: StorageClient = Depends(get_storage),
):
    obj = await _get_owned_upload(session, upload_id, user)
    await run_in_thread_storage(storage.delete_file, obj.key)
    await session.delete(obj)
    await log_audit(
        session,
        user.id,
        "upload",
        upload_id,
        "DELETE",
        details={"key": obj.key},
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return {"success": True, "message": "File deleted successfully"}
