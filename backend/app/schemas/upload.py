"""Pydantic schemas for the presigned upload flow."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.common import CamelModel

CONTENT_TYPE_PATTERN = r"^[a-z]+/[a-z0-9+.-]+$"


class UploadContext(CamelModel):
    type: Optional[str] = Field(default=None, max_length=50)
    id: Optional[str] = Field(default=None, max_length=100)
    sub_folder: Optional[str] = Field(default=None, max_length=50)


class PresignedUrlRequest(CamelModel):
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., pattern=CONTENT_TYPE_PATTERN)
    size: int = Field(..., ge=1, le=50 * 1024 * 1024)
    context: Optional[UploadContext] = None


class PresignedUrlData(CamelModel):
    upload_url: str
    key: str
    expires_in: int


class PresignedUrlResponse(CamelModel):
    success: bool = True
    data: PresignedUrlData


class ConfirmUploadRequest(CamelModel):
    key: str = Field(..., min_length=1, max_length=500)
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., pattern=CONTENT_TYPE_PATTERN)
    size: int = Field(..., ge=1)
    context: Optional[str] = Field(default=None, max_length=100)


class UploadOut(CamelModel):
    id: str
    key: str
    filename: str
    content_type: str
    size: int
    uploaded_by_id: str
    context: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UploadResponse(CamelModel):
    success: bool = True
    data: UploadOut


class UploadListResponse(CamelModel):
    success: bool = True
    data: List[UploadOut]


class DownloadUrlData(CamelModel):
    download_url: str
    expires_in: int


class DownloadUrlResponse(CamelModel):
    success: bool = True
    data: DownloadUrlData


class DeleteUploadResponse(CamelModel):
    success: bool = True
    message: str
