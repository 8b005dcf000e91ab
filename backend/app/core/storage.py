"""
Object storage for uploads: AWS S3 or Cloudflare R2 (S3-compatible), plus an
in-memory client for tests.
"""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from loguru import logger

from app.core.config import settings

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]+$", re.IGNORECASE)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def presign_put(
        self, key: str, content_type: str, content_length: int, expires_in: int
    ) -> str:
        ...

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        ...

    def delete_file(self, key: str) -> None:
        ...


def sanitize_path(component: Optional[str]) -> str:
    """Strip traversal sequences and separators from one key component."""

    if not component:
        return ""
    return (
        component.replace("..", "")
        .replace("/", "")
        .replace("\\", "")
        .replace("\0", "")
    )


def extract_extension(filename: str) -> str:
    last_dot = filename.rfind(".")
    if last_dot == -1 or last_dot == len(filename) - 1:
        return ""
    ext = filename[last_dot:].lower()
    if not _EXTENSION_RE.match(ext):
        return ""
    return ext


def generate_safe_key(
    context: str, context_id: str, sub_folder: Optional[str], original_filename: str
) -> str:
    """Build ``context/id[/sub]/{epoch_ms}-{uuid}{ext}``.

    The client-supplied filename only contributes its extension.
    """

    parts = [sanitize_path(context), sanitize_path(context_id)]
    safe_sub = sanitize_path(sub_folder)
    if safe_sub:
        parts.append(safe_sub)
    timestamp = int(time.time() * 1000)
    parts.append(f"{timestamp}-{uuid.uuid4()}{extract_extension(original_filename)}")
    return "/".join(parts)


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://storage.test"
    deleted: list[str] = field(default_factory=list)

    def presign_put(
        self, key: str, content_type: str, content_length: int, expires_in: int
    ) -> str:
        return f"{self.base_url}/{key}?op=put&type={content_type}&expires={expires_in}"

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{key}?op=get&expires={expires_in}"

    def delete_file(self, key: str) -> None:
        self.deleted.append(key)


@dataclass
class S3StorageClient:
    """S3 client; pass ``endpoint`` to target R2 or another compatible store."""

    bucket: str
    region: str
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    endpoint: Optional[str] = None

    def __post_init__(self):
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    def presign_put(
        self, key: str, content_type: str, content_length: int, expires_in: int
    ) -> str:
        url = self._client.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": self.bucket,
                "Key": key,
                "ContentType": content_type,
                "ContentLength": content_length,
            },
            ExpiresIn=expires_in,
        )
        logger.bind(key=key).debug("presigned_upload_url_generated")
        return url

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        url = self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )
        logger.bind(key=key).debug("presigned_download_url_generated")
        return url

    def delete_file(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)
        logger.bind(key=key).info("storage_object_deleted")


def build_storage_client() -> StorageClient:
    if settings.STORAGE_PROVIDER == "r2":
        client = S3StorageClient(
            bucket=settings.R2_BUCKET or "",
            region="auto",
            access_key_id=settings.R2_ACCESS_KEY_ID,
            secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            endpoint=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        )
    else:
        client = S3StorageClient(
            bucket=settings.S3_BUCKET or "",
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
    logger.bind(provider=settings.STORAGE_PROVIDER, bucket=client.bucket).info(
        "storage_initialized"
    )
    return client


@lru_cache
def get_storage() -> StorageClient:
    """FastAPI dependency returning the process-wide storage client."""

    return build_storage_client()
