"""Object storage for uploaded clothing and profile images."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Dict, Literal, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logic.errors import StorageError
from logic.validation import MAX_UPLOAD_BYTES, validate_upload
from models.clothing import UploadedFile
from models.taxonomy import ClothingCategory, validate_category
from tools.observability import instrument_call

LOGGER = logging.getLogger(__name__)
UploadKind = Literal["clothing", "profile"]
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", filename) or "upload"


def build_object_key(
    owner_id: str,
    original_name: str,
    kind: UploadKind = "clothing",
    category: Optional[ClothingCategory] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """Lay out keys as ``clothing/<category>/<owner>/<ts>-<name>`` or ``profile/<owner>/<ts>-<name>``."""

    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    name = f"{stamp}-{sanitize_filename(original_name)}"
    if kind == "profile":
        return f"profile/{owner_id}/{name}"
    if category is None:
        raise StorageError("Category is required for clothing uploads")
    return f"clothing/{validate_category(category).slug}/{owner_id}/{name}"


class StorageProvider(ABC):
    """Durable storage for image bytes; returns a public URL."""

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self.max_bytes = max_bytes

    async def store(
        self,
        data: bytes,
        original_name: str,
        content_type: str,
        owner_id: str,
        category: Optional[ClothingCategory] = None,
        kind: UploadKind = "clothing",
    ) -> str:
        """Validate then upload. Content type and size are checked before any network call."""

        validate_upload(UploadedFile(filename=original_name, content_type=content_type, data=data), self.max_bytes)
        key = build_object_key(owner_id, original_name, kind=kind, category=category)
        return await self._put(key, data, content_type)

    async def store_file(
        self,
        file: UploadedFile,
        owner_id: str,
        category: Optional[ClothingCategory] = None,
        kind: UploadKind = "clothing",
    ) -> str:
        return await self.store(file.data, file.filename, file.media_type, owner_id, category=category, kind=kind)

    @abstractmethod
    async def _put(self, key: str, data: bytes, content_type: str) -> str:
        """Write the object and return its URL."""


class S3StorageProvider(StorageProvider):
    """S3-compatible storage (Cloudflare R2 in production)."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        public_url: str | None = None,
        region: str = "auto",
        max_bytes: int = MAX_UPLOAD_BYTES,
        client: object | None = None,
    ) -> None:
        super().__init__(max_bytes=max_bytes)
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.public_url = public_url.rstrip("/") if public_url else None
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def object_url(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        if self.endpoint_url:
            host = self.endpoint_url.split("://", 1)[-1].rstrip("/")
            return f"https://{self.bucket}.{host}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    @instrument_call("store_object")
    async def _put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("Object upload failed", extra={"bucket": self.bucket, "error": str(exc)})
            raise StorageError() from exc
        return self.object_url(key)


class InMemoryStorageProvider(StorageProvider):
    """Keeps objects in a dict; used for local runs and tests."""

    def __init__(self, base_url: str = "memory://wardrobe", max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        super().__init__(max_bytes=max_bytes)
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, bytes] = {}

    async def _put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = data
        return f"{self.base_url}/{key}"


__all__ = [
    "InMemoryStorageProvider",
    "S3StorageProvider",
    "StorageProvider",
    "build_object_key",
    "sanitize_filename",
]
