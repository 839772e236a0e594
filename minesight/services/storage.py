"""
Object storage on the local filesystem.

Buckets are directories under STORAGE_DIR, served by the app under
/storage/<bucket>/<key>.
"""

import os
import re
import time
import logging
from typing import Optional

import aiofiles

from minesight.config import settings

logger = logging.getLogger(__name__)

_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class StorageError(Exception):
    """Raised when an object cannot be written."""


def sanitize_filename(name: Optional[str], max_length: Optional[int] = None) -> str:
    """Strip characters outside [A-Za-z0-9._-] and truncate."""
    max_length = max_length or settings.MAX_FILENAME_LENGTH
    return _DISALLOWED_CHARS.sub("", name or "")[:max_length]


def build_storage_key(sanitized_name: str, epoch_millis: Optional[int] = None) -> str:
    """`<epochMillis>_<sanitizedFilename>`"""
    if epoch_millis is None:
        epoch_millis = int(time.time() * 1000)
    return f"{epoch_millis}_{sanitized_name}"


class LocalObjectStorage:
    """Put/get blobs by bucket and key; issue public URLs."""

    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root = root or settings.STORAGE_DIR
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")

    def path_for(self, bucket: str, key: str) -> str:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise StorageError(f"Invalid object key: {key!r}")
        return os.path.join(self.root, bucket, key)

    async def put(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Write an object; existing keys are never overwritten."""
        path = self.path_for(bucket, key)
        if os.path.exists(path):
            raise StorageError(f"Object already exists: {bucket}/{key}")

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, 'wb') as out_file:
                await out_file.write(data)
        except OSError as e:
            raise StorageError(f"Failed to upload {bucket}/{key}: {e}") from e

        logger.info(f"Stored {bucket}/{key} ({len(data)} bytes, {content_type})")
        return path

    async def get(self, bucket: str, key: str) -> bytes:
        path = self.path_for(bucket, key)
        try:
            async with aiofiles.open(path, 'rb') as in_file:
                return await in_file.read()
        except OSError as e:
            raise StorageError(f"Failed to read {bucket}/{key}: {e}") from e

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_base_url}/storage/{bucket}/{key}"
