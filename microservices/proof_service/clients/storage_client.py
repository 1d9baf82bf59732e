"""
Artwork Storage Client

S3-compatible object storage for postcard artwork, through the MinIO SDK.
The SDK is blocking, so calls run in a worker thread.
"""

import asyncio
import logging
import os
import re
import secrets
import time
from datetime import timedelta
from typing import Optional
from urllib.parse import unquote

from minio import Minio
from minio.error import S3Error

from core.config import InfraConfig

from ..protocols import StorageError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "pdf": "application/pdf",
}


class StorageClient:
    """Uploads artwork and hands out time-limited URLs for it"""

    def __init__(self, config: Optional[InfraConfig] = None, client: Optional[Minio] = None):
        config = config or InfraConfig.from_env()
        self.bucket = config.storage_bucket
        self.endpoint = config.storage_endpoint
        self.region = config.storage_region
        self.secure = config.storage_secure
        self._client = client or Minio(
            config.storage_endpoint,
            access_key=config.storage_access_key,
            secret_key=config.storage_secret_key,
            secure=config.storage_secure,
            region=config.storage_region,
        )

    @property
    def _is_aws(self) -> bool:
        return self.endpoint.endswith("amazonaws.com")

    @property
    def _path_style_base(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.endpoint}/{self.bucket}/"

    def public_url(self, key: str) -> str:
        if self._is_aws:
            return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{key}"
        return f"{self._path_style_base}{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Object key addressed by a stored-artwork URL"""
        bucket = re.escape(self.bucket)
        patterns = [
            rf"^https://{bucket}\.s3\.([^.]+)\.amazonaws\.com/(.+)$",
            rf"^https://{bucket}\.s3-([^.]+)\.amazonaws\.com/(.+)$",
            rf"^https://s3\.([^.]+)\.amazonaws\.com/{bucket}/(.+)$",
        ]
        for pattern in patterns:
            match = re.match(pattern, url)
            if match:
                return unquote(match.group(2))

        if url.startswith(self._path_style_base):
            key = url[len(self._path_style_base):].split("?", 1)[0]
            return unquote(key) or None
        return None

    def is_storage_url(self, value: Optional[str]) -> bool:
        """True for stored-artwork URLs, False for provider template ids and anything else"""
        if not value or not isinstance(value, str):
            return False
        if value.startswith("tmpl_"):
            return False
        if value.startswith("https://") and (
            ".s3." in value or ".s3-" in value or "s3.amazonaws.com" in value
        ):
            return True
        return value.startswith(self._path_style_base)

    async def upload(self, file_path: str, file_name: str, owner_id: str) -> str:
        """Upload a file under the owner's prefix and return its public URL"""
        extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
        key = f"{owner_id}/{int(time.time() * 1000)}-{secrets.token_hex(8)}.{extension}"
        content_type = CONTENT_TYPES.get(extension, "application/octet-stream")

        try:
            await asyncio.to_thread(
                self._client.fput_object, self.bucket, key, file_path, content_type=content_type
            )
        except (S3Error, OSError) as e:
            logger.error(f"Failed to upload {file_name} to {self.bucket}/{key}: {e}")
            raise StorageError(f"Failed to upload file: {e}") from e

        url = self.public_url(key)
        logger.info(f"Uploaded {os.path.basename(file_path)} for {owner_id} -> {url}")
        return url

    async def presign(self, public_url: str, ttl_seconds: int = 3600) -> str:
        """Exchange a stored-artwork URL for a presigned GET URL"""
        key = self.key_from_url(public_url)
        if not key:
            raise StorageError(f"Invalid storage URL format: {public_url}")

        try:
            url = await asyncio.to_thread(
                self._client.presigned_get_object,
                self.bucket,
                key,
                expires=timedelta(seconds=ttl_seconds),
            )
        except S3Error as e:
            logger.error(f"Failed to presign {self.bucket}/{key}: {e}")
            raise StorageError(f"Failed to generate presigned URL: {e}") from e

        logger.debug(f"Presigned {key} for {ttl_seconds}s")
        return url
