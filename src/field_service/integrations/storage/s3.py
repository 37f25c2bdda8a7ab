"""S3-compatible object storage (AWS S3, Cloudflare R2, MinIO).

boto3 is synchronous; every call runs in a worker thread so the event loop
is never blocked.
"""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from field_service.config import StorageSettings
from field_service.core.logging import get_logger
from field_service.integrations.storage.base import FileStorage, PresignedPost, StorageError

log = get_logger(__name__)


def create_s3_client(settings: StorageSettings) -> Any:
    """Get a configured boto3 S3 client."""
    kwargs: dict[str, Any] = {
        "config": Config(signature_version="s3v4"),
        "region_name": settings.region or None,
    }
    if settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
    if settings.access_key_id and settings.secret_access_key:
        kwargs["aws_access_key_id"] = settings.access_key_id
        kwargs["aws_secret_access_key"] = settings.secret_access_key

    return boto3.client("s3", **kwargs)


class S3FileStorage(FileStorage):
    """Photo storage in an S3 bucket."""

    def __init__(
        self,
        client: Any,
        bucket: str,
        upload_ttl_seconds: int = 900,
        download_ttl_seconds: int = 3600,
    ):
        self._client = client
        self.bucket = bucket
        self.upload_ttl_seconds = upload_ttl_seconds
        self.download_ttl_seconds = download_ttl_seconds

    async def generate_upload_post(
        self,
        key: str,
        content_type: str,
        max_size_bytes: int,
    ) -> PresignedPost:
        """Presigned POST restricted to one key, one content type and a size range."""
        try:
            response = await asyncio.to_thread(
                self._client.generate_presigned_post,
                Bucket=self.bucket,
                Key=key,
                Fields={"Content-Type": content_type},
                Conditions=[
                    {"Content-Type": content_type},
                    ["content-length-range", 1, max_size_bytes],
                ],
                ExpiresIn=self.upload_ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            log.error("Failed to presign upload", key=key, error=str(e))
            raise StorageError(f"Could not authorise upload for {key}") from e

        return PresignedPost(url=response["url"], fields=dict(response["fields"]))

    async def generate_download_url(self, key: str) -> str:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.download_ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            log.error("Failed to presign download", key=key, error=str(e))
            raise StorageError(f"Could not create download URL for {key}") from e

    async def delete_object(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not delete {key}") from e

        log.debug("Deleted object", key=key)
