"""Storage gateway factory.

Supported providers:
- s3: boto3 against AWS S3 or any S3-compatible endpoint
- mock: in-memory, for development and testing
"""

from __future__ import annotations

from field_service.config import PhotoSettings, StorageSettings, get_settings
from field_service.core.logging import get_logger
from field_service.integrations.storage.base import FileStorage, MockFileStorage

log = get_logger(__name__)


# Singleton instance
_file_storage: FileStorage | None = None


def create_file_storage(
    storage_config: StorageSettings,
    photo_config: PhotoSettings | None = None,
) -> FileStorage:
    """Build a storage gateway for the given settings."""
    provider = storage_config.provider.lower()
    photo_config = photo_config or PhotoSettings()

    if provider == "s3":
        if not storage_config.bucket:
            log.warning("S3 bucket not configured, using mock storage")
            return MockFileStorage()

        from field_service.integrations.storage.s3 import S3FileStorage, create_s3_client

        log.info("S3 storage initialized", bucket=storage_config.bucket)
        return S3FileStorage(
            client=create_s3_client(storage_config),
            bucket=storage_config.bucket,
            upload_ttl_seconds=photo_config.upload_url_ttl_seconds,
            download_ttl_seconds=photo_config.download_url_ttl_seconds,
        )

    if provider != "mock":
        log.warning("Unknown storage provider, using mock", provider=provider)
    return MockFileStorage()


def get_file_storage() -> FileStorage:
    """Get the configured storage gateway (process-wide singleton)."""
    global _file_storage

    if _file_storage is None:
        settings = get_settings()
        _file_storage = create_file_storage(settings.storage, settings.photos)

    return _file_storage


def reset_file_storage() -> None:
    """Reset the storage gateway (for testing)."""
    global _file_storage
    _file_storage = None
