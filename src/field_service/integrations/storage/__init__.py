"""Object storage integration for visit photos."""

from field_service.integrations.storage.base import (
    FileStorage,
    MockFileStorage,
    PresignedPost,
    StorageError,
)
from field_service.integrations.storage.factory import (
    create_file_storage,
    get_file_storage,
    reset_file_storage,
)

__all__ = [
    "FileStorage",
    "MockFileStorage",
    "PresignedPost",
    "StorageError",
    "create_file_storage",
    "get_file_storage",
    "reset_file_storage",
]
