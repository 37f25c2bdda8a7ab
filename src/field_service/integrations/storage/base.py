"""Object storage port for visit photos.

Photo binaries never pass through this service: clients upload directly
with a presigned POST and read through time-limited download URLs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class StorageError(Exception):
    """Raised when the object store rejects a request."""


@dataclass
class PresignedPost:
    """Upload authorisation handed to the client.

    The client POSTs a multipart form to ``url`` containing every entry of
    ``fields`` followed by the file itself.
    """

    url: str
    fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "fields": dict(self.fields)}


class FileStorage(ABC):
    """Abstract object storage gateway."""

    @abstractmethod
    async def generate_upload_post(
        self,
        key: str,
        content_type: str,
        max_size_bytes: int,
    ) -> PresignedPost:
        """Authorise a direct upload of one object.

        Args:
            key: Object key the upload must be stored under
            content_type: Required Content-Type of the upload
            max_size_bytes: Upper bound on the object size

        Returns:
            Presigned POST descriptor
        """

    @abstractmethod
    async def generate_download_url(self, key: str) -> str:
        """Time-limited URL for reading one object."""

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Delete one object. Deleting a missing object is not an error."""


class MockFileStorage(FileStorage):
    """In-memory storage for development and tests.

    Tracks which keys were authorised and deleted so tests can assert on
    storage side effects.
    """

    def __init__(self, base_url: str = "https://storage.test"):
        self.base_url = base_url.rstrip("/")
        self.authorised: list[str] = []
        self.deleted: list[str] = []

    async def generate_upload_post(
        self,
        key: str,
        content_type: str,
        max_size_bytes: int,
    ) -> PresignedPost:
        self.authorised.append(key)
        return PresignedPost(
            url=f"{self.base_url}/upload",
            fields={
                "key": key,
                "Content-Type": content_type,
                "x-max-size": str(max_size_bytes),
            },
        )

    async def generate_download_url(self, key: str) -> str:
        return f"{self.base_url}/{key}?signature=mock"

    async def delete_object(self, key: str) -> None:
        self.deleted.append(key)
