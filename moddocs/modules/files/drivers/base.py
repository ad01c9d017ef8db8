"""
Base storage driver interface.

Defines the contract that all storage drivers must implement. Keys are
relative object paths such as ``mods/<mod_id>/files/<uuid>.png``.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when a storage backend fails."""


class StorageObjectNotFound(StorageError):
    """Raised when a requested object does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object not found: {key}")


class BaseStorageDriver(ABC):
    """Abstract base class for storage drivers."""

    name: str = ""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """
        Store ``data`` under ``key``, replacing any existing object.

        Args:
            key: Object key
            data: File contents
            content_type: MIME type of the file
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """
        Read an object.

        Raises:
            StorageObjectNotFound: If nothing is stored under ``key``
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object; deleting a missing key is not an error."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if an object exists."""

    @abstractmethod
    def url(self, key: str) -> str:
        """Public URL for ``key``."""
