"""
Abstract base class for object stores holding card attachments.

Objects are addressed by a string key (the image path recorded on a card).
Implementations may be a local directory, S3, GCS, etc.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable


class ObjectStore(ABC):
    """Where card images live. Keys are the image paths recorded on cards."""

    @abstractmethod
    async def upload(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any existing object."""

    @abstractmethod
    async def delete_batch(self, keys: Iterable[str]) -> None:
        """Delete every key in one request. Missing keys are ignored."""

    @abstractmethod
    async def fetch(self, key: str) -> bytes:
        """Load an object. Raises StorageKeyError if not found."""

    async def exists(self, key: str) -> bool:
        try:
            await self.fetch(key)
        except StorageKeyError:
            return False
        return True


class StorageError(Exception):
    """Base exception for storage errors."""


class StorageKeyError(StorageError, KeyError):
    """Raised when a storage key doesn't exist."""


class StoragePermissionError(StorageError):
    """Raised when storage operation is not permitted."""
