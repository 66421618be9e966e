"""
Object stores for card attachments.

Provides an async object-store interface and a local filesystem backend.
"""

from .base import (
    ObjectStore,
    StorageError,
    StorageKeyError,
    StoragePermissionError,
)
from .local import LocalObjectStore

__all__ = [
    "LocalObjectStore",
    "ObjectStore",
    "StorageError",
    "StorageKeyError",
    "StoragePermissionError",
]
