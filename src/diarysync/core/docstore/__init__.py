"""
Document stores: the hierarchical key-value tree that cards, series,
groups and unique indexes are synchronized against.
"""

from .base import ChildHook, DocumentRef, DocumentStore, DocumentStoreError, Updater
from .keys import escape_key, generate_push_key, unescape_key
from .memory import MemoryDocumentStore

__all__ = [
    "ChildHook",
    "DocumentRef",
    "DocumentStore",
    "DocumentStoreError",
    "MemoryDocumentStore",
    "Updater",
    "escape_key",
    "generate_push_key",
    "unescape_key",
]
