"""
Abstract interface for hierarchical document stores.

A document store is a tree of nested mappings addressed by slash-separated
paths, in the style of realtime document databases. Implementations can wrap
a hosted service or keep the tree in memory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Hook signature for child events: (child_key, child_value) -> None | Awaitable[None]
ChildHook = Callable[[str, Any], Any]
# Transaction updater: current value (or None) -> new value (None deletes)
Updater = Callable[[Any], Any]


@dataclass(frozen=True)
class DocumentRef:
    """A location in the document tree. Building refs performs no I/O."""

    path: str = ""

    def __post_init__(self):
        object.__setattr__(self, "path", "/".join(_split(self.path)))

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(_split(self.path))

    @property
    def key(self) -> str | None:
        """Last path segment, or None for the root."""
        segments = self.segments
        return segments[-1] if segments else None

    @property
    def parent(self) -> DocumentRef | None:
        segments = self.segments
        if not segments:
            return None
        return DocumentRef("/".join(segments[:-1]))

    def child(self, path: str) -> DocumentRef:
        if not _split(path):
            raise ValueError(f"Invalid child path {path!r}")
        return DocumentRef(f"{self.path}/{path}")

    def __str__(self) -> str:
        return "/" + self.path


def _split(path: str) -> list[str]:
    return [part for part in str(path).split("/") if part]


class DocumentStore(ABC):
    """Abstract base class for document stores.

    ``set``/``update`` with a ``None`` value delete that location, and
    locations that end up holding an empty mapping are removed, so a bound
    set that loses its last member disappears from the tree.
    """

    @abstractmethod
    async def get(self, ref: DocumentRef) -> Any:
        """One-shot read. Returns None when nothing is stored at *ref*."""

    @abstractmethod
    async def set(self, ref: DocumentRef, value: Any) -> None:
        """Replace the value at *ref*."""

    @abstractmethod
    async def update(self, ref: DocumentRef, partial: dict[str, Any]) -> None:
        """Merge *partial* into *ref*. Keys may be relative child paths."""

    @abstractmethod
    async def push(self, ref: DocumentRef, value: Any) -> str:
        """Store *value* under a new, chronologically ordered child key of *ref*."""

    @abstractmethod
    async def remove(self, ref: DocumentRef) -> None:
        """Delete *ref* and everything beneath it."""

    @abstractmethod
    async def transaction(self, ref: DocumentRef, updater: Updater) -> Any:
        """Atomically replace the value at *ref* with ``updater(current)``.

        Returns the value written (None when the updater deleted the location).
        """

    @abstractmethod
    def listen(self, ref: DocumentRef, event: str, hook: ChildHook) -> Callable[[], None]:
        """Subscribe to ``added``/``changed``/``removed`` events on direct
        children of *ref*. Returns a callable that cancels the subscription.
        """


class DocumentStoreError(Exception):
    """Raised when a document store operation fails."""
