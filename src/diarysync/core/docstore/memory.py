"""
In-memory document store.

Keeps the whole tree in nested dicts. Every call yields to the event loop
(optionally after an artificial ``latency``) so callers see the same
suspension points they would against a remote service. Transactions hold a
store-wide lock across their read-modify-write.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from typing import Any

from loguru import logger

from ..events import (
    CHILD_ADDED,
    CHILD_CHANGED,
    CHILD_REMOVED,
    Event,
    EventBus,
    child_event_name,
    split_child_event_name,
)
from .base import ChildHook, DocumentRef, DocumentStore, DocumentStoreError, Updater
from .keys import generate_push_key


def _prune(value: Any) -> Any:
    """Drop None values and empty mappings, recursively. Returns None if nothing is left."""
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            child = _prune(child)
            if child is not None:
                pruned[str(key)] = child
        return pruned or None
    return value


class MemoryDocumentStore(DocumentStore):
    """Document store backed by a Python dict."""

    def __init__(self, data: dict[str, Any] | None = None, *, latency: float = 0.0):
        self._root: dict[str, Any] = _prune(copy.deepcopy(data or {})) or {}
        self.latency = latency
        self._lock = asyncio.Lock()
        self._bus = EventBus()

    # -- tree primitives -----------------------------------------------------

    def _read(self, segments: tuple[str, ...]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return node

    def _write(self, segments: tuple[str, ...], value: Any) -> None:
        value = _prune(copy.deepcopy(value))
        if not segments:
            if value is not None and not isinstance(value, dict):
                raise DocumentStoreError("The root can only hold a mapping")
            self._root = value or {}
            return

        if value is None:
            self._delete(segments)
            return

        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value

    def _delete(self, segments: tuple[str, ...]) -> None:
        trail = [self._root]
        node: Any = self._root
        for segment in segments[:-1]:
            if not isinstance(node, dict) or segment not in node:
                return
            node = node[segment]
            trail.append(node)
        if not isinstance(node, dict) or segments[-1] not in node:
            return
        del node[segments[-1]]
        # Remove ancestors left empty, innermost first.
        for depth in range(len(segments) - 1, 0, -1):
            if trail[depth]:
                break
            del trail[depth - 1][segments[depth - 1]]

    async def _pause(self) -> None:
        await asyncio.sleep(self.latency)

    # -- change notification -------------------------------------------------

    def _watched(self, segments: tuple[str, ...]) -> set[str]:
        """Listened paths whose children a write at *segments* can affect."""
        written = "/".join(segments)
        paths = set()
        for name in self._bus.event_names():
            path, _ = split_child_event_name(name)
            if not written or not path or written == path:
                paths.add(path)
            elif written.startswith(path + "/") or path.startswith(written + "/"):
                paths.add(path)
        return paths

    def _children(self, path: str) -> dict[str, Any]:
        node = self._read(DocumentRef(path).segments)
        return copy.deepcopy(node) if isinstance(node, dict) else {}

    def _mutate(self, segments: tuple[str, ...], apply: Callable[[], None]) -> list[Event]:
        """Apply a change and return the child events it produced."""
        watched = self._watched(segments)
        before = {path: self._children(path) for path in watched}
        apply()
        events = []
        for path in watched:
            events.extend(self._diff(path, before[path], self._children(path)))
        return events

    @staticmethod
    def _diff(path: str, before: dict[str, Any], after: dict[str, Any]) -> list[Event]:
        changes = []
        for key, value in after.items():
            if key not in before:
                changes.append((CHILD_ADDED, key, value))
            elif before[key] != value:
                changes.append((CHILD_CHANGED, key, value))
        changes.extend((CHILD_REMOVED, key, value) for key, value in before.items() if key not in after)
        return [
            Event(name=child_event_name(path, kind), payload={"key": key, "value": value}, source="memory")
            for kind, key, value in changes
        ]

    async def _dispatch(self, events: list[Event]) -> None:
        # Runs outside the lock so hooks may write back to the store.
        for event in events:
            await self._bus.emit(event)

    # -- DocumentStore -------------------------------------------------------

    async def get(self, ref: DocumentRef) -> Any:
        await self._pause()
        return copy.deepcopy(self._read(ref.segments))

    async def set(self, ref: DocumentRef, value: Any) -> None:
        await self._pause()
        async with self._lock:
            events = self._mutate(ref.segments, lambda: self._write(ref.segments, value))
        await self._dispatch(events)

    async def update(self, ref: DocumentRef, partial: dict[str, Any]) -> None:
        if not isinstance(partial, dict):
            raise DocumentStoreError(f"update() needs a mapping, got {type(partial).__name__}")
        await self._pause()

        def apply() -> None:
            for path, value in partial.items():
                self._write(ref.child(path).segments, value)

        async with self._lock:
            events = self._mutate(ref.segments, apply)
        await self._dispatch(events)

    async def push(self, ref: DocumentRef, value: Any) -> str:
        key = generate_push_key()
        await self.set(ref.child(key), value)
        return key

    async def remove(self, ref: DocumentRef) -> None:
        await self.set(ref, None)

    async def transaction(self, ref: DocumentRef, updater: Updater) -> Any:
        async with self._lock:
            await self._pause()
            current = copy.deepcopy(self._read(ref.segments))
            new_value = updater(current)
            events = self._mutate(ref.segments, lambda: self._write(ref.segments, new_value))
            written = copy.deepcopy(self._read(ref.segments))
        await self._dispatch(events)
        return written

    def listen(self, ref: DocumentRef, event: str, hook: ChildHook) -> Callable[[], None]:
        name = child_event_name(ref.path, event)

        async def deliver(evt: Event) -> None:
            result = hook(evt.payload["key"], evt.payload["value"])
            if asyncio.iscoroutine(result):
                await result

        self._bus.on(name, deliver)
        logger.debug(f"Listening for {event} under {ref}")

        def unsubscribe() -> None:
            self._bus.off(name, deliver)

        return unsubscribe

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the whole tree, without I/O semantics (for inspection)."""
        return copy.deepcopy(self._root)
