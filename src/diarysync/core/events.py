"""Event bus for document-tree change notifications.

The document store publishes one event per changed child of a listened
location. Event names join the location and the kind of change, e.g.
``users/u1/cards:added``; :func:`child_event_name` builds them and
:func:`split_child_event_name` takes them apart. Hooks can be sync or async;
a failing hook is logged and never affects the store or the other hooks.

Usage::

    from diarysync.core.events import CHILD_ADDED, Event, EventBus, child_event_name

    bus = EventBus()
    name = child_event_name("users/u1/cards", CHILD_ADDED)

    async def on_card(event: Event) -> None:
        print(event.payload["key"], event.payload["value"])

    bus.on(name, on_card)
    await bus.emit(Event(name=name, payload={"key": "k1", "value": {}}))
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from time import time
from typing import Any

from loguru import logger

CHILD_ADDED = "added"
CHILD_CHANGED = "changed"
CHILD_REMOVED = "removed"
CHILD_EVENTS = (CHILD_ADDED, CHILD_CHANGED, CHILD_REMOVED)

# Callable[[Event], None] | Callable[[Event], Awaitable[None]]
Hook = Any


def child_event_name(path: str, kind: str) -> str:
    if kind not in CHILD_EVENTS:
        raise ValueError(f"Unknown event {kind!r}; expected one of {CHILD_EVENTS}")
    return f"{path}:{kind}"


def split_child_event_name(name: str) -> tuple[str, str]:
    """Inverse of :func:`child_event_name`: ``(path, kind)``."""
    path, _, kind = name.rpartition(":")
    return path, kind


@dataclass(frozen=True)
class Event:
    """One change notification. Child events carry ``key`` and ``value`` in the payload."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time)
    source: str = ""


class EventBus:
    """Named pub/sub with sync and async hooks, run in registration order."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[Hook]] = defaultdict(list)

    def on(self, event_name: str, hook: Hook) -> None:
        self._hooks[event_name].append(hook)

    def off(self, event_name: str, hook: Hook) -> None:
        """Unregister *hook*; names left without hooks are forgotten."""
        hooks = self._hooks.get(event_name, [])
        if hook in hooks:
            hooks.remove(hook)
        if not hooks:
            self._hooks.pop(event_name, None)

    def has_hooks(self, event_name: str) -> bool:
        return bool(self._hooks.get(event_name))

    def event_names(self) -> list[str]:
        return list(self._hooks)

    async def emit(self, event: Event) -> None:
        for hook in list(self._hooks.get(event.name, [])):
            try:
                result = hook(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(f"Event hook failed for {event.name}: {exc}")
