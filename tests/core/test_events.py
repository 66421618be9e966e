"""Tests for diarysync.core.events: EventBus and Event."""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from diarysync.core.events import (
    CHILD_ADDED,
    CHILD_REMOVED,
    Event,
    EventBus,
    child_event_name,
    split_child_event_name,
)

pytestmark = pytest.mark.smoke


async def test_on_off_emit_lifecycle():
    bus = EventBus()
    received: list[Event] = []

    def hook(event: Event) -> None:
        received.append(event)

    bus.on("cards:added", hook)
    evt = Event(name="cards:added", payload={"key": "c1"}, source="test")
    await bus.emit(evt)

    assert received == [evt]

    bus.off("cards:added", hook)
    await bus.emit(evt)

    assert len(received) == 1  # hook was removed
    assert not bus.has_hooks("cards:added")


async def test_async_hooks_are_awaited():
    bus = EventBus()
    received: list[str] = []

    async def hook(event: Event) -> None:
        received.append(event.payload["key"])

    bus.on(CHILD_ADDED, hook)
    await bus.emit(Event(name=CHILD_ADDED, payload={"key": "k"}))
    assert received == ["k"]


async def test_failing_hook_does_not_stop_others():
    bus = EventBus()
    received: list[str] = []

    def broken(event: Event) -> None:
        raise RuntimeError("listener bug")

    bus.on("x", broken)
    bus.on("x", lambda event: received.append(event.name))

    await bus.emit(Event(name="x"))
    assert received == ["x"]


def test_off_unknown_hook_is_noop():
    bus = EventBus()
    bus.off("never", lambda event: None)
    assert bus.event_names() == []


def test_event_is_frozen():
    evt = Event(name="x")
    with pytest.raises(FrozenInstanceError):
        evt.name = "y"


def test_child_event_names():
    name = child_event_name("users/u1/cards", CHILD_REMOVED)
    assert name == "users/u1/cards:removed"
    assert split_child_event_name(name) == ("users/u1/cards", CHILD_REMOVED)
    assert split_child_event_name(child_event_name("", CHILD_ADDED)) == ("", CHILD_ADDED)


def test_unknown_child_event_kind():
    with pytest.raises(ValueError, match="moved"):
        child_event_name("cards", "moved")
