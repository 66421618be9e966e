"""Tests for diarysync.core.utils.async_helpers."""

import asyncio

import pytest

from diarysync.core.exceptions import RemoteIOError
from diarysync.core.utils import KeyedLock, with_timeout


async def test_with_timeout_returns_result():
    async def quick():
        return 42

    assert await with_timeout(quick(), 1.0, "quick") == 42


async def test_with_timeout_raises_retryable():
    with pytest.raises(RemoteIOError) as exc_info:
        await with_timeout(asyncio.sleep(1), 0.01, "slow read")
    assert exc_info.value.retryable is True
    assert exc_info.value.operation == "slow read"


async def test_with_timeout_none_disables_bound():
    assert await with_timeout(asyncio.sleep(0, result="ok"), None, "unbounded") == "ok"


async def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("card"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert not locks.locked("card")


async def test_keyed_lock_allows_different_keys():
    locks = KeyedLock()
    inside = asyncio.Event()

    async def first() -> None:
        async with locks.hold("one"):
            await asyncio.wait_for(inside.wait(), 1)

    async def second() -> None:
        async with locks.hold("two"):
            inside.set()

    await asyncio.gather(first(), second())
