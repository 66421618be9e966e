"""Async utilities for guarding remote calls and serializing work per key."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar

from loguru import logger

from ..exceptions import RemoteIOError

T = TypeVar("T")


async def with_timeout(awaitable: Awaitable[T], timeout: float | None, operation: str) -> T:
    """
    Await a remote call, bounding it by *timeout* seconds.

    A timeout is surfaced as a retryable :class:`RemoteIOError`. ``None``
    disables the bound.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Remote call timed out after {timeout}s: {operation}")
        raise RemoteIOError(f"Timed out: {operation}", operation=operation, retryable=True) from e


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it.

    Usage::

        locks = KeyedLock()
        async with locks.hold(card_key):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]
