"""Shared plumbing for collections kept in the document store."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from ..core.docstore import ChildHook, DocumentRef, DocumentStore, DocumentStoreError
from ..core.exceptions import RemoteIOError
from ..core.storage import StorageError
from ..core.utils import with_timeout

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0


async def guarded(
    awaitable: Awaitable[T],
    timeout: float | None,
    operation: str,
    passthrough: tuple[type[Exception], ...] = (),
) -> T:
    """Run a collaborator call, turning its failures into :class:`RemoteIOError`.

    Exceptions listed in *passthrough* reach the caller unchanged.
    """
    try:
        return await with_timeout(awaitable, timeout, operation)
    except RemoteIOError:
        raise
    except passthrough:
        raise
    except (DocumentStoreError, StorageError, OSError) as e:
        logger.error(f"{operation} failed: {e}")
        raise RemoteIOError(f"{operation} failed: {e}", operation=operation) from e


class RemoteCollection:
    """A collection of records under one document-store location."""

    kind = "record"

    def __init__(self, ref: DocumentRef, store: DocumentStore, *, timeout: float | None = DEFAULT_TIMEOUT):
        self.ref = ref
        self.store = store
        self.timeout = timeout

    async def _remote(self, awaitable: Awaitable[T], operation: str) -> T:
        return await guarded(awaitable, self.timeout, operation)

    async def _read_all(self) -> dict[str, Any]:
        raw = await self._remote(self.store.get(self.ref), f"read all {self.kind} records")
        return raw if isinstance(raw, dict) else {}

    def listen(self, event: str, hook: ChildHook) -> Callable[[], None]:
        """Notify *hook* with ``(key, value)`` when a record is added, changed or removed.

        A failing hook is logged; it never affects the stored data.
        """

        async def safe_hook(key: str, value: Any) -> None:
            try:
                result = hook(key, value)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(f"{self.kind} listener failed on {event} of {key}: {exc}")

        return self.store.listen(self.ref, event, safe_hook)
