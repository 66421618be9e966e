"""Unique index: reverse lookup from a field value (e.g. a topic) to its cards.

Buckets are keyed by the value itself, escaped for the document tree. A
bucket exists exactly while at least one card is in it.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from ..core.docstore import DocumentRef, DocumentStore, escape_key, unescape_key
from .base import DEFAULT_TIMEOUT, RemoteCollection
from .models import UniqueEntry


class UniqueIndexStore(RemoteCollection):
    kind = "unique index"

    def __init__(
        self,
        ref: DocumentRef,
        store: DocumentStore,
        field: str = "topic",
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
    ):
        super().__init__(ref, store, timeout=timeout)
        self.field = field

    def _bucket(self, key: str) -> DocumentRef:
        return self.ref.child(escape_key(key))

    async def list(self) -> dict[str, UniqueEntry]:
        logger.debug(f"List all cards in unique {self.field}")
        entries = {}
        for raw_key, record in (await self._read_all()).items():
            if isinstance(record, dict):
                key = unescape_key(raw_key)
                entries[key] = UniqueEntry.from_record(key, record)
        return entries

    async def get(self, key: str) -> UniqueEntry | None:
        if not key:
            return None
        record = await self._remote(self.store.get(self._bucket(key)), f"read unique {self.field} {key!r}")
        if not isinstance(record, dict):
            return None
        return UniqueEntry.from_record(key, record)

    async def add_card(self, key: str, card_key: str) -> None:
        if not key:
            return
        logger.debug(f"Add card {card_key} to unique {self.field} {key!r}")

        def add(current: Any) -> Any:
            current = current if isinstance(current, dict) else {}
            cards = current.get("cards") or {}
            cards[card_key] = True
            current["cards"] = cards
            return current

        await self._remote(self.store.transaction(self._bucket(key), add), f"index card {card_key} under {key!r}")

    async def remove_card(self, key: str, card_key: str) -> bool:
        """Take *card_key* out of the bucket. Returns True if the bucket was deleted."""
        if not key:
            return False
        logger.debug(f"Remove card {card_key} from unique {self.field} {key!r}")
        state = {"deleted": False}

        def drop(current: Any) -> Any:
            if not isinstance(current, dict):
                return None
            cards = current.get("cards") or {}
            cards.pop(card_key, None)
            if not cards:
                state["deleted"] = True
                return None
            current["cards"] = cards
            return current

        await self._remote(self.store.transaction(self._bucket(key), drop), f"unindex card {card_key} from {key!r}")
        if state["deleted"]:
            logger.info(f"Unique {self.field} {key!r} has no cards left; deleted")
        return state["deleted"]

    async def add_description(self, key: str, text: str) -> bool:
        """Describe an existing bucket. Returns False (and writes nothing) if there is none."""
        logger.debug(f"Add description to {key!r} in unique {self.field}")
        if not key:
            return False

        def describe(current: Any) -> Any:
            if not isinstance(current, dict):
                return None
            current["description"] = text
            return current

        written = await self._remote(self.store.transaction(self._bucket(key), describe), f"describe {key!r}")
        return written is not None

    async def move_card(self, old_key: str, new_key: str, card_key: str) -> None:
        """Move a card between buckets: add to the new one, then leave the old one."""
        if old_key == new_key:
            return
        await self.add_card(new_key, card_key)
        await self.remove_card(old_key, card_key)
