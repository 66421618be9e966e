"""Groups: shared-attribute records, plain or reference-counted.

A :class:`CountedGroupStore` keeps ``count`` equal to the number of attached
cards and deletes the group when it drops to zero. A group that is gone has
to be created again; it is never brought back by incrementing.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from ..core.exceptions import InvariantViolation
from .base import RemoteCollection
from .models import CountedGroup, Group


class GroupStore(RemoteCollection):
    """Plain shared-attribute groups."""

    kind = "group"

    async def add(self, key: str | None, value: Mapping[str, Any]) -> str:
        """Insert a new group (empty *key*) or merge *value* into an existing one."""
        value = dict(value or {})
        if not key:
            logger.debug(f"Add {self.kind} with value {value}")
            record = self._new_record(value)
            return await self._remote(self.store.push(self.ref, record), f"add {self.kind}")

        logger.debug(f"Update {self.kind} {key} with value {value}")
        await self._remote(
            self.store.update(self.ref.child(key), self._merge_value(value)), f"update {self.kind} {key}"
        )
        return key

    async def remove(self, key: str) -> None:
        logger.debug(f"Remove {self.kind} {key}")
        await self._remote(self.store.remove(self.ref.child(key)), f"remove {self.kind} {key}")

    async def get(self, key: str) -> Group | None:
        if not key:
            return None
        record = await self._remote(self.store.get(self.ref.child(key)), f"read {self.kind} {key}")
        if not isinstance(record, dict):
            return None
        return self._model(key, record)

    def _new_record(self, value: dict[str, Any]) -> dict[str, Any]:
        return value

    def _merge_value(self, value: dict[str, Any]) -> dict[str, Any]:
        return value

    def _model(self, key: str, record: dict[str, Any]) -> Group:
        return Group.from_record(key, record)


class CountedGroupStore(GroupStore):
    """Groups that delete themselves when their last card leaves."""

    kind = "counted group"

    def _new_record(self, value: dict[str, Any]) -> dict[str, Any]:
        count = int(value.get("count", 1))
        if count < 1:
            raise ValueError(f"A new counted group needs a positive count, got {count}")
        return {**value, "count": count}

    def _merge_value(self, value: dict[str, Any]) -> dict[str, Any]:
        if "count" in value:
            logger.debug("Ignoring count in group merge; use update_count()")
        return {k: v for k, v in value.items() if k != "count"}

    def _model(self, key: str, record: dict[str, Any]) -> CountedGroup:
        return CountedGroup.from_record(key, record)

    async def update_count(self, key: str, delta: int) -> int | None:
        """Add *delta* to the group's count in one transaction.

        Returns the new count (0 means the group was deleted), or None when
        the change was refused because the group is missing or the count
        would go negative.
        """
        logger.debug(f"Update count of {self.kind} {key} by {delta}")
        if not key:
            return None

        def apply(current: Any) -> Any:
            if current is None:
                raise InvariantViolation(f"Cannot change count of missing {self.kind} {key}")
            count = int(current.get("count", 0)) + delta
            if count < 0:
                raise InvariantViolation(f"Count of {self.kind} {key} would become {count}")
            if count == 0:
                return None
            current["count"] = count
            return current

        try:
            written = await self._remote(self.store.transaction(self.ref.child(key), apply), f"count {self.kind} {key}")
        except InvariantViolation as e:
            logger.warning(str(e))
            return None
        if written is None:
            logger.info(f"{self.kind.capitalize()} {key} has no cards left; deleted")
            return 0
        return int(written["count"])
