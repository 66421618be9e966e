"""CardService: the entry point for reading and writing cards.

Binds the card collection to the series, topic index, counted groups and
image storage it depends on. Persisted layout under a user's root::

    cards/<card_key>
    other/series/<series_key>
    other/unique_topic/<topic>
    other/groups/<group_key>

All mutations of one card run under that card's lock. Changes to a
series and its fan-out onto bound cards run under that series' lock, taken
after the card lock and never the other way round.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import random
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, datetime
from typing import Any

from loguru import logger

from ..core.docstore import DocumentRef, DocumentStore
from ..core.exceptions import DiarySyncError, NotFoundError, PartialCompletionError
from ..core.storage import ObjectStore
from ..core.utils import KeyedLock
from .base import RemoteCollection
from .config import SyncConfig
from .fields import SIBLING_FIELDS, card_record_fields, partition
from .groups import CountedGroupStore
from .images import ImageStore
from .models import BatchReport, Card, CardTemplate, Series, UniqueEntry, UpsertResult
from .series import SeriesStore
from .unique import UniqueIndexStore

# Answer to "create a new series?" for a card that already has one.
ForkDecision = bool | Callable[[Card], bool | Awaitable[bool]]

# Fields to reset on the card once a removal step has succeeded, so a retry skips it.
_DETACHED = {
    "series": {"series": ""},
    "images": {"images": None},
    "group": {"group": ""},
    "topic": {},
}


class CardService(RemoteCollection):
    """Cards plus everything that hangs off them.

    Args:
        root: The user's root in the document tree.
        store: Document store holding cards, series, groups and indexes.
        objects: Object store holding card images.
        config: Collection paths and remote-call timeout.
        rng: Random source for :meth:`get_random`.
    """

    kind = "card"

    def __init__(
        self,
        root: DocumentRef,
        store: DocumentStore,
        objects: ObjectStore,
        config: SyncConfig | None = None,
        *,
        rng: random.Random | None = None,
    ):
        self.config = config or SyncConfig()
        timeout = self.config.timeout
        super().__init__(root.child(self.config.cards_path), store, timeout=timeout)
        self.root = root
        self.series = SeriesStore(root.child(self.config.series_path), store, timeout=timeout, rng=rng)
        self.unique_topic = UniqueIndexStore(root.child(self.config.unique_topic_path), store, "topic", timeout=timeout)
        self.groups = CountedGroupStore(root.child(self.config.groups_path), store, timeout=timeout)
        self.images = ImageStore(objects, timeout=timeout)
        self._locks = KeyedLock()
        self._series_locks = KeyedLock()

    @staticmethod
    def empty_card() -> dict[str, Any]:
        return Card().to_record()

    # -- reads ---------------------------------------------------------------

    async def get(self, key: str) -> Card | None:
        """The card with its shared attributes taken from its group and series."""
        logger.debug(f"Get value of card {key}")
        card = await self._load(key)
        if card is None:
            return None

        if card.group:
            group = await self.groups.get(card.group)
            if group is None:
                logger.warning(f"Card {key} points at missing group {card.group}")
            else:
                if group.topic is not None:
                    card.topic = group.topic
                card.tags |= group.tags
                card.repeat = group.repeat or card.repeat

        if card.series:
            series = await self.series.get(card.series)
            if series is None:
                logger.warning(f"Card {key} points at missing series {card.series}")
            else:
                card.topic = series.topic
                card.repeat = series.repeat
                card.tags |= series.tags
        return card

    async def get_series(self, day: date | datetime | str) -> list[CardTemplate]:
        return await self.series.find_matching(day)

    async def get_random(self, n: int) -> list[CardTemplate]:
        return await self.series.sample_random(n)

    async def list_unique_topic(self) -> dict[str, UniqueEntry]:
        return await self.unique_topic.list()

    async def describe_topic(self, topic: str, text: str) -> bool:
        return await self.unique_topic.add_description(topic, text)

    async def fetch_image(self, path: str) -> bytes | None:
        return await self.images.fetch(path)

    # -- writes --------------------------------------------------------------

    async def upsert(
        self,
        key: str | None,
        value: Mapping[str, Any],
        *,
        fork_series: ForkDecision = False,
    ) -> UpsertResult:
        """Create a card (empty *key*) or apply a partial update to one.

        Args:
            key: Existing card key, or empty to create a card.
            value: Partial card value. ``add_images`` maps new paths to data;
                ``remove_images`` maps image keys to their paths.
            fork_series: For a card already in a series whose shared fields
                change: True moves it to a brand-new series, False updates the
                series and every card in it. May be a callable that decides.

        Raises:
            ValueError: *value* holds fields outside the card schema or a
                field that cannot be normalized.
            NotFoundError: *key* names a card that does not exist, or a new
                card names a group that does not exist.
            RemoteIOError: the card itself could not be written.
        """
        logger.debug(f"Update card {key or '<new>'} with value {value}")
        parts = partition(value)
        card_record_fields({**parts.core, **parts.series})
        Series.shared_record(parts.series)

        if not key:
            group_key = parts.core.get("group")
            if group_key and await self.groups.get(group_key) is None:
                raise NotFoundError(f"Group {group_key} does not exist")
            key = await self._remote(self.store.push(self.ref, self.empty_card()), "create card")
            logger.info(f"Created card {key}")

        async with self._locks.hold(key):
            card = await self._load(key)
            if card is None:
                raise NotFoundError(f"Card {key} does not exist")

            result = UpsertResult(key=key, series=card.series)
            images_done, fields_done = await asyncio.gather(
                self._apply_images(key, parts.images, result),
                self._apply_fields(card, parts.core, parts.series, fork_series, result),
                return_exceptions=True,
            )
            for outcome in (images_done, fields_done):
                if isinstance(outcome, BaseException):
                    raise outcome

        if not result.complete:
            logger.warning(f"Card {key} updated with failures: {self._failures(result)}")
        return result

    async def remove(self, key: str) -> None:
        """Delete a card after detaching it from its series, images, topic and group.

        The record is deleted only when every detaching step succeeded.

        Raises:
            NotFoundError: no such card.
            PartialCompletionError: some step failed; the card is kept and the
                call can be repeated.
        """
        logger.debug(f"Remove card {key}")
        async with self._locks.hold(key):
            card = await self._load(key)
            if card is None:
                raise NotFoundError(f"Card {key} does not exist")

            steps: dict[str, Awaitable[Any]] = {}
            if card.series:
                steps["series"] = self.series.unbind(card.series, key)
            if card.images:
                steps["images"] = self.images.delete_many(card.images.values())
            if card.topic:
                steps["topic"] = self.unique_topic.remove_card(card.topic, key)
            if card.group:
                steps["group"] = self.groups.update_count(card.group, -1)

            names = list(steps)
            outcomes = await asyncio.gather(*steps.values(), return_exceptions=True)
            failed: dict[str, str] = {}
            detached: dict[str, Any] = {}
            for name, outcome in zip(names, outcomes):
                if isinstance(outcome, DiarySyncError):
                    failed[name] = str(outcome)
                elif isinstance(outcome, BaseException):
                    raise outcome
                elif isinstance(outcome, BatchReport) and not outcome.ok:
                    failed[name] = "; ".join(f"{path}: {reason}" for path, reason in outcome.failed.items())
                else:
                    detached.update(_DETACHED[name])

            card_ref = self.ref.child(key)
            if failed:
                if detached:
                    await self._remote(self.store.update(card_ref, detached), f"detach card {key}")
                logger.error(f"Card {key} kept; removal steps failed: {failed}")
                raise PartialCompletionError(f"Card {key} was not removed", failed)

            await self._remote(self.store.remove(card_ref), f"remove card {key}")
            logger.info(f"Removed card {key}")

    async def update_series(self, series_key: str, shared_fields: Mapping[str, Any]) -> BatchReport:
        """Change a series and carry the change onto every card bound to it."""
        async with self._series_locks.hold(series_key):
            return await self.series.update(series_key, shared_fields, propagate=self.propagate_shared)

    async def start_group(self, card_key: str, value: Mapping[str, Any]) -> str:
        """Create a counted group around *card_key*; the card is its first member."""
        async with self._locks.hold(card_key):
            card = await self._load(card_key)
            if card is None:
                raise NotFoundError(f"Card {card_key} does not exist")
            group_key = await self.groups.add("", {**value, "count": 1})
            if card.group:
                await self.groups.update_count(card.group, -1)
            card_ref = self.ref.child(card_key)
            await self._remote(self.store.update(card_ref, {"group": group_key}), f"update card {card_key}")
        logger.info(f"Card {card_key} started group {group_key}")
        return group_key

    async def propagate_shared(self, card_key: str, shared_fields: Mapping[str, Any]) -> None:
        """Copy a series' shared fields onto one bound card, keeping the topic index in step."""
        patch = card_record_fields({name: shared_fields[name] for name in SIBLING_FIELDS if name in shared_fields})
        if not patch:
            return
        previous: dict[str, str] = {}

        def apply(current: Any) -> Any:
            if current is None:
                raise NotFoundError(f"Series points at missing card {card_key}")
            previous["topic"] = str(current.get("topic", ""))
            current.update(patch)
            return current

        await self._remote(self.store.transaction(self.ref.child(card_key), apply), f"update card {card_key}")
        if "topic" in patch:
            await self.unique_topic.move_card(previous["topic"], patch["topic"], card_key)

    # -- internals -----------------------------------------------------------

    async def _load(self, key: str) -> Card | None:
        if not key:
            return None
        record = await self._remote(self.store.get(self.ref.child(key)), f"read card {key}")
        if not isinstance(record, dict):
            return None
        return Card.from_record(key, record)

    async def _apply_images(self, key: str, images: Mapping[str, Any], result: UpsertResult) -> None:
        added = images.get("add_images") or {}
        removed = dict(images.get("remove_images") or {})
        images_ref = self.ref.child(key).child("images")

        async def record_upload(path: str) -> None:
            await self._remote(self.store.push(images_ref, path), f"record image {path} on card {key}")

        async def forget_removed() -> None:
            await self._remote(
                self.store.update(images_ref, {image_key: None for image_key in removed}),
                f"drop images from card {key}",
            )

        result.uploads, result.deletes = await asyncio.gather(
            self.images.upload_many(added, record_upload),
            self.images.delete_many(removed.values(), forget_removed),
        )

    async def _apply_fields(
        self,
        card: Card,
        core: dict[str, Any],
        shared: dict[str, Any],
        fork_series: ForkDecision,
        result: UpsertResult,
    ) -> None:
        record = card_record_fields({**core, **shared})
        record.pop("series", None)
        record.pop("group", None)

        if "group" in core and (core["group"] or "") != card.group:
            record["group"] = await self._move_group(card, core["group"] or "")

        series_key = card.series
        if "series" in core and (core["series"] or "") != card.series:
            series_key = await self._move_series(card, core["series"] or "")

        if not shared:
            await self._write_card(card.key, record, series_key, result)
            return

        async with self._series_guard(series_key):
            tags = record.get("tags", {tag: True for tag in card.tags})
            series_key = await self._reconcile_series(card, series_key, shared, tags, fork_series, result)
            await self._write_card(card.key, record, series_key, result)

    def _series_guard(self, series_key: str) -> contextlib.AbstractAsyncContextManager:
        if not series_key:
            return contextlib.nullcontext()
        return self._series_locks.hold(series_key)

    async def _write_card(self, key: str, record: dict[str, Any], series_key: str, result: UpsertResult) -> None:
        record["series"] = series_key
        result.series = series_key
        topic = record.pop("topic", None)
        await self._remote(self.store.update(self.ref.child(key), record), f"update card {key}")
        if topic is not None:
            await self._set_topic(key, topic)

    async def _set_topic(self, key: str, topic: str) -> None:
        """Write the card's topic, moving it in the index from the value it replaced."""
        previous: dict[str, str] = {}

        def apply(current: Any) -> str:
            previous["topic"] = "" if current is None else str(current)
            return topic

        topic_ref = self.ref.child(key).child("topic")
        await self._remote(self.store.transaction(topic_ref, apply), f"update topic of card {key}")
        await self.unique_topic.move_card(previous["topic"], topic, key)

    async def _move_group(self, card: Card, group_key: str) -> str:
        if group_key and await self.groups.update_count(group_key, 1) is None:
            raise NotFoundError(f"Group {group_key} does not exist")
        if card.group:
            await self.groups.update_count(card.group, -1)
        return group_key

    async def _move_series(self, card: Card, series_key: str) -> str:
        """Rebind to an explicitly named series (e.g. a card made from a template)."""
        if card.series:
            await self.series.unbind(card.series, card.key)
        if series_key and not await self.series.bind(series_key, card.key):
            return ""
        return series_key

    async def _reconcile_series(
        self,
        card: Card,
        series_key: str,
        shared: dict[str, Any],
        tags: dict[str, bool],
        fork_series: ForkDecision,
        result: UpsertResult,
    ) -> str:
        if not series_key:
            return await self._start_series(card.key, shared, tags)

        if await self._wants_fork(fork_series, card):
            logger.info(f"Card {card.key} leaves series {series_key} for a new one")
            await self.series.unbind(series_key, card.key)
            return await self._start_series(card.key, shared, tags)

        existing = await self.series.get(series_key)
        if existing is None:
            logger.warning(f"Card {card.key} pointed at missing series {series_key}; starting a new one")
            return await self._start_series(card.key, shared, tags)

        changes = existing.changed_fields(shared)
        if changes:

            async def propagate(card_key: str, fields: dict[str, Any]) -> None:
                # The edited card gets its own values from the main write.
                if card_key != card.key:
                    await self.propagate_shared(card_key, fields)

            result.fan_out = await self.series.update(series_key, changes, propagate=propagate)
        return series_key

    async def _start_series(self, card_key: str, shared: dict[str, Any], tags: dict[str, bool]) -> str:
        series_key = await self.series.create({"tags": tags, **shared})
        if not await self.series.bind(series_key, card_key):
            raise DiarySyncError(f"Series {series_key} vanished before card {card_key} could join it")
        return series_key

    @staticmethod
    async def _wants_fork(fork_series: ForkDecision, card: Card) -> bool:
        if not callable(fork_series):
            return bool(fork_series)
        answer = fork_series(card)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    @staticmethod
    def _failures(result: UpsertResult) -> dict[str, str]:
        failed = {}
        for report in (result.uploads, result.deletes, result.fan_out):
            failed.update(report.failed)
        return failed
