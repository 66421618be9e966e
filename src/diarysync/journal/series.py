"""Series records: recurrence templates shared by a set of bound cards.

A series is created from a card's shared fields and deleted as soon as its
last bound card is unbound. Bound-set changes are single transactions, so
concurrent unbinds cannot resurrect or leak a series.
"""

from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, datetime
from typing import Any

from loguru import logger

from ..core.docstore import DocumentRef, DocumentStore
from ..core.exceptions import DiarySyncError, InvariantViolation, RemoteIOError
from .base import DEFAULT_TIMEOUT, RemoteCollection
from .models import BatchReport, CardTemplate, RepeatType, Series
from .recurrence import matches, to_date

# Called once per bound card with (card_key, shared_fields).
Propagate = Callable[[str, dict[str, Any]], Awaitable[None] | None]


class SeriesStore(RemoteCollection):
    """Owns the series collection (``other/series`` by default)."""

    kind = "series"

    def __init__(
        self,
        ref: DocumentRef,
        store: DocumentStore,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        rng: random.Random | None = None,
    ):
        super().__init__(ref, store, timeout=timeout)
        self._rng = rng or random.Random()

    async def all(self) -> dict[str, Series]:
        series = {}
        for key, record in (await self._read_all()).items():
            if not isinstance(record, dict):
                logger.warning(f"Skipping malformed series {key}: {record!r}")
                continue
            try:
                series[key] = Series.from_record(key, record)
            except ValueError as e:
                logger.warning(f"Skipping unreadable series {key}: {e}")
        return series

    async def get(self, key: str) -> Series | None:
        if not key:
            return None
        record = await self._remote(self.store.get(self.ref.child(key)), f"read series {key}")
        if not isinstance(record, dict):
            return None
        return Series.from_record(key, record)

    async def find_matching(self, day: date | datetime | str) -> list[CardTemplate]:
        """Templates for every series whose recurrence falls on *day*."""
        day = to_date(day)
        logger.debug(f"Get repeat cards at {day.isoformat()}")
        return [s.template() for s in (await self.all()).values() if matches(day, s.repeat)]

    async def sample_random(self, n: int) -> list[CardTemplate]:
        """Up to *n* distinct random-type series, drawn without replacement."""
        logger.debug(f"Get {n} random cards")
        if n <= 0:
            return []
        pool = [s for s in (await self.all()).values() if s.repeat and s.repeat.type == RepeatType.RANDOM]
        pool.sort(key=lambda s: s.key)
        return [s.template() for s in self._rng.sample(pool, min(n, len(pool)))]

    async def create(self, seed_fields: Mapping[str, Any]) -> str:
        """Insert a series holding the seed's shared fields and no bound cards."""
        record = Series.shared_record(seed_fields)
        key = await self._remote(self.store.push(self.ref, record), "create series")
        logger.info(f"Created series {key}")
        return key

    async def update(
        self,
        key: str,
        shared_fields: Mapping[str, Any],
        propagate: Propagate | None = None,
    ) -> BatchReport:
        """Merge *shared_fields* into the series, then hand them to every bound card.

        Failures are logged and reported, never raised. Nothing is rolled
        back: cards already updated stay updated.

        Only the series record changes here; bound cards change only through
        *propagate*. ``CardService.update_series`` passes one that rewrites
        each card and its topic index entry.
        """
        logger.debug(f"Update series {key}")
        report = BatchReport()
        patch = Series.shared_record(shared_fields)

        def merge(current: Any) -> Any:
            if current is None:
                raise InvariantViolation(f"Series {key} does not exist")
            current.update(patch)
            return current

        try:
            written = await self._remote(self.store.transaction(self.ref.child(key), merge), f"update series {key}")
        except InvariantViolation as e:
            logger.warning(str(e))
            report.failed[key] = str(e)
            return report
        except RemoteIOError as e:
            report.failed[key] = str(e)
            return report

        if propagate is None:
            return report

        card_keys = sorted(Series.from_record(key, written or {}).cards)
        outcomes = await asyncio.gather(
            *(_call(propagate, card_key, dict(shared_fields)) for card_key in card_keys),
            return_exceptions=True,
        )
        for card_key, outcome in zip(card_keys, outcomes):
            if isinstance(outcome, DiarySyncError):
                logger.error(f"Could not update card {card_key} from series {key}: {outcome}")
                report.failed[card_key] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                report.succeeded.append(card_key)
        return report

    async def bind(self, series_key: str, card_key: str) -> bool:
        """Add *card_key* to the bound set. A missing series is never recreated."""
        logger.debug(f"Add card {card_key} to series {series_key}")

        def add(current: Any) -> Any:
            if current is None:
                raise InvariantViolation(f"Cannot bind card {card_key} to missing series {series_key}")
            cards = current.get("cards") or {}
            cards[card_key] = True
            current["cards"] = cards
            return current

        try:
            await self._remote(self.store.transaction(self.ref.child(series_key), add), f"bind series {series_key}")
        except InvariantViolation as e:
            logger.warning(str(e))
            return False
        return True

    async def unbind(self, series_key: str, card_key: str) -> bool:
        """Remove *card_key* from the bound set; delete the series if it was the last one.

        Returns True when the series was deleted. Unbinding a card that is not
        bound is a no-op.
        """
        logger.debug(f"Remove card {card_key} from series {series_key}")

        def drop(current: Any) -> Any:
            cards = (current or {}).get("cards") or {}
            if card_key not in cards:
                raise InvariantViolation(f"Card {card_key} is not bound to series {series_key}")
            del cards[card_key]
            if not cards:
                return None
            current["cards"] = cards
            return current

        try:
            written = await self._remote(
                self.store.transaction(self.ref.child(series_key), drop), f"unbind series {series_key}"
            )
        except InvariantViolation as e:
            logger.warning(str(e))
            return False
        if written is None:
            logger.info(f"Series {series_key} lost its last card; deleted")
            return True
        return False


async def _call(propagate: Propagate, card_key: str, fields: dict[str, Any]) -> None:
    result = propagate(card_key, fields)
    if inspect.isawaitable(result):
        await result
