"""Core data models for cards, series, groups and unique indexes.

Each model converts to and from the record shape kept in the document
tree. Sets are persisted as ``{member: true}`` mappings.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from ..core.exceptions import PartialCompletionError

DEFAULT_ORDER = sys.maxsize  # new cards sort last


class RepeatType(str, Enum):
    """Recurrence patterns a series can follow."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    RANDOM = "random"  # picked by sampling, never by date

    @classmethod
    def parse(cls, value: Any) -> RepeatType | str:
        """Known names become members; anything else is kept verbatim."""
        if isinstance(value, cls):
            return value
        text = str(value or cls.ONCE.value).strip().lower()
        try:
            return cls(text)
        except ValueError:
            return text


def as_set(value: Any) -> set[str]:
    """Read a persisted ``{member: true}`` mapping, or any iterable, as a set."""
    if not value:
        return set()
    if isinstance(value, str):
        return {value}
    if isinstance(value, Mapping):
        return {str(k) for k, v in value.items() if v}
    return {str(v) for v in value}


def set_record(members: Iterable[str]) -> dict[str, bool]:
    return {str(m): True for m in sorted(members)}


def iso_date(value: date | datetime | str) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class Repeat:
    """A recurrence specification.

    Attributes:
        type: One of :class:`RepeatType`, or the raw string for unknown types.
        days_of_week: Weekly days, 0=Sunday .. 6=Saturday.
        days_of_month: Monthly days, 1..31.
        dates: Yearly dates as ``"MM-DD"``.
        start: Dates before this never match.
        notification: Reminder time ``"HH:MM"``.
    """

    type: RepeatType | str = RepeatType.ONCE
    days_of_week: frozenset[int] = frozenset()
    days_of_month: frozenset[int] = frozenset()
    dates: frozenset[str] = frozenset()
    start: date | None = None
    notification: str = ""

    @classmethod
    def from_value(cls, value: Any) -> Repeat | None:
        """Build from a Repeat, a persisted record, a friendly dict or a type name.

        Friendly dicts look like ``{"type": "weekly", "days": [1, 3]}``;
        persisted records carry the days under ``info`` as ``{"1": true}``.
        """
        if value is None or value == "" or value == {}:
            return None
        if isinstance(value, Repeat):
            return value
        if isinstance(value, (str, RepeatType)):
            return cls(type=RepeatType.parse(value))
        if not isinstance(value, Mapping):
            raise ValueError(f"Cannot read a repeat from {type(value).__name__}")

        repeat_type = RepeatType.parse(value.get("type"))
        days = value.get("days", value.get("info"))
        raw_days = as_set(days) if isinstance(days, Mapping) else [str(d) for d in (days or [])]

        days_of_week = value.get("days_of_week")
        days_of_month = value.get("days_of_month")
        dates = value.get("dates")
        if repeat_type == RepeatType.WEEKLY and days_of_week is None:
            days_of_week = raw_days
        elif repeat_type == RepeatType.MONTHLY and days_of_month is None:
            days_of_month = raw_days
        elif repeat_type == RepeatType.YEARLY and dates is None:
            dates = raw_days

        start = value.get("start") or None
        if isinstance(start, datetime):
            start = start.date()
        elif isinstance(start, str):
            start = date.fromisoformat(start)

        return cls(
            type=repeat_type,
            days_of_week=_days(days_of_week, 0, 6, "day of week"),
            days_of_month=_days(days_of_month, 1, 31, "day of month"),
            dates=frozenset(_month_day(d) for d in (dates or [])),
            start=start,
            notification=str(value.get("notification") or ""),
        )

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, RepeatType) else str(self.type)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"type": self.type_name}
        if self.type == RepeatType.WEEKLY:
            info = [str(d) for d in sorted(self.days_of_week)]
        elif self.type == RepeatType.MONTHLY:
            info = [str(d) for d in sorted(self.days_of_month)]
        elif self.type == RepeatType.YEARLY:
            info = sorted(self.dates)
        else:
            info = []
        if info:
            record["info"] = {day: True for day in info}
        if self.start:
            record["start"] = self.start.isoformat()
        if self.notification:
            record["notification"] = self.notification
        return record


def _days(values: Any, low: int, high: int, what: str) -> frozenset[int]:
    days = set()
    for raw in as_set(values) if isinstance(values, Mapping) else (values or []):
        try:
            day = int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid {what}: {raw!r}") from e
        if not low <= day <= high:
            raise ValueError(f"Invalid {what}: {day} (expected {low}..{high})")
        days.add(day)
    return frozenset(days)


def _month_day(value: Any) -> str:
    text = str(value)
    try:
        month, day = (int(part) for part in text.split("-"))
        # 2000 is a leap year, so 02-29 is accepted.
        date(2000, month, day)
    except ValueError as e:
        raise ValueError(f"Invalid yearly date {text!r} (expected MM-DD)") from e
    return f"{month:02d}-{day:02d}"


@dataclass
class Geolocation:
    name: str = ""
    longitude: str = ""
    latitude: str = ""

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> Geolocation:
        record = record or {}
        return cls(
            name=str(record.get("name", "")),
            # Older records spell it "longtitude".
            longitude=str(record.get("longitude", record.get("longtitude", ""))),
            latitude=str(record.get("latitude", "")),
        )

    def to_record(self) -> dict[str, str]:
        return {"name": self.name, "longitude": self.longitude, "latitude": self.latitude}


@dataclass
class Card:
    """One journal entry.

    ``repeat`` is only ever filled in on read, from the bound series; it is
    not stored on the card.
    """

    key: str = ""
    date: str = ""
    time: str = ""
    topic: str = ""
    content: str = ""
    geolocation: Geolocation = field(default_factory=Geolocation)
    series: str = ""
    group: str = ""
    tags: set[str] = field(default_factory=set)
    star: bool = False
    numbers: dict[str, float | None] = field(default_factory=dict)
    images: dict[str, str] = field(default_factory=dict)
    order: int = DEFAULT_ORDER
    repeat: Repeat | None = None

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> Card:
        return cls(
            key=key,
            date=str(record.get("date", "")),
            time=str(record.get("time", "")),
            topic=str(record.get("topic", "")),
            content=str(record.get("content", "")),
            geolocation=Geolocation.from_record(record.get("geolocation")),
            series=str(record.get("series") or ""),
            group=str(record.get("group") or ""),
            tags=as_set(record.get("tags")),
            star=bool(record.get("star", False)),
            numbers=dict(record.get("numbers") or {}),
            images={str(k): str(v) for k, v in (record.get("images") or {}).items()},
            order=int(record.get("order", DEFAULT_ORDER)),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "time": self.time,
            "topic": self.topic,
            "content": self.content,
            "geolocation": self.geolocation.to_record(),
            "series": self.series,
            "group": self.group,
            "tags": set_record(self.tags),
            "star": self.star,
            "numbers": dict(self.numbers),
            "images": dict(self.images),
            "order": self.order,
        }


@dataclass(frozen=True)
class CardTemplate:
    """What a series contributes to a card generated from it."""

    series_key: str
    topic: str
    time: str
    tags: frozenset[str]
    order: int
    repeat: Repeat | None
    numbers: dict[str, None]

    def to_value(self) -> dict[str, Any]:
        """Partial card value that creates a card bound to this series."""
        return {
            "series": self.series_key,
            "topic": self.topic,
            "time": self.time,
            "tags": sorted(self.tags),
            "order": self.order,
            "numbers": dict(self.numbers),
        }


@dataclass
class Series:
    """A recurrence template shared by the cards bound to it."""

    key: str
    topic: str = ""
    repeat: Repeat | None = None
    time: str = ""
    numbers: dict[str, None] = field(default_factory=dict)
    order: int = DEFAULT_ORDER
    tags: set[str] = field(default_factory=set)
    cards: set[str] = field(default_factory=set)

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> Series:
        return cls(
            key=key,
            topic=str(record.get("topic", "")),
            repeat=Repeat.from_value(record.get("repeat")),
            time=str(record.get("time", "")),
            numbers={name: None for name in as_set(record.get("numbers"))},
            order=int(record.get("order", DEFAULT_ORDER)),
            tags=as_set(record.get("tags")),
            cards=as_set(record.get("cards")),
        )

    @staticmethod
    def shared_record(fields: Mapping[str, Any]) -> dict[str, Any]:
        """Normalize shared fields to their persisted shape. Unknown keys are dropped."""
        record: dict[str, Any] = {}
        if "topic" in fields:
            record["topic"] = str(fields["topic"] or "")
        if "repeat" in fields:
            repeat = Repeat.from_value(fields["repeat"])
            record["repeat"] = repeat.to_record() if repeat else None
        if "time" in fields:
            record["time"] = str(fields["time"] or "")
        if "numbers" in fields:
            record["numbers"] = set_record(fields["numbers"] or {})
        if "order" in fields:
            record["order"] = int(fields["order"])
        if "tags" in fields:
            record["tags"] = set_record(as_set(fields["tags"]))
        return record

    def changed_fields(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """The subset of *fields* that differs from this series."""
        current = Series.shared_record(
            {
                "topic": self.topic,
                "repeat": self.repeat,
                "time": self.time,
                "numbers": self.numbers,
                "order": self.order,
                "tags": self.tags,
            }
        )
        proposed = Series.shared_record(fields)
        return {name: fields[name] for name, value in proposed.items() if current.get(name) != value}

    def template(self) -> CardTemplate:
        return CardTemplate(
            series_key=self.key,
            topic=self.topic,
            time=self.time,
            tags=frozenset(self.tags),
            order=self.order,
            repeat=self.repeat,
            numbers={name: None for name in self.numbers},
        )


@dataclass
class Group:
    """A plain shared-attribute record."""

    key: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> Group:
        return cls(key=key, payload=dict(record))

    @property
    def topic(self) -> str | None:
        topic = self.payload.get("topic")
        return None if topic is None else str(topic)

    @property
    def tags(self) -> set[str]:
        return as_set(self.payload.get("tags"))

    @property
    def repeat(self) -> Repeat | None:
        return Repeat.from_value(self.payload.get("repeat"))


@dataclass
class CountedGroup(Group):
    """A group that tracks how many cards are attached to it."""

    count: int = 0

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> CountedGroup:
        payload = {k: v for k, v in record.items() if k != "count"}
        return cls(key=key, payload=payload, count=int(record.get("count", 0)))


@dataclass
class UniqueEntry:
    """One bucket of a unique index (e.g. all cards sharing a topic)."""

    key: str
    description: str | None = None
    cards: set[str] = field(default_factory=set)

    @classmethod
    def from_record(cls, key: str, record: Mapping[str, Any]) -> UniqueEntry:
        description = record.get("description")
        return cls(
            key=key,
            description=None if description is None else str(description),
            cards=as_set(record.get("cards")),
        )


@dataclass
class BatchReport:
    """Outcome of a batched operation.

    Attributes:
        succeeded: Keys whose sub-operation completed.
        failed: Key -> reason for every sub-operation that did not.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self, what: str = "batch") -> None:
        if self.failed:
            raise PartialCompletionError(
                f"{what}: {len(self.failed)} of {len(self.failed) + len(self.succeeded)} failed",
                self.failed,
            )


@dataclass
class UpsertResult:
    """What an upsert did, including any partial failures worth retrying."""

    key: str
    series: str = ""
    uploads: BatchReport = field(default_factory=BatchReport)
    deletes: BatchReport = field(default_factory=BatchReport)
    fan_out: BatchReport = field(default_factory=BatchReport)

    @property
    def complete(self) -> bool:
        return self.uploads.ok and self.deletes.ok and self.fan_out.ok
