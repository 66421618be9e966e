"""Static partition of card fields.

Every field a caller may send in a partial card value belongs to exactly
one bucket. ``repeat`` lives only on the series; the other series fields are
also kept on the card itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .models import Geolocation, as_set, iso_date, set_record


class FieldBucket(Enum):
    CORE = "core"
    SERIES = "series"
    IMAGES = "images"


FIELD_BUCKETS: dict[str, FieldBucket] = {
    "date": FieldBucket.CORE,
    "content": FieldBucket.CORE,
    "geolocation": FieldBucket.CORE,
    "star": FieldBucket.CORE,
    "tags": FieldBucket.CORE,
    "series": FieldBucket.CORE,
    "group": FieldBucket.CORE,
    "topic": FieldBucket.SERIES,
    "repeat": FieldBucket.SERIES,
    "numbers": FieldBucket.SERIES,
    "time": FieldBucket.SERIES,
    "order": FieldBucket.SERIES,
    "add_images": FieldBucket.IMAGES,
    "remove_images": FieldBucket.IMAGES,
}

SERIES_ONLY = frozenset({"repeat"})

# Fields a series pushes onto every bound card when they change.
SIBLING_FIELDS = ("topic", "time")


@dataclass(frozen=True)
class Partition:
    core: dict[str, Any] = field(default_factory=dict)
    series: dict[str, Any] = field(default_factory=dict)
    images: dict[str, Any] = field(default_factory=dict)


def partition(value: Mapping[str, Any]) -> Partition:
    """Split a partial card value into its buckets.

    Raises:
        ValueError: for fields outside the card schema (including ``images``,
            which only changes through ``add_images``/``remove_images``).
    """
    parts = Partition()
    buckets = {
        FieldBucket.CORE: parts.core,
        FieldBucket.SERIES: parts.series,
        FieldBucket.IMAGES: parts.images,
    }
    unknown = sorted(name for name in value if name not in FIELD_BUCKETS)
    if unknown:
        raise ValueError(f"Unknown card field(s): {', '.join(unknown)}")
    for name, field_value in value.items():
        buckets[FIELD_BUCKETS[name]][name] = field_value
    return parts


def card_record_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize card fields into an update for the card record.

    Series-only fields are skipped. Partial geolocations become child-path
    updates so unspecified parts are kept.
    """
    record: dict[str, Any] = {}
    for name, value in fields.items():
        if name in SERIES_ONLY:
            continue
        if name == "date":
            record[name] = "" if value is None else iso_date(value)
        elif name == "tags":
            record[name] = set_record(as_set(value))
        elif name == "geolocation":
            if isinstance(value, Geolocation):
                value = value.to_record()
            for part, part_value in (value or {}).items():
                if part == "longtitude":
                    part = "longitude"
                if part not in ("name", "longitude", "latitude"):
                    raise ValueError(f"Unknown geolocation field: {part}")
                record[f"geolocation/{part}"] = str(part_value or "")
        elif name == "numbers":
            record[name] = {str(k): (None if v is None else float(v)) for k, v in (value or {}).items()}
        elif name == "order":
            record[name] = int(value)
        elif name == "star":
            record[name] = bool(value)
        else:
            record[name] = "" if value is None else str(value)
    return record
