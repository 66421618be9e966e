"""Journal cards and the series, groups and indexes they share.

Provides the card models, the recurrence rule, the stores for series,
groups and unique topics, and CardService which ties them together.
"""

from .cards import CardService
from .config import SyncConfig
from .fields import FieldBucket, Partition, partition
from .groups import CountedGroupStore, GroupStore
from .images import ImageStore
from .models import (
    BatchReport,
    Card,
    CardTemplate,
    CountedGroup,
    Geolocation,
    Group,
    Repeat,
    RepeatType,
    Series,
    UniqueEntry,
    UpsertResult,
)
from .recurrence import matches
from .series import SeriesStore
from .unique import UniqueIndexStore

__all__ = [
    "BatchReport",
    "Card",
    "CardService",
    "CardTemplate",
    "CountedGroup",
    "CountedGroupStore",
    "FieldBucket",
    "Geolocation",
    "Group",
    "GroupStore",
    "ImageStore",
    "Partition",
    "Repeat",
    "RepeatType",
    "Series",
    "SeriesStore",
    "SyncConfig",
    "UniqueEntry",
    "UniqueIndexStore",
    "UpsertResult",
    "matches",
    "partition",
]
