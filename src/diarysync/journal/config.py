"""Configuration dataclass for the card data-access layer.

A pure data container with sensible defaults. Build it from a
:class:`~diarysync.core.config.Config` or pass values directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.config import Config
from ..core.exceptions import ConfigurationError


@dataclass
class SyncConfig:
    """Where each collection lives under a user's root, and how long to wait.

    Attributes:
        cards_path: Card records.
        series_path: Series records.
        unique_topic_path: Topic index buckets.
        groups_path: Counted group records.
        timeout: Seconds before a remote call fails as retryable. None disables.
    """

    cards_path: str = "cards"
    series_path: str = "other/series"
    unique_topic_path: str = "other/unique_topic"
    groups_path: str = "other/groups"
    timeout: float | None = 10.0

    def __post_init__(self):
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

    @classmethod
    def from_config(cls, config: Config) -> SyncConfig:
        return cls(timeout=config.get_float("sync.timeout", 10.0))
