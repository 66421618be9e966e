"""Shared utilities: logging setup and async helpers."""

from .async_helpers import KeyedLock, with_timeout
from .logging import setup_logging, setup_logging_from_config

__all__ = ["KeyedLock", "setup_logging", "setup_logging_from_config", "with_timeout"]
