"""
Local filesystem object store.

Provides async file operations via aiofiles, rooted at ``base_path``.
"""

from collections.abc import Iterable
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from .base import ObjectStore, StorageKeyError, StoragePermissionError


class LocalObjectStore(ObjectStore):
    """Local filesystem object store."""

    def __init__(self, base_path: str = "~/.diarysync-data/images"):
        self.base_path = Path(base_path).expanduser().resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Resolve an object key to an absolute path under ``base_path``.

        Rejects unsafe keys (absolute paths, traversal, empty keys, and
        backslash-delimited paths) to prevent writes outside ``base_path``.
        """
        raw_key = key.strip()
        if not raw_key:
            raise StoragePermissionError("Storage key cannot be empty.")
        if "\x00" in raw_key:
            raise StoragePermissionError("Storage key cannot contain null bytes.")
        if "\\" in raw_key:
            raise StoragePermissionError("Storage key cannot contain backslashes. Use '/' separators.")

        key_path = Path(raw_key)
        if key_path.is_absolute() or raw_key.startswith("~"):
            raise StoragePermissionError(f"Unsafe storage key '{key}': absolute paths are not allowed.")

        full_path = (self.base_path / key_path).resolve()
        try:
            full_path.relative_to(self.base_path)
        except ValueError as e:
            raise StoragePermissionError(f"Unsafe storage key '{key}': path traversal is not allowed.") from e
        return full_path

    async def upload(self, key: str, data: bytes) -> None:
        path = self._get_full_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot write to {path}: {e}") from e

    async def delete_batch(self, keys: Iterable[str]) -> None:
        # Resolve everything first so one unsafe key rejects the whole batch.
        paths = [self._get_full_path(key) for key in keys]
        for path in paths:
            if path.exists():
                try:
                    await aiofiles.os.remove(path)
                except PermissionError as e:
                    raise StoragePermissionError(f"Cannot delete {path}: {e}") from e
            else:
                logger.debug(f"Skip deleting missing object {path}")

    async def fetch(self, key: str) -> bytes:
        path = self._get_full_path(key)
        if not path.exists():
            raise StorageKeyError(f"Key not found: {key}")
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot read {path}: {e}") from e

    async def exists(self, key: str) -> bool:
        return self._get_full_path(key).exists()
