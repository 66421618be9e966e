"""Card attachments kept in an object store.

Uploads run concurrently and are reported one by one; deletes go out as a
single batch. Neither raises for collaborator failures: the returned
:class:`BatchReport` says which paths to retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping

from loguru import logger

from ..core.exceptions import DiarySyncError
from ..core.storage import ObjectStore, StorageKeyError
from .base import DEFAULT_TIMEOUT, guarded
from .models import BatchReport


class ImageStore:
    def __init__(self, objects: ObjectStore, *, timeout: float | None = DEFAULT_TIMEOUT):
        self.objects = objects
        self.timeout = timeout

    async def upload_many(
        self,
        images: Mapping[str, bytes | str],
        on_uploaded: Callable[[str], Awaitable[None]] | None = None,
    ) -> BatchReport:
        """Upload ``{path: data}``; call *on_uploaded(path)* after each success."""
        report = BatchReport()
        if not images:
            return report
        logger.debug(f"Upload images {sorted(images)}")

        async def upload_one(path: str, data: bytes | str) -> None:
            if isinstance(data, str):
                data = data.encode("utf-8")
            await guarded(self.objects.upload(path, data), self.timeout, f"upload {path}")
            if on_uploaded is not None:
                await on_uploaded(path)

        paths = list(images)
        outcomes = await asyncio.gather(*(upload_one(p, images[p]) for p in paths), return_exceptions=True)
        for path, outcome in zip(paths, outcomes):
            if isinstance(outcome, DiarySyncError):
                report.failed[path] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                logger.debug(f"Successfully uploaded {path}")
                report.succeeded.append(path)
        return report

    async def delete_many(
        self,
        paths: Iterable[str],
        on_deleted: Callable[[], Awaitable[None]] | None = None,
    ) -> BatchReport:
        """Delete every path in one request; call *on_deleted()* if it succeeds."""
        paths = sorted(set(paths))
        report = BatchReport()
        if not paths:
            return report
        logger.debug(f"Remove images {paths}")
        try:
            await guarded(self.objects.delete_batch(paths), self.timeout, f"delete {len(paths)} images")
            if on_deleted is not None:
                await on_deleted()
        except DiarySyncError as e:
            report.failed = {path: str(e) for path in paths}
            return report
        report.succeeded = paths
        return report

    async def fetch(self, path: str) -> bytes | None:
        """Image bytes, or None if nothing is stored at *path*."""
        logger.debug(f"Load image {path}")
        try:
            return await guarded(
                self.objects.fetch(path), self.timeout, f"fetch {path}", passthrough=(StorageKeyError,)
            )
        except StorageKeyError:
            logger.debug(f"No image stored at {path}")
            return None
