"""
Chunked transfer of large recordings into object storage.

Files up to the threshold go up in a single ``put``. Larger files are
split into fixed-size parts uploaded concurrently to a temporary
namespace, read back in index order, concatenated and written to the
destination. Temporary parts are always removed afterwards.
"""

import asyncio
import logging
import math
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from meetnotes.core.exceptions import MeetNotesError, StorageError
from meetnotes.services.objects.base import BaseObjectStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


@dataclass
class UploadSession:
    """Temporary namespace and part paths of one chunked transfer."""

    prefix: str
    dest_path: str
    parts: dict[int, str] = field(default_factory=dict)

    def part_path(self, index: int) -> str:
        return f"{self.prefix}/{index:05d}.part"


@dataclass(frozen=True)
class UploadReport:
    """What an upload wrote."""

    dest_path: str
    byte_size: int
    part_count: int
    chunked: bool


class _Progress:
    """Turns uploaded byte counts into a monotonic 0-100 percentage."""

    def __init__(self, total: int, callback: ProgressCallback | None) -> None:
        self._total = total
        self._callback = callback
        self._uploaded = 0
        self._reported = -1

    def advance(self, nbytes: int) -> None:
        self._uploaded += nbytes
        percent = min(100, self._uploaded * 100 // self._total) if self._total else 100
        self.report(percent)

    def report(self, percent: int) -> None:
        if percent <= self._reported:
            return
        self._reported = percent
        if self._callback is not None:
            self._callback(percent)


class ChunkedUploader:
    """Moves recording bytes into an object store.

    Args:
        store: Destination object store.
        chunk_size: Part size in bytes.
        threshold: Files larger than this are chunked.
        max_concurrency: Upper bound on parts in flight.
        tmp_prefix: Namespace for temporary parts.
        read_url_ttl: Lifetime of the signed URLs used to read parts back.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        store: BaseObjectStore,
        chunk_size: int = 5 * 1024 * 1024,
        threshold: int = 50 * 1024 * 1024,
        max_concurrency: int = 6,
        tmp_prefix: str = "chunks",
        read_url_ttl: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self._store = store
        self._chunk_size = chunk_size
        self._threshold = threshold
        self._max_concurrency = max_concurrency
        self._tmp_prefix = tmp_prefix.strip("/")
        self._read_url_ttl = read_url_ttl
        self._clock = clock

    def part_count(self, size: int) -> int:
        """Number of parts a file of ``size`` bytes is split into (1 when not chunked)."""
        if size <= self._threshold:
            return 1
        return math.ceil(size / self._chunk_size)

    async def upload(
        self,
        data: bytes,
        dest_path: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadReport:
        """Write ``data`` to ``dest_path``, chunking when it exceeds the threshold.

        Raises:
            StorageError: If any write fails; the destination is then not written.
        """
        size = len(data)
        progress = _Progress(size, on_progress)
        progress.report(0)

        if size <= self._threshold:
            await self._store.put(dest_path, data, content_type)
            progress.report(100)
            return UploadReport(dest_path=dest_path, byte_size=size, part_count=1, chunked=False)

        session = UploadSession(
            prefix=f"{self._tmp_prefix}/{int(self._clock() * 1000)}-{uuid.uuid4().hex[:8]}",
            dest_path=dest_path,
        )
        count = self.part_count(size)
        logger.info("Chunked upload of %s: %d bytes in %d parts", dest_path, size, count)
        try:
            await self._upload_parts(session, memoryview(data), count, progress)
            assembled = await self._assemble(session, count)
            await self._store.put(dest_path, assembled, content_type)
        finally:
            await self._cleanup(session)
        progress.report(100)
        return UploadReport(dest_path=dest_path, byte_size=size, part_count=count, chunked=True)

    async def _upload_parts(
        self, session: UploadSession, view: memoryview, count: int, progress: _Progress
    ) -> None:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _put_part(index: int) -> None:
            start = index * self._chunk_size
            part = bytes(view[start : start + self._chunk_size])
            async with semaphore:
                path = session.part_path(index)
                session.parts[index] = path
                await self._store.put(path, part, "application/octet-stream")
            progress.advance(len(part))

        tasks = [asyncio.create_task(_put_part(index)) for index in range(count)]
        try:
            await asyncio.gather(*tasks)
        except Exception as exc:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if isinstance(exc, MeetNotesError):
                raise
            raise StorageError(f"Chunk upload failed: {exc}") from exc

    async def _assemble(self, session: UploadSession, count: int) -> bytes:
        buffer = bytearray()
        for index in range(count):
            url = await self._store.create_signed_url(session.parts[index], self._read_url_ttl)
            buffer += await self._store.fetch(url)
        return bytes(buffer)

    async def _cleanup(self, session: UploadSession) -> None:
        if not session.parts:
            return
        try:
            await self._store.delete(list(session.parts.values()))
        except MeetNotesError:
            logger.exception("Failed to remove %d temporary parts under %s", len(session.parts), session.prefix)
