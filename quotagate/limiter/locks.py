"""Per-key reader/writer locking for counter buckets.

Keys are spread over a fixed table of locks, so two unrelated clients only
contend when their keys land on the same stripe.
"""

from __future__ import annotations

import asyncio
import zlib
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ReaderWriterLock:
    """Asyncio lock allowing many readers or one writer.

    Waiters are served in arrival order; a queued writer holds back readers
    that arrive after it. Release never awaits, so it cannot be interrupted by
    cancellation.
    """

    def __init__(self) -> None:
        self._readers = 0
        self._writer = False
        self._waiters: deque[tuple[asyncio.Future[None], bool]] = deque()

    @property
    def locked(self) -> bool:
        return self._writer or self._readers > 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        await self._acquire(writer=False)
        try:
            yield
        finally:
            self._readers -= 1
            self._wake()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        await self._acquire(writer=True)
        try:
            yield
        finally:
            self._writer = False
            self._wake()

    async def _acquire(self, writer: bool) -> None:
        if not self._waiters and self._can_grant(writer):
            self._grant(writer)
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        entry = (future, writer)
        self._waiters.append(entry)
        try:
            await future
        except asyncio.CancelledError:
            if future.done() and not future.cancelled():
                # Granted just before the cancellation landed: hand it back.
                if writer:
                    self._writer = False
                else:
                    self._readers -= 1
            elif entry in self._waiters:
                self._waiters.remove(entry)
            self._wake()
            raise

    def _can_grant(self, writer: bool) -> bool:
        if writer:
            return not self._writer and self._readers == 0
        return not self._writer

    def _grant(self, writer: bool) -> None:
        if writer:
            self._writer = True
        else:
            self._readers += 1

    def _wake(self) -> None:
        while self._waiters:
            future, writer = self._waiters[0]
            if future.done():
                self._waiters.popleft()
                continue
            if not self._can_grant(writer):
                return
            self._waiters.popleft()
            self._grant(writer)
            future.set_result(None)
            if writer:
                return


class StripedRWLock:
    """Fixed table of :class:`ReaderWriterLock` indexed by key hash."""

    def __init__(self, stripes: int = 256) -> None:
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._locks = [ReaderWriterLock() for _ in range(stripes)]

    def for_key(self, key: str) -> ReaderWriterLock:
        return self._locks[zlib.crc32(key.encode()) % len(self._locks)]

    def read(self, key: str):  # noqa: ANN201
        return self.for_key(key).read()

    def write(self, key: str):  # noqa: ANN201
        return self.for_key(key).write()
