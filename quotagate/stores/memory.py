"""Process-local counter store."""

from __future__ import annotations

import time
from datetime import timedelta

from quotagate.models import RateLimitCounter


class MemoryCounterStore:
    """In-memory store with per-entry expiry on the monotonic clock.

    Counters are copied on the way in and out, so a caller mutating the
    counter it got back does not change what is stored.
    """

    PURGE_EVERY = 1024  # writes between sweeps of expired entries

    def __init__(self) -> None:
        self._entries: dict[str, tuple[RateLimitCounter, float | None]] = {}
        self._writes = 0

    def __len__(self) -> int:
        self._purge()
        return len(self._entries)

    async def exists(self, key: str) -> bool:
        return self._lookup(key) is not None

    async def get(self, key: str) -> RateLimitCounter | None:
        counter = self._lookup(key)
        return counter.model_copy() if counter is not None else None

    async def set(
        self,
        key: str,
        counter: RateLimitCounter,
        ttl: timedelta | None = None,
    ) -> None:
        deadline = None
        if ttl is not None:
            deadline = time.monotonic() + ttl.total_seconds()
        self._entries[key] = (counter.model_copy(), deadline)
        self._writes += 1
        if self._writes % self.PURGE_EVERY == 0:
            self._purge()

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def _lookup(self, key: str) -> RateLimitCounter | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        counter, deadline = entry
        if deadline is not None and deadline <= time.monotonic():
            del self._entries[key]
            return None
        return counter

    def _purge(self) -> None:
        now = time.monotonic()
        expired = [
            k for k, (_, deadline) in self._entries.items()
            if deadline is not None and deadline <= now
        ]
        for key in expired:
            del self._entries[key]
