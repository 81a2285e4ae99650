"""Counter store contract shared by every backend."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol, runtime_checkable

from quotagate.models import RateLimitCounter


@runtime_checkable
class CounterStore(Protocol):
    """Key/value store of time-stamped counters with expiration.

    Keys are opaque strings; a store must not interpret their structure.
    Backends raise :class:`quotagate.errors.StoreError` on I/O failure.
    """

    async def exists(self, key: str) -> bool: ...

    async def get(self, key: str) -> RateLimitCounter | None: ...

    async def set(
        self,
        key: str,
        counter: RateLimitCounter,
        ttl: timedelta | None = None,
    ) -> None:
        """Store ``counter``. With ``ttl`` the entry disappears once it elapses."""
        ...

    async def remove(self, key: str) -> None: ...
