"""Rate limiter core: two fixed windows blended into a sliding-window estimate.

For each (identity, endpoint, period) the limiter keeps one counter per fixed
window of ``period`` seconds. A request is judged against

    total = ceil(current * fraction + previous * (1 - fraction))

where ``fraction`` is how far ``now`` sits into the current counter's window.
The window a request belongs to is ``floor(unix_seconds / period)``; see
:mod:`quotagate.limiter.keys`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from quotagate.errors import StoreError
from quotagate.limiter.keys import build_counter_keys
from quotagate.limiter.locks import StripedRWLock
from quotagate.limiter.merger import merge_windows
from quotagate.models import RateLimitCounter, RateLimitRule, RequestIdentity
from quotagate.stores.base import CounterStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Buckets live for three periods: the rest of their own window, the next
# window during which they serve as "previous", and one more for skew.
_TTL_PERIODS = 3


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RateLimitService:
    """Decides whether a caller may proceed, backed by a :class:`CounterStore`.

    Store failures surface as :class:`StoreError`; whether to fail open or
    closed is left to the caller. The service never retries.
    """

    def __init__(
        self,
        store: CounterStore,
        clock: Callable[[], datetime] | None = None,
        lock: StripedRWLock | None = None,
        store_timeout: float | None = None,
    ) -> None:
        """Create the service.

        Args:
            store: Counter store backend.
            clock: Returns the current time as a timezone-aware datetime.
            lock: Lock table guarding bucket read-modify-write sequences.
            store_timeout: Seconds allowed per store call; None waits forever.
        """
        self._store = store
        self._clock = clock or _utcnow
        self._lock = lock or StripedRWLock()
        self._store_timeout = store_timeout

    @property
    def store(self) -> CounterStore:
        return self._store

    async def process_request(self, identity: RequestIdentity, rule: RateLimitRule) -> bool:
        """Count the request and return True if it is within quota."""
        if rule.limit <= 0:
            logger.info(
                "Request %s:%s with identity %s has been blocked, quota %d/%d allows no calls.",
                identity.http_verb, identity.path, identity.identity, rule.limit, rule.period,
            )
            return False

        now = self._clock()
        current_key, previous_key = build_counter_keys(identity, rule, now)

        try:
            async with self._lock.write(current_key):
                return await self._evaluate(identity, rule, now, current_key, previous_key)
        except StoreError:
            logger.warning(
                "Request %s:%s with identity %s failed on the counter store.",
                identity.http_verb, identity.path, identity.identity,
                exc_info=True,
            )
            raise

    async def check_availability(self, identity: RequestIdentity, rule: RateLimitRule) -> int:
        """Calls left in the current window.

        A non-positive limit is returned as is. The result goes negative when
        the window is already over quota; treat anything below one as blocked.
        """
        if rule.limit <= 0:
            return rule.limit

        current_key, _ = build_counter_keys(identity, rule, self._clock())
        async with self._lock.read(current_key):
            counter = await self._call(self._store.get(current_key), current_key)

        if counter is None:
            return rule.limit
        return int(rule.limit - counter.count)

    async def reset(self, identity: RequestIdentity, rule: RateLimitRule) -> None:
        """Drop the current and previous buckets for this identity and rule."""
        current_key, previous_key = build_counter_keys(identity, rule, self._clock())
        async with self._lock.write(current_key):
            await self._call(self._store.remove(current_key), current_key)
            await self._call(self._store.remove(previous_key), previous_key)

    async def _evaluate(
        self,
        identity: RequestIdentity,
        rule: RateLimitRule,
        now: datetime,
        current_key: str,
        previous_key: str,
    ) -> bool:
        current = await self._call(self._store.get(current_key), current_key)
        if current is None or current.timestamp + timedelta(seconds=rule.period) < now:
            current = RateLimitCounter(timestamp=now, count=1)
        elif current.count >= rule.limit:
            logger.info(
                "Request %s:%s with identity %s has been blocked, "
                "quota %d/%d reached in current slot.",
                identity.http_verb, identity.path, identity.identity, rule.limit, rule.period,
            )
            return False
        else:
            current.count += 1

        previous = await self._call(self._store.get(previous_key), previous_key)
        total = merge_windows(current, previous, now, rule.period)
        if total > rule.limit:
            logger.info(
                "Request %s:%s with identity %s has been blocked, "
                "quota %d/%d exceeded by %d in current and previous slot.",
                identity.http_verb, identity.path, identity.identity,
                rule.limit, rule.period, total,
            )
            return False

        ttl = timedelta(seconds=_TTL_PERIODS * rule.period) - (now - current.timestamp)
        await self._call(self._store.set(current_key, current, ttl), current_key)
        return True

    async def _call(self, operation: Awaitable[T], key: str) -> T:
        if self._store_timeout is None:
            return await operation
        try:
            async with asyncio.timeout(self._store_timeout):
                return await operation
        except TimeoutError as exc:
            raise StoreError(
                f"Counter store call timed out after {self._store_timeout}s", key=key,
            ) from exc
