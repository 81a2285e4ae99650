"""Shared test fixtures for quotagate."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from quotagate.limiter.locks import StripedRWLock
from quotagate.limiter.service import RateLimitService
from quotagate.models import RequestIdentity
from quotagate.stores.memory import MemoryCounterStore

# Divisible by 10, 30 and 60, so the clock starts exactly on a window boundary.
BASE_EPOCH = 1_700_000_040


class FrozenClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def set_offset(self, seconds: float) -> None:
        """Move to ``seconds`` after the base epoch."""
        self.now = datetime.fromtimestamp(BASE_EPOCH, UTC) + timedelta(seconds=seconds)


@pytest.fixture
def base_time() -> datetime:
    return datetime.fromtimestamp(BASE_EPOCH, UTC)


@pytest.fixture
def clock(base_time: datetime) -> FrozenClock:
    return FrozenClock(base_time)


@pytest.fixture
def store() -> MemoryCounterStore:
    return MemoryCounterStore()


@pytest.fixture
def lock_table() -> StripedRWLock:
    return StripedRWLock(stripes=16)


@pytest.fixture
def service(
    store: MemoryCounterStore, clock: FrozenClock, lock_table: StripedRWLock,
) -> RateLimitService:
    return RateLimitService(store, clock=clock, lock=lock_table)


@pytest.fixture
def identity() -> RequestIdentity:
    return RequestIdentity(identity="203.0.113.7", path="/api/orders", http_verb="GET")
