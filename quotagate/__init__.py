"""quotagate: per-client sliding-window rate limiting.

This package provides:
- A two-window sliding estimate limiter over pluggable counter stores
- In-memory and Redis counter stores
- ASGI middleware and a FastAPI reverse proxy enforcing route policies
"""

from quotagate.errors import (
    ConfigurationError,
    IdentityResolutionError,
    QuotagateError,
    StoreError,
)
from quotagate.limiter.service import RateLimitService
from quotagate.models import (
    RateLimitCounter,
    RateLimitPeriod,
    RateLimitRule,
    RateLimitType,
    RequestIdentity,
    RoutePolicy,
    StoreType,
)
from quotagate.stores.base import CounterStore
from quotagate.stores.memory import MemoryCounterStore
from quotagate.stores.redis_store import RedisCounterStore

__all__ = [
    # Exceptions
    "ConfigurationError",
    "IdentityResolutionError",
    "QuotagateError",
    "StoreError",
    # Components
    "CounterStore",
    "MemoryCounterStore",
    "RateLimitService",
    "RedisCounterStore",
    # Models
    "RateLimitCounter",
    "RateLimitPeriod",
    "RateLimitRule",
    "RateLimitType",
    "RequestIdentity",
    "RoutePolicy",
    "StoreType",
]
