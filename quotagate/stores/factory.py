"""Counter store selection at process startup."""

from __future__ import annotations

from quotagate.errors import ConfigurationError
from quotagate.models import StoreType
from quotagate.stores.base import CounterStore
from quotagate.stores.memory import MemoryCounterStore
from quotagate.stores.redis_store import RedisCounterStore

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def build_store(
    store_type: StoreType | str,
    redis_url: str | None = None,
    namespace: str = "quotagate",
) -> CounterStore:
    try:
        kind = StoreType(store_type)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown counter store type: {store_type!r}") from exc

    if kind == StoreType.MEMORY:
        return MemoryCounterStore()
    return RedisCounterStore.from_url(redis_url or DEFAULT_REDIS_URL, namespace=namespace)
