"""Redis-backed counter store, shared by every process pointing at the same server."""

from __future__ import annotations

import logging
from datetime import timedelta

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from quotagate.errors import StoreError
from quotagate.models import RateLimitCounter

logger = logging.getLogger(__name__)


class RedisCounterStore:
    """Stores counters as JSON strings with Redis-native expiry."""

    def __init__(self, client: aioredis.Redis, namespace: str = "") -> None:
        self._client = client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "", timeout: float = 5.0) -> RedisCounterStore:
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client, namespace=namespace)

    async def close(self) -> None:
        await self._client.aclose()

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(key)))
        except RedisError as exc:
            raise StoreError(f"Redis EXISTS failed: {exc}", key=key) from exc

    async def get(self, key: str) -> RateLimitCounter | None:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Redis GET failed: {exc}", key=key) from exc
        if not raw:
            return None
        try:
            return RateLimitCounter.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Unreadable counter stored under %s", key)
            raise StoreError(f"Corrupt counter stored under {key}", key=key) from exc

    async def set(
        self,
        key: str,
        counter: RateLimitCounter,
        ttl: timedelta | None = None,
    ) -> None:
        px = None
        if ttl is not None:
            # Redis rejects a zero or negative expiry.
            px = max(int(ttl.total_seconds() * 1000), 1)
        try:
            await self._client.set(self._key(key), counter.model_dump_json(), px=px)
        except RedisError as exc:
            raise StoreError(f"Redis SET failed: {exc}", key=key) from exc

    async def remove(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            raise StoreError(f"Redis DEL failed: {exc}", key=key) from exc

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key
