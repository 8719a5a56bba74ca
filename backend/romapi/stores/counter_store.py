"""
Counter + cache store: the shared key → value store with per-key expiry.

The core only depends on the two Protocols below. RedisStore implements
both on one redis.asyncio client:
  • counters  — INCR is atomic server-side, so concurrent increments of a
                rate window are never lost.
  • cache     — JSON strings with SETEX; absence never means "record
                does not exist", only "ask the record store".

Every call is bounded by `timeout` and every client-library failure is
re-raised as StoreUnavailable, so callers apply their fail-open policy
without importing redis exception types.

An optional namespace is prepended to every key and stripped from
keys_matching() results, so the core always sees bare keys such as
"listing:…" even on a shared Redis instance.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Protocol, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from romapi.core.errors import StoreUnavailable
from romapi.core.resilience import bounded

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCAN_BATCH = 500


class CounterStore(Protocol):
    async def get(self, key: str) -> int | None: ...

    async def increment(self, key: str) -> int: ...

    async def expire(self, key: str, seconds: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys_matching(self, prefix: str) -> list[str]: ...


class CacheStore(Protocol):
    async def get_value(self, key: str) -> str | None: ...

    async def set_value(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys_matching(self, prefix: str) -> list[str]: ...


class RedisStore:
    """CounterStore + CacheStore backed by Redis."""

    def __init__(
        self,
        client: Redis,
        *,
        namespace: str = "",
        timeout: float | None = 2.0,
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._timeout = timeout

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        namespace: str = "",
        timeout: float | None = 2.0,
    ) -> RedisStore:
        client = Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client, namespace=namespace, timeout=timeout)

    # ── Helpers ─────────────────────────────────────────────
    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await bounded(awaitable, self._timeout)
        except (RedisError, TimeoutError, OSError) as exc:
            logger.debug("redis_call_failed operation=%s", operation)
            raise StoreUnavailable(f"redis {operation} failed") from exc

    # ── Counters ────────────────────────────────────────────
    async def get(self, key: str) -> int | None:
        raw = await self._call("get", self._client.get(self._key(key)))
        if raw is None:
            return None
        return int(raw)

    async def increment(self, key: str) -> int:
        return int(await self._call("incr", self._client.incr(self._key(key))))

    async def expire(self, key: str, seconds: int) -> None:
        await self._call("expire", self._client.expire(self._key(key), seconds))

    # ── Cache values ────────────────────────────────────────
    async def get_value(self, key: str) -> str | None:
        return await self._call("get", self._client.get(self._key(key)))

    async def set_value(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._call(
            "setex", self._client.setex(self._key(key), ttl_seconds, value)
        )

    # ── Shared ──────────────────────────────────────────────
    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        namespaced = [self._key(key) for key in keys]
        return int(await self._call("delete", self._client.delete(*namespaced)))

    async def keys_matching(self, prefix: str) -> list[str]:
        # SCAN, not KEYS: never blocks the server on a large keyspace.
        async def _scan() -> list[str]:
            found: list[str] = []
            pattern = f"{self._key(prefix)}*"
            async for key in self._client.scan_iter(match=pattern, count=_SCAN_BATCH):
                found.append(key[len(self._namespace):])
            return found

        return await self._call("scan", _scan())

    async def ping(self) -> bool:
        try:
            return bool(await self._call("ping", self._client.ping()))
        except StoreUnavailable:
            return False

    async def close(self) -> None:
        await self._client.aclose()
