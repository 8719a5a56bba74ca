from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from romapi.core.errors import StoreUnavailable
from romapi.stores.counter_store import RedisStore


class StubRedis:
    """Just enough of redis.asyncio.Redis for the adapter."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def incr(self, key: str) -> int:
        self._check()
        self.data[key] = str(int(self.data.get(key, "0")) + 1)
        return int(self.data[key])

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        self.ttls[key] = seconds
        return True

    async def setex(self, key: str, seconds: int, value: str) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def scan_iter(self, match: str, count: int):  # type: ignore[no-untyped-def]
        self._check()
        prefix = match.rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.mark.asyncio
async def test_namespace_is_applied_and_stripped() -> None:
    client = StubRedis()
    store = RedisStore(client, namespace="romapi:")  # type: ignore[arg-type]

    await store.set_value("listing:abc", "{}", 300)
    await store.increment("rate_limit:k:1")

    assert "romapi:listing:abc" in client.data
    assert client.ttls["romapi:listing:abc"] == 300
    assert await store.keys_matching("listing:") == ["listing:abc"]
    assert await store.delete("listing:abc") == 1


@pytest.mark.asyncio
async def test_counters_are_integers() -> None:
    store = RedisStore(StubRedis())  # type: ignore[arg-type]

    assert await store.get("missing") is None
    assert await store.increment("c") == 1
    assert await store.get("c") == 1


@pytest.mark.asyncio
async def test_client_errors_become_store_unavailable() -> None:
    client = StubRedis()
    client.down = True
    store = RedisStore(client)  # type: ignore[arg-type]

    with pytest.raises(StoreUnavailable):
        await store.get("k")
    with pytest.raises(StoreUnavailable):
        await store.keys_matching("listing:")
    assert await store.ping() is False


@pytest.mark.asyncio
async def test_delete_nothing_skips_the_round_trip() -> None:
    client = StubRedis()
    client.down = True
    store = RedisStore(client)  # type: ignore[arg-type]

    assert await store.delete() == 0
