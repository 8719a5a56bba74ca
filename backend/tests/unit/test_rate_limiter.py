from __future__ import annotations

import uuid

import pytest

from romapi.auth.errors import RateLimitExceeded, RateLimitUnavailable
from romapi.core.errors import StoreUnavailable
from romapi.services.rate_limiter import FixedWindowRateLimiter
from tests.fakes import FakeClock, InMemoryStore


def _limiter(fail_mode: str = "open") -> tuple[FixedWindowRateLimiter, InMemoryStore, FakeClock]:
    clock = FakeClock()
    store = InMemoryStore(clock)
    limiter = FixedWindowRateLimiter(store, fail_mode=fail_mode, clock=clock)  # type: ignore[arg-type]
    return limiter, store, clock


@pytest.mark.asyncio
async def test_each_admitted_call_increments_by_one() -> None:
    limiter, _store, _clock = _limiter()
    key_id = uuid.uuid4()

    assert await limiter.check_and_increment(key_id, 5) == 1
    assert await limiter.check_and_increment(key_id, 5) == 2
    assert await limiter.current_count(key_id) == 2


@pytest.mark.asyncio
async def test_call_past_the_ceiling_reports_the_limit() -> None:
    limiter, _store, _clock = _limiter()
    key_id = uuid.uuid4()
    for _ in range(3):
        await limiter.check_and_increment(key_id, 3)

    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.check_and_increment(key_id, 3)

    assert exc_info.value.limit == 3
    # Rejected calls do not inflate the window.
    assert await limiter.current_count(key_id) == 3


@pytest.mark.asyncio
async def test_first_increment_sets_window_expiry() -> None:
    limiter, store, _clock = _limiter()
    key_id = uuid.uuid4()

    await limiter.check_and_increment(key_id, 10)

    assert store.ttl(limiter.window_key(key_id)) == pytest.approx(3600)


@pytest.mark.asyncio
async def test_window_resets_after_expiry() -> None:
    limiter, _store, clock = _limiter()
    key_id = uuid.uuid4()
    for _ in range(2):
        await limiter.check_and_increment(key_id, 2)

    clock.advance(3600)

    assert await limiter.check_and_increment(key_id, 2) == 1


@pytest.mark.asyncio
async def test_windows_are_per_key() -> None:
    limiter, _store, _clock = _limiter()
    busy, idle = uuid.uuid4(), uuid.uuid4()
    await limiter.check_and_increment(busy, 1)

    with pytest.raises(RateLimitExceeded):
        await limiter.check_and_increment(busy, 1)
    assert await limiter.check_and_increment(idle, 1) == 1


def test_window_key_is_epoch_aligned() -> None:
    limiter, _store, clock = _limiter()
    key_id = uuid.uuid4()
    bucket = int(clock().timestamp()) // 3600

    assert limiter.window_key(key_id) == f"rate_limit:{key_id}:{bucket}"


@pytest.mark.asyncio
async def test_store_failure_fails_open_by_default() -> None:
    limiter, store, _clock = _limiter()
    store.failing = True

    assert await limiter.check_and_increment(uuid.uuid4(), 1) is None


@pytest.mark.asyncio
async def test_store_failure_fails_closed_when_configured() -> None:
    limiter, store, _clock = _limiter("closed")
    store.failing = True

    with pytest.raises(RateLimitUnavailable):
        await limiter.check_and_increment(uuid.uuid4(), 1)


class _ExpireFailsOnce(InMemoryStore):
    """Loses the first EXPIRE, like a Redis timeout right after INCR."""

    def __init__(self, clock: FakeClock) -> None:
        super().__init__(clock)
        self.expire_failures = 1

    async def expire(self, key: str, seconds: int) -> None:
        if self.expire_failures:
            self.expire_failures -= 1
            raise StoreUnavailable("expire timed out")
        await super().expire(key, seconds)


@pytest.mark.asyncio
async def test_lost_expire_is_rearmed_by_the_next_request() -> None:
    clock = FakeClock()
    store = _ExpireFailsOnce(clock)
    limiter = FixedWindowRateLimiter(store, fail_mode="closed", clock=clock)  # type: ignore[arg-type]
    key_id = uuid.uuid4()

    # The increment landed, so the request is admitted and counted.
    assert await limiter.check_and_increment(key_id, 10) == 1
    assert store.ttl(limiter.window_key(key_id)) is None

    assert await limiter.check_and_increment(key_id, 10) == 2
    assert store.ttl(limiter.window_key(key_id)) == pytest.approx(3600)


def test_window_must_be_positive() -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(InMemoryStore(), window_seconds=0)  # type: ignore[arg-type]
