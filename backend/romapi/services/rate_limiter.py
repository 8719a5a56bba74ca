"""
Counter-store-backed rate limiter service.

Enforces a per-API-key ceiling of requests per fixed window (one hour
by default) using atomic INCR counters in the shared counter store.

Design decisions:
  • Check BEFORE increment — rejected requests (429) don't inflate counters.
  • Window key = rate_limit:<api_key_id>:<epoch // window>. A new window is
    a new key, so it always starts at zero; every admitted increment sets
    the key's expiry to the window length so stale windows vanish on their
    own, even when one EXPIRE call was lost.
  • The ceiling is the key's own rate_limit column, never a constant.
  • Fixed windows allow up to 2× the ceiling across a boundary
    (end of one window + start of the next). Accepted for a soft control.

Concurrency:
  The read-then-increment is not one atomic step. Two requests that both
  read ceiling-1 are both admitted, overshooting by one per racing request
  in that window. No in-process lock is held across the store calls;
  the counter itself (INCR) never loses increments.

Store failures:
  fail_mode="open"   → log and admit (default; availability wins).
  fail_mode="closed" → raise RateLimitUnavailable (HTTP 503).
  Either way the request never sees RateLimitExceeded for an outage.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from typing import Literal

from romapi.auth.errors import RateLimitExceeded, RateLimitUnavailable
from romapi.core.errors import StoreUnavailable
from romapi.stores.counter_store import CounterStore

logger = logging.getLogger(__name__)

WINDOW_KEY_PREFIX = "rate_limit"
DEFAULT_WINDOW_SECONDS = 3600


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FixedWindowRateLimiter:
    """Per-key fixed-window limiter over a CounterStore."""

    def __init__(
        self,
        counters: CounterStore,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        fail_mode: Literal["open", "closed"] = "open",
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._counters = counters
        self._window_seconds = window_seconds
        self._fail_mode = fail_mode
        self._clock = clock

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def window_key(self, api_key_id: uuid.UUID | str, now: datetime.datetime | None = None) -> str:
        """Counter key for the window containing `now`."""
        moment = now or self._clock()
        bucket = int(moment.timestamp()) // self._window_seconds
        return f"{WINDOW_KEY_PREFIX}:{api_key_id}:{bucket}"

    async def current_count(self, api_key_id: uuid.UUID | str) -> int:
        """Requests seen in the current window (0 for a fresh window)."""
        return await self._counters.get(self.window_key(api_key_id)) or 0

    async def check_and_increment(self, api_key_id: uuid.UUID | str, limit: int) -> int | None:
        """
        Admit one request against `limit` or raise RateLimitExceeded.

        Returns the post-increment window count, or None when the store
        was unavailable and the request was admitted under fail-open.
        """
        key = self.window_key(api_key_id)

        try:
            count = await self._counters.get(key) or 0
        except (StoreUnavailable, TimeoutError) as exc:
            return self._on_store_failure(key, exc)

        if count >= limit:
            logger.info("rate_limited api_key_id=%s limit=%d", api_key_id, limit)
            raise RateLimitExceeded(limit)

        try:
            new_count = await self._counters.increment(key)
        except (StoreUnavailable, TimeoutError) as exc:
            return self._on_store_failure(key, exc)

        # Re-armed on every hit: a failed EXPIRE is repaired by the next
        # request, and the key dies at most one window after its last hit.
        try:
            await self._counters.expire(key, self._window_seconds)
        except (StoreUnavailable, TimeoutError):
            logger.warning("rate_limit_expire_failed key=%s count=%d", key, new_count)

        return new_count

    def _on_store_failure(self, key: str, exc: Exception) -> None:
        if self._fail_mode == "closed":
            logger.error("rate_limit_unavailable key=%s fail_mode=closed", key)
            raise RateLimitUnavailable("rate limit store unavailable") from exc
        logger.warning("rate_limit_degraded key=%s fail_mode=open", key, exc_info=exc)
        return None
