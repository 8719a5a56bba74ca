"""
Daily engagement counters kept in the counter store.

Key: <metric>:<business_id>:<YYYY-MM-DD>, one per metric:
  • views           — bumped by every detail read (cache hit or miss)
  • calls           — POST /businesses/{id}/call
  • website_clicks  — POST /businesses/{id}/website-click

Each key expires DAILY_STATS_TTL_SECONDS after its most recent bump.
Statistics are a side channel: every store failure degrades to
"not counted" / zero, never to an error.
"""

from __future__ import annotations

import datetime
import enum
import uuid
from collections.abc import Callable

from romapi.core.resilience import best_effort
from romapi.stores.counter_store import CounterStore


class Metric(str, enum.Enum):
    VIEWS = "views"
    CALLS = "calls"
    WEBSITE_CLICKS = "website_clicks"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def daily_key(metric: Metric, business_id: uuid.UUID | str, day: datetime.date) -> str:
    return f"{metric.value}:{business_id}:{day.isoformat()}"


class DailyStats:
    """Per-metric, per-day counters for one business."""

    def __init__(
        self,
        counters: CounterStore,
        *,
        ttl_seconds: int = 86_400,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._counters = counters
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def record(self, metric: Metric, business_id: uuid.UUID) -> int:
        """Bump today's counter; returns the new count, or 0 when the store is down."""
        key = daily_key(metric, business_id, self._clock().date())

        async def _bump() -> int:
            count = await self._counters.increment(key)
            await self._counters.expire(key, self._ttl_seconds)
            return count

        return await best_effort(f"{metric.value}_increment", _bump(), default=0) or 0

    async def record_view(self, business_id: uuid.UUID) -> int:
        return await self.record(Metric.VIEWS, business_id)

    def last_days(self, days: int) -> list[datetime.date]:
        """The last `days` calendar days (UTC), oldest first, ending today."""
        today = self._clock().date()
        return [today - datetime.timedelta(days=offset) for offset in range(days - 1, -1, -1)]

    async def series(self, metric: Metric, business_id: uuid.UUID, dates: list[datetime.date]) -> list[int]:
        counts: list[int] = []
        for day in dates:
            count = await best_effort(
                f"{metric.value}_read",
                self._counters.get(daily_key(metric, business_id, day)),
                default=0,
            )
            counts.append(count or 0)
        return counts
