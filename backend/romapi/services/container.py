"""
Service wiring — the one place collaborators are constructed.

build_services() is called once from the application lifespan with the
live Redis store and session factory. Routers reach the result through
get_services(), which reads request.app.state; tests put their own
Services (built over in-memory stores) on app.state instead.

Nothing below this module reads `settings` — values are passed in here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from romapi.core.config import Settings
from romapi.core.resilience import best_effort, bounded
from romapi.services.admission import AdmissionController
from romapi.services.api_keys import ApiKeyService
from romapi.services.businesses import BusinessService
from romapi.services.invalidation import CacheInvalidator
from romapi.services.query_cache import BusinessQueryCache
from romapi.services.rate_limiter import FixedWindowRateLimiter
from romapi.services.daily_stats import DailyStats
from romapi.stores.business_store import SqlAlchemyBusinessStore
from romapi.stores.counter_store import RedisStore
from romapi.stores.key_registry import SqlAlchemyKeyRegistry

logger = logging.getLogger(__name__)

ReadinessProbe = Callable[[], Awaitable[bool]]


@dataclass(slots=True)
class Services:
    admission: AdmissionController
    api_keys: ApiKeyService
    businesses: BusinessService
    # name → probe, reported by GET /health/ready
    readiness: dict[str, ReadinessProbe] = field(default_factory=dict)


def _database_probe(
    session_factory: async_sessionmaker[AsyncSession],
    timeout: float | None,
) -> ReadinessProbe:
    async def _select_one() -> bool:
        async with session_factory() as session:
            await bounded(session.execute(text("SELECT 1")), timeout)
        return True

    async def probe() -> bool:
        return bool(await best_effort("database_ping", _select_one(), default=False))

    return probe


def build_services(
    redis_store: RedisStore,
    session_factory: async_sessionmaker[AsyncSession],
    config: Settings,
) -> Services:
    timeout = config.STORE_TIMEOUT_SECONDS

    registry = SqlAlchemyKeyRegistry(session_factory, timeout=timeout)
    records = SqlAlchemyBusinessStore(session_factory, timeout=timeout)

    limiter = FixedWindowRateLimiter(
        redis_store,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
        fail_mode=config.RATE_LIMIT_FAIL_MODE,
    )
    daily_stats = DailyStats(redis_store, ttl_seconds=config.DAILY_STATS_TTL_SECONDS)
    query_cache = BusinessQueryCache(
        records,
        redis_store,
        daily_stats,
        listing_ttl=config.LISTING_CACHE_TTL_SECONDS,
        detail_ttl=config.DETAIL_CACHE_TTL_SECONDS,
    )

    logger.info(
        "Services built (rate window=%ss, fail_mode=%s)",
        config.RATE_LIMIT_WINDOW_SECONDS,
        config.RATE_LIMIT_FAIL_MODE,
    )
    return Services(
        admission=AdmissionController(registry, limiter, usage_timeout=timeout),
        api_keys=ApiKeyService(registry),
        businesses=BusinessService(
            records,
            records,
            query_cache,
            CacheInvalidator(redis_store),
            daily_stats,
            system_user_email=config.SYSTEM_USER_EMAIL,
        ),
        readiness={
            "database": _database_probe(session_factory, timeout),
            "redis": redis_store.ping,
        },
    )


# ── Dependency ──────────────────────────────────────────────
def get_services(request: Request) -> Services:
    """FastAPI dependency — the Services built by the lifespan."""
    return request.app.state.services
