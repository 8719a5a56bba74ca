"""
Cache-aside read path for business listings and details.

  fetch_listing(spec) — key listing:<b64(normalized spec)>, TTL 5 min
  fetch_detail(id)    — key detail:<id>,                   TTL 10 min

Guarantees:
  • A cached entry is at most one TTL old; writes additionally remove
    entries through CacheInvalidator (services/invalidation.py).
  • The cache is optional. Every cache read/write goes through
    best_effort(): a dead or slow Redis turns into a miss served by the
    record store, never into an error. An unparseable entry is a miss.
  • A missing cache entry never means "no such record" — only the
    record store can answer NotFound.

Known window: a miss that loaded a record just before a concurrent
write+invalidation can still store the old copy; it lives at most one
TTL. That is the accepted staleness bound.

View counting rides on fetch_detail for hits and misses alike; it is a
side channel and is not suppressed by the cache.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from pydantic import ValidationError

from romapi.core.errors import NotFound
from romapi.core.resilience import best_effort
from romapi.models.business import Business
from romapi.schemas.business import BusinessOut, BusinessPage, BusinessQuerySpec, PageMeta
from romapi.services.cache_keys import detail_cache_key, listing_cache_key
from romapi.services.geo import GeoOrigin, distance_from, rank_by_distance
from romapi.services.daily_stats import DailyStats
from romapi.stores.business_store import BusinessStore
from romapi.stores.counter_store import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_LISTING_TTL = 300
DEFAULT_DETAIL_TTL = 600


def to_business_out(record: Business, distance: float | None = None) -> BusinessOut:
    out = BusinessOut.model_validate(record)
    if distance is not None:
        out = out.model_copy(update={"distance": distance})
    return out


def _annotate(records: Sequence[Business], origin: GeoOrigin | None) -> list[BusinessOut]:
    if origin is None:
        return [to_business_out(record) for record in records]
    return [to_business_out(record, distance_from(origin, record)) for record in records]


class BusinessQueryCache:
    def __init__(
        self,
        store: BusinessStore,
        cache: CacheStore,
        daily_stats: DailyStats,
        *,
        listing_ttl: int = DEFAULT_LISTING_TTL,
        detail_ttl: int = DEFAULT_DETAIL_TTL,
    ) -> None:
        self._store = store
        self._cache = cache
        self._daily_stats = daily_stats
        self._listing_ttl = listing_ttl
        self._detail_ttl = detail_ttl

    # ── Listing ─────────────────────────────────────────────
    async def fetch_listing(self, spec: BusinessQuerySpec) -> BusinessPage:
        key = listing_cache_key(spec)

        cached = await self._read(key, BusinessPage)
        if cached is not None:
            logger.debug("listing cache hit key=%s", key)
            return cached

        page = await self._load_listing(spec)
        await best_effort(
            "cache_set_listing",
            self._cache.set_value(key, page.model_dump_json(), self._listing_ttl),
        )
        return page

    async def _load_listing(self, spec: BusinessQuerySpec) -> BusinessPage:
        origin = spec.geo_origin

        if spec.sort_by == "distance" and origin is not None:
            # Distance is not a column: rank the whole (bounding-boxed)
            # match set, then cut the requested page out of it.
            records, total = await self._store.find_many(spec, paginate=False)
            ranked = rank_by_distance(records, origin, descending=spec.sort_order == "desc")
            window = ranked[spec.offset:spec.offset + spec.limit]
            data = [to_business_out(record, distance) for record, distance in window]
        else:
            records, total = await self._store.find_many(spec)
            data = _annotate(records, origin)

        return BusinessPage(
            data=data,
            meta=PageMeta.build(total=total, page=spec.page, limit=spec.limit),
        )

    # ── Detail ──────────────────────────────────────────────
    async def fetch_detail(self, business_id: uuid.UUID) -> BusinessOut:
        key = detail_cache_key(business_id)

        business = await self._read(key, BusinessOut)
        if business is None:
            record = await self._store.find_by_id(business_id)
            if record is None:
                raise NotFound("business", business_id)
            business = to_business_out(record)
            await self._record_view(business_id)
            await best_effort(
                "cache_set_detail",
                self._cache.set_value(key, business.model_dump_json(), self._detail_ttl),
            )
            return business

        logger.debug("detail cache hit key=%s", key)
        await self._record_view(business_id)
        return business

    async def _record_view(self, business_id: uuid.UUID) -> None:
        await best_effort("view_count_increment", self._store.increment_view_count(business_id))
        await self._daily_stats.record_view(business_id)

    # ── Helpers ─────────────────────────────────────────────
    async def _read(self, key: str, model: type[BusinessPage] | type[BusinessOut]):  # type: ignore[no-untyped-def]
        raw = await best_effort("cache_get", self._cache.get_value(key))
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("cache entry unreadable, treating as miss key=%s", key)
            return None
