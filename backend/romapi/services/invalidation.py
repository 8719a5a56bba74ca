"""
Invalidation hook — runs after every successful business write.

  create          → sweep listing:*
  update / delete → delete detail:<id>, then sweep listing:*

The sweep removes every listing page, not just pages that contained
the record: one write can change membership, ordering, and totals of
arbitrarily many cached pages.

Failures are logged and swallowed through best_effort(). The write
has already been committed, so it is neither rolled back nor reported
as failed; TTL expiry restores consistency at worst.
"""

from __future__ import annotations

import logging
import uuid

from romapi.core.resilience import best_effort
from romapi.services.cache_keys import LISTING_PREFIX, detail_cache_key
from romapi.stores.counter_store import CacheStore

logger = logging.getLogger(__name__)


class CacheInvalidator:
    def __init__(self, cache: CacheStore) -> None:
        self._cache = cache

    async def business_created(self, business_id: uuid.UUID) -> None:
        removed = await self.sweep_listings()
        logger.debug("invalidated after create id=%s listings=%d", business_id, removed)

    async def business_changed(self, business_id: uuid.UUID) -> None:
        """Update or delete of `business_id`."""
        await best_effort("cache_delete_detail", self._cache.delete(detail_cache_key(business_id)))
        removed = await self.sweep_listings()
        logger.debug("invalidated after change id=%s listings=%d", business_id, removed)

    async def sweep_listings(self) -> int:
        async def _sweep() -> int:
            keys = await self._cache.keys_matching(LISTING_PREFIX)
            if not keys:
                return 0
            return await self._cache.delete(*keys)

        return await best_effort("cache_sweep_listings", _sweep(), default=0) or 0
