"""
API key lifecycle: create, list, revoke.

Keys are never hard-deleted — revocation flips is_active, which the
admission controller treats exactly like an unknown key. Limits are
copied from the plan at creation time so a later plan-table change
does not silently re-price existing keys.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from romapi.auth.hashing import display_prefix, generate_api_key
from romapi.core.errors import NotFound
from romapi.models.api_key import APIKey
from romapi.models.enums import ApiPlan
from romapi.stores.key_registry import KeyRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlanLimits:
    rate_limit: int   # requests / hour
    quota_limit: int  # requests / month


PLAN_LIMITS: dict[ApiPlan, PlanLimits] = {
    ApiPlan.FREE: PlanLimits(rate_limit=100, quota_limit=1_000),
    ApiPlan.BASIC: PlanLimits(rate_limit=500, quota_limit=10_000),
    ApiPlan.PRO: PlanLimits(rate_limit=2_000, quota_limit=100_000),
    ApiPlan.ENTERPRISE: PlanLimits(rate_limit=10_000, quota_limit=1_000_000),
}


class ApiKeyService:
    def __init__(self, registry: KeyRegistry) -> None:
        self._registry = registry

    async def create_api_key(
        self,
        user_id: uuid.UUID,
        name: str,
        plan: ApiPlan = ApiPlan.FREE,
        expires_at: datetime.datetime | None = None,
    ) -> tuple[APIKey, str]:
        """
        Create and persist a key.

        Returns:
            (api_key, raw_key) — raw_key must be shown to the user now;
            only its hash is stored and it cannot be recovered later.
        """
        raw_key, key_hash = generate_api_key()
        limits = PLAN_LIMITS[plan]

        api_key = await self._registry.create(
            user_id=user_id,
            name=name,
            key_hash=key_hash,
            prefix=display_prefix(raw_key),
            plan=plan.value,
            expires_at=expires_at,
            rate_limit=limits.rate_limit,
            quota_limit=limits.quota_limit,
        )
        logger.info("API key created id=%s prefix=%s user=%s", api_key.id, api_key.prefix, user_id)
        return api_key, raw_key

    async def list_api_keys(self, user_id: uuid.UUID) -> list[APIKey]:
        return await self._registry.list_for_user(user_id)

    async def revoke_api_key(self, key_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Deactivate a key owned by `user_id`; other users' keys look absent."""
        api_key = await self._registry.find_by_id(key_id)
        if api_key is None or api_key.user_id != user_id:
            raise NotFound("api_key", key_id)

        await self._registry.set_active(key_id, False)
        logger.info("API key revoked id=%s", key_id)
