"""
Admission controller — gate for every machine-to-machine call.

Flow:
  1. Raw key present?             no  → MissingCredential
  2. SHA-256 → registry lookup    miss → InvalidCredential
  3. is_active?                   no  → InvalidCredential
  4. expires_at in the past?      yes → InvalidCredential
  5. Fixed-window rate check      over → RateLimitExceeded(limit)
  6. Usage accounting (usage_count + 1, last_used_at = now), fire-and-forget
  7. → AuthorizedCaller(api_key, user)

Steps 2–4 all raise the same error so a caller cannot tell an unknown
key from a revoked one. Step 5 must succeed (or fail open by policy)
before the request proceeds; step 6 runs in a background task through
best_effort() and can never fail the request.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from romapi.auth.errors import InvalidCredential, MissingCredential
from romapi.auth.hashing import hash_api_key
from romapi.core.resilience import best_effort
from romapi.models.api_key import APIKey
from romapi.models.user import User
from romapi.services.rate_limiter import FixedWindowRateLimiter
from romapi.stores.key_registry import KeyRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True, slots=True)
class AuthorizedCaller:
    """Authenticated machine caller injected into protected routes.

    Attributes:
        api_key: The resolved, active, unexpired key.
        user:    The key's owning user — the actor for ownership checks.
    """

    api_key: APIKey
    user: User

    @property
    def api_key_id(self) -> uuid.UUID:
        return self.api_key.id


class AdmissionController:
    """Validates API keys, enforces per-key rate limits, records usage."""

    def __init__(
        self,
        registry: KeyRegistry,
        limiter: FixedWindowRateLimiter,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
        usage_timeout: float | None = 2.0,
    ) -> None:
        self._registry = registry
        self._limiter = limiter
        self._clock = clock
        self._usage_timeout = usage_timeout
        # Strong refs so pending usage writes aren't garbage-collected.
        self._pending: set[asyncio.Task[None]] = set()

    async def authenticate(self, raw_key: str | None) -> AuthorizedCaller:
        if not raw_key:
            raise MissingCredential("no API key supplied")

        api_key = await self._registry.find_by_hash(hash_api_key(raw_key))
        now = self._clock()

        if api_key is None:
            raise InvalidCredential("unknown key")
        if not api_key.is_active:
            raise InvalidCredential(f"inactive key {api_key.id}")
        if api_key.expires_at is not None and api_key.expires_at < now:
            raise InvalidCredential(f"expired key {api_key.id}")

        await self._limiter.check_and_increment(api_key.id, api_key.rate_limit)

        self._record_usage(api_key.id, now)
        return AuthorizedCaller(api_key=api_key, user=api_key.user)

    def _record_usage(self, key_id: uuid.UUID, used_at: datetime.datetime) -> None:
        task = asyncio.create_task(
            best_effort(
                "api_key_usage",
                self._registry.update_usage(key_id, last_used_at=used_at, usage_increment=1),
                timeout=self._usage_timeout,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight usage writes (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
