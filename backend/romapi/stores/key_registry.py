"""
Key registry — persisted API keys, looked up by hash.

Flow owned elsewhere (services/admission.py); this module only
persists. Every method opens its own short session from the injected
factory so the registry can be called from background tasks that
outlive the request session.

Security:
  • Lookup is by SHA-256 hash only — the raw key never reaches the DB.
  • More than one row for a hash is treated as "not found" (fail closed);
    the unique constraint makes that unreachable in practice.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from romapi.core.resilience import bounded
from romapi.models.api_key import APIKey

logger = logging.getLogger(__name__)


class KeyRegistry(Protocol):
    async def find_by_hash(self, key_hash: str) -> APIKey | None: ...

    async def find_by_id(self, key_id: uuid.UUID) -> APIKey | None: ...

    async def list_for_user(self, user_id: uuid.UUID) -> list[APIKey]: ...

    async def create(self, **data: Any) -> APIKey: ...

    async def update_usage(
        self,
        key_id: uuid.UUID,
        *,
        last_used_at: datetime.datetime,
        usage_increment: int = 1,
    ) -> None: ...

    async def set_active(self, key_id: uuid.UUID, active: bool) -> bool: ...


class SqlAlchemyKeyRegistry:
    """KeyRegistry over the `api_keys` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float | None = 2.0,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    async def find_by_hash(self, key_hash: str) -> APIKey | None:
        stmt = (
            select(APIKey)
            .options(selectinload(APIKey.user))
            .where(APIKey.key_hash == key_hash)
            .limit(2)
        )
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            rows = result.scalars().all()

        if len(rows) != 1:
            if rows:
                logger.error("api_key_hash_collision count=%d", len(rows))
            return None
        return rows[0]

    async def find_by_id(self, key_id: uuid.UUID) -> APIKey | None:
        async with self._session_factory() as session:
            return await bounded(session.get(APIKey, key_id), self._timeout)

    async def list_for_user(self, user_id: uuid.UUID) -> list[APIKey]:
        stmt = (
            select(APIKey)
            .where(APIKey.user_id == user_id)
            .order_by(APIKey.created_at.desc())
        )
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            return list(result.scalars().all())

    async def create(self, **data: Any) -> APIKey:
        async with self._session_factory() as session:
            api_key = APIKey(**data)
            session.add(api_key)
            await bounded(session.commit(), self._timeout)
            await session.refresh(api_key)
            return api_key

    async def update_usage(
        self,
        key_id: uuid.UUID,
        *,
        last_used_at: datetime.datetime,
        usage_increment: int = 1,
    ) -> None:
        # Server-side increment; concurrent validations never lose updates.
        stmt = (
            update(APIKey)
            .where(APIKey.id == key_id)
            .values(
                usage_count=APIKey.usage_count + usage_increment,
                last_used_at=last_used_at,
            )
        )
        async with self._session_factory() as session:
            await bounded(session.execute(stmt), self._timeout)
            await bounded(session.commit(), self._timeout)

    async def set_active(self, key_id: uuid.UUID, active: bool) -> bool:
        stmt = update(APIKey).where(APIKey.id == key_id).values(is_active=active)
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            await bounded(session.commit(), self._timeout)
        return result.rowcount > 0
