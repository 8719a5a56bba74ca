"""
Record store for businesses and categories (the source of truth).

Query translation lives here so the SQL for a BusinessQuerySpec can be
compiled and inspected without a database:

  • search    — ILIKE on name OR description
  • category  — category_id = <uuid> OR category.slug = <value>
  • city/region — case-insensitive substring
  • status/plan/featured — equality
  • geo       — bounding-box pre-filter (±radius/111° lat,
                ±radius/(111·cos lat)° lon); exact distance ranking
                happens afterwards in Python (services/geo.py)

find_many() runs the page query and the COUNT(*) in parallel on two
sessions — an AsyncSession must never be shared between tasks.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import ColumnElement, Select, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from romapi.core.errors import NotFound
from romapi.core.resilience import bounded
from romapi.models.business import Business
from romapi.models.category import Category
from romapi.models.ingestion_log import IngestionLog
from romapi.models.user import User
from romapi.schemas.business import BusinessQuerySpec
from romapi.services.geo import bounding_box

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "name": Business.name,
    "created_at": Business.created_at,
    "view_count": Business.view_count,
    "featured": Business.featured,
}


class BusinessStore(Protocol):
    async def find_by_id(self, business_id: uuid.UUID) -> Business | None: ...

    async def find_many(
        self, spec: BusinessQuerySpec, *, paginate: bool = True
    ) -> tuple[list[Business], int]: ...

    async def create(self, data: dict[str, Any]) -> Business: ...

    async def update(self, business_id: uuid.UUID, data: dict[str, Any]) -> Business | None: ...

    async def delete(self, business_id: uuid.UUID) -> bool: ...

    async def increment_view_count(self, business_id: uuid.UUID) -> None: ...

    async def slug_taken(self, slug: str, *, exclude_id: uuid.UUID | None = None) -> bool: ...

    async def find_duplicate(
        self, *, name: str | None, email: str | None, phone: str | None
    ) -> Business | None: ...

    async def get_category(self, category_id: uuid.UUID) -> Category | None: ...

    async def find_category(self, *, name: str, slug: str) -> Category | None: ...

    async def create_category(self, *, name: str, slug: str) -> Category: ...


class IngestionStore(Protocol):
    async def start_log(self, *, source: str, raw_data: dict[str, Any]) -> IngestionLog: ...

    async def finish_log(
        self,
        log_id: uuid.UUID,
        *,
        status: str,
        business_id: uuid.UUID | None = None,
        processed: dict[str, Any] | None = None,
        errors: list[str] | None = None,
    ) -> None: ...

    async def get_or_create_user(self, *, email: str, name: str, role: str) -> User: ...


# ── Query translation ───────────────────────────────────────
def build_listing_conditions(spec: BusinessQuerySpec) -> list[ColumnElement[bool]]:
    """Translate a spec into WHERE conditions (ANDed by the caller)."""
    conditions: list[ColumnElement[bool]] = []

    if spec.search:
        pattern = f"%{spec.search}%"
        conditions.append(
            or_(Business.name.ilike(pattern), Business.description.ilike(pattern))
        )

    if spec.category:
        by_slug = Business.category.has(Category.slug == spec.category)
        try:
            category_id = uuid.UUID(spec.category)
        except ValueError:
            conditions.append(by_slug)
        else:
            conditions.append(or_(Business.category_id == category_id, by_slug))

    if spec.city:
        conditions.append(Business.city.ilike(f"%{spec.city}%"))
    if spec.region:
        conditions.append(Business.region.ilike(f"%{spec.region}%"))

    if spec.status is not None:
        conditions.append(Business.status == spec.status.value)
    if spec.plan is not None:
        conditions.append(Business.plan == spec.plan.value)
    if spec.featured is not None:
        conditions.append(Business.featured.is_(spec.featured))

    origin = spec.geo_origin
    box = bounding_box(origin) if origin is not None else None
    if box is not None:
        conditions.extend(
            [
                Business.latitude.between(box.min_lat, box.max_lat),
                or_(
                    *(
                        Business.longitude.between(low, high)
                        for low, high in box.longitude_ranges()
                    )
                ),
            ]
        )

    return conditions


def build_listing_query(spec: BusinessQuerySpec, *, paginate: bool = True) -> Select[tuple[Business]]:
    """Page query with eager-loaded category. Distance sort falls back to created_at."""
    stmt = (
        select(Business)
        .options(selectinload(Business.category))
        .where(*build_listing_conditions(spec))
    )

    column = _SORT_COLUMNS.get(spec.sort_by, Business.created_at)
    direction = column.asc() if spec.sort_order == "asc" else column.desc()
    if spec.sort_by == "distance":
        direction = Business.created_at.desc()
    # id as tiebreaker keeps pages stable between identical queries.
    stmt = stmt.order_by(direction, Business.id.asc())

    if paginate:
        stmt = stmt.offset(spec.offset).limit(spec.limit)
    return stmt


def build_count_query(spec: BusinessQuerySpec) -> Select[tuple[int]]:
    return (
        select(func.count())
        .select_from(Business)
        .where(*build_listing_conditions(spec))
    )


# ── SQLAlchemy implementation ───────────────────────────────
class SqlAlchemyBusinessStore:
    """BusinessStore + IngestionStore over PostgreSQL."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float | None = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    # ── Reads ───────────────────────────────────────────────
    async def find_by_id(self, business_id: uuid.UUID) -> Business | None:
        stmt = (
            select(Business)
            .options(selectinload(Business.category))
            .where(Business.id == business_id)
        )
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            return result.scalar_one_or_none()

    async def find_many(
        self, spec: BusinessQuerySpec, *, paginate: bool = True
    ) -> tuple[list[Business], int]:
        async def _records() -> list[Business]:
            async with self._session_factory() as session:
                result = await session.execute(build_listing_query(spec, paginate=paginate))
                return list(result.scalars().all())

        async def _total() -> int:
            async with self._session_factory() as session:
                result = await session.execute(build_count_query(spec))
                return int(result.scalar_one())

        records, total = await bounded(
            asyncio.gather(_records(), _total()), self._timeout
        )
        return records, total

    async def slug_taken(self, slug: str, *, exclude_id: uuid.UUID | None = None) -> bool:
        stmt = select(Business.id).where(Business.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Business.id != exclude_id)
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt.limit(1)), self._timeout)
            return result.first() is not None

    async def find_duplicate(
        self, *, name: str | None, email: str | None, phone: str | None
    ) -> Business | None:
        matchers: list[ColumnElement[bool]] = []
        if name:
            matchers.append(Business.name == name)
        if email:
            matchers.append(Business.email == email)
        if phone:
            matchers.append(Business.phone == phone)
        if not matchers:
            return None

        stmt = select(Business).where(or_(*matchers)).order_by(Business.created_at.asc()).limit(1)
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            return result.scalar_one_or_none()

    # ── Writes ──────────────────────────────────────────────
    async def create(self, data: dict[str, Any]) -> Business:
        async with self._session_factory() as session:
            business = Business(**data)
            session.add(business)
            await bounded(session.commit(), self._timeout)
            business_id = business.id
        created = await self.find_by_id(business_id)
        if created is None:
            raise NotFound("business", business_id)
        return created

    async def update(self, business_id: uuid.UUID, data: dict[str, Any]) -> Business | None:
        async with self._session_factory() as session:
            business = await bounded(session.get(Business, business_id), self._timeout)
            if business is None:
                return None
            for field, value in data.items():
                setattr(business, field, value)
            await bounded(session.commit(), self._timeout)
        return await self.find_by_id(business_id)

    async def delete(self, business_id: uuid.UUID) -> bool:
        async with self._session_factory() as session:
            result = await bounded(
                session.execute(delete(Business).where(Business.id == business_id)),
                self._timeout,
            )
            await bounded(session.commit(), self._timeout)
        return result.rowcount > 0

    async def increment_view_count(self, business_id: uuid.UUID) -> None:
        stmt = (
            update(Business)
            .where(Business.id == business_id)
            # Pin updated_at: a view is not an edit, and Core would apply onupdate.
            .values(view_count=Business.view_count + 1, updated_at=Business.updated_at)
        )
        async with self._session_factory() as session:
            await bounded(session.execute(stmt), self._timeout)
            await bounded(session.commit(), self._timeout)

    # ── Categories ──────────────────────────────────────────
    async def get_category(self, category_id: uuid.UUID) -> Category | None:
        async with self._session_factory() as session:
            return await bounded(session.get(Category, category_id), self._timeout)

    async def find_category(self, *, name: str, slug: str) -> Category | None:
        stmt = (
            select(Category)
            .where(or_(Category.name.ilike(f"%{name}%"), Category.slug == slug))
            .order_by(Category.created_at.asc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await bounded(session.execute(stmt), self._timeout)
            return result.scalar_one_or_none()

    async def create_category(self, *, name: str, slug: str) -> Category:
        async with self._session_factory() as session:
            category = Category(name=name, slug=slug)
            session.add(category)
            await bounded(session.commit(), self._timeout)
            await session.refresh(category)
            return category

    # ── Ingestion ───────────────────────────────────────────
    async def start_log(self, *, source: str, raw_data: dict[str, Any]) -> IngestionLog:
        async with self._session_factory() as session:
            log = IngestionLog(source=source, raw_data=raw_data)
            session.add(log)
            await bounded(session.commit(), self._timeout)
            await session.refresh(log)
            return log

    async def finish_log(
        self,
        log_id: uuid.UUID,
        *,
        status: str,
        business_id: uuid.UUID | None = None,
        processed: dict[str, Any] | None = None,
        errors: list[str] | None = None,
    ) -> None:
        stmt = (
            update(IngestionLog)
            .where(IngestionLog.id == log_id)
            .values(status=status, business_id=business_id, processed=processed, errors=errors)
        )
        async with self._session_factory() as session:
            await bounded(session.execute(stmt), self._timeout)
            await bounded(session.commit(), self._timeout)

    async def get_or_create_user(self, *, email: str, name: str, role: str) -> User:
        async with self._session_factory() as session:
            result = await bounded(
                session.execute(select(User).where(User.email == email)), self._timeout
            )
            user = result.scalar_one_or_none()
            if user is not None:
                return user
            user = User(email=email, name=name, role=role)
            session.add(user)
            await bounded(session.commit(), self._timeout)
            await session.refresh(user)
            logger.info("Created system user %s", user.id)
            return user
