"""
Business service — listing CRUD, ownership, and automated ingestion.

Reads go through BusinessQueryCache. Writes go straight to the record
store and, once committed, call CacheInvalidator — never before, so a
failed write leaves the cache untouched.

Ownership: only the listing's owner or an ADMIN may update, delete, or
read statistics; anyone else gets OwnershipViolation. Featuring a
listing is ADMIN-only (AdminRequired).

Call and website-click beacons are public and only touch the daily
counters; they never invalidate the cache.
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Any

from slugify import slugify

from romapi.core.errors import (
    AdminRequired,
    DirectoryError,
    InvalidPayload,
    NotFound,
    OwnershipViolation,
)
from romapi.models.business import Business
from romapi.models.category import Category
from romapi.models.enums import BusinessStatus, IngestionStatus, UserRole
from romapi.models.user import User
from romapi.schemas.business import (
    BusinessCreate,
    BusinessOut,
    BusinessPage,
    BusinessQuerySpec,
    BusinessStats,
    BusinessUpdate,
    FeatureToggle,
    IngestBusinessPayload,
    IngestionResult,
    InteractionRecorded,
)
from romapi.services.daily_stats import DailyStats, Metric
from romapi.services.invalidation import CacheInvalidator
from romapi.services.query_cache import BusinessQueryCache, to_business_out
from romapi.stores.business_store import BusinessStore, IngestionStore

logger = logging.getLogger(__name__)

# Columns that may not be set to NULL through a PATCH.
_NON_NULLABLE = frozenset({"name", "category_id", "status", "plan", "featured"})


def _column_values(data: dict[str, Any]) -> dict[str, Any]:
    """Enums → their stored string value."""
    return {
        key: value.value if isinstance(value, enum.Enum) else value
        for key, value in data.items()
    }


def ensure_can_modify(business: Business, actor: User) -> None:
    if actor.role == UserRole.ADMIN.value:
        return
    if business.owner_id != actor.id:
        raise OwnershipViolation(f"user {actor.id} does not own business {business.id}")


class BusinessService:
    def __init__(
        self,
        store: BusinessStore,
        ingestion: IngestionStore,
        query_cache: BusinessQueryCache,
        invalidator: CacheInvalidator,
        daily_stats: DailyStats,
        *,
        system_user_email: str = "system@romapi.cm",
    ) -> None:
        self._store = store
        self._ingestion = ingestion
        self._query_cache = query_cache
        self._invalidator = invalidator
        self._daily_stats = daily_stats
        self._system_user_email = system_user_email

    # ── Reads ───────────────────────────────────────────────
    async def list_businesses(self, spec: BusinessQuerySpec) -> BusinessPage:
        return await self._query_cache.fetch_listing(spec)

    async def get_business(self, business_id: uuid.UUID) -> BusinessOut:
        return await self._query_cache.fetch_detail(business_id)

    async def stats(self, business_id: uuid.UUID, actor: User, days: int = 7) -> BusinessStats:
        business = await self._require(business_id)
        ensure_can_modify(business, actor)

        dates = self._daily_stats.last_days(days)
        views = await self._daily_stats.series(Metric.VIEWS, business_id, dates)
        calls = await self._daily_stats.series(Metric.CALLS, business_id, dates)
        clicks = await self._daily_stats.series(Metric.WEBSITE_CLICKS, business_id, dates)
        return BusinessStats(
            business_id=business_id,
            view_count=business.view_count,
            click_count=business.click_count,
            days=dates,
            views=views,
            calls=calls,
            website_clicks=clicks,
            total_views=sum(views),
            total_calls=sum(calls),
            total_website_clicks=sum(clicks),
        )

    # ── Engagement beacons ──────────────────────────────────
    async def record_call(self, business_id: uuid.UUID) -> InteractionRecorded:
        return await self._record_interaction(Metric.CALLS, business_id)

    async def record_website_click(self, business_id: uuid.UUID) -> InteractionRecorded:
        return await self._record_interaction(Metric.WEBSITE_CLICKS, business_id)

    async def _record_interaction(self, metric: Metric, business_id: uuid.UUID) -> InteractionRecorded:
        # Existence check against the record store: a cached detail read
        # would count a view as well.
        await self._require(business_id)
        count = await self._daily_stats.record(metric, business_id)
        return InteractionRecorded(business_id=business_id, metric=metric.value, count=count)

    # ── Writes ──────────────────────────────────────────────
    async def create(self, payload: BusinessCreate, owner: User) -> BusinessOut:
        if await self._store.get_category(payload.category_id) is None:
            raise InvalidPayload("category not found")

        data = _column_values(payload.model_dump(exclude_none=True))
        data["slug"] = await self._unique_slug(payload.name)
        data["owner_id"] = owner.id

        business = await self._store.create(data)
        await self._invalidator.business_created(business.id)

        logger.info("Business created: %s (%s)", business.name, business.id)
        return to_business_out(business)

    async def update(self, business_id: uuid.UUID, payload: BusinessUpdate, actor: User) -> BusinessOut:
        existing = await self._require(business_id)
        ensure_can_modify(existing, actor)

        data = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in _NON_NULLABLE
        }
        if "category_id" in data and await self._store.get_category(data["category_id"]) is None:
            raise InvalidPayload("category not found")
        if "name" in data and data["name"] != existing.name:
            data["slug"] = await self._unique_slug(data["name"], exclude_id=business_id)

        updated = await self._store.update(business_id, _column_values(data))
        if updated is None:
            raise NotFound("business", business_id)
        await self._invalidator.business_changed(business_id)

        logger.info("Business updated: %s (%s)", updated.name, business_id)
        return to_business_out(updated)

    async def delete(self, business_id: uuid.UUID, actor: User) -> None:
        existing = await self._require(business_id)
        ensure_can_modify(existing, actor)

        if not await self._store.delete(business_id):
            raise NotFound("business", business_id)
        await self._invalidator.business_changed(business_id)

        logger.info("Business deleted: %s (%s)", existing.name, business_id)

    async def set_featured(self, business_id: uuid.UUID, toggle: FeatureToggle, actor: User) -> BusinessOut:
        """Admin-only; owners cannot promote their own listing."""
        if actor.role != UserRole.ADMIN.value:
            raise AdminRequired(f"user {actor.id} may not feature business {business_id}")
        await self._require(business_id)

        updated = await self._store.update(
            business_id,
            {"featured": toggle.featured, "featured_until": toggle.featured_until},
        )
        if updated is None:
            raise NotFound("business", business_id)
        await self._invalidator.business_changed(business_id)

        logger.info("Business %s featured=%s until=%s", business_id, toggle.featured, toggle.featured_until)
        return to_business_out(updated)

    # ── Ingestion ───────────────────────────────────────────
    async def ingest(self, payload: IngestBusinessPayload) -> IngestionResult:
        """
        Upsert one scraped listing.

        Never raises once the log row exists: bad data and store failures
        alike mark the log FAILED and come back as IngestionResult.
        """
        log = await self._ingestion.start_log(source=payload.source, raw_data=payload.raw_data)
        errors: list[str] = []

        try:
            if not payload.name:
                errors.append("Business name is missing")
            if not payload.category:
                errors.append("Category is missing")
            if errors:
                raise InvalidPayload("invalid ingestion payload")

            category = await self._find_or_create_category(payload.category)  # type: ignore[arg-type]
            business_id, created = await self._upsert_ingested(payload, category)
        except DirectoryError as exc:
            logger.warning("Ingestion %s rejected: %s", log.id, exc)
            if not errors:
                errors.append(str(exc))
            return await self._fail_ingestion(log.id, errors)
        except Exception as exc:
            logger.exception("Ingestion %s failed", log.id)
            return await self._fail_ingestion(log.id, [f"Unexpected {type(exc).__name__}"])

        await self._ingestion.finish_log(
            log.id,
            status=IngestionStatus.SUCCESS.value,
            business_id=business_id,
            processed=payload.model_dump(mode="json", exclude={"raw_data", "source"}, exclude_none=True),
        )
        if created:
            await self._invalidator.business_created(business_id)
        else:
            await self._invalidator.business_changed(business_id)

        return IngestionResult(
            success=True,
            message="Ingestion succeeded",
            business_id=business_id,
            ingestion_log_id=log.id,
        )

    async def _fail_ingestion(self, log_id: uuid.UUID, errors: list[str]) -> IngestionResult:
        await self._ingestion.finish_log(
            log_id, status=IngestionStatus.FAILED.value, errors=errors,
        )
        return IngestionResult(
            success=False,
            message="Ingestion failed",
            ingestion_log_id=log_id,
            errors=errors,
        )

    async def _find_or_create_category(self, name: str) -> Category:
        slug = slugify(name)
        category = await self._store.find_category(name=name, slug=slug)
        if category is None:
            category = await self._store.create_category(name=name, slug=slug)
        return category

    async def _upsert_ingested(
        self, payload: IngestBusinessPayload, category: Category,
    ) -> tuple[uuid.UUID, bool]:
        fields = payload.model_dump(
            include={
                "description", "email", "phone", "website", "address",
                "city", "region", "images", "opening_hours",
            },
            exclude_none=True,
        )
        fields = {key: value for key, value in fields.items() if value not in ("", [], {})}
        fields["category_id"] = category.id
        if payload.coordinates is not None:
            if payload.coordinates.latitude is not None:
                fields["latitude"] = payload.coordinates.latitude
            if payload.coordinates.longitude is not None:
                fields["longitude"] = payload.coordinates.longitude

        existing = await self._store.find_duplicate(
            name=payload.name, email=payload.email, phone=payload.phone,
        )
        if existing is not None:
            fields["name"] = payload.name
            if payload.name != existing.name:
                fields["slug"] = await self._unique_slug(payload.name, exclude_id=existing.id)  # type: ignore[arg-type]
            updated = await self._store.update(existing.id, fields)
            if updated is None:
                raise NotFound("business", existing.id)
            logger.info("Business updated via ingestion: %s", updated.name)
            return updated.id, False

        system_user = await self._ingestion.get_or_create_user(
            email=self._system_user_email,
            name="RomAPI System",
            role=UserRole.ADMIN.value,
        )
        fields.update(
            name=payload.name,
            slug=await self._unique_slug(payload.name),  # type: ignore[arg-type]
            owner_id=system_user.id,
            # Scraped listings need a human review before going live.
            status=BusinessStatus.PENDING.value,
        )
        created = await self._store.create(fields)
        logger.info("Business created via ingestion: %s", created.name)
        return created.id, True

    # ── Helpers ─────────────────────────────────────────────
    async def _require(self, business_id: uuid.UUID) -> Business:
        business = await self._store.find_by_id(business_id)
        if business is None:
            raise NotFound("business", business_id)
        return business

    async def _unique_slug(self, name: str, *, exclude_id: uuid.UUID | None = None) -> str:
        base = slugify(name) or "business"
        slug = base
        counter = 1
        while await self._store.slug_taken(slug, exclude_id=exclude_id):
            slug = f"{base}-{counter}"
            counter += 1
        return slug
