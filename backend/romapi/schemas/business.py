"""
Pydantic v2 schemas for business listings.

Separation:
  • BusinessQuerySpec   — normalized listing query (cache-key source).
  • BusinessCreate / BusinessUpdate — what the CLIENT sends.
  • BusinessOut / BusinessPage      — what the SERVER returns (and caches).
  • IngestBusinessPayload / IngestionResult — automation workflow contract.

BusinessQuerySpec is frozen and forbids unknown fields: two requests that
mean the same thing must validate to equal objects, because the cache key
is derived from the validated model, never from the raw query string.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from romapi.models.enums import BusinessPlan, BusinessStatus
from romapi.services.geo import GeoOrigin

SortField = Literal["name", "created_at", "view_count", "featured", "distance"]
SortOrder = Literal["asc", "desc"]


# ── Query spec ──────────────────────────────────────────────
class BusinessQuerySpec(BaseModel):
    """
    Filter + pagination + sort for GET /businesses.

    Defaults: page=1, limit=20, sort_by=created_at, sort_order=desc.
    sort_by="distance" is only valid together with latitude/longitude.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    search: str | None = Field(default=None, max_length=200)
    category: str | None = Field(
        default=None,
        max_length=255,
        description="Category id or slug.",
    )
    city: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    status: BusinessStatus | None = None
    plan: BusinessPlan | None = None
    featured: bool | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    radius: float | None = Field(
        default=None,
        ge=1,
        le=100,
        description="Search radius in km; enables the bounding-box pre-filter.",
    )
    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"

    @field_validator("search", "category", "city", "region", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # "" and "   " mean "no filter", same cache key as omitting it.
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def _check_geo(self) -> BusinessQuerySpec:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        if self.radius is not None and self.latitude is None:
            raise ValueError("radius requires latitude and longitude")
        if self.sort_by == "distance" and self.latitude is None:
            raise ValueError("sort_by=distance requires latitude and longitude")
        return self

    @property
    def geo_origin(self) -> GeoOrigin | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoOrigin(self.latitude, self.longitude, self.radius)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ── Output schemas ──────────────────────────────────────────
class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None


class BusinessOut(BaseModel):
    """Full listing as returned to clients and stored in the cache."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    city: str | None = None
    region: str | None = None
    department: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    logo: str | None = None
    images: list[str] | None = None
    opening_hours: dict[str, Any] | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    category_id: uuid.UUID
    category: CategoryOut | None = None
    owner_id: uuid.UUID
    status: BusinessStatus
    plan: BusinessPlan
    featured: bool
    featured_until: datetime.datetime | None = None
    view_count: int
    click_count: int = 0
    created_at: datetime.datetime
    updated_at: datetime.datetime
    # Only set on listing results whose query carried a geo origin.
    distance: float | None = None


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, *, total: int, page: int, limit: int) -> PageMeta:
        total_pages = -(-total // limit) if total else 0
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class BusinessPage(BaseModel):
    data: list[BusinessOut]
    meta: PageMeta


class BusinessStats(BaseModel):
    """
    Lifetime counters from the record plus per-day series from the
    counter store. Every series is aligned with `days`, oldest first.
    """

    business_id: uuid.UUID
    view_count: int
    click_count: int
    days: list[datetime.date]
    views: list[int]
    calls: list[int]
    website_clicks: list[int]
    total_views: int
    total_calls: int
    total_website_clicks: int


class InteractionRecorded(BaseModel):
    """Answer to a call / website-click beacon."""

    success: bool = True
    business_id: uuid.UUID
    metric: str
    # Today's count after the bump; 0 when the counter store is down.
    count: int


class FeatureToggle(BaseModel):
    """Admin-only: put a listing forward (or take it back)."""

    model_config = ConfigDict(extra="forbid")

    featured: bool
    featured_until: datetime.datetime | None = None

    @model_validator(mode="after")
    def _until_needs_featured(self) -> FeatureToggle:
        if self.featured_until is not None and not self.featured:
            raise ValueError("featured_until requires featured=true")
        return self


# ── Input schemas ───────────────────────────────────────────
class _BusinessFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    website: str | None = Field(default=None, max_length=500)
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    logo: str | None = Field(default=None, max_length=500)
    images: list[str] | None = None
    opening_hours: dict[str, Any] | None = None
    meta_title: str | None = Field(default=None, max_length=255)
    meta_description: str | None = None
    status: BusinessStatus | None = None
    plan: BusinessPlan | None = None
    featured: bool | None = None


class BusinessCreate(_BusinessFields):
    """Payload accepted by POST /businesses. Slug and owner are server-side."""

    name: str = Field(..., min_length=1, max_length=255)
    category_id: uuid.UUID


class BusinessUpdate(_BusinessFields):
    """PATCH payload — only fields explicitly sent are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    category_id: uuid.UUID | None = None


# ── Ingestion ───────────────────────────────────────────────
class Coordinates(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class IngestBusinessPayload(BaseModel):
    """
    Payload pushed by the scraping/automation workflow.

    Everything except `source` and `raw_data` is optional at the schema
    level; missing name/category is reported as an ingestion failure
    (logged, 201 with success=false) rather than a 422.
    """

    source: str = Field(..., min_length=1, max_length=100)
    raw_data: dict[str, Any]
    name: str | None = None
    description: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    address: str | None = None
    city: str | None = None
    region: str | None = None
    category: str | None = None
    images: list[str] | None = None
    opening_hours: dict[str, Any] | None = None
    coordinates: Coordinates | None = None


class IngestionResult(BaseModel):
    success: bool
    message: str
    business_id: uuid.UUID | None = None
    ingestion_log_id: uuid.UUID
    errors: list[str] | None = None
