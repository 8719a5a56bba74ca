"""
SQLAlchemy model for the `businesses` table — one directory listing.

Design notes:
  • latitude/longitude are nullable; listings without coordinates are
    still searchable, they just sort last on distance.
  • view_count is incremented with an atomic UPDATE … SET x = x + 1,
    never read-modify-write in Python.
  • Indexes on city, region, status, and (latitude, longitude) back the
    listing filters and the geo bounding-box pre-filter.
"""

import uuid
import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from romapi.core.database import Base
from romapi.models.category import Category
from romapi.models.enums import BusinessPlan, BusinessStatus, check_in


class Business(Base):
    """A local business listed in the directory."""

    __tablename__ = "businesses"

    # ── Identity ────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Contact ─────────────────────────────────────────────
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # ── Location ────────────────────────────────────────────
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # ── Presentation ────────────────────────────────────────
    logo: Mapped[str | None] = mapped_column(String(500), nullable=True)
    images: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    opening_hours: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Ownership / classification ──────────────────────────
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BusinessStatus.ACTIVE.value,
        server_default=BusinessStatus.ACTIVE.value,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BusinessPlan.FREE.value,
        server_default=BusinessPlan.FREE.value,
    )
    featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false",
    )
    featured_until: Mapped[datetime.datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True,
    )

    # ── Counters ────────────────────────────────────────────
    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )
    click_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0",
    )

    # ── Timestamps ──────────────────────────────────────────
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    category: Mapped[Category | None] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint(check_in("status", BusinessStatus), name="ck_businesses_status_valid"),
        CheckConstraint(check_in("plan", BusinessPlan), name="ck_businesses_plan_valid"),
        CheckConstraint("view_count >= 0", name="ck_businesses_view_count_non_neg"),
        Index("ix_businesses_city", "city"),
        Index("ix_businesses_region", "region"),
        Index("ix_businesses_status", "status"),
        Index("ix_businesses_geo", "latitude", "longitude"),
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id!s:.8} slug={self.slug!r} status={self.status}>"
