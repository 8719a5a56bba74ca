"""
API key model — machine credential owned by a user.

Security notes:
  • Raw API keys are NEVER stored. Only a SHA-256 hash is persisted.
  • The `prefix` column stores the first 12 characters (e.g. "rapi_3f9a0c1")
    for identification in logs/UI without exposing the full key.
  • `is_active` allows key revocation without deletion (audit trail).
  • usage_count is bumped with UPDATE … SET usage_count = usage_count + n
    so concurrent validations never lose increments.
"""

import uuid
import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from romapi.core.database import Base
from romapi.models.enums import ApiPlan, check_in
from romapi.models.user import User


class APIKey(Base):
    """Hashed API key belonging to a user."""

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    key_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
    prefix: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApiPlan.FREE.value,
        server_default=ApiPlan.FREE.value,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    # ── Limits (copied from the plan at creation time) ──────
    rate_limit: Mapped[int] = mapped_column(Integer, nullable=False)   # requests/hour
    quota_limit: Mapped[int] = mapped_column(Integer, nullable=False)  # requests/month

    # ── Usage accounting ────────────────────────────────────
    usage_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    last_used_at: Mapped[datetime.datetime | None] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user: Mapped[User] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint(check_in("plan", ApiPlan), name="ck_api_keys_plan_valid"),
        CheckConstraint("rate_limit > 0", name="ck_api_keys_rate_limit_pos"),
        CheckConstraint("quota_limit > 0", name="ck_api_keys_quota_limit_pos"),
    )

    def __repr__(self) -> str:
        return (
            f"<APIKey id={self.id!s:.8} prefix={self.prefix!r} "
            f"plan={self.plan} active={self.is_active}>"
        )
