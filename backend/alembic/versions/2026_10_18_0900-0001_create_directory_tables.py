"""create directory tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Initial schema:
  - users, categories, businesses
  - api_keys (SHA-256 hash, per-key rate/quota limits, usage accounting)
  - ingestion_logs
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False)


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False,
    )


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(20), server_default="USER", nullable=False),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("role IN ('USER', 'BUSINESS', 'ADMIN')", name="ck_users_role_valid"),
    )

    # ── 2. categories ───────────────────────────────────────
    op.create_table(
        "categories",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(100), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    # ── 3. businesses ───────────────────────────────────────
    op.create_table(
        "businesses",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("region", sa.String(100), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("logo", sa.String(500), nullable=True),
        sa.Column("images", postgresql.JSONB(), nullable=True),
        sa.Column("opening_hours", postgresql.JSONB(), nullable=True),
        sa.Column("meta_title", sa.String(255), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.UUID(), nullable=False),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column("status", sa.String(20), server_default="ACTIVE", nullable=False),
        sa.Column("plan", sa.String(20), server_default="FREE", nullable=False),
        sa.Column("featured", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("featured_until", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("view_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("click_count", sa.Integer(), server_default="0", nullable=False),
        _created_at_column(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'PENDING', 'SUSPENDED')", name="ck_businesses_status_valid",
        ),
        sa.CheckConstraint(
            "plan IN ('FREE', 'BASIC', 'PREMIUM', 'ENTERPRISE')", name="ck_businesses_plan_valid",
        ),
        sa.CheckConstraint("view_count >= 0", name="ck_businesses_view_count_non_neg"),
    )
    op.create_index("ix_businesses_category_id", "businesses", ["category_id"])
    op.create_index("ix_businesses_owner_id", "businesses", ["owner_id"])
    op.create_index("ix_businesses_city", "businesses", ["city"])
    op.create_index("ix_businesses_region", "businesses", ["region"])
    op.create_index("ix_businesses_status", "businesses", ["status"])
    op.create_index("ix_businesses_geo", "businesses", ["latitude", "longitude"])

    # ── 4. api_keys ─────────────────────────────────────────
    op.create_table(
        "api_keys",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("key_hash", sa.Text(), nullable=False),
        sa.Column("prefix", sa.String(12), nullable=False),
        sa.Column("plan", sa.String(20), server_default="FREE", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rate_limit", sa.Integer(), nullable=False),
        sa.Column("quota_limit", sa.Integer(), nullable=False),
        sa.Column("usage_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_used_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("key_hash"),
        sa.CheckConstraint(
            "plan IN ('FREE', 'BASIC', 'PRO', 'ENTERPRISE')", name="ck_api_keys_plan_valid",
        ),
        sa.CheckConstraint("rate_limit > 0", name="ck_api_keys_rate_limit_pos"),
        sa.CheckConstraint("quota_limit > 0", name="ck_api_keys_quota_limit_pos"),
    )
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])

    # ── 5. ingestion_logs ───────────────────────────────────
    op.create_table(
        "ingestion_logs",
        _id_column(),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("raw_data", postgresql.JSONB(), nullable=False),
        sa.Column("processed", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(20), server_default="PROCESSING", nullable=False),
        sa.Column("errors", postgresql.JSONB(), nullable=True),
        sa.Column("business_id", sa.UUID(), nullable=True),
        _created_at_column(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('PROCESSING', 'SUCCESS', 'FAILED')", name="ck_ingestion_logs_status_valid",
        ),
    )


def downgrade() -> None:
    op.drop_table("ingestion_logs")
    op.drop_index("ix_api_keys_user_id", table_name="api_keys")
    op.drop_table("api_keys")
    for index in (
        "ix_businesses_geo",
        "ix_businesses_status",
        "ix_businesses_region",
        "ix_businesses_city",
        "ix_businesses_owner_id",
        "ix_businesses_category_id",
    ):
        op.drop_index(index, table_name="businesses")
    op.drop_table("businesses")
    op.drop_table("categories")
    op.drop_table("users")
