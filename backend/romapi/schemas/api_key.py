"""
Pydantic v2 schemas for API key management.

The hash is never part of any response. The plaintext key appears in
exactly one response — ApiKeyCreated, returned by POST /api-keys.
"""

from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, ConfigDict, Field

from romapi.models.enums import ApiPlan


class ApiKeyCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100, examples=["n8n ingestion"])
    plan: ApiPlan = ApiPlan.FREE
    expires_at: datetime.datetime | None = None


class ApiKeyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    prefix: str
    plan: ApiPlan
    is_active: bool
    expires_at: datetime.datetime | None = None
    rate_limit: int
    quota_limit: int
    usage_count: int
    last_used_at: datetime.datetime | None = None
    created_at: datetime.datetime | None = None


class ApiKeyCreated(ApiKeyOut):
    """Creation response — `key` is shown once and never retrievable again."""

    key: str
