"""
Dev bootstrap script — create a user and their first API key.

Usage (from backend/):
    python -m scripts.bootstrap_dev [email] [name]

This will:
  1. Find or create the user (role ADMIN, so it can edit any listing)
  2. Generate a FREE-plan API key through ApiKeyService
  3. Print the raw key ONCE (only its SHA-256 hash is stored)

The raw key is shown exactly once — copy it immediately.
"""

import asyncio
import sys

from romapi.core.database import async_session_factory, engine
from romapi.models.enums import ApiPlan, UserRole
from romapi.services.api_keys import ApiKeyService
from romapi.stores.business_store import SqlAlchemyBusinessStore
from romapi.stores.key_registry import SqlAlchemyKeyRegistry


async def main(email: str, name: str) -> None:
    users = SqlAlchemyBusinessStore(async_session_factory)
    api_keys = ApiKeyService(SqlAlchemyKeyRegistry(async_session_factory))

    try:
        # ── Find or create user ─────────────────────────────
        user = await users.get_or_create_user(
            email=email, name=name, role=UserRole.ADMIN.value,
        )

        # ── Generate API key ────────────────────────────────
        api_key, raw_key = await api_keys.create_api_key(
            user.id, "Dev bootstrap key", plan=ApiPlan.FREE,
        )
    finally:
        await engine.dispose()

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Dev Bootstrap Complete")
    print("=" * 60)
    print()
    print(f"  User:       {user.email} ({user.role})")
    print(f"  User ID:    {user.id}")
    print(f"  Key ID:     {api_key.id}")
    print(f"  Limits:     {api_key.rate_limit}/hour, {api_key.quota_limit}/month")
    print()
    print(f"  API Key:    {raw_key}")
    print()
    print("  ⚠  Copy this key now — it will NEVER be shown again.")
    print("=" * 60)
    print()


if __name__ == "__main__":
    email = sys.argv[1] if len(sys.argv) > 1 else "dev@romapi.cm"
    name = sys.argv[2] if len(sys.argv) > 2 else "Dev User"
    asyncio.run(main(email, name))
