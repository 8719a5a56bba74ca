from __future__ import annotations

import pytest

from romapi.auth.hashing import API_KEY_PATTERN, hash_api_key
from romapi.core.errors import NotFound
from romapi.models.enums import ApiPlan
from romapi.services.api_keys import PLAN_LIMITS
from tests.fakes import Harness, make_user


@pytest.mark.asyncio
async def test_create_stores_only_the_hash(harness: Harness) -> None:
    user = make_user()

    api_key, raw_key = await harness.services.api_keys.create_api_key(user.id, "ci", plan=ApiPlan.PRO)

    assert API_KEY_PATTERN.match(raw_key)
    assert api_key.key_hash == hash_api_key(raw_key)
    assert api_key.prefix == raw_key[:12]
    assert api_key.rate_limit == PLAN_LIMITS[ApiPlan.PRO].rate_limit == 2_000
    assert api_key.quota_limit == 100_000


def test_plan_table() -> None:
    assert {plan: limits.rate_limit for plan, limits in PLAN_LIMITS.items()} == {
        ApiPlan.FREE: 100,
        ApiPlan.BASIC: 500,
        ApiPlan.PRO: 2_000,
        ApiPlan.ENTERPRISE: 10_000,
    }


@pytest.mark.asyncio
async def test_created_key_authenticates(harness: Harness) -> None:
    user = make_user()
    harness.registry.users[user.id] = user
    _api_key, raw_key = await harness.services.api_keys.create_api_key(user.id, "ci")

    caller = await harness.services.admission.authenticate(raw_key)

    assert caller.user is user


@pytest.mark.asyncio
async def test_revoke_is_soft(harness: Harness) -> None:
    user = make_user()
    api_key, _raw = harness.registry.issue(user)

    await harness.services.api_keys.revoke_api_key(api_key.id, user.id)

    assert api_key.id in harness.registry.keys
    assert api_key.is_active is False


@pytest.mark.asyncio
async def test_revoking_someone_elses_key_looks_absent(harness: Harness) -> None:
    api_key, _raw = harness.registry.issue(make_user())

    with pytest.raises(NotFound):
        await harness.services.api_keys.revoke_api_key(api_key.id, make_user().id)
    assert api_key.is_active is True


@pytest.mark.asyncio
async def test_list_only_returns_own_keys(harness: Harness) -> None:
    user = make_user()
    mine, _ = harness.registry.issue(user)
    harness.registry.issue(make_user())

    keys = await harness.services.api_keys.list_api_keys(user.id)

    assert [key.id for key in keys] == [mine.id]
