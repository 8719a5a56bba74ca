from __future__ import annotations

import pytest

from romapi.core.errors import NotFound
from romapi.models.enums import UserRole
from romapi.schemas.business import BusinessCreate, BusinessQuerySpec, BusinessUpdate
from romapi.services.cache_keys import DETAIL_PREFIX, LISTING_PREFIX, detail_cache_key
from tests.fakes import Harness, make_business, make_category, make_user


def _seed(harness: Harness):
    category = make_category()
    owner = make_user(UserRole.BUSINESS)
    business = make_business(category, owner, name="Boulangerie", city="Douala")
    other = make_business(category, owner, name="Pressing", city="Douala")
    harness.records.add(category, owner, business, other)
    return category, owner, business


@pytest.mark.asyncio
async def test_update_sweeps_every_listing_page(harness: Harness) -> None:
    _category, owner, business = _seed(harness)
    by_city = BusinessQuerySpec(city="Douala")
    by_name = BusinessQuerySpec(search="Pressing")
    await harness.query_cache.fetch_listing(by_city)
    await harness.query_cache.fetch_listing(by_name)
    assert harness.records.find_many_calls == 2

    await harness.services.businesses.update(business.id, BusinessUpdate(city="Kribi"), owner)

    # Neither page is tied to the record's detail key, yet both miss.
    await harness.query_cache.fetch_listing(by_city)
    await harness.query_cache.fetch_listing(by_name)
    assert harness.records.find_many_calls == 4
    assert not [k for k in harness.store.keys() if k.startswith(DETAIL_PREFIX)]


@pytest.mark.asyncio
async def test_update_is_visible_on_the_next_detail_read(harness: Harness) -> None:
    _category, owner, business = _seed(harness)
    await harness.query_cache.fetch_detail(business.id)

    await harness.services.businesses.update(business.id, BusinessUpdate(phone="+237 699 00 00 00"), owner)

    assert (await harness.query_cache.fetch_detail(business.id)).phone == "+237 699 00 00 00"


@pytest.mark.asyncio
async def test_detail_after_delete_is_not_found(harness: Harness) -> None:
    _category, owner, business = _seed(harness)
    await harness.query_cache.fetch_detail(business.id)
    assert detail_cache_key(business.id) in harness.store.keys()

    await harness.services.businesses.delete(business.id, owner)

    with pytest.raises(NotFound):
        await harness.query_cache.fetch_detail(business.id)


@pytest.mark.asyncio
async def test_create_sweeps_listings(harness: Harness) -> None:
    category, owner, _business = _seed(harness)
    await harness.query_cache.fetch_listing(BusinessQuerySpec())

    await harness.services.businesses.create(
        BusinessCreate(name="Nouveau", category_id=category.id), owner
    )

    assert not [k for k in harness.store.keys() if k.startswith(LISTING_PREFIX)]
    page = await harness.query_cache.fetch_listing(BusinessQuerySpec())
    assert page.meta.total == 3


@pytest.mark.asyncio
async def test_sweep_failure_does_not_fail_the_write(harness: Harness) -> None:
    _category, owner, business = _seed(harness)
    harness.store.failing = True

    updated = await harness.services.businesses.update(business.id, BusinessUpdate(city="Limbe"), owner)

    assert updated.city == "Limbe"
    assert await harness.invalidator.sweep_listings() == 0


@pytest.mark.asyncio
async def test_sweep_reports_removed_pages(harness: Harness) -> None:
    _seed(harness)
    await harness.query_cache.fetch_listing(BusinessQuerySpec())
    await harness.query_cache.fetch_listing(BusinessQuerySpec(page=2))

    assert await harness.invalidator.sweep_listings() == 2
