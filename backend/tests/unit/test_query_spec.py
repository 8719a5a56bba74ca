from __future__ import annotations

import pytest
from pydantic import ValidationError

from romapi.schemas.business import BusinessQuerySpec, PageMeta


def test_defaults() -> None:
    spec = BusinessQuerySpec()
    assert (spec.page, spec.limit, spec.sort_by, spec.sort_order) == (1, 20, "created_at", "desc")
    assert spec.geo_origin is None
    assert spec.offset == 0


def test_offset_follows_page_and_limit() -> None:
    assert BusinessQuerySpec(page=3, limit=10).offset == 20


@pytest.mark.parametrize(
    "fields",
    [
        {"latitude": 4.0},
        {"longitude": 9.7},
        {"radius": 10},
        {"sort_by": "distance"},
        {"limit": 101},
        {"page": 0},
        {"unknown": "x"},
    ],
)
def test_rejects_inconsistent_or_unknown_fields(fields: dict) -> None:
    with pytest.raises(ValidationError):
        BusinessQuerySpec(**fields)


def test_geo_origin_carries_radius() -> None:
    spec = BusinessQuerySpec(latitude=4.05, longitude=9.76, radius=5, sort_by="distance")
    origin = spec.geo_origin
    assert origin is not None
    assert (origin.latitude, origin.longitude, origin.radius_km) == (4.05, 9.76, 5)


def test_spec_is_immutable() -> None:
    spec = BusinessQuerySpec()
    with pytest.raises(ValidationError):
        spec.page = 2  # type: ignore[misc]


def test_page_meta() -> None:
    meta = PageMeta.build(total=45, page=2, limit=20)
    assert (meta.total_pages, meta.has_next, meta.has_prev) == (3, True, True)
    assert PageMeta.build(total=0, page=1, limit=20).total_pages == 0
