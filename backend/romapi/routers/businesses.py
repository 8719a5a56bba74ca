"""
Business directory router.

Public reads (no API key):
  GET    /businesses              — filtered, sorted, paginated listing (cached)
  GET    /businesses/{id}         — one listing (cached, counts a view)
  POST   /businesses/{id}/call          — count a phone call
  POST   /businesses/{id}/website-click — count a website click

API key required (the key's owning user is the actor):
  GET    /businesses/{id}/stats   — daily views/calls/clicks, owner/admin only
  POST   /businesses              — create
  PATCH  /businesses/{id}         — partial update, owner/admin only
  DELETE /businesses/{id}         — hard delete, owner/admin only
  PATCH  /businesses/{id}/feature — featured flag, admin only
  POST   /businesses/ingest       — upsert from an automation workflow

Domain errors (NotFound, OwnershipViolation, AdminRequired, InvalidPayload)
propagate to the exception handlers registered in romapi.main.
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from romapi.auth.dependencies import Caller
from romapi.models.enums import BusinessPlan, BusinessStatus
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
    SortField,
    SortOrder,
)
from romapi.services.container import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Businesses"])

ServicesDep = Annotated[Services, Depends(get_services)]


def listing_spec(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    search: str | None = None,
    category: Annotated[str | None, Query(description="Category id or slug")] = None,
    city: str | None = None,
    region: str | None = None,
    status_: Annotated[BusinessStatus | None, Query(alias="status")] = None,
    plan: BusinessPlan | None = None,
    featured: bool | None = None,
    latitude: Annotated[float | None, Query(ge=-90, le=90)] = None,
    longitude: Annotated[float | None, Query(ge=-180, le=180)] = None,
    radius: Annotated[float | None, Query(ge=1, le=100, description="km")] = None,
    sort_by: SortField = "created_at",
    sort_order: SortOrder = "desc",
) -> BusinessQuerySpec:
    """
    Query string → BusinessQuerySpec.

    Listed explicitly (not a query model) so credential query params such
    as ?api_key= never count as unknown filters.
    """
    try:
        return BusinessQuerySpec(
            page=page,
            limit=limit,
            search=search,
            category=category,
            city=city,
            region=region,
            status=status_,
            plan=plan,
            featured=featured,
            latitude=latitude,
            longitude=longitude,
            radius=radius,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as exc:
        raise RequestValidationError(
            exc.errors(include_url=False, include_context=False, include_input=False)
        ) from exc


Spec = Annotated[BusinessQuerySpec, Depends(listing_spec)]


# ── Reads ───────────────────────────────────────────────────
@router.get(
    "",
    response_model=BusinessPage,
    summary="List businesses",
    description=(
        "Filter by text, category, location, status, plan, and featured flag. "
        "latitude/longitude (+ optional radius in km) enable distance "
        "annotation and sort_by=distance."
    ),
)
async def list_businesses(spec: Spec, services: ServicesDep) -> BusinessPage:
    return await services.businesses.list_businesses(spec)


@router.get(
    "/{business_id}",
    response_model=BusinessOut,
    summary="Get one business",
)
async def get_business(business_id: uuid.UUID, services: ServicesDep) -> BusinessOut:
    return await services.businesses.get_business(business_id)


@router.get(
    "/{business_id}/stats",
    response_model=BusinessStats,
    summary="Daily engagement statistics (owner or admin)",
)
async def get_business_stats(
    business_id: uuid.UUID,
    caller: Caller,
    services: ServicesDep,
    days: Annotated[int, Query(ge=1, le=90)] = 7,
) -> BusinessStats:
    return await services.businesses.stats(business_id, caller.user, days)


# ── Writes ──────────────────────────────────────────────────
@router.post(
    "",
    response_model=BusinessOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a business owned by the caller",
)
async def create_business(
    payload: BusinessCreate,
    caller: Caller,
    services: ServicesDep,
) -> BusinessOut:
    return await services.businesses.create(payload, caller.user)


@router.post(
    "/ingest",
    response_model=IngestionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest one scraped business",
    description=(
        "Upserts a listing pushed by an automation workflow. Incomplete "
        "payloads are logged and answered with success=false."
    ),
)
async def ingest_business(
    payload: IngestBusinessPayload,
    caller: Caller,
    services: ServicesDep,
) -> IngestionResult:
    logger.info("Ingestion from source=%s by key=%s", payload.source, caller.api_key.prefix)
    return await services.businesses.ingest(payload)


@router.patch(
    "/{business_id}",
    response_model=BusinessOut,
    summary="Update a business (owner or admin)",
)
async def update_business(
    business_id: uuid.UUID,
    payload: BusinessUpdate,
    caller: Caller,
    services: ServicesDep,
) -> BusinessOut:
    return await services.businesses.update(business_id, payload, caller.user)


@router.delete(
    "/{business_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a business (owner or admin)",
)
async def delete_business(
    business_id: uuid.UUID,
    caller: Caller,
    services: ServicesDep,
) -> None:
    await services.businesses.delete(business_id, caller.user)


@router.patch(
    "/{business_id}/feature",
    response_model=BusinessOut,
    summary="Feature or unfeature a business (admin only)",
)
async def feature_business(
    business_id: uuid.UUID,
    toggle: FeatureToggle,
    caller: Caller,
    services: ServicesDep,
) -> BusinessOut:
    return await services.businesses.set_featured(business_id, toggle, caller.user)


# ── Engagement beacons ──────────────────────────────────────
@router.post(
    "/{business_id}/call",
    response_model=InteractionRecorded,
    summary="Record a phone call to a business",
)
async def record_call(business_id: uuid.UUID, services: ServicesDep) -> InteractionRecorded:
    return await services.businesses.record_call(business_id)


@router.post(
    "/{business_id}/website-click",
    response_model=InteractionRecorded,
    summary="Record a click through to a business website",
)
async def record_website_click(business_id: uuid.UUID, services: ServicesDep) -> InteractionRecorded:
    return await services.businesses.record_website_click(business_id)
