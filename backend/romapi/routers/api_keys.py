"""
API key management router — all routes act on the calling key's user.

  POST   /api-keys        — create; the plaintext key is in this response only
  GET    /api-keys        — list (prefix only, never the hash)
  DELETE /api-keys/{id}   — revoke (soft delete, is_active = false)
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from romapi.auth.dependencies import Caller
from romapi.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyOut
from romapi.services.container import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["API Keys"])

ServicesDep = Annotated[Services, Depends(get_services)]


@router.post(
    "",
    response_model=ApiKeyCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create an API key",
    description="The returned `key` is shown exactly once. Store it now.",
)
async def create_api_key(
    payload: ApiKeyCreate,
    caller: Caller,
    services: ServicesDep,
) -> ApiKeyCreated:
    api_key, raw_key = await services.api_keys.create_api_key(
        caller.user.id,
        payload.name,
        plan=payload.plan,
        expires_at=payload.expires_at,
    )
    out = ApiKeyOut.model_validate(api_key)
    return ApiKeyCreated(**out.model_dump(), key=raw_key)


@router.get(
    "",
    response_model=list[ApiKeyOut],
    summary="List the caller's API keys",
)
async def list_api_keys(caller: Caller, services: ServicesDep) -> list[ApiKeyOut]:
    keys = await services.api_keys.list_api_keys(caller.user.id)
    return [ApiKeyOut.model_validate(api_key) for api_key in keys]


@router.delete(
    "/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke an API key",
)
async def revoke_api_key(
    key_id: uuid.UUID,
    caller: Caller,
    services: ServicesDep,
) -> None:
    await services.api_keys.revoke_api_key(key_id, caller.user.id)
