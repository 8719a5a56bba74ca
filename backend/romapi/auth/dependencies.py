"""
FastAPI dependency for API key authentication + rate limiting.

Flow:
  1. Extract the raw key from the first credential source that has one
     (CREDENTIAL_SOURCES, in order)
  2. AdmissionController.authenticate(): hash → registry lookup →
     active/expiry checks → fixed-window rate check → usage accounting
  3. Return AuthorizedCaller (api_key + owning user)

Order in request pipeline: AUTH → RATE LIMIT → ROUTER LOGIC. A rejected
request never reaches the query path.

Security:
  • Generic 401 for ALL credential failures (missing, unknown, inactive,
    expired) to avoid leaking which keys exist
  • Raw keys are NEVER logged
  • 429 carries the key's ceiling in X-RateLimit-Limit
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from romapi.auth.errors import (
    InvalidCredential,
    MissingCredential,
    RateLimitExceeded,
    RateLimitUnavailable,
)
from romapi.services.admission import AuthorizedCaller
from romapi.services.container import Services, get_services

logger = logging.getLogger(__name__)

CredentialSource = Callable[[Mapping[str, str], Mapping[str, str]], str | None]


# ── Credential sources ──────────────────────────────────────
def _bearer_token(headers: Mapping[str, str], _query: Mapping[str, str]) -> str | None:
    authorization = headers.get("authorization")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _header(name: str) -> CredentialSource:
    def source(headers: Mapping[str, str], _query: Mapping[str, str]) -> str | None:
        return (headers.get(name) or "").strip() or None

    return source


def _query_param(name: str) -> CredentialSource:
    def source(_headers: Mapping[str, str], query: Mapping[str, str]) -> str | None:
        return (query.get(name) or "").strip() or None

    return source


# Client integrations rely on this exact precedence.
CREDENTIAL_SOURCES: tuple[tuple[str, CredentialSource], ...] = (
    ("authorization_bearer", _bearer_token),
    ("x_api_key_header", _header("x-api-key")),
    ("api_key_query", _query_param("api_key")),
    ("apikey_query", _query_param("apikey")),
)


def extract_api_key(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> str | None:
    """Raw key from the first source that yields a non-empty value."""
    for _name, source in CREDENTIAL_SOURCES:
        raw_key = source(headers, query_params)
        if raw_key:
            return raw_key
    return None


# ── Errors ──────────────────────────────────────────────────
# Generic 401 — same message for all credential failures
_AUTH_FAILED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or missing API key.",
    headers={"WWW-Authenticate": "Bearer"},
)

_RATE_LIMIT_UNAVAILABLE = HTTPException(
    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    detail="Rate limiting is temporarily unavailable. Please try again later.",
)


# ── Dependency ──────────────────────────────────────────────
async def require_api_key(
    request: Request,
    services: Annotated[Services, Depends(get_services)],
) -> AuthorizedCaller:
    """
    FastAPI dependency — resolves the request's API key to an AuthorizedCaller.

    Usage in routers:
        Caller = Annotated[AuthorizedCaller, Depends(require_api_key)]

    Raises 401 (credential), 429 (rate limit), or 503 (limiter store down
    while RATE_LIMIT_FAIL_MODE=closed).
    """
    raw_key = extract_api_key(request.headers, request.query_params)

    try:
        return await services.admission.authenticate(raw_key)
    except (MissingCredential, InvalidCredential) as exc:
        logger.info("auth_rejected reason=%s path=%s", type(exc).__name__, request.url.path)
        raise _AUTH_FAILED from exc
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
            headers={"X-RateLimit-Limit": str(exc.limit)},
        ) from exc
    except RateLimitUnavailable as exc:
        raise _RATE_LIMIT_UNAVAILABLE from exc


Caller = Annotated[AuthorizedCaller, Depends(require_api_key)]
