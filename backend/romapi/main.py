"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity, connect the Redis counter/cache
    store, build the services (romapi.services.container).
  • On shutdown: wait for in-flight usage writes, close Redis, dispose
    the engine.

Routers:
  • /businesses — directory listing, detail, CRUD, ingestion
  • /api-keys   — key lifecycle for the calling user
  • /health     — shallow liveness probe
  • /health/ready — database + Redis reachability
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from romapi.core.config import settings
from romapi.core.database import async_session_factory, engine
from romapi.core.errors import AdminRequired, InvalidPayload, NotFound, OwnershipViolation
from romapi.routers.api_keys import router as api_keys_router
from romapi.routers.businesses import router as businesses_router
from romapi.services.container import build_services
from romapi.stores.counter_store import RedisStore

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup — verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except (SQLAlchemyError, OSError):
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    # Startup — counter/cache store (optional: every use fails open)
    redis_store = RedisStore.from_url(
        settings.REDIS_URL,
        namespace=settings.CACHE_KEY_PREFIX,
        timeout=settings.STORE_TIMEOUT_SECONDS,
    )
    if await redis_store.ping():
        logger.info("Redis connection verified ✓")
    else:
        logger.warning(
            "Could not reach Redis on startup. Caching and daily stats are "
            "disabled and rate limiting runs fail-%s until it is available.",
            settings.RATE_LIMIT_FAIL_MODE,
        )

    services = build_services(redis_store, async_session_factory, settings)
    app.state.services = services

    yield  # ← application runs here

    # Shutdown — flush usage accounting, then release connections
    await services.admission.drain()
    await redis_store.close()
    await engine.dispose()
    logger.info("Redis closed, database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "Business directory API — cached listings with geo ranking, "
        "API-key admission with per-key rate limits, automated ingestion."
    ),
    lifespan=lifespan,
)

# Mount routers
app.include_router(businesses_router, prefix="/businesses")
app.include_router(api_keys_router, prefix="/api-keys")


# ── Domain error mapping ────────────────────────────────────
@app.exception_handler(NotFound)
async def not_found_handler(_request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"{exc.resource.replace('_', ' ').capitalize()} not found."},
    )


@app.exception_handler(OwnershipViolation)
async def ownership_handler(_request: Request, exc: OwnershipViolation) -> JSONResponse:
    logger.info("Ownership check failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": "You do not have permission to modify this business."},
    )


@app.exception_handler(AdminRequired)
async def admin_required_handler(_request: Request, exc: AdminRequired) -> JSONResponse:
    logger.info("Admin check failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": "Administrator role required."},
    )


@app.exception_handler(InvalidPayload)
async def invalid_payload_handler(_request: Request, exc: InvalidPayload) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "healthy"}


@app.get(
    "/health/ready",
    tags=["System"],
    summary="Readiness probe",
)
async def readiness_check(request: Request) -> JSONResponse:
    """
    Dependency reachability. Not ready without the database; Redis being
    down only degrades (cache, daily stats, rate-limit fail mode).
    """
    services = request.app.state.services
    checks = {name: await probe() for name, probe in services.readiness.items()}
    ready = checks.get("database", False)
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", **checks},
    )
