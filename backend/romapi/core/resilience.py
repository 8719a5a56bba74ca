"""
Timeout and best-effort helpers for calls into external stores.

Two named policies — nothing else in the codebase swallows errors:
  • bounded()     — every Redis / registry / record-store call gets a
                    hard timeout so a slow dependency cannot pin a request.
  • best_effort() — the explicit fail-open wrapper. Used for cache reads,
                    cache writes, invalidation sweeps, usage accounting,
                    and daily statistics. Failures are logged at WARNING
                    and replaced by `default`; they never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await with an upper bound; `None` disables the bound."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


async def best_effort(
    operation: str,
    awaitable: Awaitable[T],
    *,
    default: T | None = None,
    timeout: float | None = None,
) -> T | None:
    """
    Run an optional side operation and swallow any failure.

    Args:
        operation: Short name used in the warning log line.
        awaitable: The store call to run.
        default:   Returned when the call fails or times out.
        timeout:   Optional bound applied via bounded().
    """
    try:
        return await bounded(awaitable, timeout)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - fail-open by policy
        logger.warning("best_effort_failed operation=%s", operation, exc_info=exc)
        return default
