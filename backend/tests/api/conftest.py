from __future__ import annotations

from collections.abc import AsyncIterator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from romapi.main import app
from tests.fakes import Harness


@pytest_asyncio.fixture
async def client(harness: Harness) -> AsyncIterator[AsyncClient]:
    # The lifespan never runs under ASGITransport; inject the doubles directly.
    app.state.services = harness.services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
