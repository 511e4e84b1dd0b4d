"""
Test Configuration and Fixtures

Provides the async test client and a location directory for the report
service. Redis caching is disabled for the whole suite.
"""

import os

os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("SENTRY_DSN", "")

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.main import app
from backend.services.locations import Location, LocationDirectory
from tests.factories import DENVER_TOKEN


@pytest.fixture
def denver_location() -> Location:
    return Location(
        token=DENVER_TOKEN,
        location_id="109",
        name="Castle Rock",
        timezone="America/Denver",
        state="CO",
    )


@pytest.fixture
def locations(denver_location: Location) -> LocationDirectory:
    """Directory with one Denver store and one store on an unknown zone."""
    return LocationDirectory(
        [
            denver_location,
            Location(
                token="bad-zone-token",
                location_id="999",
                name="Nowhere",
                timezone="Mars/Olympus_Mons",
                state="XX",
            ),
        ]
    )


@pytest_asyncio.fixture(scope="function")
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async test client; dependency overrides are cleared after."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
