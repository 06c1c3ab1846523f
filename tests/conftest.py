import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DIRECTORY_TIMEZONE"] = "UTC"

import httpx
import pytest
import pytest_asyncio

from thorbis.api.v2.businesses import get_geocoder, get_notifier
from thorbis.core import database
from thorbis.core.database import Base
from thorbis.main import app
from thorbis.services.cache import response_cache


class StubGeocoder:
    def __init__(self, coords=(37.7749, -122.4194)):
        self.coords = coords
        self.addresses = []

    async def geocode(self, address):
        self.addresses.append(address)
        return self.coords


class StubNotifier:
    def __init__(self):
        self.calls = []

    async def invoke(self, function, body):
        self.calls.append((function, body))
        return True


@pytest_asyncio.fixture
async def db_schema():
    """Fresh in-memory database per test; the engine is rebuilt inside each test's event loop."""
    response_cache.clear()
    engine = database.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await database.dispose_engine()
    response_cache.clear()


@pytest_asyncio.fixture
async def session(db_schema):
    async with database.get_sessionmaker()() as s:
        yield s


@pytest.fixture
def geocoder():
    return StubGeocoder()


@pytest.fixture
def notifier():
    return StubNotifier()


@pytest_asyncio.fixture
async def client(db_schema, geocoder, notifier):
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_notifier] = lambda: notifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
