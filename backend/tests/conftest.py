"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

Every test gets its own file-backed SQLite database under ``tmp_path``;
nothing touches the network (providers are fakes, HTTP goes through
``httpx.MockTransport``).

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/advanced/async-tests/
"""

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.knobs import ThrottleKnobs
from app.db.base import local_today
from app.main import create_app
from app.schemas.content import FetchedItem
from app.services.content_store import ContentStore
from app.services.providers.base import Provider
from app.services.runtime import Runtime, build_http_client


# ================================
# Helpers
# ================================

BASE_TIME = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def make_fetched(url: str, category: str = "meme", title: Optional[str] = None, **extra) -> FetchedItem:
    return FetchedItem(
        source=extra.pop("source", "test"),
        category=category,
        title=title or f"Item at {url}",
        url=url,
        **extra,
    )


def at_minute(minute: int) -> datetime:
    """Fetch time ``minute`` minutes after BASE_TIME, used to pin FIFO order."""
    return BASE_TIME + timedelta(minutes=minute)


class FakeProvider(Provider):
    """
    In-memory provider.

    Returns ``items`` on every call, or raises ``error`` from inside the
    fetch (errors the base class does not swallow reach the scheduler).
    """

    def __init__(
        self,
        name: str,
        category: str = "meme",
        items: Optional[List[FetchedItem]] = None,
        error: Optional[Exception] = None,
    ):
        super().__init__(download_thumbnails=False)
        self.name = name
        self.category = category
        self.items = items or []
        self.error = error
        self.calls = 0

    async def _fetch(self, client: httpx.AsyncClient) -> List[FetchedItem]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


# ================================
# Store Fixtures
# ================================

@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cazzmachine-test.db'}"


@pytest_asyncio.fixture
async def store(database_url: str) -> AsyncGenerator[ContentStore, None]:
    """A fresh store with the schema created."""
    content_store = await ContentStore.open(database_url)
    yield content_store
    await content_store.close()


@pytest.fixture
def today() -> date:
    return local_today()


@pytest.fixture
def knobs() -> ThrottleKnobs:
    return ThrottleKnobs(throttle_level=5, thread_count=1)


# ================================
# Provider / HTTP Fixtures
# ================================

@pytest.fixture
def fake_providers() -> List[FakeProvider]:
    return [
        FakeProvider("memes", "meme", [make_fetched(f"https://example.com/meme/{i}") for i in range(3)]),
        FakeProvider("dadjokes", "joke", [make_fetched(f"https://example.com/joke/{i}", "joke") for i in range(2)]),
        FakeProvider("google-news", "news", [make_fetched("https://example.com/news/0", "news")]),
    ]


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client whose every request answers 404."""
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    client = build_http_client(transport=transport)
    yield client
    await client.aclose()


# ================================
# Runtime / FastAPI Client Fixtures
# ================================

@pytest_asyncio.fixture
async def runtime(
    store: ContentStore,
    knobs: ThrottleKnobs,
    http_client: httpx.AsyncClient,
    fake_providers: List[FakeProvider],
) -> AsyncGenerator[Runtime, None]:
    """Runtime without background loops; tests drive cycles explicitly."""
    rt = Runtime(store=store, knobs=knobs, client=http_client, providers=fake_providers)
    yield rt
    rt.shutdown_event.set()


@pytest_asyncio.fixture
async def client(runtime: Runtime) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app.

    The lifespan is skipped; the test runtime is attached to app.state.

    Usage:
        async def test_something(client: AsyncClient):
            response = await client.get("/api/v1/items/today")
            assert response.status_code == 200
    """
    app = create_app(use_lifespan=False)
    app.state.runtime = runtime

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ================================
# Pytest Hooks
# ================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: end-to-end tests through the HTTP API"
    )
