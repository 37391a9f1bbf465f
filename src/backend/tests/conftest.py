"""
Pytest fixtures for ProductScout backend tests.
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("VOTE_RETRY_BASE_DELAY_MS", "1")
os.environ.setdefault("ENRICHMENT_DELAY_MS", "0")
# Always run against the in-memory store
os.environ["AZURE_COSMOS_ENDPOINT"] = ""
os.environ["AZURE_COSMOS_CONNECTION_STRING"] = ""

ADMIN_HEADERS = {"X-Admin-Key": os.environ["ADMIN_API_KEY"]}


@pytest.fixture
def repository() -> Any:
    """Fresh in-memory product vote store."""
    from repositories.memory_product_vote_repository import InMemoryProductVoteRepository

    return InMemoryProductVoteRepository()


@pytest.fixture
def cache() -> Any:
    """Fresh cache."""
    from services.cache_service import CacheService

    return CacheService(default_ttl_seconds=30)


@pytest.fixture
def fixed_clock() -> Any:
    """Epoch-ms clock frozen at a known instant."""
    return lambda: 1_700_000_000_000


@pytest.fixture
async def app(repository: Any, cache: Any) -> Any:
    """Create a FastAPI application with its own store and cache."""
    from main import create_application

    fastapi_app = create_application()
    fastapi_app.state.product_vote_repository = repository
    fastapi_app.state.cache = cache
    return fastapi_app


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Origin": "http://localhost:3000"},
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def make_record() -> Any:
    """Factory for product vote documents with sensible defaults."""
    from models.product_vote import ProductVoteDocument

    def _make(barcode: str = "5000328657950", **overrides: Any) -> Any:
        data: dict[str, Any] = {"barcode": barcode, "product_name": "Test Product"}
        data.update(overrides)
        return ProductVoteDocument(**data)

    return _make
