"""Integration test fixtures for meetnotes.

Provides an async HTTP client over the real application wired to fake
STT/LLM providers and an in-memory object store, plus a synchronous
TestClient (for WebSocket tests) whose lifespan initialises its own
database inside the TestClient event loop.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from meetnotes.api.app import create_app
from meetnotes.services.container import build_services
from meetnotes.services.storage.database import Database


@pytest.fixture
def app(settings, services):
    """Application using the shared fake-backed services."""
    return create_app(settings, services=services)


@pytest.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def ws_services(settings, memory_store, mock_stt, mock_llm):
    """Services whose database is created lazily by the app lifespan."""
    return build_services(
        settings,
        database=Database(settings.database_url),
        object_store=memory_store,
        stt=mock_stt,
        llm=mock_llm,
    )


@pytest.fixture
def test_client(settings, ws_services):
    """Synchronous TestClient for WebSocket tests."""
    app = create_app(settings, services=ws_services)
    with TestClient(app) as c:
        yield c
        c.portal.call(ws_services.database.close)
