"""Shared test fixtures for mercado-qa tests.

- mock_server: in-memory replica of the mercado API (FastAPI)
- api_client: MercadoClient wired to the mock server through ASGITransport
- fake: seeded Faker so generated payloads are reproducible
"""

from collections.abc import AsyncGenerator

import httpx
import pytest

from mercado_qa.client import MercadoClient
from mercado_qa.data import make_faker
from tests.mocks import MockMercadoServer

MOCK_BASE_URL = "http://mercado.test"


@pytest.fixture
def mock_server() -> MockMercadoServer:
    """Fresh mock API per test."""
    return MockMercadoServer()


@pytest.fixture
def asgi_transport(mock_server: MockMercadoServer) -> httpx.ASGITransport:
    """Transport routing httpx requests into the mock API app."""
    return httpx.ASGITransport(app=mock_server.app)


@pytest.fixture
async def api_client(asgi_transport: httpx.ASGITransport) -> AsyncGenerator[MercadoClient, None]:
    """MercadoClient talking to the mock API."""
    async with MercadoClient(MOCK_BASE_URL, timeout=5.0, transport=asgi_transport) as client:
        yield client


@pytest.fixture
def fake():
    """Seeded Faker instance."""
    return make_faker(seed=1234)
