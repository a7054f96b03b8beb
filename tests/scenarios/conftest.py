"""Shared fixtures for live scenario tests.

These tests run the scenario catalogue against the deployed mercado API.
They are opt-in: set MERCADO_QA_LIVE=1 (and optionally MERCADO_QA_BASE_URL)
to enable them. When the API cannot be reached the tests are skipped.
"""

from __future__ import annotations

import os
import time
from collections.abc import AsyncGenerator

import pytest
import requests

from mercado_qa.client import DEFAULT_BASE_URL, MARKETS_PATH, MercadoClient
from mercado_qa.data import make_faker
from mercado_qa.scenario import ScenarioRunner

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LIVE_ENABLED = os.environ.get("MERCADO_QA_LIVE") == "1"
MERCADO_API_URL = os.environ.get("MERCADO_QA_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
LIVE_TIMEOUT = float(os.environ.get("MERCADO_QA_TIMEOUT", "30"))


# ---------------------------------------------------------------------------
# Reachability
# ---------------------------------------------------------------------------


def wait_for_api(url: str, timeout: int = 60) -> bool:
    """Wait for the API to answer the market listing.

    The hosted API sleeps when idle, so the first request may take a while.
    """
    start = time.time()
    while time.time() - start < timeout:
        try:
            response = requests.get(f"{url}{MARKETS_PATH}", timeout=10)
            if response.status_code == 200:
                return True
        except requests.RequestException:
            pass
        time.sleep(2)
    return False


@pytest.fixture(scope="module")
def live_url() -> str:
    """Base URL of the live API. Skips when disabled or unreachable."""
    if not LIVE_ENABLED:
        pytest.skip("Live API tests disabled. Enable with: MERCADO_QA_LIVE=1")
    if not wait_for_api(MERCADO_API_URL, timeout=90):
        pytest.skip(f"mercado API not reachable at {MERCADO_API_URL}")
    return MERCADO_API_URL


# ---------------------------------------------------------------------------
# Client Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def live_client(live_url: str) -> AsyncGenerator[MercadoClient, None]:
    """MercadoClient talking to the live API."""
    async with MercadoClient(live_url, timeout=LIVE_TIMEOUT) as client:
        yield client


@pytest.fixture
def live_runner(live_client: MercadoClient) -> ScenarioRunner:
    return ScenarioRunner(live_client)


@pytest.fixture
def live_fake():
    """Unseeded Faker so repeated live runs never collide."""
    return make_faker()
