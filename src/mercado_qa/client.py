"""HTTP client for the mercado REST API.

Unlike a typical API client, non-2xx responses are not errors here: the
suite asserts on them. Only transport problems (connection, timeout) raise.
"""

import time
from dataclasses import dataclass
from typing import Any

import httpx

from .shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api-desafio-qa.onrender.com"
DEFAULT_TIMEOUT = 30.0

MARKETS_PATH = "/mercado"
FRUITS_PATH = "/mercado/{mercado_id}/produtos/hortifruit/frutas"


class MercadoClientError(Exception):
    """Error from mercado API client (no response received)."""

    def __init__(self, message: str, url: str = "", is_timeout: bool = False):
        self.message = message
        self.url = url
        self.is_timeout = is_timeout
        super().__init__(message)


@dataclass
class ApiResponse:
    """Status and decoded body of one API call."""

    method: str
    url: str
    status_code: int
    body: Any
    elapsed: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class MercadoClient:
    """HTTP client for the mercado REST API.

    Example:
        async with MercadoClient("https://api-desafio-qa.onrender.com") as client:
            response = await client.create_market({"cnpj": "...", "endereco": "...", "nome": "..."})
            mercado_id = response.body["novoMercado"]["id"]
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        insecure: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: API URL (e.g., https://api-desafio-qa.onrender.com)
            timeout: Request timeout in seconds
            insecure: Skip SSL certificate verification (like curl -k)
            transport: Optional transport override (tests use ASGI/mock transports)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.insecure = insecure
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MercadoClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
            verify=not self.insecure,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is initialized."""
        if not self._client:
            raise MercadoClientError("Client not initialized. Use 'async with' context.")
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Make exactly one HTTP request.

        Args:
            method: HTTP method
            path: API path (e.g., /mercado/12)
            json: JSON body for POST/PUT
            params: Query parameters

        Returns:
            ApiResponse with whatever status the API returned

        Raises:
            MercadoClientError: When no usable response arrives (connection,
                timeout, protocol or body decoding failure)
        """
        client = self._ensure_client()
        url = f"{self.base_url}{path}"
        logger.debug("request", method=method, url=url, body=json)
        started = time.perf_counter()
        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise MercadoClientError(
                f"Request timed out after {self.timeout}s", url=url, is_timeout=True
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Connection, protocol, redirect and content-decoding failures
            raise MercadoClientError(str(e) or type(e).__name__, url=url) from e
        elapsed = time.perf_counter() - started

        result = ApiResponse(
            method=method,
            url=url,
            status_code=response.status_code,
            body=_decode_body(response),
            elapsed=elapsed,
        )
        logger.debug("response", method=method, url=url, status=result.status_code)
        return result

    # -------------------------------------------------------------------------
    # Markets
    # -------------------------------------------------------------------------

    async def create_market(self, market: dict[str, Any]) -> ApiResponse:
        """Create a market (201 with ``novoMercado`` on success)."""
        return await self.request("POST", MARKETS_PATH, json=market)

    async def list_markets(self) -> ApiResponse:
        """List all markets."""
        return await self.request("GET", MARKETS_PATH)

    async def get_market(self, mercado_id: Any) -> ApiResponse:
        """Get one market by id."""
        return await self.request("GET", f"{MARKETS_PATH}/{mercado_id}")

    async def update_market(self, mercado_id: Any, market: dict[str, Any]) -> ApiResponse:
        """Replace a market."""
        return await self.request("PUT", f"{MARKETS_PATH}/{mercado_id}", json=market)

    async def delete_market(self, mercado_id: Any) -> ApiResponse:
        """Delete a market."""
        return await self.request("DELETE", f"{MARKETS_PATH}/{mercado_id}")

    # -------------------------------------------------------------------------
    # Fruits
    # -------------------------------------------------------------------------

    async def create_fruit(self, mercado_id: Any, fruit: dict[str, Any]) -> ApiResponse:
        """Create a fruit under a market (201 with ``fruta`` on success)."""
        return await self.request("POST", FRUITS_PATH.format(mercado_id=mercado_id), json=fruit)

    async def list_fruits(self, mercado_id: Any) -> ApiResponse:
        """List a market's fruits."""
        return await self.request("GET", FRUITS_PATH.format(mercado_id=mercado_id))

    async def get_fruit(self, mercado_id: Any, fruta_id: Any) -> ApiResponse:
        """Get one fruit."""
        path = FRUITS_PATH.format(mercado_id=mercado_id)
        return await self.request("GET", f"{path}/{fruta_id}")

    async def update_fruit(
        self, mercado_id: Any, fruta_id: Any, fruit: dict[str, Any]
    ) -> ApiResponse:
        """Replace a fruit."""
        path = FRUITS_PATH.format(mercado_id=mercado_id)
        return await self.request("PUT", f"{path}/{fruta_id}", json=fruit)

    async def delete_fruit(self, mercado_id: Any, fruta_id: Any) -> ApiResponse:
        """Delete a fruit."""
        path = FRUITS_PATH.format(mercado_id=mercado_id)
        return await self.request("DELETE", f"{path}/{fruta_id}")
