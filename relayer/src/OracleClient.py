"""OracleClient: Fetch raw price quotes from the Band oracle HTTP API.

Endpoint: https://poa-api.bandchain.org/oracle/request_prices
Request: POST ``{"symbols": [...], "min_count": m, "ask_count": a}``
Response: ``{"result": [{"symbol", "multiplier", "px", "request_id", "resolve_time"}, ...]}``

``ask_count`` is the number of data sources queried for each symbol and
``min_count`` the number of them that must respond for the price to be
reported.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from .errors import OracleError, OracleHTTPError, OracleSchemaError
from .QuoteBatch import RawQuote

logger = logging.getLogger(__name__)


class OracleClient:
    """Client for the oracle ``request_prices`` endpoint.

    :cvar DEFAULT_ENDPOINT: Public Band price endpoint.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar endpoint: URL the quotes are requested from.
    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_ENDPOINT = "https://poa-api.bandchain.org/oracle/request_prices"
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the oracle client.

        :param endpoint: Oracle endpoint URL.
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional pre-built HTTP client. Created lazily if not
            provided.
        """
        self.endpoint = endpoint
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post(self, json: dict) -> httpx.Response:
        """Make an HTTP POST request to the oracle endpoint.

        :param json: JSON body.
        :returns: httpx.Response object.
        :raises OracleHTTPError: On non-2xx response.
        :raises OracleError: On network/timeout errors.
        """
        client = self._get_client()
        try:
            response = await client.post(self.endpoint, json=json, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise OracleError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise OracleError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP POST %s failed with status %s: %s",
                self.endpoint,
                response.status_code,
                response.text[:200],
            )
            raise OracleHTTPError(response.status_code, response.text[:200])
        return response

    async def fetch(
        self, symbols: Sequence[str], min_count: int, ask_count: int
    ) -> list[RawQuote]:
        """Fetch the latest quotes for the given symbols.

        :param symbols: Symbols to request, e.g. ["BTC", "ETH"].
        :param min_count: Minimum number of sources that must respond.
        :param ask_count: Number of sources queried per symbol.
        :returns: Raw quotes in the order the oracle returned them.
        :raises OracleError: If the request fails.
        :raises OracleSchemaError: If the response is malformed.
        """
        payload = {
            "symbols": list(symbols),
            "min_count": min_count,
            "ask_count": ask_count,
        }
        response = await self._post(payload)

        try:
            data = response.json()
        except ValueError as e:
            raise OracleSchemaError(f"Response is not JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("result"), list):
            raise OracleSchemaError(f"No result list in response: {str(data)[:200]}")

        quotes: list[RawQuote] = []
        for entry in data["result"]:
            if not isinstance(entry, dict):
                raise OracleSchemaError(f"Quote is not an object: {entry!r}")
            try:
                quotes.append(RawQuote.from_dict(entry))
            except KeyError as e:
                raise OracleSchemaError(f"Quote is missing field {e}: {entry}") from e

        missing = set(symbols) - {q.symbol for q in quotes}
        if missing:
            logger.warning(f"Oracle returned no quote for {sorted(missing)}")

        return quotes
