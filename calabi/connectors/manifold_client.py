"""Manifold Markets REST API client.

Endpoints:
- Markets: GET  https://manifold.markets/api/v0/markets
- Bet:     POST https://manifold.markets/api/v0/bet  {amount, outcome, contractId}
- Auth:    "Authorization: Key <MANIFOLD_API_KEY>" on every request

Bets are real-currency-equivalent and irreversible; nothing here retries.
"""

from __future__ import annotations

import ssl
from enum import StrEnum
from typing import Any

import aiohttp
import certifi
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from calabi.config.settings import ManifoldConfig, get_config
from calabi.utils.logger import get_logger

log = get_logger("manifold")

MARKETS_PATH = "/v0/markets"
BET_PATH = "/v0/bet"


# --- Exceptions ---


class ManifoldError(Exception):
    """Base Manifold error."""


class ManifoldAPIError(ManifoldError):
    """Non-success HTTP status or transport failure."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        super().__init__(f"HTTP {status}: {message}")


class ManifoldDecodeError(ManifoldError):
    """Response body did not have the expected shape."""


# --- Enums / DTOs ---


class Outcome(StrEnum):
    YES = "YES"
    NO = "NO"


class ManifoldMarket(BaseModel):
    """The subset of a Manifold market we care about."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    creator_id: str = Field(alias="creatorId")
    question: str


# --- Client ---


class ManifoldClient:
    """Lists markets and places bets on Manifold."""

    def __init__(
        self,
        api_key: str | None = None,
        config: ManifoldConfig | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if api_key is None or config is None:
            app_config = get_config()
            api_key = api_key or app_config.manifold_api_key
            config = config or app_config.manifold

        self._authorization = f"Key {api_key}"
        self._base_url = config.base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def _ensure_http_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            ssl_ctx = ssl.create_default_context(cafile=certifi.where())
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                connector=aiohttp.TCPConnector(ssl=ssl_ctx),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if we own it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: dict[str, Any] | None = None,
        decode: bool = True,
    ) -> tuple[int, Any]:
        """Make one authenticated request. Returns (status, decoded JSON body or None)."""
        session = await self._ensure_http_session()
        url = f"{self._base_url}{path}"
        headers = {"Authorization": self._authorization}
        if json_data is not None:
            headers["Content-Type"] = "application/json"

        try:
            async with session.request(method, url, headers=headers, json=json_data) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise ManifoldAPIError(resp.status, body[:200])

                if not decode:
                    return resp.status, None
                try:
                    return resp.status, await resp.json(content_type=None)
                except ValueError as e:
                    raise ManifoldDecodeError(f"invalid JSON from {path}: {e}") from e

        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            raise ManifoldAPIError(0, f"Connection failed: {e}") from e

    async def fetch_markets(self) -> list[ManifoldMarket]:
        """List the most recent markets on Manifold.

        Raises:
            ManifoldAPIError: HTTP error or connection failure.
            ManifoldDecodeError: payload is not a list of markets.
        """
        _, data = await self._request("GET", MARKETS_PATH)
        if not isinstance(data, list):
            raise ManifoldDecodeError(f"expected a list of markets, got {type(data).__name__}")

        try:
            markets = [ManifoldMarket.model_validate(item) for item in data]
        except ValidationError as e:
            raise ManifoldDecodeError(f"unexpected market payload: {e}") from e

        log.debug("manifold_markets_fetched", count=len(markets))
        return markets

    async def bet(self, contract_id: str, outcome: Outcome, amount: int) -> None:
        """Place a single bet.

        Raises:
            ManifoldAPIError: the venue rejected the bet or could not be reached.
        """
        payload = {
            "amount": amount,
            "outcome": outcome.value,
            "contractId": contract_id,
        }
        status, _ = await self._request("POST", BET_PATH, json_data=payload, decode=False)
        log.debug(
            "bet_placed",
            status=status,
            contract_id=contract_id,
            outcome=outcome.value,
            amount=amount,
        )
