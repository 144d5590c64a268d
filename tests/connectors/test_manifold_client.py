"""Tests for the Manifold Markets REST client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from calabi.config.settings import IBLUE_CREATOR_ID, ManifoldConfig
from calabi.connectors.manifold_client import (
    ManifoldAPIError,
    ManifoldClient,
    ManifoldDecodeError,
    ManifoldMarket,
    Outcome,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

BASE_URL = "https://manifold.test/api"
MARKETS_URL = f"{BASE_URL}/v0/markets"
BET_URL = f"{BASE_URL}/v0/bet"


def _raw_market(
    market_id: str = "X",
    question: str = "Will GitHub have a red incident on August 30th 2023?",
    creator_id: str = IBLUE_CREATOR_ID,
) -> dict:
    """Raw market dict as returned by GET /v0/markets."""
    return {
        "id": market_id,
        "creatorId": creator_id,
        "creatorUsername": "iBlue",
        "question": question,
        "outcomeType": "BINARY",
        "mechanism": "cpmm-1",
        "probability": 0.12,
        "isResolved": False,
    }


@pytest.fixture
async def client(manifold_config: ManifoldConfig) -> AsyncIterator[ManifoldClient]:
    c = ManifoldClient(api_key="secret-key", config=manifold_config)
    yield c
    await c.close()


class TestFetchMarkets:
    async def test_parses_markets(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, payload=[_raw_market("X"), _raw_market("Y", "Other?", "abc")])

            markets = await client.fetch_markets()

        assert markets == [
            ManifoldMarket(
                id="X",
                creator_id=IBLUE_CREATOR_ID,
                question="Will GitHub have a red incident on August 30th 2023?",
            ),
            ManifoldMarket(id="Y", creator_id="abc", question="Other?"),
        ]

    async def test_sends_api_key(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, payload=[])

            await client.fetch_markets()

            [request] = m.requests[("GET", URL(MARKETS_URL))]
        assert request.kwargs["headers"]["Authorization"] == "Key secret-key"

    async def test_http_error_raises(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, status=401, body="Unauthorized")

            with pytest.raises(ManifoldAPIError, match="HTTP 401") as exc_info:
                await client.fetch_markets()

        assert exc_info.value.status == 401

    async def test_connection_error_raises(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(ManifoldAPIError, match="Connection failed"):
                await client.fetch_markets()

    async def test_non_list_payload_is_decode_error(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, payload={"error": "nope"})

            with pytest.raises(ManifoldDecodeError, match="expected a list"):
                await client.fetch_markets()

    async def test_market_missing_fields_is_decode_error(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.get(MARKETS_URL, payload=[{"id": "X"}])

            with pytest.raises(ManifoldDecodeError):
                await client.fetch_markets()


class TestBet:
    async def test_posts_bet_payload(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.post(BET_URL, payload={"betId": "b1", "isFilled": True})

            await client.bet("X", Outcome.YES, 500)

            [request] = m.requests[("POST", URL(BET_URL))]
        assert request.kwargs["json"] == {"amount": 500, "outcome": "YES", "contractId": "X"}
        assert request.kwargs["headers"]["Content-Type"] == "application/json"
        assert request.kwargs["headers"]["Authorization"] == "Key secret-key"

    async def test_rejected_bet_raises(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.post(BET_URL, status=403, body="Insufficient balance")

            with pytest.raises(ManifoldAPIError, match="Insufficient balance"):
                await client.bet("X", Outcome.YES, 500)

    async def test_no_retry_on_failure(self, client: ManifoldClient) -> None:
        with aioresponses() as m:
            m.post(BET_URL, status=500)
            m.post(BET_URL, payload={})

            with pytest.raises(ManifoldAPIError):
                await client.bet("X", Outcome.NO, 10)

            assert len(m.requests[("POST", URL(BET_URL))]) == 1


class TestConfig:
    def test_api_key_from_app_config(self, manifold_config: ManifoldConfig) -> None:
        client = ManifoldClient(config=manifold_config)
        assert client._authorization == "Key test-api-key"
