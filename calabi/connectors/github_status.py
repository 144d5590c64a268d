"""GitHub status feed client.

Endpoint: GET https://www.githubstatus.com/api/v2/status.json
Response: {"status": {"description": "...", "indicator": "none|minor|major|critical"}}

Rate limiting (HTTP 429) is the only transient failure: it is retried forever
with jittered exponential backoff. Every other failure is raised immediately.
"""

from __future__ import annotations

import asyncio
import random
import ssl

import aiohttp
import certifi
from pydantic import BaseModel, ConfigDict, ValidationError

from calabi.config.settings import StatusFeedConfig, get_config
from calabi.utils.logger import get_logger

log = get_logger("github_status")


# --- Exceptions ---


class StatusFeedError(Exception):
    """Base status feed error."""


class StatusFeedRateLimitError(StatusFeedError):
    """HTTP 429 from the feed. Transient, retried with backoff."""


class StatusFeedAPIError(StatusFeedError):
    """Non-success HTTP status or transport failure. Permanent."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        super().__init__(f"HTTP {status}: {message}")


class StatusFeedDecodeError(StatusFeedError):
    """Response body is not a status envelope. Permanent."""


# --- DTOs ---


class Status(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    indicator: str


class StatusEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Status

    @property
    def description(self) -> str:
        return self.status.description

    @property
    def indicator(self) -> str:
        return self.status.indicator

    @property
    def is_ok(self) -> bool:
        """No ongoing incident."""
        return self.status.indicator == "none"


# --- Client ---


class GitHubStatusClient:
    """Polls the GitHub status page for the current incident indicator."""

    def __init__(
        self,
        config: StatusFeedConfig | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        cfg = config or get_config().status_feed
        self._url = cfg.url
        self._timeout = aiohttp.ClientTimeout(total=cfg.timeout_seconds)
        self._backoff_initial = cfg.backoff_initial_s
        self._backoff_multiplier = cfg.backoff_multiplier
        self._backoff_max = cfg.backoff_max_s
        self._backoff_jitter = cfg.backoff_jitter
        self._session = session
        self._owns_session = session is None

    async def _ensure_http_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            ssl_ctx = ssl.create_default_context(cafile=certifi.where())
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                connector=aiohttp.TCPConnector(ssl=ssl_ctx),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if we own it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        delay = min(self._backoff_initial * self._backoff_multiplier**attempt, self._backoff_max)
        if self._backoff_jitter > 0:
            delay *= random.uniform(1 - self._backoff_jitter, 1 + self._backoff_jitter)
        return delay

    async def _fetch_status(self) -> StatusEnvelope:
        """Single GET of the status feed, no retry."""
        session = await self._ensure_http_session()

        try:
            async with session.get(self._url) as resp:
                if resp.status == 429:
                    raise StatusFeedRateLimitError("GitHub status feed rate limited")

                if resp.status >= 400:
                    body = await resp.text()
                    raise StatusFeedAPIError(resp.status, body[:200])

                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise StatusFeedDecodeError(f"invalid JSON from status feed: {e}") from e

        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            raise StatusFeedAPIError(0, f"Connection failed: {e}") from e

        try:
            return StatusEnvelope.model_validate(data)
        except ValidationError as e:
            raise StatusFeedDecodeError(f"unexpected status payload: {e}") from e

    async def get_incident_status(self) -> StatusEnvelope:
        """Get the current GitHub incident status.

        Backs off exponentially on 429s, raises on anything else.

        Raises:
            StatusFeedAPIError: non-429 HTTP error or connection failure.
            StatusFeedDecodeError: the body could not be decoded.
        """
        attempt = 0
        while True:
            try:
                return await self._fetch_status()
            except StatusFeedRateLimitError:
                delay = self.backoff_delay(attempt)
                log.warning("github_status_rate_limited", attempt=attempt + 1, backoff=delay)
                await asyncio.sleep(delay)
                attempt += 1
