"""Shared test fixtures for Calabi."""

from __future__ import annotations

import os
from datetime import date

import pytest

# Set test environment before any imports
os.environ.setdefault("MANIFOLD_API_KEY", "test-api-key")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from calabi.config.settings import (  # noqa: E402
    ALEXTES_CREATOR_ID,
    IBLUE_CREATOR_ID,
    ManifoldConfig,
    ScannerConfig,
    StatusFeedConfig,
    UpdaterConfig,
)

STATUS_URL = "https://status.test/api/v2/status.json"
MANIFOLD_URL = "https://manifold.test/api"


@pytest.fixture
def status_config() -> StatusFeedConfig:
    """Status feed config with deterministic (jitter-free) backoff."""
    return StatusFeedConfig(
        url=STATUS_URL,
        timeout_seconds=5,
        backoff_initial_s=0.5,
        backoff_multiplier=1.5,
        backoff_max_s=4.0,
        backoff_jitter=0.0,
    )


@pytest.fixture
def manifold_config() -> ManifoldConfig:
    return ManifoldConfig(base_url=MANIFOLD_URL, timeout_seconds=5)


@pytest.fixture
def scanner_config() -> ScannerConfig:
    return ScannerConfig(
        poll_interval_ms=500,
        bet_size=500,
        bets_per_target=2,
        exclusion_day_sleep_minutes=20,
        exclusion_dates=[(9, 6)],
    )


@pytest.fixture
def updater_config() -> UpdaterConfig:
    return UpdaterConfig(interval_s=6.0, trusted_creator_ids=[IBLUE_CREATOR_ID, ALEXTES_CREATOR_ID])


@pytest.fixture
def today() -> date:
    return date(2023, 8, 30)
