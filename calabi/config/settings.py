"""Configuration management using Pydantic Settings with YAML overlay.

Secrets and runtime flags come from the environment (or .env). Nested sections
come from config/settings.yaml with settings.local.yaml layered on top.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_CONFIG_DIR = _PROJECT_ROOT / "config"

# Manifold user ids whose GitHub incident markets we trust to resolve honestly.
IBLUE_CREATOR_ID = "HBlWMFF8XkcatdnIfNt0RPoCrXy1"
ALEXTES_CREATOR_ID = "fwGK5b9peFQbclczNeQdgCtjlYT2"


# --- Nested config models ---


class StatusFeedConfig(BaseModel):
    """GitHub status feed polling and 429 backoff."""

    url: str = "https://www.githubstatus.com/api/v2/status.json"
    timeout_seconds: int = 10
    backoff_initial_s: float = 0.5
    backoff_multiplier: float = 1.5
    backoff_max_s: float = 60.0
    backoff_jitter: float = 0.5  # delay is scaled by a random factor in [1-j, 1+j]


class ManifoldConfig(BaseModel):
    """Manifold Markets REST API configuration."""

    base_url: str = "https://manifold.markets/api"
    timeout_seconds: int = 10


class ScannerConfig(BaseModel):
    """Incident scanner (betting loop) configuration."""

    poll_interval_ms: int = 500
    bet_size: int = 500
    bets_per_target: int = 2  # available mana is unknown, so bet more than once
    exclusion_day_sleep_minutes: int = 20
    exclusion_dates: list[tuple[int, int]] = [(9, 6)]  # (month, day)


class UpdaterConfig(BaseModel):
    """Target registry updater configuration."""

    interval_s: float = 6.0
    trusted_creator_ids: list[str] = [IBLUE_CREATOR_ID, ALEXTES_CREATOR_ID]


# --- Main config class ---


class CalabiConfig(BaseSettings):
    """Main configuration for the Calabi incident betting bot."""

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # Manifold credentials
    manifold_api_key: str = Field(alias="MANIFOLD_API_KEY")

    # Nested config (loaded from YAML)
    status_feed: StatusFeedConfig = StatusFeedConfig()
    manifold: ManifoldConfig = ManifoldConfig()
    scanner: ScannerConfig = ScannerConfig()
    updater: UpdaterConfig = UpdaterConfig()

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge overlay into base dict. Overlay values win."""
    merged = base.copy()
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found."""
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=1)
def get_config() -> CalabiConfig:
    """Load and return the singleton CalabiConfig.

    Raises pydantic.ValidationError when MANIFOLD_API_KEY is missing.
    """
    base_yaml = _load_yaml(_CONFIG_DIR / "settings.yaml")
    local_yaml = _load_yaml(_CONFIG_DIR / "settings.local.yaml")

    merged = _deep_merge(base_yaml, local_yaml)

    # YAML values are passed as init kwargs; top-level fields are read from env
    return CalabiConfig(**merged)
