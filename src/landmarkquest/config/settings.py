# src/landmarkquest/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/landmarkquest/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `LANDMARKQUEST_VISIT_RADIUS_M`, `LANDMARKQUEST_STORE_DIR`)
- an external YAML file via `LANDMARKQUEST_CONFIG_PATH`

Design rule:
- Tuning knobs (radius, points, retry budgets, poll interval, badge table) live in YAML,
  not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal
from landmarkquest.core.env import load_dotenv_if_present

import yaml
from pydantic import BaseModel, Field, model_validator

from landmarkquest.domain.models import BadgeRule


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `landmarkquest.config`."""
    text = resources.files("landmarkquest.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "LandmarkQuest"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class CacheSettings(BaseModel):
    enabled: bool = True
    dir: str = ".cache/landmarkquest"
    default_ttl_seconds: int = 60 * 60 * 24


class CatalogSettings(BaseModel):
    path: str = "data/catalogs/landmarks.json"
    # When set, the catalog is fetched over HTTP (and cached) instead of read from `path`.
    url: str | None = None
    cache_ttl_seconds: int = 60 * 15


class VisitSettings(BaseModel):
    radius_m: float = Field(100, gt=0)
    points_per_visit: int = Field(50, ge=0)


class LedgerSettings(BaseModel):
    transaction_retry_limit: int = Field(3, ge=1)
    retry_base_delay_seconds: float = Field(0.05, ge=0)
    retry_max_delay_seconds: float = Field(0.5, ge=0)


class PollerSettings(BaseModel):
    interval_ms: int = Field(10_000, gt=0)
    max_backoff_ms: int = Field(120_000, gt=0)
    geolocation_timeout_seconds: float = Field(15, gt=0)
    stop_timeout_seconds: float = Field(20, ge=0)


class StoreSettings(BaseModel):
    backend: Literal["memory", "file"] = "file"
    dir: str = ".data/ledgers"


class LeaderboardSettings(BaseModel):
    size: int = Field(10, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    visit: VisitSettings = Field(default_factory=VisitSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    poller: PollerSettings = Field(default_factory=PollerSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    leaderboard: LeaderboardSettings = Field(default_factory=LeaderboardSettings)
    badges: list[BadgeRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_badge_ids(self) -> "Settings":
        seen: set[str] = set()
        for rule in self.badges:
            if rule.id in seen:
                raise ValueError(f"duplicate badge id in settings: '{rule.id}'")
            seen.add(rule.id)
        return self


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small; everything else belongs in YAML.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("LANDMARKQUEST_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    radius = os.getenv("LANDMARKQUEST_VISIT_RADIUS_M")
    if radius:
        data.setdefault("visit", {})["radius_m"] = float(radius)

    interval = os.getenv("LANDMARKQUEST_POLL_INTERVAL_MS")
    if interval:
        data.setdefault("poller", {})["interval_ms"] = int(interval)

    store_dir = os.getenv("LANDMARKQUEST_STORE_DIR")
    if store_dir:
        data.setdefault("store", {})["dir"] = store_dir

    catalog_path = os.getenv("LANDMARKQUEST_CATALOG_PATH")
    if catalog_path:
        data.setdefault("catalog", {})["path"] = catalog_path

    catalog_url = os.getenv("LANDMARKQUEST_CATALOG_URL")
    if catalog_url:
        data.setdefault("catalog", {})["url"] = catalog_url

    cache_dir = os.getenv("LANDMARKQUEST_CACHE_DIR")
    if cache_dir:
        data.setdefault("cache", {})["dir"] = cache_dir

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("LANDMARKQUEST_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
