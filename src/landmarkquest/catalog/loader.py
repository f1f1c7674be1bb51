"""
Landmark catalog.

Two sources share the `list_landmarks()` interface the poller depends on:
- `FileLandmarkCatalog`: a local JSON file (default: `data/catalogs/landmarks.json`),
  holding preset landmarks and approved user submissions.
- `HttpLandmarkCatalog`: the same payload served over HTTP, cached on disk and
  served stale when the network is down.

Both validate into typed `Landmark` models and drop anything not detectable
(pending or rejected submissions).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import TypeAdapter

from landmarkquest.config.settings import Settings
from landmarkquest.core.cache import FileCache
from landmarkquest.core.env import resolve_project_path
from landmarkquest.domain.models import Landmark

logger = logging.getLogger(__name__)

_LANDMARKS_ADAPTER = TypeAdapter(list[Landmark])

USER_AGENT = "landmarkquest/0.1.0 (+https://local)"


class LandmarkCatalog(Protocol):
    def list_landmarks(self) -> list[Landmark]: ...


def parse_landmarks(payload: Any) -> list[Landmark]:
    """Validate a raw payload (list, or `{"landmarks": [...]}`) and keep detectable entries."""
    if isinstance(payload, dict):
        payload = payload.get("landmarks", [])
    landmarks = _LANDMARKS_ADAPTER.validate_python(payload)
    return [lm for lm in landmarks if lm.detectable]


def load_landmarks(path: str | Path) -> list[Landmark]:
    """Load and validate a landmark catalog JSON file."""
    resolved = resolve_project_path(path)
    return parse_landmarks(json.loads(resolved.read_text(encoding="utf-8")))


class FileLandmarkCatalog:
    """Catalog backed by a JSON file; re-read only when the file changes."""

    def __init__(self, path: str | Path):
        self._path = resolve_project_path(path)
        self._mtime: float | None = None
        self._landmarks: list[Landmark] = []

    @property
    def path(self) -> Path:
        return self._path

    def list_landmarks(self) -> list[Landmark]:
        mtime = self._path.stat().st_mtime
        if self._mtime != mtime:
            self._landmarks = load_landmarks(self._path)
            self._mtime = mtime
            logger.info("Loaded %s landmarks from %s", len(self._landmarks), self._path)
        return list(self._landmarks)


class HttpLandmarkCatalog:
    """Catalog fetched from a JSON endpoint with stale-if-error caching."""

    def __init__(self, url: str, cache: FileCache, *, ttl_seconds: int = 900, timeout_seconds: float = 15):
        self._url = url
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._timeout_seconds = timeout_seconds

    def _fetch(self) -> Any:
        with httpx.Client(timeout=self._timeout_seconds) as client:
            resp = client.get(self._url, headers={"User-Agent": USER_AGENT})
            resp.raise_for_status()
            return resp.json()

    def list_landmarks(self) -> list[Landmark]:
        raw = self._cache.get_or_set(
            "catalog",
            self._url,
            self._fetch,
            ttl_seconds=self._ttl_seconds,
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, httpx.HTTPError),
        )
        return parse_landmarks(raw)


def build_cache(settings: Settings) -> FileCache:
    return FileCache(
        resolve_project_path(settings.cache.dir),
        enabled=settings.cache.enabled,
        default_ttl_seconds=settings.cache.default_ttl_seconds,
    )


def build_catalog(settings: Settings) -> LandmarkCatalog:
    """Pick the catalog source configured in settings."""
    if settings.catalog.url:
        return HttpLandmarkCatalog(
            settings.catalog.url,
            build_cache(settings),
            ttl_seconds=settings.catalog.cache_ttl_seconds,
            timeout_seconds=settings.app.http_timeout_seconds,
        )
    return FileLandmarkCatalog(settings.catalog.path)
