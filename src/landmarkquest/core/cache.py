"""
On-disk JSON cache for the remote landmark catalog.

Entries live under `<cache dir>/<namespace>/<sha256>.json` and carry their own
TTL. An expired entry is still kept on disk: when a refresh fails the caller may
fall back to it, so the poller keeps detecting visits from the last known
catalog while the network is down.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    created_at_unix: int
    ttl_seconds: int
    value: Any

    def fresh(self, now: int, ttl_seconds: int | None = None) -> bool:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        return now - self.created_at_unix <= ttl


class FileCache:
    """A filesystem-backed cache keyed by (namespace, key)."""

    def __init__(self, base_dir: Path, enabled: bool = True, default_ttl_seconds: int = 86400):
        self._base_dir = Path(base_dir)
        self._enabled = enabled
        self._default_ttl_seconds = default_ttl_seconds

    def _path(self, namespace: str, key: str) -> Path:
        digest = sha256(f"{namespace}:{key}".encode("utf-8")).hexdigest()
        return self._base_dir / namespace / f"{digest}.json"

    def _load(self, namespace: str, key: str) -> CacheEntry | None:
        if not self._enabled:
            return None
        path = self._path(namespace, key)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(int(raw["created_at_unix"]), int(raw["ttl_seconds"]), raw["value"])
        except (OSError, ValueError, KeyError, TypeError):
            logger.debug("Ignoring unreadable cache entry %s", path)
            return None

    def _store(self, namespace: str, key: str, value: Any, ttl_seconds: int | None) -> None:
        if not self._enabled:
            return
        path = self._path(namespace, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "created_at_unix": int(time.time()),
            "ttl_seconds": int(ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds),
            "value": value,
        }
        # Atomic replace so readers never see a half-written entry.
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def get_or_set(
        self,
        namespace: str,
        key: str,
        builder: Callable[[], Any],
        ttl_seconds: int | None = None,
        *,
        stale_if_error: bool = False,
        stale_predicate: Callable[[Exception], bool] | None = None,
    ) -> Any:
        """Return the fresh cached value, or build and store a new one.

        With `stale_if_error`, a failing `builder()` falls back to an expired entry
        when one exists and `stale_predicate(exc)` accepts the error (or no
        predicate is given). Otherwise the error propagates.
        """
        entry = self._load(namespace, key)
        if entry is not None and entry.fresh(int(time.time()), ttl_seconds):
            return entry.value
        try:
            value = builder()
        except Exception as exc:
            accept = stale_predicate(exc) if stale_predicate else True
            if stale_if_error and accept and entry is not None:
                logger.warning("Serving stale %s/%s after error: %s", namespace, key, exc)
                return entry.value
            raise
        self._store(namespace, key, value, ttl_seconds)
        return value
