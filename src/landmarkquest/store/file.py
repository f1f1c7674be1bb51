"""
File-backed ledger store.

One JSON envelope per user under `store.dir`:

    {"user_id": "...", "version": 3, "updated_at_unix": 1760000000, "ledger": {...}}

File names are SHA-256 hashes of the user id (safe on every filesystem). Writes go
through a temp file + atomic replace, so a crash never leaves a half-written
ledger. The version check makes transactions safe across threads of one process;
it is not a cross-host lock.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from hashlib import sha256
from pathlib import Path

from landmarkquest.domain.errors import StoreUnavailable, TransactionConflict
from landmarkquest.store.base import LedgerDocument, TransactionFn

logger = logging.getLogger(__name__)


class FileLedgerStore:
    def __init__(self, base_dir: Path):
        self._base_dir = Path(base_dir)
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _path(self, user_id: str) -> Path:
        digest = sha256(user_id.encode("utf-8")).hexdigest()
        return self._base_dir / f"{digest}.json"

    def _read_envelope(self, path: Path) -> dict | None:
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StoreUnavailable(f"cannot read {path}: {exc}") from exc
        except ValueError as exc:
            raise StoreUnavailable(f"corrupt ledger file {path}: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("ledger"), dict):
            raise StoreUnavailable(f"corrupt ledger file {path}: missing ledger object")
        return raw

    def _snapshot(self, user_id: str) -> tuple[int, LedgerDocument | None]:
        with self._lock:
            env = self._read_envelope(self._path(user_id))
        if env is None:
            return 0, None
        return int(env.get("version") or 0), env["ledger"]

    def read_ledger(self, user_id: str) -> LedgerDocument | None:
        return self._snapshot(user_id)[1]

    def run_transaction(self, user_id: str, fn: TransactionFn) -> LedgerDocument | None:
        version, current = self._snapshot(user_id)
        updated = fn(current)
        if updated is None:
            return None

        path = self._path(user_id)
        with self._lock:
            env = self._read_envelope(path)
            on_disk = int(env.get("version") or 0) if env else 0
            if on_disk != version:
                raise TransactionConflict(f"ledger '{user_id}' moved from version {version} to {on_disk}")
            payload = {
                "user_id": user_id,
                "version": version + 1,
                "updated_at_unix": int(time.time()),
                "ledger": updated,
            }
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(".tmp")
                tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
                tmp.replace(path)
            except OSError as exc:
                raise StoreUnavailable(f"cannot write {path}: {exc}") from exc
        return updated

    def list_ledgers(self) -> dict[str, LedgerDocument]:
        out: dict[str, LedgerDocument] = {}
        if not self._base_dir.exists():
            return out
        with self._lock:
            for path in sorted(self._base_dir.glob("*.json")):
                try:
                    env = self._read_envelope(path)
                except StoreUnavailable as exc:
                    logger.warning("Skipping unreadable ledger: %s", exc)
                    continue
                if env and isinstance(env.get("user_id"), str):
                    out[env["user_id"]] = env["ledger"]
        return out
