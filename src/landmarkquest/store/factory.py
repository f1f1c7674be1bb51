from __future__ import annotations

from landmarkquest.config.settings import Settings
from landmarkquest.core.env import resolve_project_path
from landmarkquest.store.base import LedgerStore
from landmarkquest.store.file import FileLedgerStore
from landmarkquest.store.memory import InMemoryLedgerStore


def build_store(settings: Settings) -> LedgerStore:
    """Create the ledger store selected by `store.backend`."""
    if settings.store.backend == "memory":
        return InMemoryLedgerStore()
    return FileLedgerStore(resolve_project_path(settings.store.dir))
