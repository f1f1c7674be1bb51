"""
In-process ledger store with versioned compare-and-set.

Each document carries a version counter. A transaction snapshots (version, doc),
runs the caller's function without holding the lock, and only writes if the
version is still the one it read. Used by tests, the API's memory backend, and
as the reference for the transaction contract in `store.base`.
"""

from __future__ import annotations

import copy
import threading

from landmarkquest.domain.errors import TransactionConflict
from landmarkquest.store.base import LedgerDocument, TransactionFn


class InMemoryLedgerStore:
    def __init__(self, initial: dict[str, LedgerDocument] | None = None):
        self._lock = threading.Lock()
        self._docs: dict[str, tuple[int, LedgerDocument]] = {}
        for user_id, doc in (initial or {}).items():
            self._docs[user_id] = (1, copy.deepcopy(doc))

    def _snapshot(self, user_id: str) -> tuple[int, LedgerDocument | None]:
        with self._lock:
            version, doc = self._docs.get(user_id, (0, None))
            return version, copy.deepcopy(doc)

    def _compare_and_set(self, user_id: str, expected_version: int, doc: LedgerDocument) -> None:
        with self._lock:
            current_version = self._docs.get(user_id, (0, None))[0]
            if current_version != expected_version:
                raise TransactionConflict(
                    f"ledger '{user_id}' moved from version {expected_version} to {current_version}"
                )
            self._docs[user_id] = (current_version + 1, copy.deepcopy(doc))

    def version(self, user_id: str) -> int:
        with self._lock:
            return self._docs.get(user_id, (0, None))[0]

    def read_ledger(self, user_id: str) -> LedgerDocument | None:
        return self._snapshot(user_id)[1]

    def run_transaction(self, user_id: str, fn: TransactionFn) -> LedgerDocument | None:
        version, current = self._snapshot(user_id)
        updated = fn(current)
        if updated is None:
            return None
        self._compare_and_set(user_id, version, updated)
        return copy.deepcopy(updated)

    def list_ledgers(self) -> dict[str, LedgerDocument]:
        with self._lock:
            return {user_id: copy.deepcopy(doc) for user_id, (_, doc) in self._docs.items()}
