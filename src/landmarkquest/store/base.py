"""
Ledger store interface.

The remote document database is treated as an opaque per-user document store:
- `read_ledger(user_id)`: the current document, or None if absent.
- `run_transaction(user_id, fn)`: ONE optimistic read-modify-write attempt.
  `fn` receives the current document (or None) and returns the document to write,
  or None to abort without writing. Raises `TransactionConflict` if another writer
  committed in between, `StoreUnavailable` on backend failure. Nothing is written
  unless the whole attempt succeeds.
- `list_ledgers()`: every stored document keyed by user id (leaderboard reads).

Retrying conflicts is the caller's job (see `ProgressLedger.commit_visits`).
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

LedgerDocument = dict[str, Any]
TransactionFn = Callable[[LedgerDocument | None], LedgerDocument | None]


class LedgerStore(Protocol):
    def read_ledger(self, user_id: str) -> LedgerDocument | None: ...

    def run_transaction(self, user_id: str, fn: TransactionFn) -> LedgerDocument | None: ...

    def list_ledgers(self) -> dict[str, LedgerDocument]: ...
