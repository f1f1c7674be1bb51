import json

import pytest

from landmarkquest.config.settings import get_settings
from landmarkquest.domain.errors import StoreUnavailable, TransactionConflict
from landmarkquest.progress.badges import BadgeEvaluator
from landmarkquest.progress.ledger import ProgressLedger
from landmarkquest.store.file import FileLedgerStore


def test_file_store_transaction_round_trip(tmp_path):
    store = FileLedgerStore(tmp_path)
    assert store.read_ledger("u1") is None

    written = store.run_transaction("u1", lambda current: {"points": 10, "seen": current is None})

    assert written == {"points": 10, "seen": True}
    assert store.read_ledger("u1") == {"points": 10, "seen": True}

    envelope = json.loads(next(tmp_path.glob("*.json")).read_text(encoding="utf-8"))
    assert envelope["user_id"] == "u1"
    assert envelope["version"] == 1


def test_file_store_abort_writes_nothing(tmp_path):
    store = FileLedgerStore(tmp_path)
    assert store.run_transaction("u1", lambda current: None) is None
    assert list(tmp_path.glob("*.json")) == []


def test_file_store_detects_concurrent_writer(tmp_path):
    store = FileLedgerStore(tmp_path)
    store.run_transaction("u1", lambda current: {"points": 1})

    def racing(current):
        # Another session commits while this transaction is still computing.
        store.run_transaction("u1", lambda inner: {"points": inner["points"] + 100})
        return {"points": current["points"] + 1}

    with pytest.raises(TransactionConflict):
        store.run_transaction("u1", racing)
    assert store.read_ledger("u1") == {"points": 101}


def test_file_store_reports_corrupt_files_as_unavailable(tmp_path):
    store = FileLedgerStore(tmp_path)
    store.run_transaction("u1", lambda current: {"points": 1})
    path = next(tmp_path.glob("*.json"))
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreUnavailable):
        store.read_ledger("u1")


def test_file_store_lists_ledgers_by_user(tmp_path):
    store = FileLedgerStore(tmp_path)
    store.run_transaction("alice", lambda current: {"monthlyPoints": 5})
    store.run_transaction("bob", lambda current: {"monthlyPoints": 7})

    assert store.list_ledgers() == {"alice": {"monthlyPoints": 5}, "bob": {"monthlyPoints": 7}}


def test_ledger_commits_persist_across_store_instances(tmp_path):
    badges = BadgeEvaluator(get_settings().badges)
    ledger = ProgressLedger(FileLedgerStore(tmp_path), badges, retry_base_delay_seconds=0)
    ledger.commit_visits("u1", ["a", "b", "c"])

    reopened = ProgressLedger(FileLedgerStore(tmp_path), badges, retry_base_delay_seconds=0)
    state = reopened.get_progress("u1")
    assert state.visited_landmarks == ["a", "b", "c"]
    assert state.points == 250
    assert reopened.commit_visits("u1", ["c"]).points_awarded == 0
