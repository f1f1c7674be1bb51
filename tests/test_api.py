from fastapi.testclient import TestClient

from landmarkquest.api.app import app
from landmarkquest.config.settings import get_settings
from landmarkquest.domain.errors import StoreUnavailable, TransactionConflict
from landmarkquest.domain.models import Coordinate, Landmark
from landmarkquest.progress.ledger import ProgressLedger
from landmarkquest.store.memory import InMemoryLedgerStore


class _StubCatalog:
    def list_landmarks(self):
        return [
            Landmark(id="a", name="A", location=Coordinate(latitude=7.784556, longitude=122.593556), is_preset=True),
            Landmark(id="b", name="B", location=Coordinate(latitude=7.784456, longitude=122.593856)),
            Landmark(id="c", name="C", location=Coordinate(latitude=7.784956, longitude=122.593556)),
        ]


class _OfflineStore(InMemoryLedgerStore):
    def run_transaction(self, user_id, fn):
        raise StoreUnavailable("backend offline")


def _patch_services(monkeypatch, store):
    # Keep API tests offline and independent of the on-disk store.
    import landmarkquest.api.routes as routes

    settings = get_settings()
    services = routes.Services(catalog=_StubCatalog(), ledger=ProgressLedger.from_settings(settings, store))
    monkeypatch.setattr(routes, "_services", lambda: services)


def test_api_scan_then_commit_flow(monkeypatch):
    _patch_services(monkeypatch, InMemoryLedgerStore())

    with TestClient(app) as c:
        hits = c.post("/api/scan", json={"position": {"latitude": 7.784456, "longitude": 122.593556}})
        assert hits.status_code == 200
        ids = [h["landmark_id"] for h in hits.json()]
        assert ids == ["a", "b", "c"]

        commit = c.post("/api/users/u1/visits", json={"landmark_ids": ids})
        assert commit.status_code == 200
        body = commit.json()
        assert body["points_awarded"] == 250
        assert body["newly_unlocked_badges"] == ["explorer-novice"]

        again = c.post("/api/users/u1/visits", json={"landmark_ids": ids})
        assert again.json()["points_awarded"] == 0

        progress = c.get("/api/users/u1/progress").json()
        assert progress["visitedLandmarks"] == ["a", "b", "c"]
        assert progress["points"] == 250

        badges = {b["badge_id"]: b for b in c.get("/api/users/u1/badges").json()}
        assert badges["explorer-novice"]["unlocked"] is True
        assert badges["explorer-intermediate"]["current"] == 3

        board = c.get("/api/leaderboard").json()
        assert board[0]["user_id"] == "u1"
        assert board[0]["points"] == 250


def test_api_scan_rejects_out_of_range_position(monkeypatch):
    _patch_services(monkeypatch, InMemoryLedgerStore())

    with TestClient(app) as c:
        resp = c.post("/api/scan", json={"position": {"latitude": 123, "longitude": 0}})
    assert resp.status_code == 422


def test_api_maps_store_outage_to_503(monkeypatch):
    _patch_services(monkeypatch, _OfflineStore())

    with TestClient(app) as c:
        resp = c.post("/api/users/u1/visits", json={"landmark_ids": ["a"]})
    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "STORE_UNAVAILABLE"


def test_api_health_reports_configuration():
    with TestClient(app) as c:
        data = c.get("/api/health").json()
    assert data["status"] == "ok"
    assert data["visit_radius_m"] == get_settings().visit.radius_m


def test_api_maps_exhausted_retries_to_409(monkeypatch):
    class _AlwaysConflictingStore(InMemoryLedgerStore):
        def run_transaction(self, user_id, fn):
            raise TransactionConflict(f"ledger for {user_id} changed")

    _patch_services(monkeypatch, _AlwaysConflictingStore())
    monkeypatch.setattr("landmarkquest.progress.ledger.time.sleep", lambda _s: None)

    with TestClient(app) as c:
        resp = c.post("/api/users/u1/visits", json={"landmark_ids": ["a"]})
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "CONCURRENT_UPDATE"


def test_api_progress_creates_zero_ledger_on_first_read(monkeypatch):
    store = InMemoryLedgerStore()
    _patch_services(monkeypatch, store)

    with TestClient(app) as c:
        data = c.get("/api/users/newcomer/progress").json()

    assert data["points"] == 0
    assert data["visitedLandmarks"] == []
    assert store.read_ledger("newcomer") == data
