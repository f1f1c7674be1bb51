"""
API routes.

Endpoints:
- GET  `/api/health`: liveness + active configuration knobs.
- GET  `/api/landmarks`: detectable landmarks (presets + approved submissions).
- POST `/api/scan`: stateless proximity scan for a position.
- POST `/api/users/{user_id}/visits`: commit detected visits (transactional, idempotent).
- GET  `/api/users/{user_id}/progress`: the user's ledger (created zero-valued on first read).
- GET  `/api/users/{user_id}/badges`: progress toward every badge.
- GET  `/api/leaderboard`: top users by monthly points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from fastapi import APIRouter, HTTPException

from landmarkquest.catalog.loader import LandmarkCatalog, build_catalog
from landmarkquest.config.settings import get_settings
from landmarkquest.domain.errors import ConcurrentUpdateFailure, StoreUnavailable
from landmarkquest.domain.models import (
    BadgeProgress,
    CommitRequest,
    CommitResult,
    LeaderboardEntry,
    LedgerState,
    ScanHit,
    ScanRequest,
)
from landmarkquest.progress.leaderboard import build_leaderboard
from landmarkquest.progress.ledger import ProgressLedger
from landmarkquest.proximity.scanner import scan
from landmarkquest.store.factory import build_store

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass(frozen=True)
class Services:
    catalog: LandmarkCatalog
    ledger: ProgressLedger


@lru_cache
def _services() -> Services:
    settings = get_settings()
    store = build_store(settings)
    return Services(catalog=build_catalog(settings), ledger=ProgressLedger.from_settings(settings, store))


def _store_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ConcurrentUpdateFailure):
        return HTTPException(status_code=409, detail={"code": "CONCURRENT_UPDATE", "message": str(exc)})
    return HTTPException(status_code=503, detail={"code": "STORE_UNAVAILABLE", "message": str(exc)})


@router.get("/api/health")
def get_health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "visit_radius_m": settings.visit.radius_m,
        "points_per_visit": settings.visit.points_per_visit,
        "poll_interval_ms": settings.poller.interval_ms,
        "transaction_retry_limit": settings.ledger.transaction_retry_limit,
    }


@router.get("/api/landmarks")
def get_landmarks() -> dict:
    landmarks = _services().catalog.list_landmarks()
    return {
        "count": len(landmarks),
        "landmarks": [lm.model_dump(mode="json", by_alias=True) for lm in landmarks],
    }


@router.post("/api/scan", response_model=list[ScanHit])
def post_scan(request: ScanRequest) -> list[ScanHit]:
    """Return unvisited landmarks within the visit radius of `position`, nearest first."""
    settings = get_settings()
    return scan(
        request.position,
        _services().catalog.list_landmarks(),
        set(request.already_visited),
        settings.visit.radius_m,
    )


@router.post("/api/users/{user_id}/visits", response_model=CommitResult)
def post_visits(user_id: str, request: CommitRequest) -> CommitResult:
    try:
        return _services().ledger.commit_visits(user_id, request.landmark_ids)
    except (StoreUnavailable, ConcurrentUpdateFailure) as exc:
        logger.warning("Commit for %s failed: %s", user_id, exc)
        raise _store_error(exc) from exc


@router.get("/api/users/{user_id}/progress")
def get_progress(user_id: str) -> dict:
    try:
        # First read (profile view) creates the zero-valued ledger.
        state: LedgerState = _services().ledger.ensure_ledger(user_id)
    except StoreUnavailable as exc:
        raise _store_error(exc) from exc
    return state.to_document()


@router.get("/api/users/{user_id}/badges", response_model=list[BadgeProgress])
def get_badges(user_id: str) -> list[BadgeProgress]:
    ledger = _services().ledger
    try:
        state = ledger.get_progress(user_id)
    except StoreUnavailable as exc:
        raise _store_error(exc) from exc
    return ledger.evaluator.progress(len(state.visited_landmarks), earned=state.earned_badges)


@router.get("/api/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(limit: int | None = None) -> list[LeaderboardEntry]:
    settings = get_settings()
    size = limit if limit and limit > 0 else settings.leaderboard.size
    try:
        return build_leaderboard(_services().ledger.store, size=size)
    except StoreUnavailable as exc:
        raise _store_error(exc) from exc
