"""
Progress ledger: the authoritative per-user record of visits, points and badges.

`commit_visits` is the only write path. It runs as one store transaction so that
several devices of the same user can poll concurrently without double-awarding:

1. read the ledger (zero ledger if absent),
2. drop ids already visited (the idempotence boundary),
3. abort with a zero result if nothing is new,
4. award `points_per_visit` per new landmark plus the bonus of every badge that
   newly qualifies,
5. write visited/points/monthly points/badges back, leaving every other field alone.

A `TransactionConflict` restarts the whole read-modify-write (bounded retries with
exponential backoff). `StoreUnavailable` propagates untouched: no partial writes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable

from landmarkquest.config.settings import Settings
from landmarkquest.domain.errors import ConcurrentUpdateFailure, TransactionConflict
from landmarkquest.domain.models import CommitResult, LedgerState
from landmarkquest.progress.badges import BadgeEvaluator
from landmarkquest.store.base import LedgerDocument, LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Delta:
    new_ids: list[str]
    badges: list[str]
    points_from_visits: int
    points_from_badges: int


class ProgressLedger:
    def __init__(
        self,
        store: LedgerStore,
        evaluator: BadgeEvaluator,
        *,
        points_per_visit: int = 50,
        retry_limit: int = 3,
        retry_base_delay_seconds: float = 0.05,
        retry_max_delay_seconds: float = 0.5,
    ):
        if retry_limit < 1:
            raise ValueError("retry_limit must be >= 1")
        self._store = store
        self._evaluator = evaluator
        self._points_per_visit = int(points_per_visit)
        self._retry_limit = int(retry_limit)
        self._base_delay = float(retry_base_delay_seconds)
        self._max_delay = float(retry_max_delay_seconds)

    @classmethod
    def from_settings(cls, settings: Settings, store: LedgerStore) -> "ProgressLedger":
        return cls(
            store,
            BadgeEvaluator(settings.badges),
            points_per_visit=settings.visit.points_per_visit,
            retry_limit=settings.ledger.transaction_retry_limit,
            retry_base_delay_seconds=settings.ledger.retry_base_delay_seconds,
            retry_max_delay_seconds=settings.ledger.retry_max_delay_seconds,
        )

    @property
    def evaluator(self) -> BadgeEvaluator:
        return self._evaluator

    @property
    def store(self) -> LedgerStore:
        return self._store

    def get_progress(self, user_id: str) -> LedgerState:
        """Current ledger, or a zero ledger if the user has none yet (no write)."""
        return LedgerState.from_document(self._store.read_ledger(user_id))

    def ensure_ledger(self, user_id: str) -> LedgerState:
        """Return the ledger, creating the zero-valued record on first access."""

        def create(current: LedgerDocument | None) -> LedgerDocument | None:
            return None if current is not None else LedgerState().to_document()

        try:
            if self._store.run_transaction(user_id, create) is not None:
                logger.info("Created ledger for %s", user_id)
        except TransactionConflict:
            # Another session created it between our read and write.
            logger.debug("Ledger for %s created concurrently", user_id)
        return self.get_progress(user_id)

    def _compute(self, state: LedgerState, detected: list[str]) -> _Delta:
        visited = set(state.visited_landmarks)
        new_ids = [lid for lid in dict.fromkeys(detected) if lid not in visited]
        if not new_ids:
            return _Delta(new_ids=[], badges=[], points_from_visits=0, points_from_badges=0)

        total_visits = len(visited) + len(new_ids)
        qualified = self._evaluator.evaluate(total_visits) - set(state.earned_badges)
        badges = self._evaluator.announcement_order(qualified)
        return _Delta(
            new_ids=new_ids,
            badges=badges,
            points_from_visits=self._points_per_visit * len(new_ids),
            points_from_badges=self._evaluator.bonus_points(badges),
        )

    def _backoff(self, attempt: int) -> None:
        delay = min(self._max_delay, self._base_delay * (2**attempt))
        if delay > 0:
            time.sleep(delay)

    def commit_visits(self, user_id: str, newly_detected_ids: Iterable[str]) -> CommitResult:
        """Atomically merge detected visits into the user's ledger.

        Raises:
            StoreUnavailable: the store failed; nothing was written.
            ConcurrentUpdateFailure: every attempt lost a race with another writer.
        """
        detected = [lid for lid in newly_detected_ids if lid]
        if not detected:
            return CommitResult.empty()

        for attempt in range(self._retry_limit):
            outcome: dict[str, _Delta] = {}

            def apply(current: LedgerDocument | None) -> LedgerDocument | None:
                state = LedgerState.from_document(current)
                delta = self._compute(state, detected)
                outcome["delta"] = delta
                if not delta.new_ids:
                    return None
                gained = delta.points_from_visits + delta.points_from_badges
                updated = state.model_copy(
                    update={
                        "visited_landmarks": [*state.visited_landmarks, *delta.new_ids],
                        "points": state.points + gained,
                        "monthly_points": state.monthly_points + gained,
                        "earned_badges": [*state.earned_badges, *delta.badges],
                    }
                )
                return updated.to_document()

            try:
                self._store.run_transaction(user_id, apply)
            except TransactionConflict as exc:
                logger.warning(
                    "Ledger commit for %s conflicted (%s); attempt %s/%s",
                    user_id,
                    exc,
                    attempt + 1,
                    self._retry_limit,
                )
                if attempt + 1 < self._retry_limit:
                    self._backoff(attempt)
                continue

            delta = outcome["delta"]
            if not delta.new_ids:
                logger.info("No new visits for %s; already recorded", user_id)
                return CommitResult.empty(attempts=attempt + 1)

            result = CommitResult(
                newly_visited_ids=delta.new_ids,
                points_awarded=delta.points_from_visits + delta.points_from_badges,
                newly_unlocked_badges=delta.badges,
                points_from_visits=delta.points_from_visits,
                points_from_badges=delta.points_from_badges,
                attempts=attempt + 1,
            )
            logger.info(
                "Committed %s visit(s) for %s: +%s points, badges=%s",
                len(result.newly_visited_ids),
                user_id,
                result.points_awarded,
                result.newly_unlocked_badges,
            )
            return result

        raise ConcurrentUpdateFailure(user_id, self._retry_limit)
