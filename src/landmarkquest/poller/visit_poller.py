"""
Visit poller: drives the scan -> commit cycle for one signed-in user.

State machine: IDLE -> SCANNING -> COMMITTING -> IDLE (or straight back to IDLE
when nothing is detected). A tick that finds the poller busy is skipped, so at
most one scan per session is ever in flight.

Wake-ups come from a timer thread (every `interval_ms`, stretched by exponential
backoff after failed ticks) and from `notify_foreground()` when the app returns
to the foreground. Every failure is contained in the tick: detections are
recomputed from scratch next time, so a failed commit is simply re-attempted.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum

from landmarkquest.catalog.loader import LandmarkCatalog
from landmarkquest.config.settings import Settings
from landmarkquest.domain.errors import (
    ConcurrentUpdateFailure,
    PermissionDenied,
    PositionUnavailable,
    StoreUnavailable,
)
from landmarkquest.domain.models import VisitNotification
from landmarkquest.poller.geolocation import GeolocationProvider
from landmarkquest.poller.notify import LoggingNotifier, Notifier
from landmarkquest.progress.ledger import ProgressLedger
from landmarkquest.proximity.scanner import scan

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COMMITTING = "committing"


class TickOutcome(str, Enum):
    SKIPPED = "skipped"
    STOPPED = "stopped"
    PERMISSION_DENIED = "permission_denied"
    NO_POSITION = "no_position"
    NO_DETECTIONS = "no_detections"
    ALREADY_RECORDED = "already_recorded"
    COMMITTED = "committed"
    ABANDONED = "abandoned"
    FAILED = "failed"


class VisitPoller:
    def __init__(
        self,
        user_id: str,
        *,
        geolocation: GeolocationProvider,
        catalog: LandmarkCatalog,
        ledger: ProgressLedger,
        notifier: Notifier | None = None,
        radius_m: float = 100,
        interval_ms: int = 10_000,
        max_backoff_ms: int = 120_000,
        geolocation_timeout_seconds: float = 15,
        stop_timeout_seconds: float = 20,
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._user_id = user_id
        self._geolocation = geolocation
        self._catalog = catalog
        self._ledger = ledger
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._radius_m = float(radius_m)
        self._interval_ms = int(interval_ms)
        self._max_backoff_ms = max(int(max_backoff_ms), self._interval_ms)
        self._geolocation_timeout_seconds = float(geolocation_timeout_seconds)
        self._stop_timeout_seconds = float(stop_timeout_seconds)

        self._cond = threading.Condition()
        self._state = PollerState.IDLE
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._consecutive_failures = 0
        self._permission_prompted = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        user_id: str,
        *,
        geolocation: GeolocationProvider,
        catalog: LandmarkCatalog,
        ledger: ProgressLedger,
        notifier: Notifier | None = None,
    ) -> "VisitPoller":
        return cls(
            user_id,
            geolocation=geolocation,
            catalog=catalog,
            ledger=ledger,
            notifier=notifier,
            radius_m=settings.visit.radius_m,
            interval_ms=settings.poller.interval_ms,
            max_backoff_ms=settings.poller.max_backoff_ms,
            geolocation_timeout_seconds=settings.poller.geolocation_timeout_seconds,
            stop_timeout_seconds=settings.poller.stop_timeout_seconds,
        )

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def state(self) -> PollerState:
        with self._cond:
            return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_delay_seconds(self) -> float:
        """Timer interval, doubled per consecutive failed tick up to `max_backoff_ms`."""
        failures = min(self._consecutive_failures, 16)
        return min(self._max_backoff_ms, self._interval_ms * (2**failures)) / 1000.0

    # Session lifecycle

    def start(self) -> None:
        """Begin polling (on sign-in). The first tick runs immediately.

        A thread left over from a `stop()` that timed out keeps its own stop flag
        and exits after its tick; the new session gets fresh events.
        """
        if self.running and not self._stop_event.is_set():
            return
        with self._cond:
            self._stop_event = threading.Event()
            self._wake_event = threading.Event()
        self._permission_prompted = False
        self._consecutive_failures = 0
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event, self._wake_event),
            name=f"visit-poller-{self._user_id}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Visit poller started for %s (every %sms)", self._user_id, self._interval_ms)

    def stop(self, timeout: float | None = None) -> bool:
        """Stop polling (on sign-out) and wait for an in-flight tick to settle.

        An in-flight tick is never interrupted mid-write; it only loses its right to
        commit or notify. Returns False if the tick was still running at the deadline.
        """
        wait_s = self._stop_timeout_seconds if timeout is None else float(timeout)
        deadline = time.monotonic() + wait_s
        self._stop_event.set()
        self._wake_event.set()

        thread = self._thread
        if thread is threading.current_thread():
            # Called from inside a tick (e.g. by a notifier); the loop exits after it.
            return False
        if thread is not None:
            thread.join(max(0.0, deadline - time.monotonic()))

        with self._cond:
            settled = self._cond.wait_for(
                lambda: self._state is PollerState.IDLE,
                timeout=max(0.0, deadline - time.monotonic()),
            )
        if not settled:
            logger.warning("Visit poller for %s did not settle within %.1fs", self._user_id, wait_s)
        else:
            logger.info("Visit poller stopped for %s", self._user_id)
        return settled

    def notify_foreground(self) -> None:
        """App came back to the foreground: run a tick now instead of at the next interval."""
        self._wake_event.set()

    def _run(self, stop: threading.Event, wake: threading.Event) -> None:
        while not stop.is_set():
            wake.clear()
            self.tick()
            if stop.is_set():
                break
            wake.wait(self.next_delay_seconds())

    # One tick

    def _try_begin(self) -> tuple[TickOutcome | None, threading.Event]:
        with self._cond:
            stop = self._stop_event
            if stop.is_set():
                return TickOutcome.STOPPED, stop
            if self._state is not PollerState.IDLE:
                return TickOutcome.SKIPPED, stop
            self._state = PollerState.SCANNING
            return None, stop

    def _set_state(self, state: PollerState) -> None:
        with self._cond:
            self._state = state
            self._cond.notify_all()

    def tick(self) -> TickOutcome:
        """Run one scan-then-maybe-commit cycle. Never raises."""
        refused, stop = self._try_begin()
        if refused is not None:
            logger.debug("Tick for %s not started: %s", self._user_id, refused.value)
            return refused
        try:
            outcome = self._scan_and_commit(stop)
        except Exception:
            logger.exception("Visit tick for %s failed unexpectedly", self._user_id)
            self._consecutive_failures += 1
            outcome = TickOutcome.FAILED
        finally:
            self._set_state(PollerState.IDLE)
        logger.debug("Tick for %s finished: %s", self._user_id, outcome.value)
        return outcome

    def _store_failed(self, exc: Exception) -> TickOutcome:
        self._consecutive_failures += 1
        logger.warning(
            "Store failure for %s (%s consecutive): %s",
            self._user_id,
            self._consecutive_failures,
            exc,
        )
        self._notifier.on_error(exc)
        return TickOutcome.FAILED

    def _scan_and_commit(self, stop: threading.Event) -> TickOutcome:
        try:
            position = self._geolocation.get_current_position(self._geolocation_timeout_seconds)
        except PermissionDenied as exc:
            if not self._permission_prompted:
                self._permission_prompted = True
                self._notifier.on_permission_denied(exc)
            return TickOutcome.PERMISSION_DENIED
        except PositionUnavailable as exc:
            logger.info("No position fix for %s: %s", self._user_id, exc)
            return TickOutcome.NO_POSITION

        if stop.is_set():
            return TickOutcome.ABANDONED

        try:
            visited = set(self._ledger.get_progress(self._user_id).visited_landmarks)
        except StoreUnavailable as exc:
            return self._store_failed(exc)

        hits = scan(position, self._catalog.list_landmarks(), visited, self._radius_m)
        if not hits:
            self._consecutive_failures = 0
            return TickOutcome.NO_DETECTIONS

        if stop.is_set():
            return TickOutcome.ABANDONED

        self._set_state(PollerState.COMMITTING)
        try:
            result = self._ledger.commit_visits(self._user_id, [h.landmark_id for h in hits])
        except (StoreUnavailable, ConcurrentUpdateFailure) as exc:
            return self._store_failed(exc)
        self._consecutive_failures = 0

        if stop.is_set():
            # Committed atomically, but the session is gone; nobody to notify.
            return TickOutcome.ABANDONED
        if result.points_awarded <= 0:
            return TickOutcome.ALREADY_RECORDED

        self._notifier.on_visits(
            VisitNotification(
                new_visit_count=len(result.newly_visited_ids),
                points_awarded=result.points_awarded,
                unlocked_badges=result.newly_unlocked_badges,
                landmark_ids=result.newly_visited_ids,
            )
        )
        return TickOutcome.COMMITTED
