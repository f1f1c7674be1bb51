"""
Notification sinks for poller events.

The UI decides how to render these; the engine only promises:
- `on_visits` after a commit that awarded points (badges ordered most prestigious first),
- `on_error` for store failures that the next tick will retry,
- `on_permission_denied` at most once per session.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from landmarkquest.domain.models import VisitNotification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def on_visits(self, notification: VisitNotification) -> None: ...

    def on_error(self, exc: Exception) -> None: ...

    def on_permission_denied(self, exc: Exception) -> None: ...


class LoggingNotifier:
    def on_visits(self, notification: VisitNotification) -> None:
        plural = "s" if notification.new_visit_count != 1 else ""
        logger.info(
            "Discovered %s new landmark%s! +%s points",
            notification.new_visit_count,
            plural,
            notification.points_awarded,
        )
        if notification.unlocked_badges:
            logger.info("New badge earned: %s", notification.headline_badge)
            for badge_id in notification.unlocked_badges[1:]:
                logger.info("Also earned: %s", badge_id)

    def on_error(self, exc: Exception) -> None:
        logger.warning("Failed to update progress; will retry: %s", exc)

    def on_permission_denied(self, exc: Exception) -> None:
        logger.warning("Location permission is required to track visits: %s", exc)


class CollectingNotifier:
    """Keeps every event in memory (CLI summaries and tests)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.visits: list[VisitNotification] = []
        self.errors: list[Exception] = []
        self.permission_prompts: list[Exception] = []

    def on_visits(self, notification: VisitNotification) -> None:
        with self._lock:
            self.visits.append(notification)

    def on_error(self, exc: Exception) -> None:
        with self._lock:
            self.errors.append(exc)

    def on_permission_denied(self, exc: Exception) -> None:
        with self._lock:
            self.permission_prompts.append(exc)
