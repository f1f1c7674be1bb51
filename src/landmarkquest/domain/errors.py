"""
Error taxonomy for the visit engine.

Geolocation failures and store failures are all recoverable: the poller logs
them, surfaces what the user needs to see, and tries again on the next tick.
"""

from __future__ import annotations


class VisitEngineError(Exception):
    """Base class for recoverable visit-engine failures."""


class PermissionDenied(VisitEngineError):
    """The user has not granted location access."""


class PositionUnavailable(VisitEngineError):
    """No position fix within the geolocation timeout."""


class StoreUnavailable(VisitEngineError):
    """The ledger store could not be reached or failed mid-request."""


class TransactionConflict(VisitEngineError):
    """Another writer committed to the same ledger between our read and write."""


class ConcurrentUpdateFailure(VisitEngineError):
    """Every transaction attempt lost the race; retry budget exhausted."""

    def __init__(self, user_id: str, attempts: int):
        super().__init__(f"ledger for user '{user_id}' kept changing; gave up after {attempts} attempts")
        self.user_id = user_id
        self.attempts = attempts
