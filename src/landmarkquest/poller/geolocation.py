"""
Geolocation providers.

The poller only needs `get_current_position(timeout_seconds) -> Coordinate`, which
may raise `PermissionDenied` or `PositionUnavailable`. Providers must give up
after `timeout_seconds`. Device GPS lives outside this package; these providers
cover fixed positions (CLI, kiosks) and replaying a recorded trace.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Protocol, Sequence

from landmarkquest.core.env import resolve_project_path
from landmarkquest.domain.errors import PositionUnavailable
from landmarkquest.domain.models import Coordinate


class GeolocationProvider(Protocol):
    def get_current_position(self, timeout_seconds: float) -> Coordinate: ...


class FixedPosition:
    """Always reports the same coordinate."""

    def __init__(self, coordinate: Coordinate):
        self._coordinate = coordinate

    def get_current_position(self, timeout_seconds: float) -> Coordinate:
        return self._coordinate


class ReplayPositions:
    """Replays a recorded trace, one fix per call.

    With `loop=False` the provider reports `PositionUnavailable` once the trace
    is exhausted, like a device that lost its fix.
    """

    def __init__(self, positions: Sequence[Coordinate], *, loop: bool = True):
        if not positions:
            raise ValueError("a replay trace needs at least one position")
        self._positions = list(positions)
        self._loop = loop
        self._index = 0
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str | Path, *, loop: bool = True) -> "ReplayPositions":
        """Load a JSON list of `{"latitude": .., "longitude": ..}` objects."""
        payload = json.loads(resolve_project_path(path).read_text(encoding="utf-8"))
        return cls([Coordinate.model_validate(p) for p in payload], loop=loop)

    def get_current_position(self, timeout_seconds: float) -> Coordinate:
        with self._lock:
            if self._index >= len(self._positions):
                if not self._loop:
                    raise PositionUnavailable("replay trace exhausted")
                self._index = 0
            position = self._positions[self._index]
            self._index += 1
            return position
