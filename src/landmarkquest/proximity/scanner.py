"""
Proximity scanner.

Given the user's position and the landmark catalog, return the landmarks not yet
visited that lie within the visit radius, nearest first. Pure: no I/O, no state.
"""

from __future__ import annotations

import logging
from typing import Iterable

from landmarkquest.core.geo import distance_meters
from landmarkquest.domain.models import Coordinate, Landmark, ScanHit

logger = logging.getLogger(__name__)


def scan(
    current: Coordinate,
    catalog: Iterable[Landmark],
    already_visited: set[str] | frozenset[str],
    threshold_meters: float,
) -> list[ScanHit]:
    """Return unvisited landmarks within `threshold_meters` (inclusive), nearest first."""
    hits: list[ScanHit] = []
    seen: set[str] = set()
    for landmark in catalog:
        if landmark.id in already_visited or landmark.id in seen:
            continue
        seen.add(landmark.id)
        d = distance_meters(current, landmark.location)
        logger.debug("Distance to %s: %.2f m", landmark.id, d)
        if d <= threshold_meters:
            hits.append(ScanHit(landmark_id=landmark.id, distance_meters=d))

    # Ties broken by id so equal distances scan deterministically.
    hits.sort(key=lambda h: (h.distance_meters, h.landmark_id))
    return hits
