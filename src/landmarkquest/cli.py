"""
LandmarkQuest CLI entrypoint.

This CLI is intended for local demos and debugging without the mobile client.
It wires the same components the API uses (settings-selected store and catalog).
"""

from __future__ import annotations

import argparse
import json
import time
from typing import Any

from landmarkquest.catalog.loader import build_catalog
from landmarkquest.config.settings import Settings, get_settings
from landmarkquest.core.logging import configure_logging
from landmarkquest.domain.errors import ConcurrentUpdateFailure, StoreUnavailable
from landmarkquest.domain.models import Coordinate
from landmarkquest.poller.geolocation import FixedPosition, GeolocationProvider, ReplayPositions
from landmarkquest.poller.notify import CollectingNotifier
from landmarkquest.poller.visit_poller import VisitPoller
from landmarkquest.progress.leaderboard import build_leaderboard
from landmarkquest.progress.ledger import ProgressLedger
from landmarkquest.proximity.scanner import scan
from landmarkquest.store.factory import build_store


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _ledger(settings: Settings) -> ProgressLedger:
    return ProgressLedger.from_settings(settings, build_store(settings))


def _cmd_scan(args: argparse.Namespace) -> int:
    settings = get_settings()
    radius = float(args.radius) if args.radius is not None else settings.visit.radius_m
    already: set[str] = set(args.visited or [])
    if args.user:
        already |= set(_ledger(settings).get_progress(args.user).visited_landmarks)

    hits = scan(
        Coordinate(latitude=float(args.lat), longitude=float(args.lon)),
        build_catalog(settings).list_landmarks(),
        already,
        radius,
    )
    if args.json:
        _print_json([h.model_dump(mode="json") for h in hits])
        return 0
    if not hits:
        print(f"No unvisited landmarks within {radius:.0f} m.")
    for h in hits:
        print(f"{h.landmark_id}: {h.distance_meters:.1f} m")
    return 0


def _cmd_commit(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        result = _ledger(settings).commit_visits(args.user, args.landmark)
    except (StoreUnavailable, ConcurrentUpdateFailure) as exc:
        print(f"Commit failed: {exc}")
        return 2
    _print_json(result.model_dump(mode="json"))
    return 0


def _cmd_progress(args: argparse.Namespace) -> int:
    settings = get_settings()
    ledger = _ledger(settings)
    state = ledger.get_progress(args.user)
    if args.json:
        _print_json(state.to_document())
        return 0
    print(f"User: {args.user}")
    print(f"  Places visited: {len(state.visited_landmarks)}")
    print(f"  Points: {state.points} (this month: {state.monthly_points})")
    print(f"  Streak: {state.current_streak} day(s)")
    for p in ledger.evaluator.progress(len(state.visited_landmarks), earned=state.earned_badges):
        mark = "x" if p.unlocked else " "
        print(f"  [{mark}] {p.name}: {min(p.current, p.requirement)}/{p.requirement}")
    return 0


def _cmd_leaderboard(args: argparse.Namespace) -> int:
    settings = get_settings()
    size = int(args.size) if args.size is not None else settings.leaderboard.size
    entries = build_leaderboard(build_store(settings), size=size)
    if args.json:
        _print_json([e.model_dump(mode="json") for e in entries])
        return 0
    for e in entries:
        print(f"{e.rank:>2}. {e.username} ({e.user_id})  {e.points} pts  {e.badges} badge(s)")
    return 0


def _geolocation_from_args(args: argparse.Namespace) -> GeolocationProvider:
    if args.trace:
        return ReplayPositions.from_file(args.trace, loop=False)
    if args.lat is None or args.lon is None:
        raise SystemExit("poll needs --lat/--lon or --trace")
    return FixedPosition(Coordinate(latitude=float(args.lat), longitude=float(args.lon)))


def _cmd_poll(args: argparse.Namespace) -> int:
    settings = get_settings()
    notifier = CollectingNotifier()
    poller = VisitPoller.from_settings(
        settings,
        args.user,
        geolocation=_geolocation_from_args(args),
        catalog=build_catalog(settings),
        ledger=_ledger(settings),
        notifier=notifier,
    )

    if args.duration is not None:
        poller.start()
        try:
            time.sleep(float(args.duration))
        finally:
            poller.stop()
    else:
        for i in range(int(args.ticks)):
            outcome = poller.tick()
            print(f"tick {i + 1}: {outcome.value}")
            if i + 1 < int(args.ticks) and not args.no_wait:
                time.sleep(poller.next_delay_seconds())

    for n in notifier.visits:
        plural = "s" if n.new_visit_count != 1 else ""
        print(f"Discovered {n.new_visit_count} new landmark{plural}: +{n.points_awarded} points")
        for badge_id in n.unlocked_badges:
            print(f"  Badge earned: {badge_id}")
    for exc in notifier.errors:
        print(f"Error: {exc}")
    if notifier.permission_prompts:
        print("Location permission is required to track visits.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the LandmarkQuest CLI."""
    parser = argparse.ArgumentParser(prog="landmarkquest")
    sub = parser.add_subparsers(dest="command", required=True)

    sc = sub.add_parser("scan", help="List unvisited landmarks within the visit radius of a position.")
    sc.add_argument("--lat", required=True, type=float)
    sc.add_argument("--lon", required=True, type=float)
    sc.add_argument("--radius", type=float, default=None, help="Override visit.radius_m (meters).")
    sc.add_argument("--user", default=None, help="Exclude landmarks this user already visited.")
    sc.add_argument("--visited", action="append", default=[], help="Repeatable landmark id to exclude.")
    sc.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    sc.set_defaults(func=_cmd_scan)

    cm = sub.add_parser("commit", help="Commit detected landmark visits for a user.")
    cm.add_argument("--user", required=True)
    cm.add_argument("--landmark", action="append", default=[], help="Repeatable landmark id.")
    cm.set_defaults(func=_cmd_commit)

    pr = sub.add_parser("progress", help="Show a user's points, visits and badge progress.")
    pr.add_argument("--user", required=True)
    pr.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    pr.set_defaults(func=_cmd_progress)

    lb = sub.add_parser("leaderboard", help="Top users by monthly points.")
    lb.add_argument("--size", type=int, default=None)
    lb.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    lb.set_defaults(func=_cmd_leaderboard)

    po = sub.add_parser("poll", help="Run the visit poller for a user at a fixed or replayed position.")
    po.add_argument("--user", required=True)
    po.add_argument("--lat", type=float, default=None)
    po.add_argument("--lon", type=float, default=None)
    po.add_argument("--trace", default=None, help="JSON file with a list of {latitude, longitude} fixes.")
    po.add_argument("--ticks", type=int, default=1, help="Number of ticks to run in the foreground.")
    po.add_argument("--no-wait", action="store_true", help="Do not sleep between foreground ticks.")
    po.add_argument(
        "--duration", type=float, default=None, help="Run the background poller for N seconds instead."
    )
    po.set_defaults(func=_cmd_poll)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m landmarkquest.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
