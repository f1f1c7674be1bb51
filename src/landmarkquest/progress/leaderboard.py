"""
Leaderboard: users ranked by points earned this month.

Reads every ledger in the store, which is fine at this app's scale (one town's
players). Usernames come from the ledger document's optional `username` field.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from landmarkquest.domain.models import LeaderboardEntry, LedgerState
from landmarkquest.store.base import LedgerStore

logger = logging.getLogger(__name__)


def build_leaderboard(store: LedgerStore, *, size: int = 10) -> list[LeaderboardEntry]:
    rows: list[tuple[int, str, LedgerState]] = []
    for user_id, doc in store.list_ledgers().items():
        try:
            state = LedgerState.from_document(doc)
        except ValidationError as exc:
            logger.warning("Skipping unreadable ledger for %s: %s", user_id, exc)
            continue
        rows.append((state.monthly_points, user_id, state))

    rows.sort(key=lambda r: (-r[0], r[1]))
    entries: list[LeaderboardEntry] = []
    for rank, (monthly, user_id, state) in enumerate(rows[:size], start=1):
        username = (state.model_extra or {}).get("username")
        entries.append(
            LeaderboardEntry(
                rank=rank,
                user_id=user_id,
                username=username if isinstance(username, str) and username.strip() else "Anonymous",
                points=monthly,
                badges=len(state.earned_badges),
            )
        )
    return entries
