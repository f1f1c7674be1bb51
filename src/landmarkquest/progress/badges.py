"""
Badge evaluation.

Badges unlock when a cumulative counter reaches a static threshold. Explorer
badges count distinct visited landmarks; the other categories read their own
counter from `category_counters` (fed by collaborators outside the visit engine).

Everything here is a pure function of the final counts, so the unlocked set
never depends on the order in which visits accumulated.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from landmarkquest.domain.models import BadgeProgress, BadgeRule


class BadgeEvaluator:
    def __init__(self, rules: Iterable[BadgeRule]):
        self._rules: dict[str, BadgeRule] = {}
        for rule in rules:
            if rule.id in self._rules:
                raise ValueError(f"duplicate badge id: '{rule.id}'")
            self._rules[rule.id] = rule

    @property
    def rules(self) -> list[BadgeRule]:
        return list(self._rules.values())

    def rule(self, badge_id: str) -> BadgeRule | None:
        return self._rules.get(badge_id)

    def _counter_for(
        self, rule: BadgeRule, total_visit_count: int, category_counters: Mapping[str, int] | None
    ) -> int:
        if rule.category == "explorer":
            return total_visit_count
        return int((category_counters or {}).get(rule.category, 0))

    def evaluate(
        self, total_visit_count: int, category_counters: Mapping[str, int] | None = None
    ) -> set[str]:
        """Return ids of every badge whose requirement is met."""
        return {
            rule.id
            for rule in self._rules.values()
            if self._counter_for(rule, total_visit_count, category_counters) >= rule.requirement
        }

    def bonus_points(self, badge_ids: Iterable[str]) -> int:
        rules = [self.rule(b) for b in badge_ids]
        return sum(r.points for r in rules if r is not None)

    def announcement_order(self, badge_ids: Iterable[str]) -> list[str]:
        """Most prestigious (highest requirement) first; the rest follow as secondary."""

        def key(badge_id: str) -> tuple[int, str]:
            rule = self.rule(badge_id)
            return (-(rule.requirement if rule else 0), badge_id)

        return sorted(set(badge_ids), key=key)

    def progress(
        self,
        total_visit_count: int,
        category_counters: Mapping[str, int] | None = None,
        earned: Iterable[str] = (),
    ) -> list[BadgeProgress]:
        earned_set = set(earned)
        out: list[BadgeProgress] = []
        for rule in sorted(self._rules.values(), key=lambda r: (r.category, r.requirement, r.id)):
            current = self._counter_for(rule, total_visit_count, category_counters)
            out.append(
                BadgeProgress(
                    badge_id=rule.id,
                    name=rule.name or rule.id,
                    category=rule.category,
                    current=current,
                    requirement=rule.requirement,
                    ratio=min(1.0, current / rule.requirement),
                    unlocked=rule.id in earned_set or current >= rule.requirement,
                )
            )
        return out
