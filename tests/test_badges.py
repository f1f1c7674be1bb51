import pytest

from landmarkquest.config.settings import get_settings
from landmarkquest.domain.models import BadgeRule
from landmarkquest.progress.badges import BadgeEvaluator


def _evaluator() -> BadgeEvaluator:
    return BadgeEvaluator(get_settings().badges)


def test_default_badge_table_matches_explorer_milestones():
    rules = {r.id: (r.requirement, r.points) for r in get_settings().badges}
    assert rules == {
        "explorer-novice": (3, 100),
        "explorer-intermediate": (10, 250),
        "explorer-master": (20, 500),
    }


def test_evaluate_thresholds():
    ev = _evaluator()
    assert ev.evaluate(0) == set()
    assert ev.evaluate(2) == set()
    assert ev.evaluate(3) == {"explorer-novice"}
    assert ev.evaluate(10) == {"explorer-novice", "explorer-intermediate"}
    assert ev.evaluate(25) == {"explorer-novice", "explorer-intermediate", "explorer-master"}


def test_evaluate_is_monotonic_in_visit_count():
    ev = _evaluator()
    previous = ev.evaluate(0)
    for n in range(1, 40):
        current = ev.evaluate(n)
        assert previous <= current
        previous = current


def test_non_explorer_categories_use_their_own_counters():
    ev = BadgeEvaluator(
        [
            BadgeRule(id="explorer-novice", category="explorer", requirement=3, points=100),
            BadgeRule(id="shutterbug", category="photographer", requirement=5, points=75),
        ]
    )

    assert ev.evaluate(50) == {"explorer-novice"}
    assert ev.evaluate(0, {"photographer": 5}) == {"shutterbug"}
    assert ev.evaluate(0, {"photographer": 4}) == set()


def test_announcement_order_puts_most_prestigious_first():
    ev = _evaluator()
    order = ev.announcement_order({"explorer-novice", "explorer-master", "explorer-intermediate"})
    assert order == ["explorer-master", "explorer-intermediate", "explorer-novice"]


def test_bonus_points_sums_rule_points():
    ev = _evaluator()
    assert ev.bonus_points(["explorer-novice", "explorer-intermediate"]) == 350
    assert ev.bonus_points([]) == 0
    assert ev.bonus_points(["retired-badge"]) == 0
    assert ev.rule("explorer-master").points == 500
    assert ev.rule("retired-badge") is None


def test_progress_caps_ratio_and_flags_unlocked():
    ev = _evaluator()
    progress = {p.badge_id: p for p in ev.progress(5, earned=["explorer-novice"])}

    assert progress["explorer-novice"].ratio == 1.0
    assert progress["explorer-novice"].unlocked is True
    assert progress["explorer-intermediate"].ratio == pytest.approx(0.5)
    assert progress["explorer-intermediate"].unlocked is False
    assert progress["explorer-master"].current == 5


def test_duplicate_rule_ids_are_rejected():
    rule = BadgeRule(id="x", requirement=1)
    with pytest.raises(ValueError, match="duplicate badge id"):
        BadgeEvaluator([rule, rule])
