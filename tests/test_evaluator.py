"""Tests for rule-level evaluation: AND semantics, modes, status text."""

from dataclasses import replace
from datetime import datetime

import pytest

from totalcontrol.evaluator import (
    RuleDecision, blocked_items, check_all_conditions, evaluate_rules, is_blocked, rule_status,
)
from totalcontrol.models import (
    ProgressSnapshot, Rule, RuleMode, StepsCondition, TimeRangeCondition, TomorrowCondition,
    WorkoutCondition,
)

NOON = datetime(2026, 10, 19, 12, 0)


@pytest.mark.parametrize("steps,minutes,blocked", [
    (0, 0, True),
    (10000, 0, True),
    (0, 30, True),
    (9999, 45, True),
    (10000, 30, False),
])
def test_until_needs_every_condition(combo_rule, steps, minutes, blocked):
    snap = ProgressSnapshot(steps_today=steps, workout_minutes_today=minutes)
    assert is_blocked(combo_rule, snap, NOON) is blocked


def test_condition_order_does_not_matter(combo_rule):
    flipped = replace(combo_rule, conditions=tuple(reversed(combo_rule.conditions)))
    for snap in (ProgressSnapshot(steps_today=10000),
                 ProgressSnapshot(steps_today=10000, workout_minutes_today=30)):
        assert is_blocked(flipped, snap, NOON) == is_blocked(combo_rule, snap, NOON)


@pytest.mark.parametrize("all_met", [True, False])
def test_mode_inversion(steps_rule, all_met):
    snap = ProgressSnapshot(steps_today=12000 if all_met else 100)
    assert is_blocked(replace(steps_rule, mode=RuleMode.UNTIL), snap, NOON) is (not all_met)
    assert is_blocked(replace(steps_rule, mode=RuleMode.ALLOW_DURING), snap, NOON) is (not all_met)
    assert is_blocked(replace(steps_rule, mode=RuleMode.DURING), snap, NOON) is all_met


def test_is_blocked_is_pure(combo_rule):
    snap = ProgressSnapshot(steps_today=4000, workout_minutes_today=30)
    first = rule_status(combo_rule, snap, NOON)
    assert rule_status(combo_rule, snap, NOON) == first
    assert is_blocked(combo_rule, snap, NOON) == is_blocked(combo_rule, snap, NOON)


def test_check_all_conditions_statuses(combo_rule):
    all_met, statuses = check_all_conditions(
        combo_rule, ProgressSnapshot(steps_today=5000, workout_minutes_today=30), NOON)
    assert all_met is False
    assert statuses == ["5,000/10,000 (50%)", "30/30min"]


def test_status_text_per_mode(steps_rule):
    low = ProgressSnapshot(steps_today=5000)
    high = ProgressSnapshot(steps_today=10000)

    assert rule_status(steps_rule, low, NOON) == RuleDecision(True, "Blocked - 5,000/10,000 (50%)")
    assert rule_status(steps_rule, high, NOON) == RuleDecision(False, "Unlocked")

    during = replace(steps_rule, mode=RuleMode.DURING)
    assert rule_status(during, high, NOON) == RuleDecision(
        True, "Blocked during 10,000/10,000 (100%)")
    assert rule_status(during, low, NOON) == RuleDecision(False, "Allowed")

    allow = replace(steps_rule, mode=RuleMode.ALLOW_DURING)
    assert rule_status(allow, low, NOON) == RuleDecision(True, "Only during 10,000 steps")
    assert rule_status(allow, high, NOON) == RuleDecision(False, "Allowed now")


def test_during_night_range():
    rule = Rule(id="night", items=("YouTube",), conditions=(TimeRangeCondition("22:00", "06:00"),),
                mode=RuleMode.DURING)
    assert is_blocked(rule, ProgressSnapshot(), NOON.replace(hour=23, minute=30)) is True
    assert is_blocked(rule, ProgressSnapshot(), NOON) is False


def test_tomorrow_rule_stays_blocked():
    rule = Rule(id="t", items=("Steam",))
    assert rule.conditions == (TomorrowCondition(),)
    assert is_blocked(rule, ProgressSnapshot(steps_today=50000), NOON) is True


def test_evaluate_rules_skips_disabled(steps_rule, combo_rule):
    off = replace(combo_rule, enabled=False)
    decisions = evaluate_rules([steps_rule, off], ProgressSnapshot(), NOON)
    assert set(decisions) == {"r1"}
    assert decisions["r1"].blocked is True


def test_blocked_items_respect_exceptions(steps_rule):
    social = Rule(id="s", items=("Facebook", "Messenger", "Instagram"),
                  conditions=(WorkoutCondition(30),), exceptions=("Messenger",))
    met = Rule(id="m", items=("Spotify",), conditions=(StepsCondition(0),))
    rules = [steps_rule, social, met]

    decisions = evaluate_rules(rules, ProgressSnapshot(), NOON)
    assert blocked_items(rules, decisions) == ["Facebook", "Instagram", "Netflix", "YouTube"]
