"""Tests for weakening classification and the PendingChange record."""

from dataclasses import replace
from datetime import timedelta

import pytest

from totalcontrol.changes import ChangeType, PendingChange, classify_change, is_weakening
from totalcontrol.errors import RuleDecodeError
from totalcontrol.models import (
    RuleMode, ScheduleCondition, StepsCondition, TimeCondition, TimeRangeCondition,
    WorkoutCondition,
)


def test_new_rule_never_weakening(steps_rule):
    assert is_weakening(None, steps_rule) is False
    assert classify_change(None, steps_rule) is None


def test_delete_always_weakening(steps_rule):
    assert is_weakening(steps_rule, None) is True
    assert classify_change(steps_rule, None) == ChangeType.DELETE


def test_disable(steps_rule):
    assert is_weakening(steps_rule, replace(steps_rule, enabled=False)) is True
    assert classify_change(steps_rule, replace(steps_rule, enabled=False)) == ChangeType.DISABLE


def test_enable_is_strengthening(steps_rule):
    off = replace(steps_rule, enabled=False)
    assert is_weakening(off, steps_rule) is False


def test_added_exception(steps_rule):
    candidate = replace(steps_rule, exceptions=("WhatsApp",))
    assert is_weakening(steps_rule, candidate) is True
    assert classify_change(steps_rule, candidate) == ChangeType.ADD_EXCEPTION


def test_removed_exception_is_strengthening(steps_rule):
    with_exc = replace(steps_rule, exceptions=("WhatsApp",))
    assert is_weakening(with_exc, steps_rule) is False


def test_duplicate_exception_does_not_count(steps_rule):
    with_exc = replace(steps_rule, exceptions=("WhatsApp",))
    assert is_weakening(with_exc, replace(steps_rule, exceptions=("WhatsApp", "WhatsApp"))) is False


def test_until_to_allow_during(steps_rule):
    candidate = replace(steps_rule, mode=RuleMode.ALLOW_DURING)
    assert is_weakening(steps_rule, candidate) is True
    assert classify_change(steps_rule, candidate) == ChangeType.WEAKEN


def test_other_mode_changes_not_classified(steps_rule):
    assert is_weakening(steps_rule, replace(steps_rule, mode=RuleMode.DURING)) is False
    during = replace(steps_rule, mode=RuleMode.DURING)
    assert is_weakening(during, replace(steps_rule, mode=RuleMode.UNTIL)) is False


def test_lower_step_target(steps_rule):
    candidate = replace(steps_rule, conditions=(StepsCondition(5000),))
    assert is_weakening(steps_rule, candidate) is True


def test_higher_step_target_is_strengthening(steps_rule):
    assert is_weakening(steps_rule, replace(steps_rule, conditions=(StepsCondition(15000),))) is False


def test_lower_workout_target(combo_rule):
    candidate = replace(combo_rule, conditions=(StepsCondition(10000), WorkoutCondition(20)))
    assert is_weakening(combo_rule, candidate) is True


def test_earlier_time_target(steps_rule):
    original = replace(steps_rule, conditions=(TimeCondition("10:00"),))
    assert is_weakening(original, replace(steps_rule, conditions=(TimeCondition("9:30"),))) is True
    assert is_weakening(original, replace(steps_rule, conditions=(TimeCondition("18:00"),))) is False


def test_fewer_conditions(combo_rule):
    candidate = replace(combo_rule, conditions=(StepsCondition(10000),))
    assert is_weakening(combo_rule, candidate) is True


def test_more_conditions_is_strengthening(steps_rule):
    candidate = replace(steps_rule, conditions=(StepsCondition(10000), WorkoutCondition(10)))
    assert is_weakening(steps_rule, candidate) is False


def test_targets_compared_by_kind_not_position(combo_rule):
    reordered = replace(combo_rule, conditions=(WorkoutCondition(30), StepsCondition(10000)))
    assert is_weakening(combo_rule, reordered) is False

    reordered_and_lowered = replace(combo_rule, conditions=(WorkoutCondition(30), StepsCondition(5000)))
    assert is_weakening(combo_rule, reordered_and_lowered) is True


def test_strictest_instance_of_a_kind_counts(steps_rule):
    original = replace(steps_rule, conditions=(StepsCondition(3000), StepsCondition(10000)))
    same_effect = replace(steps_rule, conditions=(StepsCondition(10000), StepsCondition(2000)))
    lowered = replace(steps_rule, conditions=(StepsCondition(3000), StepsCondition(8000)))
    assert is_weakening(original, same_effect) is False
    assert is_weakening(original, lowered) is True


def test_swapping_condition_kind_not_classified(steps_rule):
    candidate = replace(steps_rule, conditions=(ScheduleCondition.weekends(),))
    assert is_weakening(steps_rule, candidate) is False
    candidate = replace(steps_rule, conditions=(TimeRangeCondition("01:00", "02:00"),))
    assert is_weakening(steps_rule, candidate) is False


def test_changing_items_not_classified(steps_rule):
    assert is_weakening(steps_rule, replace(steps_rule, items=("Netflix",))) is False


def test_classification_precedence(steps_rule):
    candidate = replace(steps_rule, enabled=False, exceptions=("WhatsApp",),
                        conditions=(StepsCondition(1),))
    assert classify_change(steps_rule, candidate) == ChangeType.DISABLE


def test_pending_change_timing(steps_rule, t0):
    entry = PendingChange(id="p1", rule_id="r1", change_type=ChangeType.DELETE,
                          original_rule=steps_rule, new_rule=None, requested_at=t0)

    assert entry.effective_at == t0 + timedelta(hours=1)
    assert entry.is_ready(t0 + timedelta(minutes=59)) is False
    assert entry.is_ready(t0 + timedelta(hours=1)) is True
    assert entry.time_remaining_text(t0) == "1h 0m remaining"
    assert entry.time_remaining_text(t0 + timedelta(minutes=35)) == "25m remaining"
    assert entry.time_remaining_text(t0 + timedelta(hours=2)) == "Ready"
    assert entry.time_remaining(t0 + timedelta(hours=2)) == timedelta(0)


def test_pending_change_describe(steps_rule, t0):
    entry = PendingChange(id="p1", rule_id="r1", change_type=ChangeType.ADD_EXCEPTION,
                          original_rule=steps_rule, new_rule=steps_rule, requested_at=t0)
    assert entry.describe() == "Add exception to: NO Netflix, YouTube UNTIL 10,000 steps"


def test_pending_change_round_trip(steps_rule, t0):
    entry = PendingChange(id="p1", rule_id="r1", change_type=ChangeType.WEAKEN,
                          original_rule=steps_rule,
                          new_rule=replace(steps_rule, conditions=(StepsCondition(5000),)),
                          requested_at=t0, delay=timedelta(minutes=90))
    data = entry.to_dict()

    assert data["delay_seconds"] == 5400
    assert data["change_type"] == "weaken"
    assert PendingChange.from_dict(data) == entry


def test_pending_delete_round_trip(steps_rule, t0):
    entry = PendingChange(id="p2", rule_id="r1", change_type=ChangeType.DELETE,
                          original_rule=steps_rule, new_rule=None, requested_at=t0)
    data = entry.to_dict()
    assert data["new_rule"] is None
    assert PendingChange.from_dict(data) == entry


def test_pending_unknown_change_type(steps_rule, t0):
    with pytest.raises(RuleDecodeError):
        PendingChange.from_dict({"id": "p", "rule_id": "r1", "change_type": "loosen",
                                 "requested_at": t0.isoformat()})


@pytest.mark.parametrize("delay", ["3600", -60, True, [3600], float("nan")])
def test_pending_invalid_delay_rejected(steps_rule, t0, delay):
    data = PendingChange(id="p3", rule_id="r1", change_type=ChangeType.DELETE,
                         original_rule=steps_rule, new_rule=None, requested_at=t0).to_dict()
    data["delay_seconds"] = delay
    with pytest.raises(RuleDecodeError):
        PendingChange.from_dict(data)


def test_pending_missing_delay_uses_default(steps_rule, t0):
    data = PendingChange(id="p3", rule_id="r1", change_type=ChangeType.DELETE,
                         original_rule=steps_rule, new_rule=None, requested_at=t0,
                         delay=timedelta(minutes=5)).to_dict()
    del data["delay_seconds"]
    assert PendingChange.from_dict(data).delay == timedelta(hours=1)
    data["delay_seconds"] = 0
    assert PendingChange.from_dict(data).is_ready(t0)
