"""Shared fixtures for the rule engine tests."""

from datetime import datetime

import pytest

from totalcontrol.ledger import PendingChangeLedger
from totalcontrol.models import ProgressSnapshot, Rule, RuleMode, StepsCondition, WorkoutCondition
from totalcontrol.store import RuleStore

# Monday
T0 = datetime(2026, 10, 19, 8, 0)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def store() -> RuleStore:
    return RuleStore()


@pytest.fixture
def ledger(store: RuleStore) -> PendingChangeLedger:
    return PendingChangeLedger(store)


@pytest.fixture
def steps_rule() -> Rule:
    return Rule(
        id="r1",
        items=("Netflix", "YouTube"),
        conditions=(StepsCondition(10000),),
        mode=RuleMode.UNTIL,
        created_at=T0,
    )


@pytest.fixture
def combo_rule() -> Rule:
    return Rule(
        id="r2",
        items=("Reddit",),
        conditions=(StepsCondition(10000), WorkoutCondition(30)),
        mode=RuleMode.UNTIL,
        created_at=T0,
    )


@pytest.fixture
def idle() -> ProgressSnapshot:
    return ProgressSnapshot()
