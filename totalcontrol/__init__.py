"""
TotalControl - "NO X UNTIL Y" rule engine with delayed weakening edits
"""
from totalcontrol.changes import ChangeType, PendingChange, classify_change, is_weakening
from totalcontrol.conditions import check_condition, haversine_meters
from totalcontrol.evaluator import RuleDecision, evaluate_rules, is_blocked, rule_status
from totalcontrol.ledger import PendingChangeLedger
from totalcontrol.models import (
    BlockCategory, CATEGORY_PRESETS, ConditionType, GeoPoint, Location,
    LocationCondition, PasswordCondition,
    ProgressSnapshot, Rule, RuleMode, ScheduleCondition, StepsCondition,
    TimeCondition, TimeRangeCondition, TomorrowCondition, WorkoutCondition,
)
from totalcontrol.store import RuleStore

__version__ = "0.2.0"
