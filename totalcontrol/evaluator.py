"""
TotalControl - Rule Evaluator

Stateless: every pass recomputes each rule from its conditions, the progress
snapshot and the clock. Nothing is latched between passes.
"""
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional

from totalcontrol.conditions import check_condition
from totalcontrol.models import ProgressSnapshot, Rule, RuleMode


class RuleDecision(NamedTuple):
    blocked: bool
    status: str


def check_all_conditions(rule: Rule, snapshot: ProgressSnapshot,
                         now: Optional[datetime] = None) -> tuple[bool, List[str]]:
    """Returns (all_met, statuses) with AND logic over every condition"""
    now = now or datetime.now()
    results = [check_condition(c, snapshot, now) for c in rule.conditions]
    return all(met for met, _ in results), [status for _, status in results]


def _blocked_for(mode: RuleMode, all_met: bool) -> bool:
    if mode == RuleMode.UNTIL:
        return not all_met
    elif mode == RuleMode.DURING:
        return all_met
    elif mode == RuleMode.ALLOW_DURING:
        return not all_met
    raise ValueError(f"Unknown rule mode {mode!r}")


def is_blocked(rule: Rule, snapshot: ProgressSnapshot, now: Optional[datetime] = None) -> bool:
    all_met, _ = check_all_conditions(rule, snapshot, now)
    return _blocked_for(rule.mode, all_met)


def rule_status(rule: Rule, snapshot: ProgressSnapshot,
                now: Optional[datetime] = None) -> RuleDecision:
    """Blocked state plus the status line shown next to the rule"""
    all_met, statuses = check_all_conditions(rule, snapshot, now)
    blocked = _blocked_for(rule.mode, all_met)
    cond_status = " + ".join(statuses)

    if rule.mode == RuleMode.UNTIL:
        status = f"Blocked - {cond_status}" if blocked else "Unlocked"
    elif rule.mode == RuleMode.DURING:
        status = f"Blocked during {cond_status}" if blocked else "Allowed"
    else:
        desc = " + ".join(c.describe() for c in rule.conditions)
        status = f"Only during {desc}" if blocked else "Allowed now"
    return RuleDecision(blocked, status)


def evaluate_rules(rules: Iterable[Rule], snapshot: ProgressSnapshot,
                   now: Optional[datetime] = None) -> Dict[str, RuleDecision]:
    """Decision for every enabled rule, keyed by rule id"""
    now = now or datetime.now()
    return {rule.id: rule_status(rule, snapshot, now) for rule in rules if rule.enabled}


def blocked_items(rules: Iterable[Rule], decisions: Dict[str, RuleDecision]) -> List[str]:
    """Flatten the items of blocked rules, minus each rule's exceptions.

    This is what an enforcement layer (hosts file, overlay, shield) consumes.
    """
    blocked = set()
    for rule in rules:
        decision = decisions.get(rule.id)
        if decision is None or not decision.blocked:
            continue
        allowed = set(rule.exceptions)
        blocked.update(item for item in rule.items if item not in allowed)
    return sorted(blocked)
