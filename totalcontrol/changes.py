"""
TotalControl - Change Classifier

Any edit that makes a rule easier to get around is "weakening" and has to sit
out a cool-down before it takes effect. Everything else applies immediately.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional, Type

from totalcontrol.errors import RuleDecodeError
from totalcontrol.models import (
    Condition, Rule, RuleMode, StepsCondition, TimeCondition, WorkoutCondition,
)

DEFAULT_DELAY = timedelta(hours=1)


class ChangeType(Enum):
    DELETE = "delete"                 # Deleting a rule
    DISABLE = "disable"               # Disabling a rule
    WEAKEN = "weaken"                 # Lower targets, relaxed mode, fewer conditions
    ADD_EXCEPTION = "addException"    # Adding an always-allowed item


def _strictest(conditions: Iterable[Condition], kind: Type, value: Callable) -> Optional[int]:
    # Under AND the highest target of a kind is the one that has to be met
    values = [value(c) for c in conditions if isinstance(c, kind)]
    return max(values) if values else None


# (condition class, comparable value) - a lower value at the candidate is weaker
_TARGETS = [
    (StepsCondition, lambda c: c.target),
    (WorkoutCondition, lambda c: c.minutes),
    (TimeCondition, lambda c: c.minutes),
]


def lowered_targets(original: Rule, candidate: Rule) -> bool:
    """True if a step, workout or time target present in both rules went down"""
    for kind, value in _TARGETS:
        before = _strictest(original.conditions, kind, value)
        after = _strictest(candidate.conditions, kind, value)
        if before is not None and after is not None and after < before:
            return True
    return False


def is_weakening(original: Optional[Rule], candidate: Optional[Rule]) -> bool:
    """Check if a change weakens protection (requires delay)"""
    if original is None:
        return False  # New rule = strengthening
    if candidate is None:
        return True   # Delete = weakening

    if original.enabled and not candidate.enabled:
        return True
    if len(set(candidate.exceptions)) > len(set(original.exceptions)):
        return True
    if original.mode == RuleMode.UNTIL and candidate.mode == RuleMode.ALLOW_DURING:
        return True
    if lowered_targets(original, candidate):
        return True
    if len(candidate.conditions) < len(original.conditions):
        return True
    return False


def classify_change(original: Optional[Rule], candidate: Optional[Rule]) -> Optional[ChangeType]:
    """The kind of weakening, or None when the change can apply right away"""
    if not is_weakening(original, candidate):
        return None
    if candidate is None:
        return ChangeType.DELETE
    if original.enabled and not candidate.enabled:
        return ChangeType.DISABLE
    if len(set(candidate.exceptions)) > len(set(original.exceptions)):
        return ChangeType.ADD_EXCEPTION
    return ChangeType.WEAKEN


@dataclass(frozen=True)
class PendingChange:
    """A weakening edit waiting out its delay"""
    id: str
    rule_id: str
    change_type: ChangeType
    original_rule: Optional[Rule]
    new_rule: Optional[Rule]  # None for delete
    requested_at: datetime = field(default_factory=datetime.now)
    delay: timedelta = DEFAULT_DELAY

    @property
    def effective_at(self) -> datetime:
        return self.requested_at + self.delay

    def is_ready(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) >= self.effective_at

    def time_remaining(self, now: Optional[datetime] = None) -> timedelta:
        remaining = self.effective_at - (now or datetime.now())
        return max(remaining, timedelta(0))

    def time_remaining_text(self, now: Optional[datetime] = None) -> str:
        mins = int(self.time_remaining(now).total_seconds() // 60)
        if mins < 1:
            return "Ready"
        if mins < 60:
            return f"{mins}m remaining"
        return f"{mins // 60}h {mins % 60}m remaining"

    def describe(self) -> str:
        target = self.original_rule.describe() if self.original_rule else self.rule_id
        if self.change_type == ChangeType.DELETE:
            return f"Delete rule: {target}"
        elif self.change_type == ChangeType.DISABLE:
            return f"Disable rule: {target}"
        elif self.change_type == ChangeType.ADD_EXCEPTION:
            return f"Add exception to: {target}"
        return f"Modify rule: {target}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "change_type": self.change_type.value,
            "original_rule": self.original_rule.to_dict() if self.original_rule else None,
            "new_rule": self.new_rule.to_dict() if self.new_rule else None,
            "requested_at": self.requested_at.isoformat(),
            "delay_seconds": int(self.delay.total_seconds()),
        }

    @staticmethod
    def from_dict(d: dict) -> 'PendingChange':
        if not isinstance(d, dict):
            raise RuleDecodeError(f"Pending change record is not an object: {d!r}")
        try:
            change_type = ChangeType(d["change_type"])
        except (KeyError, ValueError):
            raise RuleDecodeError(f"Unknown change type in pending change {d.get('id')!r}") from None
        try:
            pending_id, rule_id = str(d["id"]), str(d["rule_id"])
        except KeyError as e:
            raise RuleDecodeError(f"Pending change missing {e.args[0]!r}") from None

        try:
            requested_at = datetime.fromisoformat(d["requested_at"])
        except (KeyError, TypeError, ValueError):
            # Restarting the cool-down is the safe direction
            requested_at = datetime.now()

        delay_seconds = d.get("delay_seconds")
        if delay_seconds is None:
            delay_seconds = DEFAULT_DELAY.total_seconds()
        elif isinstance(delay_seconds, bool) or not isinstance(delay_seconds, (int, float)) \
                or not delay_seconds >= 0:
            raise RuleDecodeError(
                f"Invalid delay_seconds {delay_seconds!r} in pending change {pending_id!r}")
        try:
            delay = timedelta(seconds=delay_seconds)
        except OverflowError:
            raise RuleDecodeError(f"delay_seconds out of range in pending change {pending_id!r}") from None

        original = d.get("original_rule")
        new = d.get("new_rule")
        return PendingChange(
            id=pending_id,
            rule_id=rule_id,
            change_type=change_type,
            original_rule=Rule.from_dict(original) if original else None,
            new_rule=Rule.from_dict(new) if new else None,
            requested_at=requested_at,
            delay=delay,
        )
