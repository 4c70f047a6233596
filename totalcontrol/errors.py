"""
TotalControl - Errors
"""


class TotalControlError(Exception):
    """Base class for everything the core raises"""


class RuleDecodeError(TotalControlError, ValueError):
    """A persisted rule, condition or pending change could not be decoded"""


class RuleNotFound(TotalControlError, KeyError):
    def __init__(self, rule_id: str):
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"No rule with id {self.rule_id!r}"


class DuplicateRuleError(TotalControlError):
    def __init__(self, rule_id: str):
        super().__init__(f"Rule {rule_id!r} already exists")
        self.rule_id = rule_id


class StaleRuleError(TotalControlError):
    """The edit was based on a rule that no longer matches the live one"""

    def __init__(self, rule_id: str):
        super().__init__(f"Rule {rule_id!r} changed since the edit was started")
        self.rule_id = rule_id


class PendingChangeNotFound(TotalControlError, KeyError):
    def __init__(self, pending_id: str):
        super().__init__(pending_id)
        self.pending_id = pending_id

    def __str__(self) -> str:
        return f"No pending change with id {self.pending_id!r}"
