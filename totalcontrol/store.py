"""
TotalControl - Rule Store

The single authoritative rule collection, persisted to a JSON file.

put() and remove() are the raw writes. Callers editing rules go through
PendingChangeLedger so weakening edits get their delay; the ledger shares
this store's lock so rules and pending changes have one writer at a time.
"""
import json
import os
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from loguru import logger

from totalcontrol.errors import RuleDecodeError, RuleNotFound
from totalcontrol.evaluator import RuleDecision, blocked_items, evaluate_rules
from totalcontrol.models import ProgressSnapshot, Rule


def write_json(filepath: str, data: dict):
    """Write via a temp file so a crash never leaves half a rules file"""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp = f"{filepath}.tmp"
    with open(tmp, 'w') as f:
        json.dump(data, f, indent=2)
    os.replace(tmp, filepath)


def read_json(filepath: str) -> Optional[dict]:
    try:
        with open(filepath, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        raise RuleDecodeError(f"{filepath} is not valid JSON: {e}") from e


class RuleStore:
    """Persist rules to JSON file. filepath=None keeps everything in memory."""

    def __init__(self, filepath: Optional[str] = None):
        self.filepath = filepath
        self.lock = threading.RLock()
        self._rules: Dict[str, Rule] = {}
        self._undecodable: List[dict] = []
        self.load()

    def load(self):
        """Load rules one record at a time.

        A record that cannot be decoded is logged and kept as raw JSON so it
        is written back unchanged on the next save; the other rules stay live.
        Records whose stored form differs from the decoded one (legacy keys,
        a missing created_at) are rewritten once so their values stay fixed.
        """
        if not self.filepath:
            return
        data = read_json(self.filepath)
        if data is None:
            logger.info(f"No rules file at {self.filepath}, starting empty")
            return
        rules, undecodable, rewrite = [], [], False
        for raw in data.get("rules", []):
            try:
                rule = Rule.from_dict(raw)
            except RuleDecodeError as e:
                logger.error(f"Skipping undecodable rule in {self.filepath}: {e}")
                undecodable.append(raw)
                continue
            rules.append(rule)
            rewrite = rewrite or rule.to_dict() != raw
        with self.lock:
            self._rules = {r.id: r for r in rules}
            self._undecodable = undecodable
            if rewrite:
                self.save()
        logger.info(f"Loaded {len(rules)} rules from {self.filepath}")

    def save(self):
        if not self.filepath:
            return
        with self.lock:
            data = {"rules": [r.to_dict() for r in self._rules.values()] + self._undecodable}
        write_json(self.filepath, data)

    @property
    def undecodable(self) -> List[dict]:
        """Raw records that failed to decode on load"""
        with self.lock:
            return list(self._undecodable)

    @property
    def rules(self) -> List[Rule]:
        return list(self.snapshot())

    def snapshot(self) -> Tuple[Rule, ...]:
        """Consistent view of the rule set for one evaluation pass"""
        with self.lock:
            return tuple(self._rules.values())

    def get(self, rule_id: str) -> Optional[Rule]:
        with self.lock:
            return self._rules.get(rule_id)

    def require(self, rule_id: str) -> Rule:
        rule = self.get(rule_id)
        if rule is None:
            raise RuleNotFound(rule_id)
        return rule

    def __contains__(self, rule_id: str) -> bool:
        with self.lock:
            return rule_id in self._rules

    def __len__(self) -> int:
        with self.lock:
            return len(self._rules)

    def put(self, rule: Rule):
        """Insert or replace (keeping position) and persist"""
        with self.lock:
            self._rules[rule.id] = rule
            # a rule written under the same id supersedes an undecodable record
            self._undecodable = [r for r in self._undecodable
                                 if not (isinstance(r, dict) and r.get("id") == rule.id)]
            self.save()
        logger.debug(f"Stored rule {rule.id}: {rule.describe()}")

    def remove(self, rule_id: str) -> Optional[Rule]:
        with self.lock:
            rule = self._rules.pop(rule_id, None)
            if rule is not None:
                self.save()
        return rule

    def evaluate(self, progress: ProgressSnapshot,
                 now: Optional[datetime] = None) -> Dict[str, RuleDecision]:
        return evaluate_rules(self.snapshot(), progress, now)

    def get_blocked_items(self, progress: ProgressSnapshot,
                          now: Optional[datetime] = None) -> List[str]:
        """Get all currently blocked items based on progress"""
        rules = self.snapshot()
        return blocked_items(rules, evaluate_rules(rules, progress, now))
