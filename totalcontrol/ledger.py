"""
TotalControl - Pending-Change Ledger

Every rule edit goes through propose(). Strengthening edits are written to
the rule store at once. Weakening edits wait here until their delay has passed
and sweep() applies them, or until the user cancels them.

Policy: one pending entry per rule. A second weakening proposal for the same
rule replaces the first and restarts the delay. A strengthening edit to a rule
with a pending entry applies immediately and discards that entry, since the
entry was built against a rule that no longer exists.
"""
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from loguru import logger

from totalcontrol.changes import DEFAULT_DELAY, PendingChange, classify_change
from totalcontrol.errors import (
    DuplicateRuleError, PendingChangeNotFound, RuleDecodeError, StaleRuleError,
)
from totalcontrol.models import Rule
from totalcontrol.store import RuleStore, read_json, write_json


def same_rule(a: Rule, b: Rule) -> bool:
    """Equal in everything that affects blocking; created_at is bookkeeping"""
    return replace(a, created_at=b.created_at) == b


class PendingChangeLedger:
    def __init__(self, store: RuleStore, filepath: Optional[str] = None,
                 delay: timedelta = DEFAULT_DELAY):
        self.store = store
        self.filepath = filepath
        self.delay = delay
        self._pending: Dict[str, PendingChange] = {}
        self._undecodable: List[dict] = []
        self.load()

    def load(self):
        """Load pending changes one record at a time, like RuleStore.load"""
        if not self.filepath:
            return
        data = read_json(self.filepath)
        if data is None:
            return
        entries, undecodable, rewrite = [], [], False
        for raw in data.get("pending", []):
            try:
                entry = PendingChange.from_dict(raw)
            except RuleDecodeError as e:
                logger.error(f"Skipping undecodable pending change in {self.filepath}: {e}")
                undecodable.append(raw)
                continue
            entries.append(entry)
            rewrite = rewrite or entry.to_dict() != raw
        with self.store.lock:
            self._pending = {p.id: p for p in entries}
            self._undecodable = undecodable
            if rewrite:
                self.save()
        logger.info(f"Loaded {len(entries)} pending changes from {self.filepath}")

    def save(self):
        if not self.filepath:
            return
        with self.store.lock:
            data = {"pending": [p.to_dict() for p in self._pending.values()] + self._undecodable}
        write_json(self.filepath, data)

    @property
    def pending(self) -> List[PendingChange]:
        with self.store.lock:
            return sorted(self._pending.values(), key=lambda p: p.effective_at)

    def get(self, pending_id: str) -> Optional[PendingChange]:
        with self.store.lock:
            return self._pending.get(pending_id)

    def for_rule(self, rule_id: str) -> Optional[PendingChange]:
        with self.store.lock:
            for entry in self._pending.values():
                if entry.rule_id == rule_id:
                    return entry
        return None

    def __len__(self) -> int:
        with self.store.lock:
            return len(self._pending)

    # ═══════════════════════════════════════════════════════════
    # TRANSITIONS
    # ═══════════════════════════════════════════════════════════

    def propose(self, original: Optional[Rule], candidate: Optional[Rule],
                now: Optional[datetime] = None) -> Optional[PendingChange]:
        """Apply a strengthening edit now, or queue a weakening one.

        original is the live rule the edit started from (None for a new rule),
        candidate the edited rule (None to delete). Returns the queued entry,
        or None when the edit was applied immediately.
        """
        if original is None and candidate is None:
            raise ValueError("Nothing to change")
        if original is not None and candidate is not None and candidate.id != original.id:
            raise ValueError(f"Rule id is immutable ({original.id!r} -> {candidate.id!r})")
        now = now or datetime.now()
        rule_id = original.id if original is not None else candidate.id

        with self.store.lock:
            live = self.store.get(rule_id)
            if original is None:
                if live is not None:
                    raise DuplicateRuleError(rule_id)
            elif live != original:
                raise StaleRuleError(rule_id)

            if candidate == original:
                return None

            change_type = classify_change(original, candidate)
            existing = self.for_rule(rule_id)
            if existing is not None:
                del self._pending[existing.id]

            if change_type is None:
                self.store.put(candidate)
                if existing is not None:
                    logger.info(f"Discarded pending change {existing.id} for rule {rule_id}, "
                                f"rule was strengthened")
                    self.save()
                logger.info(f"Applied rule {rule_id}: {candidate.describe()}")
                return None

            entry = PendingChange(
                id=str(uuid.uuid4())[:8],
                rule_id=rule_id,
                change_type=change_type,
                original_rule=original,
                new_rule=candidate,
                requested_at=now,
                delay=self.delay,
            )
            self._pending[entry.id] = entry
            self.save()

        if existing is not None:
            logger.info(f"Pending change {entry.id} replaces {existing.id} for rule {rule_id}")
        logger.info(f"Queued {entry.change_type.value} for rule {rule_id}, "
                    f"effective at {entry.effective_at.isoformat(timespec='seconds')}")
        return entry

    def cancel(self, pending_id: str) -> PendingChange:
        """Drop a pending change; the live rule stays as it was"""
        with self.store.lock:
            entry = self._pending.pop(pending_id, None)
            if entry is None:
                raise PendingChangeNotFound(pending_id)
            self.save()
        logger.info(f"Cancelled pending change {pending_id} for rule {entry.rule_id}")
        return entry

    def sweep(self, now: Optional[datetime] = None) -> List[PendingChange]:
        """Apply every pending change whose delay has passed.

        Safe to call on every tick. Entries whose rule has disappeared or
        changed underneath them are dropped without being applied.
        """
        now = now or datetime.now()
        applied = []
        with self.store.lock:
            ready = [p for p in self.pending if p.is_ready(now)]
            for entry in ready:
                del self._pending[entry.id]
                live = self.store.get(entry.rule_id)
                if live is None:
                    logger.warning(f"Dropping pending change {entry.id}: "
                                   f"rule {entry.rule_id} no longer exists")
                    continue
                if entry.original_rule is not None and not same_rule(live, entry.original_rule):
                    logger.warning(f"Dropping pending change {entry.id}: "
                                   f"rule {entry.rule_id} changed since it was requested")
                    continue

                if entry.new_rule is None:
                    self.store.remove(entry.rule_id)
                else:
                    self.store.put(entry.new_rule)
                applied.append(entry)
                logger.info(f"Applied pending change {entry.id}: {entry.describe()}")
            if ready:
                self.save()
        if not ready:
            logger.debug(f"Sweep at {now.isoformat(timespec='seconds')}: nothing ready")
        return applied

    # ═══════════════════════════════════════════════════════════
    # EDIT HELPERS
    # ═══════════════════════════════════════════════════════════

    def create(self, rule: Rule, now: Optional[datetime] = None) -> None:
        self.propose(None, rule, now)

    def update(self, rule: Rule, now: Optional[datetime] = None) -> Optional[PendingChange]:
        with self.store.lock:
            return self.propose(self.store.require(rule.id), rule, now)

    def delete(self, rule_id: str, now: Optional[datetime] = None) -> Optional[PendingChange]:
        with self.store.lock:
            return self.propose(self.store.require(rule_id), None, now)

    def set_enabled(self, rule_id: str, enabled: bool,
                    now: Optional[datetime] = None) -> Optional[PendingChange]:
        with self.store.lock:
            rule = self.store.require(rule_id)
            return self.propose(rule, replace(rule, enabled=enabled), now)
