"""
TotalControl - Engine

Ties the rule store, the pending-change ledger and the progress tracker
together. Each tick sweeps ready pending changes, evaluates every enabled rule
against a fresh progress snapshot and hands the decisions to whatever does the
actual blocking.
"""
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from loguru import logger

from totalcontrol.config import Settings
from totalcontrol.evaluator import RuleDecision, blocked_items, evaluate_rules
from totalcontrol.ledger import PendingChangeLedger
from totalcontrol.progress import ProgressTracker
from totalcontrol.store import RuleStore

DecisionCallback = Callable[[Dict[str, RuleDecision], List[str]], None]


class TotalControl:
    def __init__(self, store: RuleStore, ledger: PendingChangeLedger,
                 progress: Optional[ProgressTracker] = None):
        self.store = store
        self.ledger = ledger
        self.progress = progress or ProgressTracker()
        self.decisions: Dict[str, RuleDecision] = {}
        self.blocked: List[str] = []
        self._callbacks: List[DecisionCallback] = []
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> 'TotalControl':
        store = RuleStore(settings.path_for("rules"))
        ledger = PendingChangeLedger(store, settings.path_for("pending"),
                                     delay=settings.weakening_delay)
        progress = ProgressTracker(settings.path_for("progress"))
        return cls(store, ledger, progress)

    def add_callback(self, callback: DecisionCallback):
        """callback(decisions, blocked_items) after every tick"""
        self._callbacks.append(callback)

    def tick(self, now: Optional[datetime] = None) -> Dict[str, RuleDecision]:
        now = now or datetime.now()
        applied = self.ledger.sweep(now)
        if applied:
            logger.info(f"Applied {len(applied)} pending changes")

        rules = self.store.snapshot()
        decisions = evaluate_rules(rules, self.progress.snapshot(), now)
        blocked = blocked_items(rules, decisions)
        if blocked != self.blocked:
            logger.info(f"Blocking {len(blocked)} items" if blocked else "All conditions met")
        self.decisions, self.blocked = decisions, blocked

        for cb in self._callbacks:
            try:
                cb(decisions, blocked)
            except Exception:
                logger.exception(f"Decision callback {cb!r} failed")
        return decisions

    def start(self, interval_seconds: int = 60):
        """Start background tick loop"""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()

        def loop():
            while not self._stop.is_set():
                try:
                    self.tick()
                except Exception:
                    logger.exception("Tick failed")
                self._stop.wait(interval_seconds)

        self._thread = threading.Thread(target=loop, name="totalcontrol-tick", daemon=True)
        self._thread.start()
        logger.info(f"Engine started, ticking every {interval_seconds}s")

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
