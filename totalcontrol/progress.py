"""
TotalControl - Progress Tracker

Holds today's step/workout counters and the last known position as pushed in
by the health and location collaborators, and hands out immutable
ProgressSnapshot objects for evaluation. Counters reset when the date changes.
"""
import threading
from datetime import date, datetime
from typing import Callable, List, Optional

from loguru import logger

from totalcontrol.models import GeoPoint, ProgressSnapshot
from totalcontrol.store import read_json, write_json


class ProgressTracker:
    def __init__(self, cache_file: Optional[str] = None):
        self.cache_file = cache_file
        self.day = date.today()
        self.steps_today = 0
        self.workout_minutes_today = 0
        self.workout_active = False
        self.current_location: Optional[GeoPoint] = None
        self._callbacks: List[Callable[[ProgressSnapshot], None]] = []
        self._lock = threading.Lock()
        self.load_cache()

    def load_cache(self):
        """Load cached counters if they are from today"""
        if not self.cache_file:
            return
        data = read_json(self.cache_file)
        if not data or data.get('date') != str(date.today()):
            return
        self.steps_today = int(data.get('steps', 0))
        self.workout_minutes_today = int(data.get('workout_mins', 0))

    def save_cache(self):
        if not self.cache_file:
            return
        write_json(self.cache_file, {
            'date': str(self.day),
            'steps': self.steps_today,
            'workout_mins': self.workout_minutes_today,
            'last_update': datetime.now().isoformat(),
        })

    def _roll_over(self):
        today = date.today()
        if today != self.day:
            logger.info(f"New day {today}, resetting daily counters")
            self.day = today
            self.steps_today = 0
            self.workout_minutes_today = 0

    def add_callback(self, callback: Callable[[ProgressSnapshot], None]):
        """Add callback to be called when progress updates"""
        self._callbacks.append(callback)

    def notify(self):
        snap = self.snapshot()
        for cb in self._callbacks:
            try:
                cb(snap)
            except Exception:
                logger.exception(f"Progress callback {cb!r} failed")

    def _update(self, apply: Callable[[], None]):
        with self._lock:
            self._roll_over()
            apply()
            self.save_cache()
        self.notify()

    def set_daily_totals(self, steps: int, workout_minutes: int):
        """Replace today's totals with the figures reported by the health source"""
        def apply():
            self.steps_today = max(0, steps)
            self.workout_minutes_today = max(0, workout_minutes)
        self._update(apply)

    def add_steps(self, steps: int):
        """Manually add steps"""
        def apply():
            self.steps_today += max(0, steps)
        self._update(apply)

    def add_workout(self, minutes: int):
        """Manually add workout minutes"""
        def apply():
            self.workout_minutes_today += max(0, minutes)
        self._update(apply)

    def set_workout_active(self, active: bool):
        def apply():
            self.workout_active = active
        self._update(apply)

    def set_location(self, location: Optional[GeoPoint]):
        def apply():
            self.current_location = location
        self._update(apply)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            self._roll_over()
            return ProgressSnapshot(
                steps_today=self.steps_today,
                workout_minutes_today=self.workout_minutes_today,
                current_location=self.current_location,
                workout_active=self.workout_active,
            )
