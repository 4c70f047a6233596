"""
TotalControl - Condition Evaluator

check_condition(condition, snapshot, now) -> (is_met, progress_string)
"""
from datetime import datetime
from math import asin, cos, radians, sin, sqrt
from typing import Optional

from totalcontrol.models import (
    Condition, GeoPoint, Location, LocationCondition, PasswordCondition,
    ProgressSnapshot, ScheduleCondition, StepsCondition, TimeCondition,
    TimeRangeCondition, TomorrowCondition, WorkoutCondition,
)

EARTH_RADIUS_METERS = 6_371_008.8  # IUGG mean radius


def haversine_meters(a_lat: float, a_lng: float, b_lat: float, b_lng: float) -> float:
    """Great-circle distance between two WGS84 points in meters"""
    d_lat = radians(b_lat - a_lat)
    d_lng = radians(b_lng - a_lng)
    h = sin(d_lat / 2) ** 2 + cos(radians(a_lat)) * cos(radians(b_lat)) * sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * asin(min(1.0, sqrt(h)))


def distance_to(point: GeoPoint, location: Location) -> float:
    return haversine_meters(point.latitude, point.longitude, location.latitude, location.longitude)


def _remaining_text(minutes: int) -> str:
    if minutes > 60:
        return f"{minutes // 60}h {minutes % 60}m left"
    return f"{minutes}m left"


def check_condition(condition: Condition, snapshot: ProgressSnapshot,
                    now: Optional[datetime] = None) -> tuple[bool, str]:
    """Returns (is_met, progress_string)"""
    now = now or datetime.now()

    if isinstance(condition, StepsCondition):
        met = snapshot.steps_today >= condition.target
        if condition.target:
            pct = max(0, min(100, int(snapshot.steps_today / condition.target * 100)))
        else:
            pct = 100
        return met, f"{snapshot.steps_today:,}/{condition.target:,} ({pct}%)"

    elif isinstance(condition, TimeCondition):
        # One-shot for the current day; the day-boundary reset is the caller's job
        target = now.replace(hour=condition.minutes // 60, minute=condition.minutes % 60,
                             second=0, microsecond=0)
        if now >= target:
            return True, "Time reached"
        mins = int((target - now).total_seconds() // 60)
        return False, _remaining_text(mins)

    elif isinstance(condition, TimeRangeCondition):
        active = condition.contains(now.hour * 60 + now.minute)
        desc = condition.describe()
        return active, f"In range ({desc})" if active else f"Outside range ({desc})"

    elif isinstance(condition, WorkoutCondition):
        met = snapshot.workout_minutes_today >= condition.minutes
        return met, f"{snapshot.workout_minutes_today}/{condition.minutes}min"

    elif isinstance(condition, LocationCondition):
        if snapshot.current_location is None:
            return False, "Location unknown"
        dist = distance_to(snapshot.current_location, condition.location)
        met = dist <= condition.location.radius_meters
        return met, f"{'At' if met else 'Not at'} {condition.location.name}"

    elif isinstance(condition, TomorrowCondition):
        # Never met until the date changes
        return False, "Blocked until tomorrow"

    elif isinstance(condition, PasswordCondition):
        return False, "Enter password to unlock"

    elif isinstance(condition, ScheduleCondition):
        active = now.isoweekday() in condition.days
        desc = condition.describe()
        return active, f"Active ({desc})" if active else f"Inactive ({desc})"

    raise TypeError(f"Unsupported condition {condition!r}")
