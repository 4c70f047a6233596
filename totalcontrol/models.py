"""
TotalControl - Data Models
"NO X UNTIL Y" / "NO X DURING Y" / "ALLOW X DURING Y"

Every condition kind is its own frozen dataclass carrying only the fields it
needs. Rules are immutable; an edit is a new Rule built with
dataclasses.replace and sent through the pending-change ledger.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, FrozenSet, List, Optional, Tuple, Union

from totalcontrol.errors import RuleDecodeError


class RuleMode(Enum):
    UNTIL = "until"                 # NO X UNTIL Y - blocked until conditions met
    DURING = "during"               # NO X DURING Y - blocked while conditions hold
    ALLOW_DURING = "allowDuring"    # ALLOW X DURING Y - allowed only while conditions hold


class ConditionType(Enum):
    STEPS = "steps"           # UNTIL 10,000 steps
    TIME = "time"             # UNTIL 5:00 PM
    TIME_RANGE = "timeRange"  # DURING 09:00-17:00
    WORKOUT = "workout"       # UNTIL 30min workout
    LOCATION = "location"     # UNTIL at gym
    TOMORROW = "tomorrow"     # UNTIL tomorrow
    PASSWORD = "password"     # UNTIL password entered
    SCHEDULE = "schedule"     # DURING weekdays


_HHMM = re.compile(r"^(\d{1,2})(?::(\d{2}))?$")

WEEKDAY_NAMES = ["", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def parse_clock(value: str) -> int:
    """Parse "HH:MM" (or a bare hour) into minutes since midnight"""
    m = _HHMM.match(str(value).strip())
    if not m:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hour, minute = int(m.group(1)), int(m.group(2) or 0)
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _normalize_clock(value: str) -> str:
    return format_clock(parse_clock(value))


def _check_count(name: str, value: int):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")


@dataclass(frozen=True)
class Location:
    name: str               # "Gym", "Office", etc.
    latitude: float
    longitude: float
    radius_meters: int = 100  # Geofence radius

    def __post_init__(self):
        if not -90 <= self.latitude <= 90 or not -180 <= self.longitude <= 180:
            raise ValueError(f"Coordinates out of range: {self.latitude}, {self.longitude}")
        if self.radius_meters <= 0:
            raise ValueError(f"Geofence radius must be positive, got {self.radius_meters}")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lat": self.latitude,
            "lng": self.longitude,
            "radius": self.radius_meters,
        }

    @staticmethod
    def from_dict(d: dict) -> 'Location':
        return Location(d["name"], float(d["lat"]), float(d["lng"]), d.get("radius") or 100)


@dataclass(frozen=True)
class GeoPoint:
    """A device position as reported by the location collaborator"""
    latitude: float
    longitude: float


# ═══════════════════════════════════════════════════════════════
# CONDITIONS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StepsCondition:
    target: int
    type: ClassVar[ConditionType] = ConditionType.STEPS

    def __post_init__(self):
        _check_count("Step target", self.target)

    def describe(self) -> str:
        return f"{self.target:,} steps"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "steps_target": self.target}


@dataclass(frozen=True)
class TimeCondition:
    target: str  # "17:00"
    type: ClassVar[ConditionType] = ConditionType.TIME

    def __post_init__(self):
        object.__setattr__(self, "target", _normalize_clock(self.target))

    @property
    def minutes(self) -> int:
        return parse_clock(self.target)

    def describe(self) -> str:
        return self.target

    def to_dict(self) -> dict:
        return {"type": self.type.value, "time_target": self.target}


@dataclass(frozen=True)
class TimeRangeCondition:
    start: str  # "22:00"
    end: str    # "06:00" - an end at or before start wraps past midnight
    type: ClassVar[ConditionType] = ConditionType.TIME_RANGE

    def __post_init__(self):
        object.__setattr__(self, "start", _normalize_clock(self.start))
        object.__setattr__(self, "end", _normalize_clock(self.end))

    def contains(self, minute_of_day: int) -> bool:
        start, end = parse_clock(self.start), parse_clock(self.end)
        if end > start:
            return start <= minute_of_day < end
        return minute_of_day >= start or minute_of_day < end

    def describe(self) -> str:
        return f"{self.start} - {self.end}"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "time_range": {"start": self.start, "end": self.end}}


@dataclass(frozen=True)
class WorkoutCondition:
    minutes: int
    type: ClassVar[ConditionType] = ConditionType.WORKOUT

    def __post_init__(self):
        _check_count("Workout minutes", self.minutes)

    def describe(self) -> str:
        return f"{self.minutes}min workout"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "workout_minutes": self.minutes}


@dataclass(frozen=True)
class LocationCondition:
    location: Location
    type: ClassVar[ConditionType] = ConditionType.LOCATION

    def describe(self) -> str:
        return f"at {self.location.name}"

    def to_dict(self) -> dict:
        return {"type": self.type.value, "location": self.location.to_dict()}


@dataclass(frozen=True)
class TomorrowCondition:
    type: ClassVar[ConditionType] = ConditionType.TOMORROW

    def describe(self) -> str:
        return "tomorrow"

    def to_dict(self) -> dict:
        return {"type": self.type.value}


@dataclass(frozen=True)
class PasswordCondition:
    type: ClassVar[ConditionType] = ConditionType.PASSWORD

    def describe(self) -> str:
        return "password"

    def to_dict(self) -> dict:
        return {"type": self.type.value}


@dataclass(frozen=True)
class ScheduleCondition:
    days: FrozenSet[int]  # 1=Mon .. 7=Sun
    type: ClassVar[ConditionType] = ConditionType.SCHEDULE

    def __post_init__(self):
        days = frozenset(self.days)
        if not days:
            raise ValueError("Schedule needs at least one weekday")
        bad = [d for d in days if isinstance(d, bool) or d not in range(1, 8)]
        if bad:
            raise ValueError(f"Weekdays must be 1..7, got {sorted(bad)}")
        object.__setattr__(self, "days", days)

    @staticmethod
    def weekdays() -> 'ScheduleCondition':
        return ScheduleCondition(frozenset({1, 2, 3, 4, 5}))

    @staticmethod
    def weekends() -> 'ScheduleCondition':
        return ScheduleCondition(frozenset({6, 7}))

    def describe(self) -> str:
        if self.days == {1, 2, 3, 4, 5}:
            return "weekdays"
        if self.days == {6, 7}:
            return "weekends"
        return ", ".join(WEEKDAY_NAMES[d] for d in sorted(self.days))

    def to_dict(self) -> dict:
        return {"type": self.type.value, "schedule": {"days": sorted(self.days)}}


Condition = Union[
    StepsCondition, TimeCondition, TimeRangeCondition, WorkoutCondition,
    LocationCondition, TomorrowCondition, PasswordCondition, ScheduleCondition,
]


def condition_from_dict(d: dict) -> Condition:
    """Decode one condition. Unknown types and missing payloads raise RuleDecodeError.

    Numeric and time targets that are absent fall back to the app's stock
    defaults (10,000 steps, 30 minutes, 17:00), matching older saved rules.
    """
    try:
        ctype = ConditionType(d["type"])
    except (KeyError, TypeError, ValueError):
        raise RuleDecodeError(f"Unknown condition type in {d!r}") from None

    try:
        if ctype == ConditionType.STEPS:
            return StepsCondition(d.get("steps_target", 10000))
        elif ctype == ConditionType.TIME:
            return TimeCondition(d.get("time_target", "17:00"))
        elif ctype == ConditionType.TIME_RANGE:
            rng = d["time_range"]
            return TimeRangeCondition(rng["start"], rng["end"])
        elif ctype == ConditionType.WORKOUT:
            return WorkoutCondition(d.get("workout_minutes", 30))
        elif ctype == ConditionType.LOCATION:
            return LocationCondition(Location.from_dict(d["location"]))
        elif ctype == ConditionType.TOMORROW:
            return TomorrowCondition()
        elif ctype == ConditionType.PASSWORD:
            return PasswordCondition()
        elif ctype == ConditionType.SCHEDULE:
            return ScheduleCondition(frozenset(d["schedule"]["days"]))
    except (KeyError, TypeError, ValueError) as e:
        raise RuleDecodeError(f"Malformed {ctype.value} condition {d!r}: {e}") from e
    raise RuleDecodeError(f"Unhandled condition type {ctype!r}")


# ═══════════════════════════════════════════════════════════════
# CATEGORIES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BlockCategory:
    """Named preset of items, expanded into a rule's items when it is built"""
    name: str
    icon: str
    items: Tuple[str, ...]

    def describe(self) -> str:
        return f"{self.icon} {self.name}: {', '.join(self.items)}"

    @staticmethod
    def find(name: str) -> 'BlockCategory':
        """Look up a preset by name, ignoring case"""
        for category in CATEGORY_PRESETS:
            if category.name.casefold() == name.strip().casefold():
                return category
        raise KeyError(name)


CATEGORY_PRESETS: Tuple[BlockCategory, ...] = (
    BlockCategory("Social Media", "📱", (
        "Facebook", "Instagram", "Twitter", "X", "TikTok",
        "Snapchat", "LinkedIn", "Pinterest", "Reddit")),
    BlockCategory("Streaming", "📺", (
        "Netflix", "YouTube", "Hulu", "Disney+", "HBO Max",
        "Amazon Prime", "Twitch", "Spotify", "Apple TV")),
    BlockCategory("Messaging", "💬", (
        "WhatsApp", "Telegram", "Discord", "Slack",
        "Messenger", "iMessage", "Signal")),
    BlockCategory("Gaming", "🎮", (
        "Steam", "Epic Games", "Xbox", "PlayStation",
        "Nintendo", "Roblox", "Minecraft")),
    BlockCategory("News & Media", "📰", (
        "CNN", "BBC", "Fox News", "NYTimes", "Reddit News",
        "Google News", "Apple News")),
    BlockCategory("Dating", "❤️", (
        "Tinder", "Bumble", "Hinge", "OkCupid", "Match")),
)


# ═══════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Rule:
    id: str
    items: Tuple[str, ...]  # ("Netflix", "YouTube", "netflix.com")
    conditions: Tuple[Condition, ...] = (TomorrowCondition(),)  # AND-combined
    mode: RuleMode = RuleMode.UNTIL
    exceptions: Tuple[str, ...] = ()  # always allowed, whatever the rule state
    enabled: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "exceptions", tuple(self.exceptions))
        object.__setattr__(self, "conditions", tuple(self.conditions) or (TomorrowCondition(),))
        if not self.items:
            raise ValueError(f"Rule {self.id!r} must block at least one item")
        if not isinstance(self.mode, RuleMode):
            raise ValueError(f"Rule {self.id!r} has invalid mode {self.mode!r}")

    @property
    def display_items(self) -> List[str]:
        """Items in order with duplicates collapsed"""
        return list(dict.fromkeys(self.items))

    @property
    def mode_label(self) -> str:
        if self.mode == RuleMode.UNTIL:
            return "UNTIL"
        elif self.mode == RuleMode.DURING:
            return "BLOCK DURING"
        return "ONLY DURING"

    def describe(self) -> str:
        """NO X UNTIL Y format"""
        items = _short_list(self.display_items, 3)
        conds = " + ".join(c.describe() for c in self.conditions)
        single_range = (
            len(self.conditions) == 1 and isinstance(self.conditions[0], TimeRangeCondition)
        )

        if self.mode == RuleMode.UNTIL:
            text = f"NO {items} UNTIL {conds}"
        else:
            verb = "NO" if self.mode == RuleMode.DURING else "ALLOW"
            if single_range:
                rng = self.conditions[0]
                text = f"{verb} {items} BETWEEN {rng.start} AND {rng.end}"
            else:
                text = f"{verb} {items} DURING {conds}"

        if self.exceptions:
            text += f" UNLESS {_short_list(list(dict.fromkeys(self.exceptions)), 2)}"
        return text

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": list(self.items),
            "mode": self.mode.value,
            "conditions": [c.to_dict() for c in self.conditions],
            "exceptions": list(self.exceptions),
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
        }

    @staticmethod
    def from_dict(d: dict) -> 'Rule':
        """Decode a persisted rule, accepting the legacy single-condition shape"""
        if not isinstance(d, dict) or "id" not in d:
            raise RuleDecodeError(f"Rule record without id: {d!r}")

        if d.get("conditions") is not None:
            conditions = [condition_from_dict(c) for c in d["conditions"]]
        elif d.get("condition") is not None:
            conditions = [condition_from_dict(d["condition"])]
        else:
            conditions = [TomorrowCondition()]

        mode_tag = d.get("mode") or RuleMode.UNTIL.value
        try:
            mode = RuleMode(mode_tag)
        except ValueError:
            raise RuleDecodeError(f"Unknown rule mode {mode_tag!r} in rule {d['id']!r}") from None

        try:
            created_at = datetime.fromisoformat(d["created_at"])
        except (KeyError, TypeError, ValueError):
            created_at = datetime.now()

        items_key = "items" if d.get("items") is not None else "blocked_items"
        items = _string_list(d, items_key)
        exceptions = _string_list(d, "exceptions")

        try:
            return Rule(
                id=str(d["id"]),
                items=items,
                conditions=tuple(conditions),
                mode=mode,
                exceptions=exceptions,
                enabled=d.get("enabled") is not False,
                created_at=created_at,
            )
        except (TypeError, ValueError) as e:
            raise RuleDecodeError(str(e)) from e


def _string_list(d: dict, key: str) -> Tuple[str, ...]:
    values = d.get(key)
    if values is None:
        return ()
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise RuleDecodeError(f"{key!r} of rule {d['id']!r} must be a list of strings, got {values!r}")
    return tuple(values)


def _short_list(values: List[str], limit: int) -> str:
    text = ", ".join(values[:limit])
    if len(values) > limit:
        text += f" +{len(values) - limit}"
    return text


# ═══════════════════════════════════════════════════════════════
# PROGRESS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProgressSnapshot:
    """Facts supplied by the health/location collaborators for one evaluation pass"""
    steps_today: int = 0
    workout_minutes_today: int = 0
    current_location: Optional[GeoPoint] = None
    workout_active: bool = False
