"""Per-user progression state and action events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from faith_rank.errors import InvalidArgument


@dataclass
class StreakCounts:
    prayer: int = 0
    reading: int = 0
    community: int = 0


@dataclass
class AchievementRecord:
    """One user's standing on one achievement."""

    progress: float = 0.0  # 0-100, pinned at 100 once unlocked
    unlocked_at: datetime | None = None


@dataclass
class UserStats:
    total_points: int = 0
    current_level: int = 1
    prayer_minutes: float = 0
    verses_read: int = 0
    connections_helped: int = 0
    challenges_completed: int = 0
    streaks: StreakCounts = field(default_factory=StreakCounts)
    achievements: set[str] = field(default_factory=set)
    titles: set[str] = field(default_factory=set)
    current_title: str | None = None
    badges: set[str] = field(default_factory=set)
    streak_days: dict[str, str] = field(default_factory=dict)  # streak kind -> YYYY-MM-DD
    achievement_records: dict[str, AchievementRecord] = field(default_factory=dict)


def coerce_timestamp(value: object) -> datetime | None:
    """Accept None, a datetime or an ISO 8601 string."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise InvalidArgument(f"timestamp is not ISO 8601: {value!r}") from exc
    raise InvalidArgument(f"timestamp must be a datetime or ISO string, got {value!r}")


@dataclass
class ActionEvent:
    """A single already-validated user activity."""

    kind: str
    magnitude: float = 1
    timestamp: datetime | None = None
    actor_id: str | None = None
    event_id: str | None = None  # for caller-side deduplication

    @classmethod
    def from_dict(cls, raw: dict) -> ActionEvent:
        """Build an event from {"kind": ..., "magnitude": ...} style input."""
        if not isinstance(raw, dict) or not raw.get("kind"):
            raise InvalidArgument(f"action must be a dict with a 'kind', got {raw!r}")
        return cls(
            kind=raw["kind"],
            magnitude=raw.get("magnitude", 1),
            timestamp=coerce_timestamp(raw.get("timestamp")),
            actor_id=raw.get("actor_id"),
            event_id=raw.get("event_id"),
        )


def stat_value(stats: UserStats, path: str) -> float | None:
    """Resolve a dotted field path like "streaks.prayer" to a number.

    Returns None when the path does not exist or does not point at a number.
    """
    value: object = stats
    for part in path.split("."):
        if part.startswith("_") or not hasattr(value, part):
            return None
        value = getattr(value, part)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value
