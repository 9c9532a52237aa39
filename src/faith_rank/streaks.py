"""Consecutive-day streak tracking for faith-rank."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo

from faith_rank.stats import UserStats

# Action kind -> streak it keeps alive
STREAK_ACTIONS: dict[str, str] = {
    "prayer_minute": "prayer",
    "prayer_complete": "prayer",
    "verse_read": "reading",
    "community_prayer": "community",
    "service_complete": "community",
}


def _parse_date(d: str) -> date:
    """Parse a YYYY-MM-DD string to a date object."""
    return date.fromisoformat(d)


def local_day(moment: datetime, tz: tzinfo | None = None) -> date:
    """Calendar day of `moment` in `tz` (UTC by default). Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or timezone.utc).date()


def advance_streak(current: int, last_active: str | None, today: date) -> int:
    """Return the streak after activity on `today`.

    Rules:
    - First activity ever starts the streak at 1
    - Same day as last activity: unchanged
    - Day after last activity: +1
    - Any longer gap: restart at 1
    - An event dated before the last activity (late delivery) leaves it unchanged
    """
    if last_active is None:
        return 1
    gap = (today - _parse_date(last_active)).days
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    return 1


def effective_streak(current: int, last_active: str | None, today: date) -> int:
    """Streak as it should be displayed on `today`.

    A streak is still alive if the last activity was today or yesterday;
    otherwise it has lapsed and reads as 0.
    """
    if last_active is None:
        return 0
    gap = (today - _parse_date(last_active)).days
    if gap <= 1:
        return current
    return 0


def get_streak_from_dates(sorted_dates: list[str], reference_date: str) -> int:
    """Given a sorted list of active dates and a reference date,
    count consecutive days backwards from reference_date."""
    if not sorted_dates:
        return 0

    ref = _parse_date(reference_date)
    date_set = {_parse_date(d) for d in sorted_dates}

    if ref not in date_set:
        return 0

    streak = 0
    current = ref
    while current in date_set:
        streak += 1
        current -= timedelta(days=1)

    return streak


def rebuild_streak(active_dates: set[str], today: str) -> int:
    """Recompute a streak from a full history of active dates.

    Counts back from today, or from yesterday when today has no activity yet.
    """
    if not active_dates:
        return 0
    sorted_dates = sorted(active_dates)
    if today in active_dates:
        return get_streak_from_dates(sorted_dates, today)
    yesterday = (_parse_date(today) - timedelta(days=1)).isoformat()
    return get_streak_from_dates(sorted_dates, yesterday)


def record_streak_activity(
    stats: UserStats, action_kind: str, moment: datetime, tz: tzinfo | None = None
) -> str | None:
    """Advance the streak fed by `action_kind`, mutating `stats`.

    Returns the streak kind touched, or None when the action feeds no streak.
    """
    kind = STREAK_ACTIONS.get(action_kind)
    if kind is None:
        return None
    today = local_day(moment, tz)
    last_active = stats.streak_days.get(kind)
    new_value = advance_streak(getattr(stats.streaks, kind), last_active, today)
    setattr(stats.streaks, kind, new_value)
    if last_active is None or today > _parse_date(last_active):
        stats.streak_days[kind] = today.isoformat()
    return kind
