"""Host-facing entry points: record an action, advance a challenge, claim rewards.

The engine does no I/O and no locking. Callers must serialize calls for the
same user and persist the returned state themselves.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from functools import lru_cache

from faith_rank.achievements import AchievementEvaluator, AchievementStatus
from faith_rank.catalog import Catalog, Level, RewardType, default_catalog
from faith_rank.challenges import Challenge, advance_task
from faith_rank.errors import InvalidArgument
from faith_rank.levels import resolve_level
from faith_rank.points import UnknownActionPolicy, compute_points, validate_magnitude
from faith_rank.stats import ActionEvent, UserStats
from faith_rank.streaks import record_streak_activity

logger = logging.getLogger(__name__)

# Action kind -> UserStats counter increased by the event magnitude
ACTION_COUNTERS: dict[str, str] = {
    "prayer_minute": "prayer_minutes",
    "verse_read": "verses_read",
    "community_prayer": "connections_helped",
    "service_complete": "connections_helped",
}

# Counters held as whole numbers; fractional magnitudes are floored
INTEGER_COUNTERS = frozenset({"verses_read", "connections_helped"})


@dataclass
class RecordResult:
    updated_stats: UserStats
    unlocked_achievements: list[AchievementStatus]
    points_awarded: int
    leveled_up: bool
    level: Level


@dataclass
class ChallengeAdvance:
    challenge: Challenge
    task_completed: bool
    challenge_completed: bool


@lru_cache(maxsize=8)
def _evaluator_for(catalog: Catalog) -> AchievementEvaluator:
    """One shared evaluator per catalog, across all users and threads.

    Its only mutable state is the logged-once set of malformed rule ids,
    which the evaluator guards with a lock.
    """
    return AchievementEvaluator(catalog)


def coerce_action(action: ActionEvent | dict) -> ActionEvent:
    """Accept an ActionEvent or a {"kind": ..., "magnitude": ...} dict."""
    if isinstance(action, ActionEvent):
        event = action
    else:
        event = ActionEvent.from_dict(action)
    if not isinstance(event.kind, str) or not event.kind:
        raise InvalidArgument(f"action kind must be a non-empty string, got {event.kind!r}")
    validate_magnitude(event.magnitude)
    if event.timestamp is not None and not isinstance(event.timestamp, datetime):
        raise InvalidArgument(f"action timestamp must be a datetime, got {event.timestamp!r}")
    return event


def sync_level(stats: UserStats, catalog: Catalog) -> tuple[Level, bool]:
    """Set stats.current_level from total_points; on level-up grant the level title.

    Returns (level, leveled_up).
    """
    level = resolve_level(stats.total_points, catalog)
    leveled_up = level.level > stats.current_level
    stats.current_level = level.level
    if leveled_up:
        stats.titles.add(level.title)
        stats.current_title = level.title
        logger.info("Reached level %d (%s)", level.level, level.title)
    return level, leveled_up


def record_action(
    stats: UserStats,
    action: ActionEvent | dict,
    catalog: Catalog | None = None,
    now: datetime | None = None,
    policy: UnknownActionPolicy = UnknownActionPolicy.PERMISSIVE,
    tz: tzinfo | None = None,
) -> RecordResult:
    """Apply one action event to a copy of `stats`.

    1. Compute the point delta for the action.
    2. Add points and bump the counter the action feeds.
    3. Advance the streak the action feeds (day boundaries in `tz`).
    4. Re-derive the level; a level-up grants that level's title.
    5. Unlock any achievements that now qualify.

    The input stats object is left untouched.
    """
    catalog = catalog or default_catalog()
    event = coerce_action(action)
    now = now or event.timestamp or datetime.now(timezone.utc)

    points = compute_points(event.kind, event.magnitude, policy)

    updated = copy.deepcopy(stats)
    updated.total_points += points
    counter = ACTION_COUNTERS.get(event.kind)
    if counter is not None:
        amount = math.floor(event.magnitude) if counter in INTEGER_COUNTERS else event.magnitude
        setattr(updated, counter, getattr(updated, counter) + amount)
    record_streak_activity(updated, event.kind, now, tz)

    level, leveled_up = sync_level(updated, catalog)
    unlocked = _evaluator_for(catalog).evaluate(updated, event, now)

    return RecordResult(
        updated_stats=updated,
        unlocked_achievements=unlocked,
        points_awarded=points,
        leveled_up=leveled_up,
        level=level,
    )


def advance_challenge(
    challenge: Challenge, task_id: str, delta: float, now: datetime | None = None
) -> ChallengeAdvance:
    """Advance one task of `challenge` in place and report the outcome."""
    result = advance_task(challenge, task_id, delta, now)
    return ChallengeAdvance(
        challenge=challenge,
        task_completed=result.task_completed,
        challenge_completed=result.challenge_completed,
    )


def complete_challenge(
    stats: UserStats,
    challenge: Challenge,
    catalog: Catalog | None = None,
    now: datetime | None = None,
) -> RecordResult:
    """Grant a completed challenge's rewards to a copy of `stats`.

    Points rewards are added to total_points, title rewards join `titles`,
    badge rewards join `badges`. Marks the challenge's rewards as claimed so
    they cannot be granted twice.
    """
    if not challenge.completed:
        raise InvalidArgument(f"challenge {challenge.id!r} is not completed")
    if challenge.rewards_claimed:
        raise InvalidArgument(f"rewards for challenge {challenge.id!r} were already claimed")
    catalog = catalog or default_catalog()
    now = now or datetime.now(timezone.utc)

    updated = copy.deepcopy(stats)
    bonus = 0
    for reward in challenge.rewards:
        if reward.type is RewardType.POINTS:
            bonus += int(reward.value)
        elif reward.type is RewardType.TITLE:
            updated.titles.add(str(reward.value))
        elif reward.type is RewardType.BADGE:
            updated.badges.add(str(reward.value))
    updated.total_points += bonus
    updated.challenges_completed += 1
    challenge.rewards_claimed = True

    level, leveled_up = sync_level(updated, catalog)
    event = ActionEvent(kind="challenge_complete", magnitude=1, timestamp=now)
    unlocked = _evaluator_for(catalog).evaluate(updated, event, now)

    return RecordResult(
        updated_stats=updated,
        unlocked_achievements=unlocked,
        points_awarded=bonus,
        leveled_up=leveled_up,
        level=level,
    )


def set_current_title(stats: UserStats, title: str) -> None:
    """Select one of the user's earned titles for display."""
    if title not in stats.titles:
        raise InvalidArgument(f"title {title!r} has not been earned")
    stats.current_title = title
