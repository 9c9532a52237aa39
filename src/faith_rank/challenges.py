"""Time-boxed challenges: task progress, completion and window state."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from faith_rank.catalog import (
    Catalog,
    ChallengeCategory,
    ChallengeTemplate,
    Difficulty,
    Reward,
    TaskType,
    default_catalog,
)
from faith_rank.errors import InvalidArgument, NotFoundError

logger = logging.getLogger(__name__)

# Action kind -> challenge task type it advances
ACTION_TASK_TYPES: dict[str, TaskType] = {
    "prayer_minute": TaskType.PRAYER,
    "prayer_complete": TaskType.PRAYER,
    "verse_read": TaskType.READING,
    "community_prayer": TaskType.SERVICE,
    "service_complete": TaskType.SERVICE,
    "connection_made": TaskType.CONNECTION,
    "encouragement_sent": TaskType.CONNECTION,
    "testimony_share": TaskType.SHARING,
}


class ChallengeState(str, Enum):
    PENDING = "pending"  # window not yet open
    ACTIVE = "active"
    COMPLETED = "completed"  # terminal
    EXPIRED = "expired"  # terminal


@dataclass
class ChallengeTask:
    id: str
    title: str
    type: TaskType
    target: float
    progress: float = 0
    completed: bool = False


@dataclass
class Challenge:
    id: str
    template_id: str
    title: str
    category: ChallengeCategory
    difficulty: Difficulty
    start_date: datetime
    end_date: datetime
    tasks: list[ChallengeTask]
    rewards: tuple[Reward, ...] = ()
    completed: bool = False
    progress: float = 0.0
    description: str = ""
    verse: str = ""
    completed_at: datetime | None = None
    rewards_claimed: bool = False

    def task_by_id(self, task_id: str) -> ChallengeTask:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"challenge {self.id!r} has no task {task_id!r}")


@dataclass
class AdvanceResult:
    task_completed: bool
    challenge_completed: bool


@dataclass
class TaskAdvance:
    challenge_id: str
    task_id: str
    result: AdvanceResult = field(default_factory=lambda: AdvanceResult(False, False))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def validate_delta(delta: float) -> float:
    """Progress only ratchets forward: reject negative, NaN and infinite deltas."""
    if isinstance(delta, bool) or not isinstance(delta, (int, float)):
        raise InvalidArgument(f"delta must be a number, got {delta!r}")
    if not math.isfinite(delta) or delta < 0:
        raise InvalidArgument(f"delta must be a finite number >= 0, got {delta!r}")
    return delta


def challenge_state(challenge: Challenge, now: datetime | None = None) -> ChallengeState:
    """Derive the lifecycle state of a challenge at `now`.

    Pending -> Active -> Completed | Expired. The window is inclusive at both ends.
    """
    now = now or _now()
    if challenge.completed:
        return ChallengeState.COMPLETED
    if now > challenge.end_date:
        return ChallengeState.EXPIRED
    if now < challenge.start_date:
        return ChallengeState.PENDING
    return ChallengeState.ACTIVE


def recompute_progress(challenge: Challenge) -> None:
    """Derive challenge.progress and challenge.completed from its tasks."""
    total = len(challenge.tasks)
    done = sum(1 for task in challenge.tasks if task.completed)
    challenge.progress = done / total * 100 if total else 100.0
    challenge.completed = done == total


def advance_task(
    challenge: Challenge, task_id: str, delta: float, now: datetime | None = None
) -> AdvanceResult:
    """Add `delta` to one task's progress, clamped to the task target.

    Outside the challenge window this is a no-op returning (False, False),
    completed or not: late events for an expired challenge are expected.
    Inside the window a completed challenge is left untouched and reports
    its completed state.
    """
    delta = validate_delta(delta)
    task = challenge.task_by_id(task_id)
    now = now or _now()

    if now < challenge.start_date or now > challenge.end_date:
        logger.debug("Ignoring progress for out-of-window challenge %s", challenge.id)
        return AdvanceResult(False, False)
    if challenge.completed:
        return AdvanceResult(task.completed, True)

    task.progress = min(task.target, task.progress + delta)
    task.completed = task.progress >= task.target
    recompute_progress(challenge)
    if challenge.completed:
        challenge.completed_at = now
        logger.info("Challenge %s completed", challenge.id)
    return AdvanceResult(task.completed, challenge.completed)


def start_challenge(
    template: ChallengeTemplate, now: datetime | None = None, instance_id: str | None = None
) -> Challenge:
    """Create a fresh challenge instance from a template.

    Fixed-window templates keep their own dates; rolling templates start at
    `now` and last for the template's duration.
    """
    now = now or _now()
    start = template.starts_at or now
    end = template.ends_at or start + template.duration
    return Challenge(
        id=instance_id or template.id,
        template_id=template.id,
        title=template.title,
        category=template.category,
        difficulty=template.difficulty,
        start_date=start,
        end_date=end,
        tasks=[ChallengeTask(t.id, t.title, t.type, t.target) for t in template.tasks],
        rewards=template.rewards,
        description=template.description,
        verse=template.verse,
    )


def generate_daily_challenge(
    catalog: Catalog | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> Challenge:
    """Pick one of the catalog's daily variants and start it for today."""
    catalog = catalog or default_catalog()
    if not catalog.daily_challenges:
        raise NotFoundError("catalog has no daily challenges")
    now = now or _now()
    rng = rng or random.Random()
    template = rng.choice(catalog.daily_challenges)
    return start_challenge(template, now, instance_id=f"daily_{now:%Y%m%d}")


class ChallengeTracker:
    """One user's challenge instances, keyed by challenge id."""

    def __init__(self, challenges: list[Challenge] | None = None) -> None:
        self._challenges: dict[str, Challenge] = {}
        for challenge in challenges or []:
            self.add(challenge)

    @property
    def challenges(self) -> list[Challenge]:
        return list(self._challenges.values())

    def add(self, challenge: Challenge) -> None:
        if challenge.id in self._challenges:
            raise InvalidArgument(f"challenge {challenge.id!r} is already tracked")
        self._challenges[challenge.id] = challenge

    def get(self, challenge_id: str) -> Challenge:
        try:
            return self._challenges[challenge_id]
        except KeyError:
            raise NotFoundError(f"unknown challenge {challenge_id!r}") from None

    def advance(
        self, challenge_id: str, task_id: str, delta: float, now: datetime | None = None
    ) -> AdvanceResult:
        return advance_task(self.get(challenge_id), task_id, delta, now)

    def active(self, now: datetime | None = None) -> list[Challenge]:
        now = now or _now()
        return [c for c in self._challenges.values() if challenge_state(c, now) is ChallengeState.ACTIVE]

    def advance_matching(
        self, action_kind: str, magnitude: float = 1, now: datetime | None = None
    ) -> list[TaskAdvance]:
        """Advance every open task whose type matches the action, across active challenges."""
        magnitude = validate_delta(magnitude)
        task_type = ACTION_TASK_TYPES.get(action_kind)
        if task_type is None:
            return []
        now = now or _now()
        advances: list[TaskAdvance] = []
        for challenge in self.active(now):
            for task in challenge.tasks:
                if task.type is not task_type or task.completed:
                    continue
                result = advance_task(challenge, task.id, magnitude, now)
                advances.append(TaskAdvance(challenge.id, task.id, result))
        return advances

    def open_from_catalog(self, catalog: Catalog | None = None, now: datetime | None = None) -> list[Challenge]:
        """Start an instance for every open catalog template not already tracked."""
        catalog = catalog or default_catalog()
        now = now or _now()
        started: list[Challenge] = []
        for template in catalog.active_challenge_templates(now):
            if template.id in self._challenges:
                continue
            challenge = start_challenge(template, now)
            self.add(challenge)
            started.append(challenge)
        return started

    def archive_expired(self, now: datetime | None = None) -> list[Challenge]:
        """Remove and return every challenge whose end_date has passed, completed or not."""
        now = now or _now()
        archived = [c for c in self._challenges.values() if now > c.end_date]
        for challenge in archived:
            del self._challenges[challenge.id]
        return archived
