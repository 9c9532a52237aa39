"""Immutable reference data for faith-rank: levels, achievements, challenge templates.

A Catalog is built once at process start (from the built-in tables or a JSON
file) and shared read-only between users. Per-user state never lives here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path

from faith_rank.errors import InvalidArgument, InvariantViolation, NotFoundError

logger = logging.getLogger(__name__)


class AchievementCategory(str, Enum):
    PRAYER = "prayer"
    READING = "reading"
    COMMUNITY = "community"
    SERVICE = "service"
    GROWTH = "growth"
    CONNECTION = "connection"


class AchievementKind(str, Enum):
    MILESTONE = "milestone"
    STREAK = "streak"
    CHALLENGE = "challenge"
    SPECIAL = "special"


class UnlockType(str, Enum):
    COUNT = "count"
    STREAK = "streak"
    TIME = "time"
    SPECIAL = "special"


class Timeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ChallengeCategory(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    SEASONAL = "seasonal"
    SPECIAL = "special"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    LEGENDARY = "legendary"


class TaskType(str, Enum):
    PRAYER = "prayer"
    READING = "reading"
    SERVICE = "service"
    CONNECTION = "connection"
    SHARING = "sharing"


class RewardType(str, Enum):
    POINTS = "points"
    BADGE = "badge"
    TITLE = "title"
    BLESSING = "blessing"
    FEATURE = "feature"


@dataclass(frozen=True)
class Reward:
    type: RewardType
    value: int | str
    description: str = ""


@dataclass(frozen=True)
class Level:
    level: int
    title: str
    min_points: int
    max_points: int | None  # inclusive; None for the unbounded top tier
    description: str = ""
    perks: tuple[str, ...] = ()
    verse: str = ""

    def contains(self, points: int) -> bool:
        if points < self.min_points:
            return False
        return self.max_points is None or points <= self.max_points


@dataclass(frozen=True)
class UnlockRule:
    """Unlock condition for an achievement.

    stat:   dotted UserStats field compared against target (e.g. "streaks.prayer").
    action: action kind that must trigger the evaluation. With no stat, the
            event magnitude is compared against target instead.

    type and timeframe describe the rule for display and catalog authoring
    only. Matching reads stat, action and target alone, so a streak or time
    rule is expressed through the stat it points at.
    """

    type: UnlockType
    target: float
    stat: str | None = None
    action: str | None = None
    timeframe: Timeframe | None = None


@dataclass(frozen=True)
class AchievementDef:
    id: str
    title: str
    description: str
    category: AchievementCategory
    kind: AchievementKind
    rule: UnlockRule | None
    points: int
    verse: str = ""
    blessing: str = ""


@dataclass(frozen=True)
class TaskTemplate:
    id: str
    title: str
    type: TaskType
    target: float
    description: str = ""


@dataclass(frozen=True)
class ChallengeTemplate:
    id: str
    title: str
    description: str
    category: ChallengeCategory
    difficulty: Difficulty
    tasks: tuple[TaskTemplate, ...]
    rewards: tuple[Reward, ...]
    duration: timedelta
    starts_at: datetime | None = None  # None: the template is always open
    ends_at: datetime | None = None
    verse: str = ""

    def is_open(self, at: datetime) -> bool:
        if self.starts_at is not None and at < self.starts_at:
            return False
        if self.ends_at is not None and at > self.ends_at:
            return False
        return True


def validate_levels(levels: tuple[Level, ...]) -> None:
    """Check that levels partition [0, inf) with no gaps or overlaps.

    Raises InvariantViolation; a host should treat this as fatal at startup.
    """
    if not levels:
        raise InvariantViolation("level table is empty")
    if levels[0].min_points != 0:
        raise InvariantViolation(
            f"level {levels[0].level} starts at {levels[0].min_points}, expected 0"
        )
    for prev, curr in zip(levels, levels[1:]):
        if curr.level <= prev.level:
            raise InvariantViolation(f"level numbers not increasing at {curr.level}")
        if prev.max_points is None:
            raise InvariantViolation(f"level {prev.level} is unbounded but is not the top tier")
        if curr.min_points != prev.max_points + 1:
            raise InvariantViolation(
                f"levels {prev.level} and {curr.level} leave a gap or overlap "
                f"({prev.max_points} -> {curr.min_points})"
            )
    for lv in levels:
        if lv.max_points is not None and lv.max_points < lv.min_points:
            raise InvariantViolation(f"level {lv.level} has max_points below min_points")
    if levels[-1].max_points is not None:
        raise InvariantViolation(f"top level {levels[-1].level} must be unbounded")


def _index_unique(items, kind: str) -> dict:
    index: dict = {}
    for item in items:
        if item.id in index:
            raise InvariantViolation(f"duplicate {kind} id {item.id!r}")
        index[item.id] = item
    return index


class Catalog:
    """Read-only lookups over validated reference tables."""

    def __init__(
        self,
        levels: list[Level] | tuple[Level, ...],
        achievements: list[AchievementDef] | tuple[AchievementDef, ...],
        challenges: list[ChallengeTemplate] | tuple[ChallengeTemplate, ...] = (),
        daily_challenges: list[ChallengeTemplate] | tuple[ChallengeTemplate, ...] = (),
    ) -> None:
        self._levels = tuple(sorted(levels, key=lambda lv: lv.level))
        validate_levels(self._levels)
        self._level_floors = tuple(lv.min_points for lv in self._levels)
        self._level_index = {lv.level: lv for lv in self._levels}

        self._achievements = tuple(achievements)
        self._achievement_index = _index_unique(self._achievements, "achievement")

        self._challenges = tuple(challenges)
        self._daily_challenges = tuple(daily_challenges)
        self._challenge_index = _index_unique(
            self._challenges + self._daily_challenges, "challenge"
        )
        for template in self._challenge_index.values():
            if not template.tasks:
                raise InvariantViolation(f"challenge {template.id!r} has no tasks")

    @property
    def achievements(self) -> tuple[AchievementDef, ...]:
        """Achievement definitions in declaration order."""
        return self._achievements

    @property
    def challenges(self) -> tuple[ChallengeTemplate, ...]:
        return self._challenges

    @property
    def daily_challenges(self) -> tuple[ChallengeTemplate, ...]:
        return self._daily_challenges

    @property
    def level_floors(self) -> tuple[int, ...]:
        """min_points of each level in order, for bisection."""
        return self._level_floors

    def levels_in_order(self) -> tuple[Level, ...]:
        return self._levels

    def level_by_number(self, level: int) -> Level:
        try:
            return self._level_index[level]
        except KeyError:
            raise NotFoundError(f"unknown level {level}") from None

    def next_level(self, level: int) -> Level | None:
        """Return the level after `level`, or None at the top tier."""
        current = self.level_by_number(level)
        position = self._levels.index(current)
        if position + 1 < len(self._levels):
            return self._levels[position + 1]
        return None

    def achievement_by_id(self, achievement_id: str) -> AchievementDef:
        try:
            return self._achievement_index[achievement_id]
        except KeyError:
            raise NotFoundError(f"unknown achievement {achievement_id!r}") from None

    def achievements_by_category(self, category: AchievementCategory) -> list[AchievementDef]:
        return [a for a in self._achievements if a.category == category]

    def challenge_template_by_id(self, template_id: str) -> ChallengeTemplate:
        try:
            return self._challenge_index[template_id]
        except KeyError:
            raise NotFoundError(f"unknown challenge template {template_id!r}") from None

    def challenge_templates_by_difficulty(self, difficulty: Difficulty) -> list[ChallengeTemplate]:
        return [c for c in self._challenges if c.difficulty == difficulty]

    def active_challenge_templates(self, at: datetime) -> list[ChallengeTemplate]:
        """Templates whose window is open at `at`, in declaration order."""
        return [c for c in self._challenges if c.is_open(at)]


# ---------------------------------------------------------------------------
# Built-in tables
# ---------------------------------------------------------------------------

LEVELS: tuple[Level, ...] = (
    Level(1, "New Convert", 0, 99, "Starting your journey of faith",
          ("Prayer system access", "Personalized daily verse"),
          "If anyone is in Christ, the new creation has come. 2 Corinthians 5:17"),
    Level(2, "Dedicated Disciple", 100, 299, "Growing in knowledge and faith",
          ("Weekly challenges", "Prayer history"),
          "Your word is a lamp for my feet. Psalm 119:105"),
    Level(3, "Faithful Servant", 300, 599, "Serving with love and dedication",
          ("Prayer groups", "Spiritual mentoring"),
          "Each of you should use whatever gift you have received to serve others. 1 Peter 4:10"),
    Level(4, "Mighty Intercessor", 600, 999, "A warrior of prayer and intercession",
          ("Intercession circle", "Special prayers"),
          "The prayer of a righteous person is powerful and effective. James 5:16"),
    Level(5, "Spiritual Leader", 1000, 1999, "Guiding others on the path of faith",
          ("Group creation", "Special events"),
          "Follow my example, as I follow the example of Christ. 1 Corinthians 11:1"),
    Level(6, "Ambassador of Christ", 2000, 4999, "Representing Christ in every area",
          ("Special missions", "VIP access"),
          "We are therefore Christ's ambassadors. 2 Corinthians 5:20"),
    Level(7, "Wise Elder", 5000, 9999, "Spiritual maturity and wisdom",
          ("Spiritual counsel", "Premium library"),
          "Gray hair is a crown of splendor. Proverbs 16:31"),
    Level(8, "Modern Apostle", 10000, 19999, "Planting churches and making disciples",
          ("Apostolic network", "Exclusive resources"),
          "Go and make disciples of all nations. Matthew 28:19"),
    Level(9, "Prophet of the Most High", 20000, 49999, "A prophetic voice for this generation",
          ("Prophetic word", "Special revelations"),
          "Do not treat prophecies with contempt. 1 Thessalonians 5:20"),
    Level(10, "Saint of the Most High", 50000, None, "Holiness and close communion with God",
          ("All blessings unlocked", "Eternal legacy"),
          "Be holy, because I am holy. 1 Peter 1:16"),
)

ACHIEVEMENTS: tuple[AchievementDef, ...] = (
    AchievementDef(
        id="first_prayer",
        title="First Prayer",
        description="Complete your first prayer session",
        category=AchievementCategory.PRAYER,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 1, action="prayer_complete"),
        points=10,
        verse="Pray continually. 1 Thessalonians 5:17",
        blessing="May your prayers rise like incense before the Lord",
    ),
    AchievementDef(
        id="prayer_warrior",
        title="Prayer Warrior",
        description="Complete 100 minutes of prayer",
        category=AchievementCategory.PRAYER,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.TIME, 100, stat="prayer_minutes"),
        points=50,
        verse="The prayer of a righteous person is powerful and effective. James 5:16",
    ),
    AchievementDef(
        id="prayer_streak_7",
        title="Week of Prayer",
        description="Pray for 7 consecutive days",
        category=AchievementCategory.PRAYER,
        kind=AchievementKind.STREAK,
        rule=UnlockRule(UnlockType.STREAK, 7, stat="streaks.prayer", timeframe=Timeframe.DAILY),
        points=30,
        verse="Devote yourselves to prayer. Colossians 4:2",
    ),
    AchievementDef(
        id="first_verse",
        title="First Reading",
        description="Read your first verse of the day",
        category=AchievementCategory.READING,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 1, action="verse_read"),
        points=10,
        verse="Your word is a lamp for my feet. Psalm 119:105",
    ),
    AchievementDef(
        id="verse_collector",
        title="Verse Collector",
        description="Read 50 verses",
        category=AchievementCategory.READING,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 50, stat="verses_read"),
        points=40,
        verse="I have hidden your word in my heart. Psalm 119:11",
    ),
    AchievementDef(
        id="first_connection",
        title="First Connection",
        description="Make your first blessed connection",
        category=AchievementCategory.CONNECTION,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 1, action="connection_made"),
        points=20,
        verse="Two are better than one. Ecclesiastes 4:9",
    ),
    AchievementDef(
        id="community_helper",
        title="Community Helper",
        description="Pray for 10 community requests",
        category=AchievementCategory.COMMUNITY,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 10, stat="connections_helped"),
        points=35,
        verse="Carry each other's burdens. Galatians 6:2",
    ),
    AchievementDef(
        id="servant_heart",
        title="Servant Heart",
        description="Complete 5 acts of service",
        category=AchievementCategory.SERVICE,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.COUNT, 5, stat="connections_helped", action="service_complete"),
        points=25,
        verse="Serve one another. 1 Peter 4:10",
    ),
    AchievementDef(
        id="level_up",
        title="Spiritual Growth",
        description="Reach level 2",
        category=AchievementCategory.GROWTH,
        kind=AchievementKind.MILESTONE,
        rule=UnlockRule(UnlockType.SPECIAL, 2, stat="current_level"),
        points=0,
        verse="Grow in the grace and knowledge of our Lord. 2 Peter 3:18",
    ),
    AchievementDef(
        id="christmas_blessing",
        title="Christmas Blessing",
        description="Take part in the special Christmas event",
        category=AchievementCategory.GROWTH,
        kind=AchievementKind.SPECIAL,
        rule=UnlockRule(UnlockType.SPECIAL, 1, action="christmas_event"),
        points=100,
        verse="For to us a child is born. Isaiah 9:6",
    ),
)

_WEEK = timedelta(days=7)

CHALLENGES: tuple[ChallengeTemplate, ...] = (
    ChallengeTemplate(
        id="daily_devotion",
        title="Daily Devotion",
        description="Complete your devotion for 7 days in a row",
        category=ChallengeCategory.DAILY,
        difficulty=Difficulty.EASY,
        tasks=(
            TaskTemplate("read_verse", "Read a Verse", TaskType.READING, 7, "Read the verse of the day"),
            TaskTemplate("pray_5min", "Pray 5 Minutes", TaskType.PRAYER, 7, "Spend 5 minutes in prayer"),
        ),
        rewards=(
            Reward(RewardType.POINTS, 50, "50 experience points"),
            Reward(RewardType.BADGE, "devotion_master", "Devotion Master badge"),
        ),
        duration=_WEEK,
        verse="Seek first his kingdom. Matthew 6:33",
    ),
    ChallengeTemplate(
        id="prayer_week",
        title="Prayer Week",
        description="Spend 30 minutes in prayer this week",
        category=ChallengeCategory.WEEKLY,
        difficulty=Difficulty.MEDIUM,
        tasks=(
            TaskTemplate("prayer_30min", "Deep Prayer", TaskType.PRAYER, 30, "Complete 30 minutes of prayer"),
        ),
        rewards=(
            Reward(RewardType.POINTS, 75, "75 experience points"),
            Reward(RewardType.TITLE, "Intercessor", "Title: Intercessor"),
        ),
        duration=_WEEK,
        verse="Pray for each other. James 5:16",
    ),
    ChallengeTemplate(
        id="community_love",
        title="Community Love",
        description="Help 5 people in the community this week",
        category=ChallengeCategory.WEEKLY,
        difficulty=Difficulty.MEDIUM,
        tasks=(
            TaskTemplate("pray_for_others", "Pray for Others", TaskType.SERVICE, 5, "Pray for 5 community requests"),
            TaskTemplate("encourage_others", "Encourage", TaskType.CONNECTION, 3, "Send messages of encouragement"),
        ),
        rewards=(
            Reward(RewardType.POINTS, 100, "100 experience points"),
            Reward(RewardType.BLESSING, "community_heart", "Community Heart blessing"),
        ),
        duration=_WEEK,
        verse="Love one another. John 13:34",
    ),
)

_DAILY_REWARDS = (Reward(RewardType.POINTS, 25, "25 experience points"),)

DAILY_CHALLENGES: tuple[ChallengeTemplate, ...] = (
    ChallengeTemplate(
        id="daily_gratitude",
        title="Moment of Gratitude",
        description="List 3 things you are grateful for today",
        category=ChallengeCategory.DAILY,
        difficulty=Difficulty.EASY,
        tasks=(
            TaskTemplate("gratitude_prayer", "Prayer of Gratitude", TaskType.PRAYER, 3,
                         "Spend 3 minutes thanking God"),
        ),
        rewards=_DAILY_REWARDS,
        duration=timedelta(days=1),
        verse="Give thanks in all circumstances. 1 Thessalonians 5:18",
    ),
    ChallengeTemplate(
        id="daily_encouragement",
        title="Word of Encouragement",
        description="Send a message of encouragement to someone",
        category=ChallengeCategory.DAILY,
        difficulty=Difficulty.EASY,
        tasks=(
            TaskTemplate("encourage_someone", "Encourage Someone", TaskType.CONNECTION, 1,
                         "Send a positive message"),
        ),
        rewards=_DAILY_REWARDS,
        duration=timedelta(days=1),
        verse="Encourage one another. 1 Thessalonians 5:11",
    ),
)


@lru_cache(maxsize=1)
def default_catalog() -> Catalog:
    """Return the built-in catalog (validated once, shared read-only)."""
    return Catalog(LEVELS, ACHIEVEMENTS, CHALLENGES, DAILY_CHALLENGES)


# ---------------------------------------------------------------------------
# JSON catalog files
# ---------------------------------------------------------------------------

def _dt(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _reward_to_dict(reward: Reward) -> dict:
    return {"type": reward.type.value, "value": reward.value, "description": reward.description}


def _template_to_dict(t: ChallengeTemplate) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "category": t.category.value,
        "difficulty": t.difficulty.value,
        "tasks": [
            {"id": task.id, "title": task.title, "type": task.type.value,
             "target": task.target, "description": task.description}
            for task in t.tasks
        ],
        "rewards": [_reward_to_dict(r) for r in t.rewards],
        "duration_hours": t.duration.total_seconds() / 3600,
        "starts_at": t.starts_at.isoformat() if t.starts_at else None,
        "ends_at": t.ends_at.isoformat() if t.ends_at else None,
        "verse": t.verse,
    }


def catalog_to_dict(catalog: Catalog) -> dict:
    """Serialize a catalog to the JSON file shape read by catalog_from_dict."""
    achievements = []
    for a in catalog.achievements:
        rule = None
        if a.rule is not None:
            rule = {
                "type": a.rule.type.value,
                "target": a.rule.target,
                "stat": a.rule.stat,
                "action": a.rule.action,
                "timeframe": a.rule.timeframe.value if a.rule.timeframe else None,
            }
        achievements.append({
            "id": a.id,
            "title": a.title,
            "description": a.description,
            "category": a.category.value,
            "kind": a.kind.value,
            "rule": rule,
            "points": a.points,
            "verse": a.verse,
            "blessing": a.blessing,
        })
    return {
        "levels": [
            {"level": lv.level, "title": lv.title, "min_points": lv.min_points,
             "max_points": lv.max_points, "description": lv.description,
             "perks": list(lv.perks), "verse": lv.verse}
            for lv in catalog.levels_in_order()
        ],
        "achievements": achievements,
        "challenges": [_template_to_dict(t) for t in catalog.challenges],
        "daily_challenges": [_template_to_dict(t) for t in catalog.daily_challenges],
    }


def _template_from_dict(raw: dict) -> ChallengeTemplate:
    return ChallengeTemplate(
        id=raw["id"],
        title=raw.get("title", raw["id"]),
        description=raw.get("description", ""),
        category=ChallengeCategory(raw["category"]),
        difficulty=Difficulty(raw["difficulty"]),
        tasks=tuple(
            TaskTemplate(t["id"], t.get("title", t["id"]), TaskType(t["type"]),
                         t["target"], t.get("description", ""))
            for t in raw["tasks"]
        ),
        rewards=tuple(
            Reward(RewardType(r["type"]), r["value"], r.get("description", ""))
            for r in raw.get("rewards", [])
        ),
        duration=timedelta(hours=raw.get("duration_hours", 24 * 7)),
        starts_at=_dt(raw.get("starts_at")),
        ends_at=_dt(raw.get("ends_at")),
        verse=raw.get("verse", ""),
    )


def _achievement_from_dict(raw: dict) -> AchievementDef:
    rule_raw = raw.get("rule")
    rule = None
    if rule_raw:
        timeframe = rule_raw.get("timeframe")
        rule = UnlockRule(
            type=UnlockType(rule_raw["type"]),
            target=rule_raw["target"],
            stat=rule_raw.get("stat"),
            action=rule_raw.get("action"),
            timeframe=Timeframe(timeframe) if timeframe else None,
        )
    return AchievementDef(
        id=raw["id"],
        title=raw.get("title", raw["id"]),
        description=raw.get("description", ""),
        category=AchievementCategory(raw["category"]),
        kind=AchievementKind(raw.get("kind", "milestone")),
        rule=rule,
        points=int(raw.get("points", 0)),
        verse=raw.get("verse", ""),
        blessing=raw.get("blessing", ""),
    )


def catalog_from_dict(data: dict) -> Catalog:
    """Build a Catalog from parsed JSON.

    Raises InvalidArgument for missing keys or bad enum values, and
    InvariantViolation when the resulting tables are inconsistent.
    """
    try:
        levels = [
            Level(
                level=int(raw["level"]),
                title=raw["title"],
                min_points=int(raw["min_points"]),
                max_points=None if raw.get("max_points") is None else int(raw["max_points"]),
                description=raw.get("description", ""),
                perks=tuple(raw.get("perks", ())),
                verse=raw.get("verse", ""),
            )
            for raw in data["levels"]
        ]
        achievements = [_achievement_from_dict(raw) for raw in data.get("achievements", [])]
        challenges = [_template_from_dict(raw) for raw in data.get("challenges", [])]
        daily = [_template_from_dict(raw) for raw in data.get("daily_challenges", [])]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidArgument(f"malformed catalog data: {exc}") from exc
    return Catalog(levels, achievements, challenges, daily)


def load_catalog(path: Path) -> Catalog:
    """Load and validate a catalog from a JSON file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise InvalidArgument(f"cannot read catalog {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidArgument(f"catalog {path} must contain a JSON object")
    return catalog_from_dict(data)


def load_configured_catalog(config_path: Path | None = None) -> Catalog:
    """Return the catalog named in config, or the built-in one.

    A configured file that is missing falls back to the built-in catalog with
    a warning. A file that exists but fails validation raises.
    """
    from faith_rank.config import get_catalog_path

    path = get_catalog_path(config_path)
    if path is None:
        return default_catalog()
    if not path.exists():
        logger.warning("Configured catalog %s does not exist, using built-in catalog", path)
        return default_catalog()
    return load_catalog(path)

