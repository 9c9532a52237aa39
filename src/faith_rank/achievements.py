"""Achievement checking and unlocking for faith-rank."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from faith_rank.catalog import AchievementDef, Catalog, UnlockRule, default_catalog
from faith_rank.stats import AchievementRecord, ActionEvent, UserStats, stat_value

logger = logging.getLogger(__name__)

# Locked action-gated rules stop short of 100 until their action fires
GATED_PROGRESS_CAP = 99.0


@dataclass
class AchievementStatus:
    definition: AchievementDef
    progress: float  # 0.0 to 100.0
    unlocked: bool
    unlocked_at: datetime | None


def is_well_formed(rule: UnlockRule | None, stats: UserStats) -> bool:
    """A rule needs an action gate or a stat that exists on UserStats."""
    if rule is None:
        return False
    if rule.stat is None:
        return rule.action is not None
    return stat_value(stats, rule.stat) is not None


def rule_progress(rule: UnlockRule | None, stats: UserStats) -> float:
    """Percentage toward a stat-based rule's target. Action-only rules report 0."""
    if rule is None or rule.stat is None or rule.target <= 0:
        return 0.0
    value = stat_value(stats, rule.stat)
    if value is None:
        return 0.0
    progress = min(value / rule.target * 100, 100.0)
    if rule.action is not None:
        return min(progress, GATED_PROGRESS_CAP)
    return progress


def rule_matches(rule: UnlockRule, stats: UserStats, event: ActionEvent) -> bool:
    """Interpret an unlock rule against the latest stats and the triggering event.

    - action gate: the event kind must equal rule.action
    - stat rule: the stat value must reach rule.target
    - action-only rule: the event magnitude must reach rule.target

    rule.type and rule.timeframe are descriptive and never change the outcome.
    """
    if rule.action is not None and event.kind != rule.action:
        return False
    if rule.stat is not None:
        value = stat_value(stats, rule.stat)
        return value is not None and value >= rule.target
    return event.magnitude >= rule.target


class AchievementEvaluator:
    """Unlocks achievements for one user's stats in response to an event.

    Holds no per-user state; the same evaluator can serve every user, from
    any thread.
    """

    def __init__(self, catalog: Catalog | None = None) -> None:
        self.catalog = catalog or default_catalog()
        self._reported_malformed: set[str] = set()
        self._lock = threading.Lock()

    def _report_malformed(self, definition: AchievementDef) -> None:
        with self._lock:
            if definition.id in self._reported_malformed:
                return
            self._reported_malformed.add(definition.id)
        logger.warning(
            "Achievement %r has a malformed unlock rule %r; it will never unlock",
            definition.id,
            definition.rule,
        )

    def qualifies(self, definition: AchievementDef, stats: UserStats, event: ActionEvent) -> bool:
        """Return True if the achievement's rule holds. Never raises."""
        if not is_well_formed(definition.rule, stats):
            self._report_malformed(definition)
            return False
        return rule_matches(definition.rule, stats, event)

    def evaluate(
        self, stats: UserStats, event: ActionEvent, now: datetime | None = None
    ) -> list[AchievementStatus]:
        """Unlock every locked achievement that now qualifies.

        Mutates stats.achievements and stats.achievement_records. Returns only
        the achievements unlocked by this call, in catalog-declaration order.
        """
        now = now or event.timestamp or datetime.now(timezone.utc)
        newly_unlocked: list[AchievementStatus] = []
        for definition in self.catalog.achievements:
            if definition.id in stats.achievements:
                continue
            record = stats.achievement_records.setdefault(definition.id, AchievementRecord())
            if self.qualifies(definition, stats, event):
                record.progress = 100.0
                record.unlocked_at = now
                stats.achievements.add(definition.id)
                logger.info("Unlocked achievement %s", definition.id)
                newly_unlocked.append(
                    AchievementStatus(definition, record.progress, True, record.unlocked_at)
                )
            else:
                record.progress = max(record.progress, rule_progress(definition.rule, stats))
        return newly_unlocked


def check_achievements(stats: UserStats, catalog: Catalog | None = None) -> list[AchievementStatus]:
    """Return the status of every achievement for `stats` without mutating anything."""
    catalog = catalog or default_catalog()
    results: list[AchievementStatus] = []
    for definition in catalog.achievements:
        record = stats.achievement_records.get(definition.id, AchievementRecord())
        unlocked = definition.id in stats.achievements
        if unlocked:
            progress = 100.0
        else:
            progress = max(record.progress, rule_progress(definition.rule, stats))
        results.append(
            AchievementStatus(
                definition=definition,
                progress=progress,
                unlocked=unlocked,
                unlocked_at=record.unlocked_at if unlocked else None,
            )
        )
    return results


def get_newly_unlocked(
    previous: list[AchievementStatus], current: list[AchievementStatus]
) -> list[AchievementDef]:
    """Compare previous and current achievement states, return newly unlocked ones."""
    prev_unlocked = {s.definition.id for s in previous if s.unlocked}
    return [s.definition for s in current if s.unlocked and s.definition.id not in prev_unlocked]


def get_closest_achievements(statuses: list[AchievementStatus], n: int = 3) -> list[AchievementStatus]:
    """Return the N locked achievements closest to being unlocked (highest progress)."""
    in_progress = [s for s in statuses if not s.unlocked]
    in_progress.sort(key=lambda s: s.progress, reverse=True)
    return in_progress[:n]
