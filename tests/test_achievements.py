"""Tests for the achievement evaluator."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from faith_rank.achievements import (
    AchievementEvaluator,
    check_achievements,
    get_closest_achievements,
    get_newly_unlocked,
    rule_matches,
    rule_progress,
)
from faith_rank.catalog import (
    ACHIEVEMENTS,
    AchievementCategory,
    AchievementDef,
    AchievementKind,
    Catalog,
    Level,
    Timeframe,
    UnlockRule,
    UnlockType,
)
from faith_rank.stats import ActionEvent, StreakCounts, UserStats

NOW = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


def _ids(statuses):
    return [s.definition.id for s in statuses]


def _achievement(achievement_id: str, rule) -> AchievementDef:
    return AchievementDef(
        id=achievement_id,
        title=achievement_id,
        description="",
        category=AchievementCategory.GROWTH,
        kind=AchievementKind.MILESTONE,
        rule=rule,
        points=5,
    )


class TestRuleInterpreter:
    def test_stat_rule(self):
        rule = UnlockRule(UnlockType.TIME, 100, stat="prayer_minutes")
        event = ActionEvent("prayer_minute", 2)
        assert rule_matches(rule, UserStats(prayer_minutes=100), event) is True
        assert rule_matches(rule, UserStats(prayer_minutes=99), event) is False

    def test_nested_stat_rule(self):
        rule = UnlockRule(UnlockType.STREAK, 7, stat="streaks.prayer")
        stats = UserStats(streaks=StreakCounts(prayer=7))
        assert rule_matches(rule, stats, ActionEvent("prayer_minute")) is True

    def test_action_gate_uses_magnitude(self):
        rule = UnlockRule(UnlockType.COUNT, 1, action="verse_read")
        assert rule_matches(rule, UserStats(), ActionEvent("verse_read", 1)) is True
        assert rule_matches(rule, UserStats(), ActionEvent("verse_read", 0)) is False
        assert rule_matches(rule, UserStats(), ActionEvent("prayer_minute", 5)) is False

    def test_action_gate_and_stat(self):
        rule = UnlockRule(UnlockType.COUNT, 5, stat="connections_helped", action="service_complete")
        stats = UserStats(connections_helped=5)
        assert rule_matches(rule, stats, ActionEvent("service_complete")) is True
        assert rule_matches(rule, stats, ActionEvent("community_prayer")) is False

    def test_progress_from_stat(self):
        rule = UnlockRule(UnlockType.COUNT, 50, stat="verses_read")
        assert rule_progress(rule, UserStats(verses_read=25)) == 50.0
        assert rule_progress(rule, UserStats(verses_read=80)) == 100.0

    def test_progress_for_action_only_rule(self):
        rule = UnlockRule(UnlockType.COUNT, 1, action="verse_read")
        assert rule_progress(rule, UserStats()) == 0.0

    def test_gated_progress_stops_short_of_full(self):
        rule = UnlockRule(UnlockType.COUNT, 5, stat="connections_helped", action="service_complete")
        assert rule_progress(rule, UserStats(connections_helped=9)) == 99.0

    def test_type_and_timeframe_do_not_change_outcome(self):
        stats = UserStats(verses_read=50)
        event = ActionEvent("verse_read")
        plain = UnlockRule(UnlockType.COUNT, 50, stat="verses_read")
        tagged = UnlockRule(UnlockType.TIME, 50, stat="verses_read", timeframe=Timeframe.DAILY)
        assert rule_matches(plain, stats, event) is rule_matches(tagged, stats, event) is True
        assert rule_progress(plain, stats) == rule_progress(tagged, stats)


class TestEvaluate:
    def test_prayer_warrior_unlocks_at_100_minutes(self):
        stats = UserStats(prayer_minutes=100)
        unlocked = AchievementEvaluator().evaluate(stats, ActionEvent("prayer_minute", 2), NOW)
        assert "prayer_warrior" in _ids(unlocked)
        assert "prayer_warrior" in stats.achievements
        record = stats.achievement_records["prayer_warrior"]
        assert record.progress == 100.0
        assert record.unlocked_at == NOW

    def test_unlocks_only_once(self):
        evaluator = AchievementEvaluator()
        stats = UserStats(prayer_minutes=100)
        first = evaluator.evaluate(stats, ActionEvent("prayer_minute"), NOW)
        stats.prayer_minutes = 150
        second = evaluator.evaluate(stats, ActionEvent("prayer_minute"), NOW)
        assert _ids(first).count("prayer_warrior") == 1
        assert "prayer_warrior" not in _ids(second)

    def test_unlocked_at_not_overwritten(self):
        evaluator = AchievementEvaluator()
        stats = UserStats(prayer_minutes=100)
        evaluator.evaluate(stats, ActionEvent("prayer_minute"), NOW)
        evaluator.evaluate(stats, ActionEvent("prayer_minute"), datetime(2026, 3, 1, tzinfo=timezone.utc))
        assert stats.achievement_records["prayer_warrior"].unlocked_at == NOW

    def test_multiple_unlocks_in_catalog_order(self):
        stats = UserStats(
            prayer_minutes=120,
            verses_read=60,
            current_level=3,
            streaks=StreakCounts(prayer=7),
        )
        unlocked = AchievementEvaluator().evaluate(stats, ActionEvent("verse_read", 1), NOW)
        assert _ids(unlocked) == [
            "prayer_warrior",
            "prayer_streak_7",
            "first_verse",
            "verse_collector",
            "level_up",
        ]
        declared = [a.id for a in ACHIEVEMENTS]
        assert _ids(unlocked) == sorted(_ids(unlocked), key=declared.index)

    def test_first_prayer_needs_prayer_complete(self):
        stats = UserStats()
        unlocked = AchievementEvaluator().evaluate(stats, ActionEvent("prayer_complete", 1), NOW)
        assert _ids(unlocked) == ["first_prayer"]

    def test_servant_heart_needs_service_action(self):
        evaluator = AchievementEvaluator()
        stats = UserStats(connections_helped=5)
        assert "servant_heart" not in _ids(evaluator.evaluate(stats, ActionEvent("community_prayer"), NOW))
        assert "servant_heart" in _ids(evaluator.evaluate(stats, ActionEvent("service_complete"), NOW))

    def test_previously_unlocked_skipped(self):
        stats = UserStats(prayer_minutes=500, achievements={"prayer_warrior"})
        unlocked = AchievementEvaluator().evaluate(stats, ActionEvent("prayer_minute"), NOW)
        assert "prayer_warrior" not in _ids(unlocked)

    def test_progress_is_monotonic_while_locked(self):
        evaluator = AchievementEvaluator()
        stats = UserStats(verses_read=30)
        evaluator.evaluate(stats, ActionEvent("verse_read", 0), NOW)
        assert stats.achievement_records["verse_collector"].progress == 60.0
        # A host that rebuilds stats with a lower counter cannot pull progress back
        stats.verses_read = 10
        evaluator.evaluate(stats, ActionEvent("verse_read", 0), NOW)
        assert stats.achievement_records["verse_collector"].progress == 60.0

    def test_christmas_event(self):
        stats = UserStats()
        unlocked = AchievementEvaluator().evaluate(stats, ActionEvent("christmas_event"), NOW)
        assert _ids(unlocked) == ["christmas_blessing"]

    def test_now_defaults_to_event_timestamp(self):
        stats = UserStats(prayer_minutes=100)
        event = ActionEvent("prayer_minute", timestamp=NOW)
        AchievementEvaluator().evaluate(stats, event)
        assert stats.achievement_records["prayer_warrior"].unlocked_at == NOW


class TestMalformedRules:
    def _catalog(self):
        return Catalog(
            [Level(1, "A", 0, None)],
            achievements=[
                _achievement("no_rule", None),
                _achievement("no_stat_no_action", UnlockRule(UnlockType.SPECIAL, 1)),
                _achievement("bogus_stat", UnlockRule(UnlockType.COUNT, 1, stat="hymns_sung")),
                _achievement("good", UnlockRule(UnlockType.COUNT, 1, stat="verses_read")),
            ],
        )

    def test_bad_entries_never_unlock_and_do_not_block_others(self):
        stats = UserStats(verses_read=3)
        unlocked = AchievementEvaluator(self._catalog()).evaluate(stats, ActionEvent("verse_read"), NOW)
        assert _ids(unlocked) == ["good"]

    def test_bad_entries_are_logged_once(self, caplog):
        evaluator = AchievementEvaluator(self._catalog())
        with caplog.at_level(logging.WARNING, logger="faith_rank.achievements"):
            evaluator.evaluate(UserStats(), ActionEvent("verse_read"), NOW)
            evaluator.evaluate(UserStats(), ActionEvent("verse_read"), NOW)
        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 3
        assert any("bogus_stat" in m for m in messages)

    def test_logged_once_across_threads(self, caplog):
        evaluator = AchievementEvaluator(self._catalog())
        with caplog.at_level(logging.WARNING, logger="faith_rank.achievements"):
            with ThreadPoolExecutor(max_workers=8) as pool:
                for _ in range(32):
                    pool.submit(evaluator.evaluate, UserStats(), ActionEvent("verse_read"), NOW)
        assert len(caplog.records) == 3


class TestCheckAchievements:
    def test_reports_every_achievement(self):
        statuses = check_achievements(UserStats())
        assert _ids(statuses) == [a.id for a in ACHIEVEMENTS]
        assert not any(s.unlocked for s in statuses)

    def test_does_not_mutate(self):
        stats = UserStats(prayer_minutes=500)
        check_achievements(stats)
        assert stats.achievements == set()
        assert stats.achievement_records == {}

    def test_unlocked_pinned_at_100(self):
        stats = UserStats(achievements={"first_verse"})
        status = next(s for s in check_achievements(stats) if s.definition.id == "first_verse")
        assert status.unlocked is True
        assert status.progress == 100.0

    def test_half_progress(self):
        stats = UserStats(prayer_minutes=50)
        status = next(s for s in check_achievements(stats) if s.definition.id == "prayer_warrior")
        assert status.unlocked is False
        assert status.progress == 50.0


class TestGetNewlyUnlocked:
    def test_detects_new(self):
        before = check_achievements(UserStats())
        after = check_achievements(UserStats(achievements={"first_verse"}))
        assert [d.id for d in get_newly_unlocked(before, after)] == ["first_verse"]

    def test_nothing_new(self):
        stats = UserStats(achievements={"first_verse"})
        assert get_newly_unlocked(check_achievements(stats), check_achievements(stats)) == []


class TestClosestAchievements:
    def test_sorted_by_progress(self):
        stats = UserStats(prayer_minutes=90, verses_read=10, connections_helped=5)
        closest = get_closest_achievements(check_achievements(stats), n=3)
        # servant_heart is capped at 99% while it waits for a service_complete action
        assert _ids(closest) == ["servant_heart", "prayer_warrior", "community_helper"]
        assert closest[0].progress == 99.0

    def test_excludes_unlocked(self):
        stats = UserStats(prayer_minutes=90, achievements={"prayer_warrior"})
        closest = get_closest_achievements(check_achievements(stats), n=1)
        assert _ids(closest) != ["prayer_warrior"]
