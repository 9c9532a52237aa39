"""Tests for the catalog: lookups, validation and JSON files."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from faith_rank.catalog import (
    ACHIEVEMENTS,
    AchievementCategory,
    ChallengeCategory,
    ChallengeTemplate,
    Difficulty,
    Level,
    TaskTemplate,
    TaskType,
    UnlockType,
    Catalog,
    catalog_from_dict,
    catalog_to_dict,
    default_catalog,
    load_catalog,
    load_configured_catalog,
)
from faith_rank.config import save_config
from faith_rank.errors import InvalidArgument, InvariantViolation, NotFoundError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _template(template_id: str, **kwargs) -> ChallengeTemplate:
    defaults = dict(
        title=template_id,
        description="",
        category=ChallengeCategory.WEEKLY,
        difficulty=Difficulty.EASY,
        tasks=(TaskTemplate("t1", "Task", TaskType.PRAYER, 1),),
        rewards=(),
        duration=timedelta(days=7),
    )
    defaults.update(kwargs)
    return ChallengeTemplate(id=template_id, **defaults)


class TestDefaultCatalog:
    def test_ten_levels(self):
        levels = default_catalog().levels_in_order()
        assert [lv.level for lv in levels] == list(range(1, 11))

    def test_levels_are_immutable(self):
        level = default_catalog().levels_in_order()[0]
        with pytest.raises(AttributeError):
            level.min_points = 5

    def test_achievements_in_declaration_order(self):
        ids = [a.id for a in default_catalog().achievements]
        assert ids == [a.id for a in ACHIEVEMENTS]
        assert ids[0] == "first_prayer"

    def test_achievement_by_id(self):
        warrior = default_catalog().achievement_by_id("prayer_warrior")
        assert warrior.rule.type is UnlockType.TIME
        assert warrior.rule.target == 100
        assert warrior.points == 50

    def test_unknown_achievement(self):
        with pytest.raises(NotFoundError):
            default_catalog().achievement_by_id("does_not_exist")

    def test_not_found_is_lookup_error(self):
        with pytest.raises(LookupError):
            default_catalog().achievement_by_id("nope")

    def test_achievements_by_category(self):
        prayer = default_catalog().achievements_by_category(AchievementCategory.PRAYER)
        assert [a.id for a in prayer] == ["first_prayer", "prayer_warrior", "prayer_streak_7"]

    def test_next_level(self):
        catalog = default_catalog()
        assert catalog.next_level(1).level == 2
        assert catalog.next_level(10) is None

    def test_unknown_level(self):
        with pytest.raises(NotFoundError):
            default_catalog().level_by_number(11)

    def test_rolling_templates_always_active(self):
        active = default_catalog().active_challenge_templates(NOW)
        assert [t.id for t in active] == ["daily_devotion", "prayer_week", "community_love"]

    def test_challenge_template_lookup_includes_daily(self):
        catalog = default_catalog()
        assert catalog.challenge_template_by_id("prayer_week").difficulty is Difficulty.MEDIUM
        assert catalog.challenge_template_by_id("daily_gratitude").category is ChallengeCategory.DAILY

    def test_unknown_challenge_template(self):
        with pytest.raises(NotFoundError):
            default_catalog().challenge_template_by_id("nope")

    def test_templates_by_difficulty(self):
        medium = default_catalog().challenge_templates_by_difficulty(Difficulty.MEDIUM)
        assert {t.id for t in medium} == {"prayer_week", "community_love"}

    def test_default_catalog_is_shared(self):
        assert default_catalog() is default_catalog()


class TestChallengeWindows:
    def test_fixed_window_filters_templates(self):
        catalog = Catalog(
            [Level(1, "A", 0, None)],
            achievements=[],
            challenges=[
                _template("advent", starts_at=NOW + timedelta(days=1), ends_at=NOW + timedelta(days=20)),
                _template("lent", starts_at=NOW - timedelta(days=10), ends_at=NOW + timedelta(days=30)),
                _template("easter", starts_at=NOW - timedelta(days=30), ends_at=NOW - timedelta(days=1)),
            ],
        )
        assert [t.id for t in catalog.active_challenge_templates(NOW)] == ["lent"]

    def test_window_is_inclusive(self):
        template = _template("x", starts_at=NOW, ends_at=NOW + timedelta(days=1))
        assert template.is_open(NOW)
        assert template.is_open(NOW + timedelta(days=1))


class TestCatalogIntegrity:
    def test_duplicate_achievement_ids(self):
        with pytest.raises(InvariantViolation):
            Catalog([Level(1, "A", 0, None)], achievements=[ACHIEVEMENTS[0], ACHIEVEMENTS[0]])

    def test_duplicate_challenge_ids(self):
        with pytest.raises(InvariantViolation):
            Catalog([Level(1, "A", 0, None)], achievements=[], challenges=[_template("x"), _template("x")])

    def test_challenge_without_tasks(self):
        with pytest.raises(InvariantViolation):
            Catalog([Level(1, "A", 0, None)], achievements=[], challenges=[_template("x", tasks=())])


class TestCatalogFiles:
    def test_dict_roundtrip_preserves_tables(self):
        original = default_catalog()
        rebuilt = catalog_from_dict(catalog_to_dict(original))
        assert rebuilt.levels_in_order() == original.levels_in_order()
        assert rebuilt.achievements == original.achievements
        assert rebuilt.challenges == original.challenges
        assert rebuilt.daily_challenges == original.daily_challenges

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(catalog_to_dict(default_catalog())), encoding="utf-8")
        catalog = load_catalog(path)
        assert catalog.achievement_by_id("verse_collector").rule.target == 50

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(InvalidArgument):
            load_catalog(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidArgument):
            load_catalog(tmp_path / "missing.json")

    def test_missing_levels_key(self):
        with pytest.raises(InvalidArgument):
            catalog_from_dict({"achievements": []})

    def test_bad_enum_value(self):
        data = catalog_to_dict(default_catalog())
        data["achievements"][0]["category"] = "gardening"
        with pytest.raises(InvalidArgument):
            catalog_from_dict(data)

    def test_level_gap_in_file_is_fatal(self, tmp_path):
        data = catalog_to_dict(default_catalog())
        data["levels"][1]["min_points"] = 150
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(InvariantViolation):
            load_catalog(path)

    def test_rule_may_be_null(self):
        data = catalog_to_dict(default_catalog())
        data["achievements"][0]["rule"] = None
        catalog = catalog_from_dict(data)
        assert catalog.achievements[0].rule is None


class TestLoadConfiguredCatalog:
    def test_no_config_uses_default(self, tmp_path):
        assert load_configured_catalog(tmp_path / "config.json") is default_catalog()

    def test_configured_file(self, tmp_path):
        data = catalog_to_dict(default_catalog())
        data["levels"][0]["title"] = "Seeker"
        catalog_path = tmp_path / "catalog.json"
        catalog_path.write_text(json.dumps(data), encoding="utf-8")
        config_path = tmp_path / "config.json"
        save_config({"catalog_path": str(catalog_path)}, config_path)
        catalog = load_configured_catalog(config_path)
        assert catalog.levels_in_order()[0].title == "Seeker"

    def test_missing_configured_file_falls_back(self, tmp_path, caplog):
        config_path = tmp_path / "config.json"
        save_config({"catalog_path": str(tmp_path / "gone.json")}, config_path)
        with caplog.at_level("WARNING", logger="faith_rank.catalog"):
            catalog = load_configured_catalog(config_path)
        assert catalog is default_catalog()
        assert "does not exist" in caplog.text
