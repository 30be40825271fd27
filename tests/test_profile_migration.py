from __future__ import annotations

import asyncio
import importlib
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import tomllib

from habitrpg.game import new_game_state
from habitrpg.models import CURRENT_VERSION, GameState, Habit, ModelValidationError
from habitrpg.storage import (
    CollectionConfig,
    DataStore,
    MigrationContext,
    MissingMigrationError,
    UnsupportedVersionError,
    _write_toml,
)

PROFILES_CONFIG = CollectionConfig(
    name="profiles",
    path="data/profiles/{key}.toml",
    version=CURRENT_VERSION,
    migration_key="profiles",
)


def _profile_path(root: Path, key: str) -> Path:
    return root / "data" / "profiles" / f"{key}.toml"


def test_initial_migration_fills_sections_and_moves_gold() -> None:
    migration = importlib.import_module("migrations.profiles.0001_initial")
    document = {"gold": 40, "character": {"name": "Ada"}}
    context = MigrationContext(collection=PROFILES_CONFIG, key="77", document=document)

    migration.apply(context)

    character = document["character"]
    assert character["name"] == "Ada"
    assert character["id"] == "77"
    assert character["level"] == 1
    assert character["stats"]["VIT"] == 1.0
    assert document["inventory"] == {"gold": 40}
    assert "gold" not in document
    assert document["habits"] == []
    assert document["quests"] == []
    for name in ("streak", "skill_tree", "boss", "season", "settings"):
        assert document[name] == {}


def test_marker_migration_derives_week_marker() -> None:
    migration = importlib.import_module("migrations.profiles.0002_scheduler_markers")
    document = {
        "season": {"current_week": 3, "last_processed_date": "2024-03-10"},
        "inventory": {"equipped": {"tool": "abc"}},
        "streak": {"shields": 2},
    }
    context = MigrationContext(collection=PROFILES_CONFIG, key="1", document=document)

    migration.apply(context)

    assert document["season"]["last_processed_week"] == 3
    assert document["inventory"]["loadout"] == {"tool": "abc"}
    assert document["inventory"]["equipment"] == []
    assert document["streak"]["streak_shields"] == 2
    assert document["shop"] == {"purchases": {}}
    assert document["events"] == []


def test_datastore_upgrades_legacy_profile_on_load(tmp_path: Path) -> None:
    legacy = {
        "gold": 12,
        "character": {"id": "42", "name": "Legacy", "level": 3, "xp": 10, "xp_to_next_level": 441},
        "habits": [
            {"id": "h1", "title": "Stretch", "category": "recovery", "difficulty": 2, "effort_minutes": 10}
        ],
        "season": {"start_date": "2024-01-01", "current_week": 2, "last_processed_date": "2024-01-09"},
    }
    path = _profile_path(tmp_path, "42")
    _write_toml(path, legacy)
    store = DataStore(tmp_path)

    state = asyncio.run(store.load_profile(42))

    assert state is not None
    assert state.character.name == "Legacy"
    assert state.character.level == 3
    assert state.inventory.gold == 12
    assert state.season.last_processed_week == 2
    assert [habit.title for habit in state.habits] == ["Stretch"]
    with path.open("rb") as handle:
        persisted = tomllib.load(handle)
    assert persisted["version"] == CURRENT_VERSION


def test_datastore_rejects_newer_versions(tmp_path: Path) -> None:
    _write_toml(_profile_path(tmp_path, "5"), {"version": CURRENT_VERSION + 1, "character": {"id": "5"}})
    store = DataStore(tmp_path)

    with pytest.raises(UnsupportedVersionError):
        asyncio.run(store.load_profile("5"))


def test_datastore_rejects_mismatched_shape(tmp_path: Path) -> None:
    _write_toml(
        _profile_path(tmp_path, "9"),
        {"version": CURRENT_VERSION, "character": {"id": "9"}, "season": {}, "habits": "oops"},
    )
    store = DataStore(tmp_path)

    with pytest.raises(ModelValidationError):
        asyncio.run(store.load_profile("9"))


def test_missing_migration_step_raises(tmp_path: Path) -> None:
    from habitrpg.storage import DocumentMigrator

    migrator = DocumentMigrator(tmp_path / "no-migrations")
    config = CollectionConfig(name="profiles", path="data/profiles/{key}.toml", version=2)

    with pytest.raises(MissingMigrationError):
        migrator.upgrade(config, "1", {"version": 1})


def test_profile_round_trip_keeps_state(tmp_path: Path) -> None:
    store = DataStore(tmp_path)
    state = new_game_state("314", "Roundtrip", now=1_700_000_000.0)
    state.habits.append(Habit(id="h1", title="Read", category="project", difficulty=4, effort_minutes=30))
    state.inventory.gold = 55
    state.character.stats.add("INT", 2.5)

    async def scenario() -> GameState | None:
        await store.save_profile(state)
        return await store.load_profile("314")

    loaded = asyncio.run(scenario())

    assert loaded == state
    assert asyncio.run(store.keys("profiles")) == ["314"]
