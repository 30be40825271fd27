from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.game import new_game_state
from habitrpg.models import (
    Boss,
    CURRENT_VERSION,
    GameState,
    Habit,
    HabitCategory,
    ModelValidationError,
    QuestInstance,
    StatKey,
    StreakState,
)


def _document() -> dict:
    state = new_game_state("7", "Ada")
    state.habits.append(Habit(id="h1", title="Read", category="practice"))
    state.quests.append(QuestInstance(id="2024-03-10-h1", habit_id="h1", date="2024-03-10"))
    return state.to_document()


def test_document_round_trip() -> None:
    document = _document()

    state = GameState.from_document(document)

    assert state.to_document() == document
    assert state.version == CURRENT_VERSION


def test_document_must_be_current_version() -> None:
    document = _document()
    document["version"] = CURRENT_VERSION - 1

    with pytest.raises(ModelValidationError) as excinfo:
        GameState.from_document(document)

    assert "version" in str(excinfo.value)


@pytest.mark.parametrize(
    ("section", "index", "field", "value"),
    [
        ("habits", 0, "difficulty", 7),
        ("habits", 0, "category", "hobby"),
        ("quests", 0, "date", "10/03/2024"),
        ("quests", 0, "status", "lost"),
    ],
)
def test_invalid_records_are_rejected(section: str, index: int, field: str, value: object) -> None:
    document = _document()
    document[section][index][field] = value

    with pytest.raises(ModelValidationError):
        GameState.from_document(document)


def test_character_requires_stats_and_bounded_morale() -> None:
    document = _document()
    document["character"]["morale"] = 150

    with pytest.raises(ModelValidationError):
        GameState.from_document(document)

    document = _document()
    del document["character"]["stats"]
    with pytest.raises(ModelValidationError):
        GameState.from_document(document)


def test_stat_keys_accept_names_and_attributes() -> None:
    assert StatKey.from_value("str") is StatKey.STR
    assert StatKey.from_value(StatKey.WIS) is StatKey.WIS
    with pytest.raises(ValueError):
        StatKey.from_value("LUCK")


def test_habit_defaults_follow_category() -> None:
    assert Habit(id="a", title="Nap", category="recovery").stat_affinity is StatKey.WIS
    assert Habit(id="b", title="Lift").category is HabitCategory.RITUAL
    assert Habit(id="c", title="Code", category="project", stat_affinity="DEX").stat_affinity is StatKey.DEX


def test_boss_defeat_follows_health() -> None:
    boss = Boss(id="b", template_id="entropy", name="Entropy", week=1, max_health=100, current_health=-5)

    assert boss.current_health == 0
    assert boss.is_defeated


def test_streak_state_clamps_counters() -> None:
    streak = StreakState(current_streak=5, longest_streak=2, grace_tokens=9)

    assert streak.longest_streak == 5
    assert streak.grace_tokens == streak.max_grace_tokens + 1


def test_changed_sections_lists_only_differences() -> None:
    state = GameState.from_document(_document())
    other = GameState.from_document(_document())
    other.inventory.gold = 10
    other.character.xp = 5

    assert other.changed_sections(state) == ("character", "inventory")


def test_character_xp_must_stay_below_threshold() -> None:
    document = _document()
    document["character"]["xp"] = document["character"]["xp_to_next_level"]

    with pytest.raises(ModelValidationError) as excinfo:
        GameState.from_document(document)

    assert "level threshold" in str(excinfo.value)
