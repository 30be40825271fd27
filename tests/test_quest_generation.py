from __future__ import annotations

import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.models import Habit, QuestStatus, StatKey
from habitrpg.progression import RewardContext
from habitrpg.quests import generate_daily_quests


def _habits() -> list[Habit]:
    return [
        Habit(id="read", title="Read", category="practice", difficulty=3, effort_minutes=20),
        Habit(id="walk", title="Walk", category="recovery", difficulty=2, effort_minutes=30),
        Habit(id="paused", title="Paused", is_active=False),
    ]


def test_generates_one_pending_quest_per_active_habit() -> None:
    quests = generate_daily_quests(_habits(), [], "2024-03-10", RewardContext())

    assert [quest.id for quest in quests] == ["2024-03-10-read", "2024-03-10-walk"]
    read = quests[0]
    assert read.status is QuestStatus.PENDING
    assert read.habit_title == "Read"
    assert read.stat_affinity is StatKey.DEX
    assert read.xp_reward == 14
    assert read.gold_reward == 5
    assert quests[1].stat_affinity is StatKey.WIS


def test_generation_is_idempotent() -> None:
    habits = _habits()
    first = generate_daily_quests(habits, [], "2024-03-10", RewardContext())

    second = generate_daily_quests(habits, first, "2024-03-10", RewardContext())

    assert second == []


def test_other_dates_are_generated_independently() -> None:
    habits = _habits()
    first = generate_daily_quests(habits, [], "2024-03-10", RewardContext())

    next_day = generate_daily_quests(habits, first, "2024-03-11", RewardContext())

    assert {quest.date for quest in next_day} == {"2024-03-11"}
    assert len(next_day) == 2


def test_quests_snapshot_habit_values() -> None:
    habits = _habits()
    quests = generate_daily_quests(habits, [], "2024-03-10", RewardContext())

    habits[0].difficulty = 5
    habits[0].title = "Read more"

    assert quests[0].difficulty == 3
    assert quests[0].habit_title == "Read"
