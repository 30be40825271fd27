from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg import scheduler
from habitrpg.game import new_game_state
from habitrpg.models import GameState, Habit, QuestStatus


def _noon(day: int, month: int = 3) -> datetime:
    return datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)


def _state(*habit_ids: str) -> GameState:
    state = new_game_state("1", "Tester")
    for habit_id in habit_ids or ("read",):
        state.habits.append(Habit(id=habit_id, title=habit_id.title(), effort_minutes=20))
    return state


def test_first_run_starts_season_and_generates_quests() -> None:
    state = _state()

    report = scheduler.run(state, _noon(10))

    assert state.season.last_processed_date is None
    after = report.state
    assert after.season.start_date == "2024-03-10"
    assert after.season.last_processed_date == "2024-03-10"
    assert after.season.last_processed_week == 1
    assert report.generated == ["2024-03-10-read"]
    assert after.boss.current_boss is not None
    assert after.boss.current_boss.max_health == 100
    assert "daily_quests" in after.season.unlocked_features


def test_second_run_with_same_clock_changes_nothing() -> None:
    first = scheduler.run(_state(), _noon(10)).state

    report = scheduler.run(first, _noon(10))

    assert not report.changed
    assert report.state == first
    assert report.events == []


def test_day_rollover_creates_exactly_one_pending_quest() -> None:
    first = scheduler.run(_state(), _noon(10)).state

    after = scheduler.run(first, _noon(11)).state

    pending = [quest for quest in after.quests_for("2024-03-11") if quest.is_pending]
    assert [quest.id for quest in pending] == ["2024-03-11-read"]
    again = scheduler.run(after, _noon(11, 3).replace(hour=20)).state
    assert len(again.quests_for("2024-03-11")) == 1


def test_missed_quest_uses_grace_token_first() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.streak.current_streak = 3

    report = scheduler.run(first, _noon(11))

    after = report.state
    assert after.find_quest("2024-03-10-read").status is QuestStatus.GRACE
    assert after.streak.grace_tokens == 1
    assert after.streak.current_streak == 3
    assert report.graced == ["2024-03-10-read"]


def test_miss_without_grace_or_shield_breaks_streak() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.streak.grace_tokens = 0
    first.streak.current_streak = 3
    first.streak.longest_streak = 3

    report = scheduler.run(first, _noon(11))

    after = report.state
    assert after.find_quest("2024-03-10-read").status is QuestStatus.SKIPPED
    assert after.streak.current_streak == 0
    assert after.streak.longest_streak == 3
    assert after.character.morale == 90
    assert after.boss.weekly_missed_quests == 1
    assert report.streak_broken


def test_shield_preserves_streak() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.streak.grace_tokens = 0
    first.streak.current_streak = 3
    first.streak.streak_shields = 1

    report = scheduler.run(first, _noon(11))

    after = report.state
    assert after.streak.current_streak == 3
    assert after.streak.streak_shields == 0
    assert report.shields_used == 1
    assert not report.streak_broken
    assert after.find_quest("2024-03-10-read").status is QuestStatus.SKIPPED


def test_day_rollover_refills_energy() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.character.energy = 12

    after = scheduler.run(first, _noon(11)).state

    assert after.character.energy == after.character.max_energy


def test_missed_quests_make_next_boss_stronger() -> None:
    habit_ids = ("one", "two", "three", "four", "five")
    first = scheduler.run(_state(*habit_ids), _noon(10)).state
    first.streak.grace_tokens = 0
    opening_boss = first.boss.current_boss

    report = scheduler.run(first, _noon(17))

    after = report.state
    assert report.week_rolled
    assert report.week == 2
    assert report.expired_boss_id == opening_boss.id
    assert opening_boss.id in after.boss.expired_boss_ids
    boss = after.boss.current_boss
    assert boss.max_health == 150
    assert boss.current_health == 150
    assert boss.template_id == "entropy"
    assert after.boss.weekly_missed_quests == 0
    assert after.season.current_week == 2
    assert "grace_tokens" in after.season.unlocked_features


def test_week_rollover_grants_grace_token_up_to_cap() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.streak.grace_tokens = 0
    first.quests.clear()

    report = scheduler.run(first, _noon(17))

    assert report.state.streak.grace_tokens == 1
    assert report.grace_tokens_granted == 1

    capped = scheduler.run(_state(), _noon(10)).state
    capped.quests.clear()
    capped_report = scheduler.run(capped, _noon(17))
    assert capped_report.state.streak.grace_tokens == 2
    assert capped_report.grace_tokens_granted == 0


def test_streak_milestone_awards_one_shield() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.quests.clear()
    first.streak.current_streak = 15

    report = scheduler.run(first, _noon(17))

    assert report.shield_awarded
    assert report.state.streak.streak_shields == 1
    assert report.state.streak.last_shield_award == 14

    report.state.quests.clear()
    later = scheduler.run(report.state, _noon(24))
    assert not later.shield_awarded
    assert later.state.streak.streak_shields == 1


def test_moving_day_start_backwards_does_not_rewind_markers() -> None:
    first = scheduler.run(_state(), _noon(10)).state
    first.settings.day_start_hour = 0
    early = datetime(2024, 3, 17, 2, 0, tzinfo=timezone.utc)
    advanced = scheduler.run(first, early).state
    week_two_boss = advanced.boss.current_boss
    assert advanced.season.last_processed_week == 2
    advanced.character.energy = 40
    advanced.boss.current_boss.current_health = 60

    advanced.settings.day_start_hour = 4
    report = scheduler.run(advanced, early)

    assert report.today == "2024-03-16"
    assert not report.changed
    assert report.state == advanced
    assert report.state.season.last_processed_date == "2024-03-17"
    assert report.state.season.last_processed_week == 2
    assert report.state.boss.current_boss.id == week_two_boss.id
    assert report.state.boss.current_boss.current_health == 60
    assert week_two_boss.id not in report.state.boss.expired_boss_ids
    assert report.state.character.energy == 40

    report.state.settings.day_start_hour = 0
    restored = scheduler.run(report.state, early)
    assert not restored.changed
    assert len(restored.state.boss.expired_boss_ids) == 1

    next_day = scheduler.run(restored.state, _noon(18))
    assert next_day.day_rolled
    assert not next_day.week_rolled
    assert next_day.state.character.energy == next_day.state.character.max_energy
