"""Daily quest generation."""

from __future__ import annotations

import logging
from typing import Iterable, List

from .models import Habit, QuestInstance, QuestStatus, quest_id_for
from .progression import RewardContext, gold_reward, xp_reward

log = logging.getLogger(__name__)


def build_quest(habit: Habit, date_key: str, context: RewardContext) -> QuestInstance:
    """Snapshot ``habit`` into a pending quest for ``date_key``."""

    return QuestInstance(
        id=quest_id_for(habit.id, date_key),
        habit_id=habit.id,
        habit_title=habit.title,
        date=date_key,
        status=QuestStatus.PENDING,
        difficulty=habit.difficulty,
        effort_minutes=habit.effort_minutes,
        stat_affinity=habit.stat_affinity,
        xp_reward=xp_reward(
            habit.difficulty, habit.effort_minutes, context, stat=habit.stat_affinity
        ),
        gold_reward=gold_reward(habit.difficulty, context),
    )


def generate_daily_quests(
    habits: Iterable[Habit],
    quests: Iterable[QuestInstance],
    date_key: str,
    context: RewardContext,
) -> List[QuestInstance]:
    """Return the quests missing for ``date_key``.

    One quest exists per (habit, date); habits that already have an instance
    for the date are skipped, so running this twice yields nothing new.
    """

    existing = {(quest.habit_id, quest.date) for quest in quests}
    created: List[QuestInstance] = []
    for habit in habits:
        if not habit.is_active:
            continue
        if (habit.id, date_key) in existing:
            continue
        created.append(build_quest(habit, date_key, context))
        existing.add((habit.id, date_key))
    if created:
        log.debug("Generated %s quest(s) for %s", len(created), date_key)
    return created


__all__ = ["build_quest", "generate_daily_quests"]
