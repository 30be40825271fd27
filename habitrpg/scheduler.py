"""Day and week rollover state machine.

The scheduler keeps two markers on the season, ``last_processed_date`` and
``last_processed_week``.  A run only does work when the current game day or
game week is later than the stored marker, so invoking it repeatedly with the
same clock reading leaves the state untouched. A settings change that moves
the game day backwards is a no-op until the clock catches up again.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .boss import expire_boss, spawn_boss
from .catalog import SKILL_STREAK_SHIELD, features_for_week
from .constants import (
    GRACE_TOKENS_PER_WEEK,
    SKILL_STREAK_SHIELD_INTERVAL,
    STREAK_BREAK_MORALE_PENALTY,
    STREAK_SHIELD_INTERVAL,
)
from .gametime import Timestamp, game_date, week_number
from .models import EventType, GameState, QuestStatus
from .progression import clamp_morale, reward_context
from .quests import generate_daily_quests

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SchedulerReport:
    state: GameState
    today: str
    week: int = 1
    day_rolled: bool = False
    week_rolled: bool = False
    generated: List[str] = field(default_factory=list)
    graced: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    rested: List[str] = field(default_factory=list)
    shields_used: int = 0
    streak_broken: bool = False
    spawned_boss_id: Optional[str] = None
    expired_boss_id: Optional[str] = None
    grace_tokens_granted: int = 0
    shield_awarded: bool = False
    new_features: List[str] = field(default_factory=list)
    events: List[Tuple[EventType, Dict[str, Any]]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.day_rolled or self.week_rolled


def shield_interval(state: GameState) -> int:
    if SKILL_STREAK_SHIELD in state.skill_tree.unlocked_skill_ids:
        return SKILL_STREAK_SHIELD_INTERVAL
    return STREAK_SHIELD_INTERVAL


def _resolve_missed(state: GameState, today: str, report: SchedulerReport) -> None:
    streak = state.streak
    overdue = sorted(
        (quest for quest in state.quests if quest.is_pending and quest.date < today),
        key=lambda quest: (quest.date, quest.id),
    )
    if streak.is_recovery_day:
        for quest in overdue:
            quest.status = QuestStatus.SKIPPED
            report.rested.append(quest.id)
            report.events.append(
                (EventType.QUEST_SKIPPED, {"quest_id": quest.id, "automatic": True, "recovery": True})
            )
        streak.is_recovery_day = False
        return

    for quest in overdue:
        if streak.grace_tokens > 0:
            streak.grace_tokens -= 1
            quest.status = QuestStatus.GRACE
            report.graced.append(quest.id)
            report.events.append((EventType.QUEST_GRACE, {"quest_id": quest.id, "automatic": True}))
            continue

        quest.status = QuestStatus.SKIPPED
        state.boss.record_miss(quest.stat_affinity)
        report.skipped.append(quest.id)
        report.events.append((EventType.QUEST_SKIPPED, {"quest_id": quest.id, "automatic": True}))

        if streak.streak_shields > 0:
            streak.streak_shields -= 1
            report.shields_used += 1
            report.events.append(
                (EventType.STREAK_SHIELD_USED, {"quest_id": quest.id, "streak": streak.current_streak})
            )
            continue

        if streak.current_streak > 0:
            report.events.append(
                (EventType.STREAK_BROKEN, {"quest_id": quest.id, "streak": streak.current_streak})
            )
            state.character.morale = clamp_morale(
                state.character.morale - STREAK_BREAK_MORALE_PENALTY
            )
            report.streak_broken = True
        streak.current_streak = 0
        streak.last_shield_award = 0


def _process_day(state: GameState, today: str, report: SchedulerReport) -> None:
    _resolve_missed(state, today, report)
    state.character.energy = state.character.max_energy
    created = generate_daily_quests(state.habits, state.quests, today, reward_context(state))
    state.quests.extend(created)
    report.generated = [quest.id for quest in created]
    state.season.last_processed_date = today
    report.day_rolled = True
    report.events.append(
        (
            EventType.DAY_ROLLOVER,
            {"date": today, "generated": len(created), "missed": len(report.skipped)},
        )
    )


def _process_week(state: GameState, week: int, today: str, report: SchedulerReport) -> None:
    boss_state = state.boss
    expired = expire_boss(boss_state)
    if expired is not None:
        report.expired_boss_id = expired.id
        report.events.append((EventType.BOSS_EXPIRED, {"boss_id": expired.id}))

    boss = spawn_boss(
        week,
        boss_state.weekly_missed_quests,
        dict(boss_state.weekly_missed_by_stat),
        today,
    )
    boss_state.current_boss = boss
    boss_state.reset_weekly()
    report.spawned_boss_id = boss.id
    report.events.append(
        (EventType.BOSS_SPAWNED, {"boss_id": boss.id, "max_health": boss.max_health, "week": week})
    )

    streak = state.streak
    before = streak.grace_tokens
    streak.grace_tokens = max(
        before, min(streak.max_grace_tokens, before + GRACE_TOKENS_PER_WEEK)
    )
    report.grace_tokens_granted = streak.grace_tokens - before
    if report.grace_tokens_granted:
        report.events.append(
            (EventType.GRACE_TOKENS_GRANTED, {"amount": report.grace_tokens_granted})
        )

    interval = shield_interval(state)
    milestone = streak.current_streak // interval * interval
    if milestone > 0 and milestone > streak.last_shield_award:
        streak.streak_shields += 1
        streak.last_shield_award = milestone
        report.shield_awarded = True
        report.events.append((EventType.STREAK_SHIELD_AWARDED, {"streak": milestone}))

    season = state.season
    unlocked = features_for_week(week)
    report.new_features = [name for name in unlocked if name not in season.unlocked_features]
    for name in report.new_features:
        report.events.append((EventType.FEATURE_UNLOCKED, {"feature": name, "week": week}))
    season.unlocked_features = unlocked
    season.current_week = week
    season.last_processed_week = week
    report.week_rolled = True
    report.events.append((EventType.WEEK_ROLLOVER, {"week": week}))


def run(state: GameState, now: Timestamp) -> SchedulerReport:
    """Advance ``state`` to the game day and week containing ``now``.

    ``state`` is not modified; the report carries the resulting copy. When
    neither marker moves the report's state equals the input.
    """

    draft = copy.deepcopy(state)
    today = game_date(draft.settings.timezone, draft.settings.day_start_hour, now)
    report = SchedulerReport(state=draft, today=today)

    season = draft.season
    if not season.start_date:
        season.start_date = today

    if season.last_processed_date is None or today > season.last_processed_date:
        _process_day(draft, today, report)

    report.week = week_number(season.start_date, today)
    if report.week > season.last_processed_week:
        _process_week(draft, report.week, today, report)

    if report.changed:
        log.info(
            "Scheduler advanced to %s (week %s): %s new, %s missed, %s graced",
            today,
            report.week,
            len(report.generated),
            len(report.skipped),
            len(report.graced),
        )
    return report


__all__ = ["SchedulerReport", "run", "shield_interval"]
