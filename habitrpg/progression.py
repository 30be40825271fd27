"""Pure reward, energy, leveling and stat growth rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import AbstractSet, Mapping, Optional

from .catalog import (
    ARCHETYPES,
    EQUIPMENT,
    Archetype,
    SKILL_DEEP_WORK,
    SKILL_FLOW_STATE,
    SKILL_PROJECT_FOCUS,
    SKILL_PROOF_BONUS,
)
from .constants import (
    ARCHETYPE_STAT_GROWTH_MULTIPLIER,
    BASE_GOLD,
    BASE_XP,
    DAILY_XP_CAP_BASE,
    DAILY_XP_CAP_PER_LEVEL,
    DEEP_WORK_MINUTES,
    DEEP_WORK_XP_BONUS,
    DIFFICULTY_MULTIPLIERS,
    EFFORT_BASELINE_MINUTES,
    EFFORT_SCALE,
    ENERGY_MINUTES_PER_POINT,
    FLOW_STATE_ENERGY_DISCOUNT,
    LEVEL_CURVE_BASE,
    LEVEL_CURVE_EXPONENT,
    LEVEL_UP_STAT_GAIN,
    LOW_MORALE_PENALTY,
    LOW_MORALE_THRESHOLD,
    MAX_MORALE,
    PROJECT_FOCUS_GOLD_BONUS,
    PROOF_XP_BONUS,
    STAT_GROWTH_PER_QUEST,
    STREAK_BONUS_CAP,
    STREAK_BONUS_PER_DAY,
)
from .models import STAT_KEYS, Character, GameState, Inventory, StatKey


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""

    return int(math.floor(value + 0.5))


def difficulty_multiplier(difficulty: int) -> float:
    return DIFFICULTY_MULTIPLIERS.get(int(difficulty), 1.0)


def effort_factor(minutes: float) -> float:
    if minutes <= 0:
        return 1.0
    return 1 + math.log(minutes / EFFORT_BASELINE_MINUTES) * EFFORT_SCALE


def streak_bonus_fraction(streak: int) -> float:
    return min(max(0, streak) * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)


def streak_bonus(streak: int) -> float:
    return 1 + streak_bonus_fraction(streak)


def morale_multiplier(morale: int) -> float:
    return LOW_MORALE_PENALTY if morale < LOW_MORALE_THRESHOLD else 1.0


def xp_to_level(level: int) -> int:
    """XP needed to advance from ``level`` to the next one."""

    return round_half_up(LEVEL_CURVE_BASE * max(1, level) ** LEVEL_CURVE_EXPONENT)


def daily_xp_cap(level: int) -> int:
    return DAILY_XP_CAP_BASE + level * DAILY_XP_CAP_PER_LEVEL


@dataclass(frozen=True)
class RewardContext:
    """Character-side inputs to the reward formulas.

    ``affinity_bonus`` maps a stat key to the summed affinity bonus of the
    equipped, unbroken items favouring that stat.
    """

    streak: int = 0
    morale: int = MAX_MORALE
    archetype_id: Optional[str] = None
    skills: AbstractSet[str] = frozenset()
    affinity_bonus: Mapping[str, float] = field(default_factory=dict)

    @property
    def archetype(self) -> Optional[Archetype]:
        if self.archetype_id is None:
            return None
        return ARCHETYPES.get(self.archetype_id)

    @property
    def archetype_xp_multiplier(self) -> float:
        archetype = self.archetype
        return archetype.xp_multiplier if archetype is not None else 1.0


def xp_reward(
    difficulty: int,
    effort_minutes: int,
    context: RewardContext,
    *,
    stat: StatKey | str | None = None,
    has_proof: bool = False,
) -> int:
    xp = BASE_XP * difficulty_multiplier(difficulty) * effort_factor(effort_minutes)
    xp *= streak_bonus(context.streak)
    xp *= context.archetype_xp_multiplier
    xp *= morale_multiplier(context.morale)
    if has_proof and SKILL_PROOF_BONUS in context.skills:
        xp *= PROOF_XP_BONUS
    if effort_minutes >= DEEP_WORK_MINUTES and SKILL_DEEP_WORK in context.skills:
        xp *= DEEP_WORK_XP_BONUS
    if stat is not None:
        xp *= 1 + context.affinity_bonus.get(StatKey.from_value(stat).value, 0.0)
    return max(0, round_half_up(xp))


def gold_reward(difficulty: int, context: RewardContext) -> int:
    gold = BASE_GOLD * difficulty_multiplier(difficulty) * streak_bonus(context.streak)
    if SKILL_PROJECT_FOCUS in context.skills:
        gold *= PROJECT_FOCUS_GOLD_BONUS
    return max(0, round_half_up(gold))


def energy_cost(effort_minutes: int, skills: AbstractSet[str] = frozenset()) -> int:
    cost = math.ceil(max(0, effort_minutes) / ENERGY_MINUTES_PER_POINT)
    if effort_minutes >= DEEP_WORK_MINUTES and SKILL_FLOW_STATE in skills:
        cost = math.floor(cost * FLOW_STATE_ENERGY_DISCOUNT)
    return int(cost)


def apply_xp(character: Character, amount: int) -> int:
    """Credit ``amount`` XP to ``character`` and return the levels gained.

    Each level crossed adds ``LEVEL_UP_STAT_GAIN`` to every stat and refills
    energy, so one large credit ends in the same place as several small ones.
    """

    amount = max(0, int(amount))
    character.xp += amount
    character.total_xp_earned += amount
    gained = 0
    while character.xp >= character.xp_to_next_level:
        character.xp -= character.xp_to_next_level
        character.level += 1
        character.xp_to_next_level = xp_to_level(character.level)
        for key in STAT_KEYS:
            character.stats.add(key, LEVEL_UP_STAT_GAIN)
        character.energy = character.max_energy
        gained += 1
    return gained


def stat_growth(stat: StatKey | str, archetype_id: Optional[str] = None) -> float:
    """Amount the quest's affinity stat grows by on completion."""

    key = StatKey.from_value(stat)
    growth = STAT_GROWTH_PER_QUEST
    archetype = ARCHETYPES.get(archetype_id) if archetype_id else None
    if archetype is not None and key in archetype.favoured_stats:
        growth *= ARCHETYPE_STAT_GROWTH_MULTIPLIER
    return growth


def equipment_affinity(inventory: Inventory) -> dict[str, float]:
    """Sum the affinity bonuses of equipped, unbroken items per stat."""

    bonus: dict[str, float] = {}
    for item in inventory.equipped():
        definition = EQUIPMENT.get(item.item_id)
        if definition is None or definition.affinity is None or item.is_broken:
            continue
        key = definition.affinity.value
        bonus[key] = bonus.get(key, 0.0) + definition.affinity_bonus
    return bonus


def reward_context(state: GameState) -> RewardContext:
    return RewardContext(
        streak=state.streak.current_streak,
        morale=state.character.morale,
        archetype_id=state.character.archetype_id,
        skills=frozenset(state.skill_tree.unlocked_skill_ids),
        affinity_bonus=equipment_affinity(state.inventory),
    )


def clamp_morale(value: int) -> int:
    return min(MAX_MORALE, max(0, int(value)))


__all__ = [
    "RewardContext",
    "apply_xp",
    "clamp_morale",
    "daily_xp_cap",
    "difficulty_multiplier",
    "effort_factor",
    "energy_cost",
    "equipment_affinity",
    "gold_reward",
    "morale_multiplier",
    "reward_context",
    "round_half_up",
    "stat_growth",
    "streak_bonus",
    "streak_bonus_fraction",
    "xp_reward",
    "xp_to_level",
]
