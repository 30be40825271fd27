from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.catalog import SKILL_DEEP_WORK, SKILL_FLOW_STATE, SKILL_PROJECT_FOCUS
from habitrpg.models import Character
from habitrpg.progression import (
    RewardContext,
    apply_xp,
    daily_xp_cap,
    energy_cost,
    gold_reward,
    round_half_up,
    stat_growth,
    streak_bonus_fraction,
    xp_reward,
    xp_to_level,
)


def test_standard_quest_rewards() -> None:
    context = RewardContext()

    assert xp_reward(3, 20, context) == 14
    assert gold_reward(3, context) == 5
    assert energy_cost(20) == 5


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert round_half_up(0.0) == 0


def test_level_curve_is_strictly_increasing() -> None:
    assert xp_to_level(1) == 100
    assert xp_to_level(2) == 255
    assert xp_to_level(3) == 441

    thresholds = [xp_to_level(level) for level in range(1, 60)]
    assert all(later > earlier for earlier, later in zip(thresholds, thresholds[1:]))
    for level, threshold in enumerate(thresholds, start=1):
        assert threshold == round_half_up(100 * level**1.35)


def test_large_credit_matches_sequential_credits() -> None:
    bulk = Character(id="1")
    stepped = Character(id="1")

    gained = apply_xp(bulk, 400)
    stepped_gained = sum(apply_xp(stepped, amount) for amount in (150, 150, 100))

    assert gained == stepped_gained == 2
    assert bulk.level == stepped.level == 3
    assert bulk.xp == stepped.xp == 45
    assert bulk.xp_to_next_level == xp_to_level(3)
    assert bulk.total_xp_earned == stepped.total_xp_earned == 400
    assert bulk.stats.to_dict() == stepped.stats.to_dict()
    assert bulk.stats.get("STR") == 3.0


def test_level_up_refills_energy() -> None:
    character = Character(id="1", energy=10)

    apply_xp(character, 99)
    assert character.energy == 10

    apply_xp(character, 1)
    assert character.level == 2
    assert character.energy == character.max_energy


def test_negative_xp_is_ignored() -> None:
    character = Character(id="1", xp=20)

    assert apply_xp(character, -50) == 0
    assert character.xp == 20


def test_streak_bonus_is_capped() -> None:
    assert streak_bonus_fraction(0) == 0
    assert streak_bonus_fraction(10) == pytest.approx(0.2)
    assert streak_bonus_fraction(100) == 0.6
    assert xp_reward(3, 20, RewardContext(streak=30)) > xp_reward(3, 20, RewardContext(streak=5))


def test_low_morale_and_archetype_multipliers() -> None:
    assert xp_reward(3, 20, RewardContext(morale=20)) == 11
    assert xp_reward(3, 20, RewardContext(morale=30)) == 14
    assert xp_reward(3, 20, RewardContext(archetype_id="builder")) == 16


def test_skill_effects_on_long_quests() -> None:
    plain = RewardContext()
    skilled = RewardContext(skills=frozenset({SKILL_DEEP_WORK, SKILL_PROJECT_FOCUS}))

    assert xp_reward(3, 45, plain) == 19
    assert xp_reward(3, 45, skilled) == 23
    assert gold_reward(3, skilled) == 6
    assert energy_cost(45) == 12
    assert energy_cost(45, frozenset({SKILL_FLOW_STATE})) == 9
    assert energy_cost(30, frozenset({SKILL_FLOW_STATE})) == 8


def test_equipment_affinity_boosts_matching_stat_only() -> None:
    context = RewardContext(affinity_bonus={"INT": 0.05})

    assert xp_reward(3, 20, context, stat="INT") == 15
    assert xp_reward(3, 20, context, stat="STR") == 14


def test_zero_effort_uses_neutral_factor() -> None:
    assert xp_reward(1, 0, RewardContext()) == 5
    assert gold_reward(1, RewardContext()) == 3
    assert energy_cost(0) == 0


def test_stat_growth_favours_archetype_stats() -> None:
    assert stat_growth("STR") == 1.0
    assert stat_growth("STR", "builder") == 1.2
    assert stat_growth("INT", "builder") == 1.0


def test_daily_cap_grows_with_level() -> None:
    assert daily_xp_cap(1) == 260
    assert daily_xp_cap(10) == 350
