"""Weekly boss generation and damage accounting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from .catalog import BOSS_TEMPLATES, RELIC_IDS, RELIC_NAMES, BossTemplate
from .constants import (
    BASE_BOSS_HEALTH,
    BASE_DAMAGE,
    BOSS_BASE_GOLD,
    BOSS_GOLD_PER_WEEK,
    HEALTH_PER_MISS,
    RELIC_UNLOCK_WEEK,
    WEAKNESS_MULTIPLIER,
    WEEKLY_BOSS_SHARDS,
)
from .models import Boss, BossRewards, BossState, Inventory, Relic, StatKey
from .progression import difficulty_multiplier, round_half_up

log = logging.getLogger(__name__)


def choose_template(missed_by_stat: Mapping[str, int], week: int) -> BossTemplate:
    """Pick the template whose weakness is last week's most neglected stat.

    With no misses, a tie, or a stat no template covers, templates rotate by
    week number.
    """

    rotation = BOSS_TEMPLATES[(max(1, week) - 1) % len(BOSS_TEMPLATES)]
    misses = {key: count for key, count in missed_by_stat.items() if count > 0}
    if not misses:
        return rotation
    top = max(misses.values())
    leaders = [key for key, count in misses.items() if count == top]
    if len(leaders) != 1:
        return rotation
    leader = StatKey.from_value(leaders[0])
    for template in BOSS_TEMPLATES:
        if template.weakness is leader:
            return template
    return rotation


def boss_rewards(week: int) -> BossRewards:
    relic_id: Optional[str] = None
    if week >= RELIC_UNLOCK_WEEK:
        relic_id = RELIC_IDS[(week - RELIC_UNLOCK_WEEK) % len(RELIC_IDS)]
    return BossRewards(
        gold=BOSS_BASE_GOLD + week * BOSS_GOLD_PER_WEEK,
        shards=WEEKLY_BOSS_SHARDS,
        relic_id=relic_id,
    )


def spawn_boss(
    week: int,
    missed_quests: int,
    missed_by_stat: Mapping[str, int],
    spawn_date: str,
) -> Boss:
    template = choose_template(missed_by_stat, week)
    max_health = BASE_BOSS_HEALTH + max(0, missed_quests) * HEALTH_PER_MISS
    boss = Boss(
        id=f"boss-{spawn_date}-{template.id}",
        template_id=template.id,
        name=template.name,
        description=template.description,
        week=week,
        max_health=max_health,
        current_health=max_health,
        weakness=template.weakness,
        rewards=boss_rewards(week),
        spawn_date=spawn_date,
    )
    log.info("Spawned %s for week %s with %s health", boss.name, week, max_health)
    return boss


def boss_damage(difficulty: int, stat: StatKey | str, boss: Boss) -> int:
    damage = BASE_DAMAGE * difficulty_multiplier(difficulty)
    if boss.weakness is not None and StatKey.from_value(stat) is boss.weakness:
        damage *= WEAKNESS_MULTIPLIER
    return round_half_up(damage)


@dataclass(slots=True)
class DamageOutcome:
    boss: Boss
    damage: int
    remaining_health: int
    defeated: bool = False


def deal_damage(state: BossState, difficulty: int, stat: StatKey | str) -> Optional[DamageOutcome]:
    """Apply a completed quest's hit to the current boss.

    Returns ``None`` when there is no boss or it is already defeated. The
    weekly counters are only touched for hits that land.
    """

    boss = state.current_boss
    if boss is None or boss.is_defeated:
        return None
    damage = boss_damage(difficulty, stat, boss)
    boss.current_health = max(0, boss.current_health - damage)
    state.weekly_damage_dealt += damage
    outcome = DamageOutcome(boss=boss, damage=damage, remaining_health=boss.current_health)
    if boss.current_health == 0:
        boss.is_defeated = True
        if boss.id not in state.defeated_boss_ids:
            state.defeated_boss_ids.append(boss.id)
        outcome.defeated = True
    return outcome


def grant_rewards(inventory: Inventory, boss: Boss, now: float) -> Optional[Relic]:
    """Pay out a defeated boss's rewards; returns the relic granted, if any."""

    inventory.gold += boss.rewards.gold
    inventory.essence_shards += boss.rewards.shards
    relic_id = boss.rewards.relic_id
    if relic_id is None or inventory.has_relic(relic_id):
        return None
    relic = Relic(
        id=relic_id,
        name=RELIC_NAMES.get(relic_id, relic_id),
        description=f"Taken from {boss.name}",
        source=boss.id,
        obtained_at=now,
    )
    inventory.relics.append(relic)
    return relic


def expire_boss(state: BossState) -> Optional[Boss]:
    """Retire an undefeated boss without reward; returns it if one expired."""

    boss = state.current_boss
    if boss is None or boss.is_defeated:
        return None
    if boss.id not in state.expired_boss_ids:
        state.expired_boss_ids.append(boss.id)
    log.info("Boss %s expired with %s health left", boss.name, boss.current_health)
    return boss


__all__ = [
    "DamageOutcome",
    "boss_damage",
    "boss_rewards",
    "choose_template",
    "deal_damage",
    "expire_boss",
    "grant_rewards",
    "spawn_boss",
]
