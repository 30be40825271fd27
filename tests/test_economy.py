from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.catalog import (
    ITEM_ENERGY_POTION,
    ITEM_REPAIR_KIT_BASIC,
    SKILL_GRACE_EXTENDED,
)
from habitrpg.game import GameStore, UnknownEntityError, new_game_state
from habitrpg.models import EquipmentInstance, GameState
from habitrpg.notifications import ManualClock
from habitrpg.progression import equipment_affinity

START = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp()


def _store(gold: int = 500, shards: int = 0, week: int = 1) -> GameStore:
    state = new_game_state("1", now=START)
    state.inventory.gold = gold
    state.inventory.essence_shards = shards
    state.season.current_week = week
    return GameStore(state, clock=ManualClock(START))


def _with_item(state: GameState, durability: float, item_id: str = "eq_graphite_pencil") -> str:
    state.inventory.equipment.append(
        EquipmentInstance(id="pencil", item_id=item_id, durability=durability)
    )
    return "pencil"


def test_buy_equipment_creates_fresh_instance() -> None:
    store = _store()

    result = store.buy_item("eq_graphite_pencil")

    assert result.success
    inventory = store.state.inventory
    assert inventory.gold == 450
    assert len(inventory.equipment) == 1
    assert inventory.equipment[0].durability == 50.0
    assert result.data["instance_ids"] == [inventory.equipment[0].id]
    assert store.state.shop.purchases == {"eq_graphite_pencil": 1}


def test_buy_rejections() -> None:
    store = _store(gold=30)
    before = store.state

    assert not store.buy_item("eq_dumbbell").success
    assert not store.buy_item("eq_graphite_pencil").success
    assert not store.buy_item(ITEM_REPAIR_KIT_BASIC, 0).success
    assert store.state is before
    with pytest.raises(UnknownEntityError):
        store.buy_item("eq_unknown")


def test_consumable_stack_limit() -> None:
    store = _store(gold=1000)

    assert store.buy_item(ITEM_ENERGY_POTION, 10).success
    assert not store.buy_item(ITEM_ENERGY_POTION, 1).success
    assert store.state.inventory.consumable_count(ITEM_ENERGY_POTION) == 10


def test_energy_potion_restores_up_to_maximum() -> None:
    store = _store()
    store.buy_item(ITEM_ENERGY_POTION, 2)
    character = store.state.character

    result = store.use_consumable(ITEM_ENERGY_POTION)

    assert result.success
    assert store.state.character.energy == character.max_energy
    assert store.state.inventory.consumable_count(ITEM_ENERGY_POTION) == 1
    assert not store.use_consumable(ITEM_REPAIR_KIT_BASIC).success


def test_equip_and_swap_in_same_slot() -> None:
    store = _store()
    first = store.buy_item("eq_graphite_pencil").data["instance_ids"][0]
    second = store.buy_item("eq_sticky_notes").data["instance_ids"][0]

    assert store.equip_item(first).success
    swapped = store.equip_item(second)

    assert swapped.success
    assert swapped.data["replaced"] == first
    assert store.state.inventory.loadout == {"tool": second}
    assert not store.equip_item(second).success


def test_broken_items_cannot_be_equipped_or_boost_rewards() -> None:
    state = new_game_state("1")
    instance_id = _with_item(state, 0.0)
    state.inventory.loadout["tool"] = instance_id
    store = GameStore(state, clock=ManualClock(START))

    assert equipment_affinity(store.state.inventory) == {}
    store.state.inventory.loadout.clear()
    assert not store.equip_item(instance_id).success


def test_repair_with_gold_and_kits() -> None:
    state = new_game_state("1")
    state.inventory.gold = 500
    state.inventory.consumables[ITEM_REPAIR_KIT_BASIC] = 1
    instance_id = _with_item(state, 10.0)
    store = GameStore(state, clock=ManualClock(START))

    kit = store.repair_item(instance_id, use_kit=ITEM_REPAIR_KIT_BASIC)
    assert kit.success
    assert store.state.inventory.find_equipment(instance_id).durability == 22.5
    assert store.state.inventory.consumable_count(ITEM_REPAIR_KIT_BASIC) == 0
    assert not store.repair_item(instance_id, use_kit=ITEM_REPAIR_KIT_BASIC).success

    paid = store.repair_item(instance_id)
    assert paid.success
    assert paid.data["cost"] == 69
    assert store.state.inventory.gold == 431
    assert store.state.inventory.find_equipment(instance_id).durability == 50.0
    assert not store.repair_item(instance_id).success


def test_completing_quests_wears_equipped_items() -> None:
    state = new_game_state("1", now=START)
    instance_id = _with_item(state, 1.0)
    state.inventory.loadout["tool"] = instance_id
    store = GameStore(state, clock=ManualClock(START))
    store.add_habit("Study", category="project", effort_minutes=20)
    store.run_scheduler()
    quest_id = store.state.quests[0].id

    result = store.complete_quest(quest_id)

    assert result.data["xp"] == 15
    item = store.state.inventory.find_equipment(instance_id)
    assert item.durability == 0.0
    assert item.is_broken
    assert store.state.events[-1].type == "item_broken"


def test_crafting_unlocks_in_week_six() -> None:
    early = _store(week=5)
    assert not early.craft_item("grace-token").success

    store = _store(week=6)
    assert store.craft_item("grace-token").success
    assert store.state.streak.grace_tokens == 3
    assert store.state.inventory.gold == 450
    assert not store.craft_item("grace-token").success

    store.state.character.energy = 50
    assert store.craft_item("energy-potion").success
    assert store.state.character.energy == 75
    with pytest.raises(UnknownEntityError):
        store.craft_item("elixir")


def test_skill_unlock_gates() -> None:
    store = _store(shards=30)

    assert not store.unlock_skill("disc-2-1").success
    assert not store.unlock_skill(SKILL_GRACE_EXTENDED).success
    assert store.unlock_skill("focus-1-1").success
    assert not store.unlock_skill("focus-1-1").success
    assert store.state.inventory.essence_shards == 25

    assert store.unlock_skill("focus-1-2").success
    gated = store.unlock_skill("focus-2-1")
    assert not gated.success
    assert "level" in gated.message


def test_grace_extended_raises_token_capacity() -> None:
    store = _store(shards=10, week=2)

    assert store.unlock_skill(SKILL_GRACE_EXTENDED).success

    assert store.state.streak.max_grace_tokens == 3


def test_skill_costs_are_enforced() -> None:
    store = _store(shards=4)

    result = store.unlock_skill("focus-1-1")

    assert not result.success
    assert store.state.skill_tree.unlocked_skill_ids == []
