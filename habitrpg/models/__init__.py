"""Data models for habitrpg."""

from ._validation import ModelValidationError
from .character import Character, STAT_KEYS, StatKey, Stats
from .habits import (
    Habit,
    HabitCategory,
    HabitWindow,
    QuestInstance,
    QuestStatus,
    StreakState,
    quest_id_for,
)
from .inventory import EquipmentInstance, EquipmentSlot, Inventory, Rarity, Relic
from .state import CURRENT_VERSION, GameState, SECTIONS
from .world import (
    Boss,
    BossRewards,
    BossState,
    EventType,
    GameEvent,
    GameSettings,
    SeasonState,
    ShopState,
    SkillTreeState,
)

__all__ = [
    "Boss",
    "BossRewards",
    "BossState",
    "CURRENT_VERSION",
    "Character",
    "EquipmentInstance",
    "EquipmentSlot",
    "EventType",
    "GameEvent",
    "GameSettings",
    "GameState",
    "Habit",
    "HabitCategory",
    "HabitWindow",
    "Inventory",
    "ModelValidationError",
    "QuestInstance",
    "QuestStatus",
    "Rarity",
    "Relic",
    "SECTIONS",
    "STAT_KEYS",
    "SeasonState",
    "ShopState",
    "SkillTreeState",
    "StatKey",
    "Stats",
    "StreakState",
    "quest_id_for",
]
