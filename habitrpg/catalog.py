"""Static game content: archetypes, skills, bosses, items, shop and recipes."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from .constants import (
    CRAFTING_UNLOCK_WEEK,
    ENERGY_POTION_RESTORE,
    MAX_GRACE_TOKENS,
    MORALE_BOOST_AMOUNT,
)
from .models import EquipmentSlot, Rarity, StatKey


@dataclass(frozen=True)
class Archetype:
    id: str
    name: str
    description: str
    primary_stat: StatKey
    secondary_stat: StatKey
    xp_multiplier: float = 1.1

    @property
    def favoured_stats(self) -> Tuple[StatKey, StatKey]:
        return (self.primary_stat, self.secondary_stat)


ARCHETYPES: Mapping[str, Archetype] = MappingProxyType(
    {
        "builder": Archetype(
            "builder",
            "Builder",
            "Masters of consistency and steady progress",
            StatKey.STR,
            StatKey.VIT,
        ),
        "scholar": Archetype(
            "scholar",
            "Scholar",
            "Seekers of knowledge and deep understanding",
            StatKey.INT,
            StatKey.WIS,
        ),
        "athlete": Archetype(
            "athlete",
            "Athlete",
            "Champions of physical excellence",
            StatKey.VIT,
            StatKey.DEX,
        ),
        "creator": Archetype(
            "creator",
            "Creator",
            "Artisans who bring ideas to life",
            StatKey.DEX,
            StatKey.INT,
        ),
    }
)


# Character level needed before a node of a given tier can be learned.
SKILL_TIER_LEVELS: Mapping[int, int] = MappingProxyType({1: 1, 2: 3, 3: 6, 4: 10})


@dataclass(frozen=True)
class SkillNode:
    id: str
    branch: str
    tier: int
    name: str
    effect: str
    cost: int
    prerequisite_ids: Tuple[str, ...] = ()
    week_unlock: int = 1

    @property
    def level_required(self) -> int:
        return SKILL_TIER_LEVELS.get(self.tier, 1)


# Skill ids the rule engine reads directly.
SKILL_DEEP_WORK = "focus-1-1"
SKILL_PROJECT_FOCUS = "focus-1-2"
SKILL_PROOF_BONUS = "focus-2-1"
SKILL_FLOW_STATE = "focus-3-1"
SKILL_STREAK_SHIELD = "disc-2-1"
SKILL_GRACE_EXTENDED = "resil-1-2"
SKILL_RECOVERY_DAY_PLUS = "resil-2-1"

_SKILL_NODES = (
    SkillNode("disc-1-1", "discipline", 1, "Early Riser", "+15% XP for morning window quests", 5),
    SkillNode("disc-1-2", "discipline", 1, "Routine Master", "Grace tokens refresh earlier", 5),
    SkillNode(
        "disc-2-1",
        "discipline",
        2,
        "Streak Shield",
        "Streak shields every 10 days (was 14)",
        10,
        ("disc-1-1", "disc-1-2"),
        3,
    ),
    SkillNode(
        "disc-2-2", "discipline", 2, "Quest Chain", "Suggests a related quest", 10, ("disc-1-2",), 3
    ),
    SkillNode("disc-3-1", "discipline", 3, "Iron Will", "Morale decay -50%", 15, ("disc-2-1",), 6),
    SkillNode(
        "disc-4-1",
        "discipline",
        4,
        "Capstone: Unstoppable",
        "First miss each week costs no streak",
        25,
        ("disc-3-1",),
        9,
    ),
    SkillNode("focus-1-1", "focus", 1, "Deep Work", "+20% XP for 45+ min quests", 5),
    SkillNode("focus-1-2", "focus", 1, "Project Focus", "+10% gold from quests", 5),
    SkillNode(
        "focus-2-1", "focus", 2, "Proof Bonus", "+15% XP when a quest has proof", 10, ("focus-1-1",), 3
    ),
    SkillNode(
        "focus-2-2",
        "focus",
        2,
        "Session Quest",
        "Access to 45/60/90 min deep sessions",
        10,
        ("focus-1-1", "focus-1-2"),
        5,
    ),
    SkillNode(
        "focus-3-1",
        "focus",
        3,
        "Flow State",
        "-25% energy cost for long quests",
        15,
        ("focus-2-1", "focus-2-2"),
        6,
    ),
    SkillNode(
        "focus-4-1",
        "focus",
        4,
        "Capstone: Mastery",
        "Double XP from the first 90-min session daily",
        25,
        ("focus-3-1",),
        9,
    ),
    SkillNode("resil-1-1", "resilience", 1, "Quick Recovery", "+20% energy regen rate", 5),
    SkillNode(
        "resil-1-2", "resilience", 1, "Grace Extended", "+1 max grace tokens", 5, (), 2
    ),
    SkillNode(
        "resil-2-1",
        "resilience",
        2,
        "Recovery Day+",
        "Recovery days give +10 morale",
        10,
        ("resil-1-1", "resil-1-2"),
        3,
    ),
    SkillNode(
        "resil-2-2",
        "resilience",
        2,
        "Bounce Back",
        "After a streak break, start at streak 3",
        10,
        ("resil-1-2",),
        4,
    ),
    SkillNode(
        "resil-3-1",
        "resilience",
        3,
        "Mental Fortitude",
        "Morale cannot drop below 20",
        15,
        ("resil-2-1",),
        6,
    ),
    SkillNode(
        "resil-4-1",
        "resilience",
        4,
        "Capstone: Phoenix",
        "Once per season: full streak restore",
        25,
        ("resil-3-1",),
        9,
    ),
)

SKILL_NODES: Mapping[str, SkillNode] = MappingProxyType({node.id: node for node in _SKILL_NODES})


@dataclass(frozen=True)
class BossTemplate:
    id: str
    name: str
    description: str
    weakness: StatKey


BOSS_TEMPLATES: Tuple[BossTemplate, ...] = (
    BossTemplate("dawn-sloth", "Dawn Sloth", "Born from missed morning routines", StatKey.VIT),
    BossTemplate("the-drift", "The Drift", "Manifested from procrastinated projects", StatKey.INT),
    BossTemplate("entropy", "Entropy", "Feeds on broken habits", StatKey.STR),
    BossTemplate("burnout", "Burnout", "Thrives when recovery is neglected", StatKey.WIS),
)

# Relics dropped by bosses once relics unlock, cycled by week.
RELIC_IDS: Tuple[str, ...] = (
    "relic_morning_star",
    "relic_drift_anchor",
    "relic_entropy_shard",
    "relic_ember_heart",
)

RELIC_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "relic_morning_star": "Morning Star",
        "relic_drift_anchor": "Drift Anchor",
        "relic_entropy_shard": "Entropy Shard",
        "relic_ember_heart": "Ember Heart",
    }
)


FEATURE_UNLOCKS: Mapping[int, Tuple[str, ...]] = MappingProxyType(
    {
        1: ("daily_quests", "basic_habits", "xp_level"),
        2: ("streak_system", "grace_tokens", "calendar"),
        3: ("archetypes", "skill_tree_t2"),
        4: ("weekly_boss", "items"),
        5: ("project_quests", "deep_sessions"),
        6: ("crafting", "skill_tree_t3"),
        7: ("class_hybrid",),
        8: ("monthly_raid", "relics"),
        9: ("skill_tree_t4", "capstones"),
        10: ("dynamic_difficulty",),
        11: ("prestige_lite",),
        12: ("season_finale",),
    }
)


def features_for_week(week: int) -> list[str]:
    """Return every feature unlocked up to and including ``week``."""

    unlocked: list[str] = []
    for unlock_week in sorted(FEATURE_UNLOCKS):
        if unlock_week > week:
            break
        unlocked.extend(FEATURE_UNLOCKS[unlock_week])
    return unlocked


@dataclass(frozen=True)
class RarityProfile:
    sell_multiplier: int
    base_price: int
    level_required: int


RARITY_PROFILES: Mapping[Rarity, RarityProfile] = MappingProxyType(
    {
        Rarity.COMMON: RarityProfile(1, 50, 1),
        Rarity.UNCOMMON: RarityProfile(2, 150, 5),
        Rarity.RARE: RarityProfile(4, 400, 10),
        Rarity.EPIC: RarityProfile(8, 1000, 15),
        Rarity.LEGENDARY: RarityProfile(20, 3000, 20),
    }
)


@dataclass(frozen=True)
class EquipmentDefinition:
    id: str
    name: str
    rarity: Rarity
    slot: EquipmentSlot
    max_durability: int
    decay_rate: float
    stats: Mapping[StatKey, int] = field(default_factory=dict)
    affinity: Optional[StatKey] = None
    affinity_bonus: float = 0.0
    description: str = ""


def _equipment(*definitions: EquipmentDefinition) -> Mapping[str, EquipmentDefinition]:
    return MappingProxyType({definition.id: definition for definition in definitions})


EQUIPMENT: Mapping[str, EquipmentDefinition] = _equipment(
    EquipmentDefinition(
        "eq_graphite_pencil", "Graphite Pencil", Rarity.COMMON, EquipmentSlot.TOOL,
        50, 0.15, {StatKey.INT: 1}, StatKey.INT, 0.05,
        "A simple but reliable writing tool.",
    ),
    EquipmentDefinition(
        "eq_sticky_notes", "Sticky Note Pad", Rarity.COMMON, EquipmentSlot.TOOL,
        40, 0.2, {StatKey.INT: 1}, StatKey.INT, 0.03,
        "Colorful reminders to keep your thoughts organized.",
    ),
    EquipmentDefinition(
        "eq_water_bottle", "Water Bottle", Rarity.COMMON, EquipmentSlot.ACCESSORY,
        60, 0.1, {StatKey.VIT: 2}, StatKey.VIT, 0.05,
        "Stay hydrated, stay focused.",
    ),
    EquipmentDefinition(
        "eq_lucky_coin", "Lucky Coin", Rarity.COMMON, EquipmentSlot.ACCESSORY,
        100, 0.05, {}, None, 0.0,
        "A tarnished coin with a four-leaf clover.",
    ),
    EquipmentDefinition(
        "eq_dumbbell", "5kg Dumbbell", Rarity.UNCOMMON, EquipmentSlot.TOOL,
        80, 0.08, {StatKey.STR: 3}, StatKey.STR, 0.1,
        "A reliable weight for building strength habits.",
    ),
    EquipmentDefinition(
        "eq_ebook_reader", "eBook Reader", Rarity.UNCOMMON, EquipmentSlot.TOOL,
        70, 0.1, {StatKey.INT: 4}, StatKey.INT, 0.1,
        "A portable library in your pocket.",
    ),
    EquipmentDefinition(
        "eq_digital_watch", "Digital Watch", Rarity.UNCOMMON, EquipmentSlot.ACCESSORY,
        100, 0.05, {StatKey.DEX: 2}, None, 0.0,
        "Time management is the key to productivity.",
    ),
    EquipmentDefinition(
        "eq_mechanical_keyboard", "Mechanical Keyboard", Rarity.RARE, EquipmentSlot.TOOL,
        100, 0.06, {StatKey.INT: 5, StatKey.DEX: 3}, StatKey.INT, 0.15,
        "RGB-lit keys that make coding feel epic.",
    ),
    EquipmentDefinition(
        "eq_lofi_radio", "Lo-Fi Radio", Rarity.RARE, EquipmentSlot.ENVIRONMENT,
        80, 0.08, {StatKey.WIS: 4, StatKey.INT: 3}, StatKey.WIS, 0.12,
        "Vintage vibes for deep focus sessions.",
    ),
    EquipmentDefinition(
        "eq_yoga_mat", "Yoga Mat", Rarity.RARE, EquipmentSlot.ENVIRONMENT,
        70, 0.1, {StatKey.DEX: 4, StatKey.WIS: 3}, StatKey.DEX, 0.12,
        "Foundation for flexibility and mindfulness.",
    ),
    EquipmentDefinition(
        "eq_adjustable_dumbbells", "Adjustable Dumbbells", Rarity.EPIC, EquipmentSlot.TOOL,
        150, 0.04, {StatKey.STR: 8, StatKey.VIT: 3}, StatKey.STR, 0.18,
        "Scale your workouts. Scale your strength.",
    ),
    EquipmentDefinition(
        "eq_standing_desk", "Standing Desk Setup", Rarity.EPIC, EquipmentSlot.ENVIRONMENT,
        200, 0.03, {StatKey.VIT: 5, StatKey.INT: 4}, StatKey.VIT, 0.15,
        "Ergonomic perfection for the dedicated worker.",
    ),
    EquipmentDefinition(
        "eq_excalibur_quill", "Excalibur Quill", Rarity.LEGENDARY, EquipmentSlot.TOOL,
        200, 0.02, {StatKey.INT: 10, StatKey.WIS: 8, StatKey.DEX: 5}, StatKey.INT, 0.25,
        "A crystalline quill imbued with ancient wisdom.",
    ),
    EquipmentDefinition(
        "eq_zen_garden", "Mystical Zen Garden", Rarity.LEGENDARY, EquipmentSlot.ENVIRONMENT,
        250, 0.01, {StatKey.WIS: 15, StatKey.VIT: 5}, StatKey.WIS, 0.25,
        "A pocket dimension of tranquility.",
    ),
)


@dataclass(frozen=True)
class ConsumableDefinition:
    id: str
    name: str
    description: str
    rarity: Rarity
    max_stack: int


ITEM_REPAIR_KIT_BASIC = "item_repair_kit_basic"
ITEM_REPAIR_KIT_ADVANCED = "item_repair_kit_advanced"
ITEM_ENERGY_POTION = "item_energy_potion"
ITEM_MORALE_BOOST = "item_morale_boost"

CONSUMABLES: Mapping[str, ConsumableDefinition] = MappingProxyType(
    {
        ITEM_REPAIR_KIT_BASIC: ConsumableDefinition(
            ITEM_REPAIR_KIT_BASIC,
            "Basic Repair Kit",
            "Restores 25% durability to one piece of equipment.",
            Rarity.COMMON,
            10,
        ),
        ITEM_REPAIR_KIT_ADVANCED: ConsumableDefinition(
            ITEM_REPAIR_KIT_ADVANCED,
            "Advanced Repair Kit",
            "Fully restores durability to one piece of equipment.",
            Rarity.RARE,
            5,
        ),
        ITEM_ENERGY_POTION: ConsumableDefinition(
            ITEM_ENERGY_POTION,
            "Energy Potion",
            f"Restores {ENERGY_POTION_RESTORE} energy instantly.",
            Rarity.UNCOMMON,
            10,
        ),
        ITEM_MORALE_BOOST: ConsumableDefinition(
            ITEM_MORALE_BOOST,
            "Morale Boost",
            f"Increases morale by {MORALE_BOOST_AMOUNT} points.",
            Rarity.UNCOMMON,
            10,
        ),
    }
)


@dataclass(frozen=True)
class ShopListing:
    item_id: str
    price: int
    currency: str = "gold"
    level_required: int = 1

    @property
    def is_equipment(self) -> bool:
        return self.item_id in EQUIPMENT


def _build_shop() -> Dict[str, ShopListing]:
    listings = {
        ITEM_REPAIR_KIT_BASIC: ShopListing(ITEM_REPAIR_KIT_BASIC, 30),
        ITEM_REPAIR_KIT_ADVANCED: ShopListing(ITEM_REPAIR_KIT_ADVANCED, 150),
        ITEM_ENERGY_POTION: ShopListing(ITEM_ENERGY_POTION, 40),
        ITEM_MORALE_BOOST: ShopListing(ITEM_MORALE_BOOST, 50),
    }
    for definition in EQUIPMENT.values():
        profile = RARITY_PROFILES[definition.rarity]
        listings[definition.id] = ShopListing(
            definition.id,
            profile.base_price,
            level_required=profile.level_required,
        )
    return listings


SHOP_LISTINGS: Mapping[str, ShopListing] = MappingProxyType(_build_shop())


@dataclass(frozen=True)
class CraftingRecipe:
    id: str
    name: str
    gold_cost: int
    effect: str
    amount: int
    week_unlock: int = CRAFTING_UNLOCK_WEEK


RECIPES: Mapping[str, CraftingRecipe] = MappingProxyType(
    {
        "grace-token": CraftingRecipe(
            "grace-token", "Grace Token", 50, "grace_token", 1
        ),
        "energy-potion": CraftingRecipe(
            "energy-potion", "Brewed Energy", 40, "energy", ENERGY_POTION_RESTORE
        ),
        "morale-boost": CraftingRecipe(
            "morale-boost", "Morale Tonic", 60, "morale", MORALE_BOOST_AMOUNT
        ),
    }
)


def repair_cost(definition: EquipmentDefinition, current_durability: float) -> int:
    """Gold needed to restore ``definition`` to full durability."""

    missing = max(0.0, definition.max_durability - current_durability)
    base = RARITY_PROFILES[definition.rarity].sell_multiplier * 5
    return int(math.ceil(missing * base * 0.5))


def grace_token_ceiling(max_grace_tokens: int = MAX_GRACE_TOKENS) -> int:
    return max_grace_tokens + 1


__all__ = [
    "ARCHETYPES",
    "Archetype",
    "BOSS_TEMPLATES",
    "BossTemplate",
    "CONSUMABLES",
    "ConsumableDefinition",
    "CraftingRecipe",
    "EQUIPMENT",
    "EquipmentDefinition",
    "FEATURE_UNLOCKS",
    "ITEM_ENERGY_POTION",
    "ITEM_MORALE_BOOST",
    "ITEM_REPAIR_KIT_ADVANCED",
    "ITEM_REPAIR_KIT_BASIC",
    "RARITY_PROFILES",
    "RECIPES",
    "RELIC_IDS",
    "RELIC_NAMES",
    "SHOP_LISTINGS",
    "SKILL_NODES",
    "SKILL_TIER_LEVELS",
    "SkillNode",
    "ShopListing",
    "features_for_week",
    "grace_token_ceiling",
    "repair_cost",
]
