"""Game balance values shared by the rule engine and the store."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

# Experience and levels.
BASE_XP = 10
DAILY_XP_CAP_BASE = 250
DAILY_XP_CAP_PER_LEVEL = 10
LEVEL_CURVE_BASE = 100
LEVEL_CURVE_EXPONENT = 1.35

# Effort factor: 1 + ln(minutes / EFFORT_BASELINE_MINUTES) * EFFORT_SCALE
EFFORT_BASELINE_MINUTES = 10
EFFORT_SCALE = 0.6

DIFFICULTY_MULTIPLIERS: Mapping[int, float] = MappingProxyType(
    {
        1: 0.5,
        2: 0.8,
        3: 1.0,
        4: 1.3,
        5: 1.6,
    }
)

# Streaks.
STREAK_BONUS_PER_DAY = 0.02
STREAK_BONUS_CAP = 0.60
MAX_GRACE_TOKENS = 2
GRACE_TOKENS_PER_WEEK = 1
STREAK_SHIELD_INTERVAL = 14
SKILL_STREAK_SHIELD_INTERVAL = 10

# Energy and morale.
MAX_ENERGY = 100
ENERGY_MINUTES_PER_POINT = 4
MAX_MORALE = 100
MORALE_GAIN_PER_COMPLETE = 2
MORALE_DECAY_PER_MISS = 5
STREAK_BREAK_MORALE_PENALTY = 10
RECOVERY_DAY_MORALE_BONUS = 10
LOW_MORALE_THRESHOLD = 30
LOW_MORALE_PENALTY = 0.8

# Stat growth.
STAT_GROWTH_PER_QUEST = 1.0
ARCHETYPE_STAT_GROWTH_MULTIPLIER = 1.2
LEVEL_UP_STAT_GAIN = 1.0
STARTING_STAT_VALUE = 1.0

# Currency.
BASE_GOLD = 5

# Bosses.
BASE_BOSS_HEALTH = 100
HEALTH_PER_MISS = 10
BASE_DAMAGE = 10
WEAKNESS_MULTIPLIER = 1.5
WEEKLY_BOSS_SHARDS = 10
BOSS_BASE_GOLD = 50
BOSS_GOLD_PER_WEEK = 10
RELIC_UNLOCK_WEEK = 4

# Skill effects referenced by the rule engine.
DEEP_WORK_MINUTES = 45
DEEP_WORK_XP_BONUS = 1.2
PROOF_XP_BONUS = 1.15
PROJECT_FOCUS_GOLD_BONUS = 1.1
FLOW_STATE_ENERGY_DISCOUNT = 0.75

# Crafting and consumables.
CRAFTING_UNLOCK_WEEK = 6
ENERGY_POTION_RESTORE = 25
MORALE_BOOST_AMOUNT = 15
REPAIR_KIT_BASIC_FRACTION = 0.25

# Event log retention.
MAX_EVENTS = 100

# Calendar defaults.
DEFAULT_TIMEZONE = "UTC"
DEFAULT_DAY_START_HOUR = 4
DAYS_PER_WEEK = 7

# Remote sync.
SYNC_DEBOUNCE_SECONDS = 2.0
