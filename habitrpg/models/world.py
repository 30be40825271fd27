"""Boss, season, skill tree, settings and event models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..constants import DEFAULT_DAY_START_HOUR, DEFAULT_TIMEZONE
from ._validation import dataclass_kwargs
from .character import StatKey


class EventType(str, Enum):
    QUEST_COMPLETED = "quest_completed"
    QUEST_SKIPPED = "quest_skipped"
    QUEST_GRACE = "quest_grace"
    LEVEL_UP = "level_up"
    STREAK_BROKEN = "streak_broken"
    STREAK_SHIELD_USED = "streak_shield_used"
    STREAK_SHIELD_AWARDED = "streak_shield_awarded"
    RECOVERY_DAY = "recovery_day"
    GRACE_TOKENS_GRANTED = "grace_tokens_granted"
    BOSS_SPAWNED = "boss_spawned"
    BOSS_DAMAGED = "boss_damaged"
    BOSS_DEFEATED = "boss_defeated"
    BOSS_EXPIRED = "boss_expired"
    DAY_ROLLOVER = "day_rollover"
    WEEK_ROLLOVER = "week_rollover"
    FEATURE_UNLOCKED = "feature_unlocked"
    ITEM_PURCHASED = "item_purchased"
    ITEM_CRAFTED = "item_crafted"
    ITEM_EQUIPPED = "item_equipped"
    ITEM_REPAIRED = "item_repaired"
    ITEM_BROKEN = "item_broken"
    CONSUMABLE_USED = "consumable_used"
    SKILL_UNLOCKED = "skill_unlocked"
    ARCHETYPE_CHOSEN = "archetype_chosen"
    HABIT_ADDED = "habit_added"
    HABIT_UPDATED = "habit_updated"
    HABIT_REMOVED = "habit_removed"
    SETTINGS_UPDATED = "settings_updated"
    REMOTE_MERGED = "remote_merged"
    PROFILE_RESET = "profile_reset"


@dataclass(slots=True)
class BossRewards:
    gold: int = 0
    shards: int = 0
    relic_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BossRewards":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class Boss:
    """A weekly encounter. Defeated exactly when its health reaches zero."""

    id: str
    template_id: str
    name: str
    week: int
    max_health: int
    current_health: int
    description: str = ""
    weakness: Optional[StatKey] = None
    rewards: BossRewards = field(default_factory=BossRewards)
    spawn_date: str = ""
    is_defeated: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.rewards, Mapping):
            self.rewards = BossRewards.from_dict(self.rewards)
        if self.weakness is not None:
            self.weakness = StatKey.from_value(self.weakness)
        self.max_health = max(1, int(self.max_health))
        self.current_health = min(self.max_health, max(0, int(self.current_health)))
        self.is_defeated = self.current_health == 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Boss":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class BossState:
    current_boss: Optional[Boss] = None
    defeated_boss_ids: List[str] = field(default_factory=list)
    expired_boss_ids: List[str] = field(default_factory=list)
    weekly_damage_dealt: int = 0
    weekly_quests_completed: int = 0
    weekly_missed_quests: int = 0
    weekly_missed_by_stat: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.current_boss, Mapping):
            self.current_boss = Boss.from_dict(self.current_boss)
        self.defeated_boss_ids = [str(item) for item in self.defeated_boss_ids]
        self.expired_boss_ids = [str(item) for item in self.expired_boss_ids]
        self.weekly_missed_by_stat = {
            StatKey.from_value(key).value: int(value)
            for key, value in dict(self.weekly_missed_by_stat).items()
        }

    def record_miss(self, stat: StatKey | str) -> None:
        key = StatKey.from_value(stat).value
        self.weekly_missed_quests += 1
        self.weekly_missed_by_stat[key] = self.weekly_missed_by_stat.get(key, 0) + 1

    def reset_weekly(self) -> None:
        self.weekly_damage_dealt = 0
        self.weekly_quests_completed = 0
        self.weekly_missed_quests = 0
        self.weekly_missed_by_stat = {}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BossState":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class SkillTreeState:
    unlocked_skill_ids: List[str] = field(default_factory=list)

    def is_unlocked(self, skill_id: str) -> bool:
        return skill_id in self.unlocked_skill_ids

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SkillTreeState":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class SeasonState:
    season_number: int = 1
    start_date: str = ""
    current_week: int = 1
    unlocked_features: List[str] = field(default_factory=list)
    last_processed_date: Optional[str] = None
    last_processed_week: int = 0

    def __post_init__(self) -> None:
        self.season_number = max(1, int(self.season_number))
        self.current_week = max(1, int(self.current_week))
        self.last_processed_week = max(0, int(self.last_processed_week))
        self.unlocked_features = list(self.unlocked_features)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SeasonState":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class GameSettings:
    timezone: str = DEFAULT_TIMEZONE
    day_start_hour: int = DEFAULT_DAY_START_HOUR
    notifications: bool = True

    def __post_init__(self) -> None:
        self.timezone = str(self.timezone).strip() or DEFAULT_TIMEZONE
        self.day_start_hour = min(23, max(0, int(self.day_start_hour)))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameSettings":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class ShopState:
    purchases: Dict[str, int] = field(default_factory=dict)

    def record(self, item_id: str, quantity: int = 1) -> None:
        self.purchases[item_id] = self.purchases.get(item_id, 0) + quantity

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ShopState":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class GameEvent:
    id: str
    type: str
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.type, EventType):
            self.type = self.type.value
        self.timestamp = float(self.timestamp)
        self.data = dict(self.data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameEvent":
        return cls(**dataclass_kwargs(cls, data))


__all__ = [
    "Boss",
    "BossRewards",
    "BossState",
    "EventType",
    "GameEvent",
    "GameSettings",
    "SeasonState",
    "ShopState",
    "SkillTreeState",
]
