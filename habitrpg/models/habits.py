"""Habit definitions, daily quest instances and streak bookkeeping."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from ..constants import MAX_GRACE_TOKENS
from ._validation import (
    ChoiceSpec,
    FieldSpec,
    ModelValidator,
    RangeSpec,
    dataclass_kwargs,
    is_date_key,
    is_non_empty_str,
)
from .character import StatKey


class HabitCategory(str, Enum):
    RITUAL = "ritual"
    PRACTICE = "practice"
    PROJECT = "project"
    RECOVERY = "recovery"

    @property
    def default_stat(self) -> StatKey:
        return _CATEGORY_STATS[self]

    @classmethod
    def from_value(cls, value: "HabitCategory | str") -> "HabitCategory":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown habit category: {value}")


_CATEGORY_STATS = {
    HabitCategory.RITUAL: StatKey.STR,
    HabitCategory.PRACTICE: StatKey.DEX,
    HabitCategory.PROJECT: StatKey.INT,
    HabitCategory.RECOVERY: StatKey.WIS,
}


class HabitWindow(str, Enum):
    ANYTIME = "anytime"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def from_value(cls, value: "HabitWindow | str") -> "HabitWindow":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown habit window: {value}")


class QuestStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    GRACE = "grace"

    @classmethod
    def from_value(cls, value: "QuestStatus | str") -> "QuestStatus":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


def _clamp_difficulty(value: Any) -> int:
    try:
        difficulty = int(value)
    except (TypeError, ValueError):
        difficulty = 3
    return min(5, max(1, difficulty))


@dataclass(slots=True)
class Habit:
    id: str
    title: str
    category: HabitCategory = HabitCategory.RITUAL
    difficulty: int = 3
    effort_minutes: int = 10
    stat_affinity: Optional[StatKey] = None
    window: HabitWindow = HabitWindow.ANYTIME
    description: str = ""
    is_active: bool = True
    created_at: float = 0.0
    updated_at: float = 0.0

    def __post_init__(self) -> None:
        self.title = str(self.title).strip()
        self.category = HabitCategory.from_value(self.category)
        self.window = HabitWindow.from_value(self.window)
        self.difficulty = _clamp_difficulty(self.difficulty)
        self.effort_minutes = max(0, int(self.effort_minutes))
        if self.stat_affinity is None:
            self.stat_affinity = self.category.default_stat
        else:
            self.stat_affinity = StatKey.from_value(self.stat_affinity)
        self.is_active = bool(self.is_active)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Habit":
        return cls(**dataclass_kwargs(cls, data))


class HabitValidator(ModelValidator):
    model = Habit
    fields = {
        "id": FieldSpec(is_non_empty_str, "a habit id"),
        "title": FieldSpec(is_non_empty_str, "a habit title"),
        "category": FieldSpec(
            ChoiceSpec({member.value for member in HabitCategory}), "a habit category"
        ),
        "difficulty": FieldSpec(
            RangeSpec(minimum=1, maximum=5, integer=True), "a difficulty from 1 to 5"
        ),
        "effort_minutes": FieldSpec(
            RangeSpec(minimum=0, integer=True), "estimated minutes of effort"
        ),
        "stat_affinity": FieldSpec(
            ChoiceSpec({member.value for member in StatKey}), "a stat key", required=False
        ),
        "window": FieldSpec(
            ChoiceSpec({member.value for member in HabitWindow}), "a time window", required=False
        ),
        "description": FieldSpec(str, "a description", required=False),
        "is_active": FieldSpec(bool, "an active flag", required=False),
    }


Habit.validator = HabitValidator


def quest_id_for(habit_id: str, date_key: str) -> str:
    return f"{date_key}-{habit_id}"


@dataclass(slots=True)
class QuestInstance:
    """One day's occurrence of a habit.

    Difficulty, effort and affinity are copied from the habit when the quest is
    generated; later habit edits do not reach quests that already exist.
    """

    id: str
    habit_id: str
    date: str
    habit_title: str = ""
    status: QuestStatus = QuestStatus.PENDING
    difficulty: int = 3
    effort_minutes: int = 10
    stat_affinity: StatKey = StatKey.STR
    xp_reward: int = 0
    gold_reward: int = 0
    xp_awarded: int = 0
    gold_awarded: int = 0
    completed_at: Optional[float] = None
    proof: Optional[str] = None

    def __post_init__(self) -> None:
        self.status = QuestStatus.from_value(self.status)
        self.stat_affinity = StatKey.from_value(self.stat_affinity)
        self.difficulty = _clamp_difficulty(self.difficulty)
        self.effort_minutes = max(0, int(self.effort_minutes))
        self.xp_reward = max(0, int(self.xp_reward))
        self.gold_reward = max(0, int(self.gold_reward))
        self.xp_awarded = max(0, int(self.xp_awarded))
        self.gold_awarded = max(0, int(self.gold_awarded))

    @property
    def is_pending(self) -> bool:
        return self.status is QuestStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestInstance":
        return cls(**dataclass_kwargs(cls, data))


class QuestInstanceValidator(ModelValidator):
    model = QuestInstance
    fields = {
        "id": FieldSpec(is_non_empty_str, "a quest id"),
        "habit_id": FieldSpec(is_non_empty_str, "the owning habit id"),
        "date": FieldSpec(is_date_key, "a YYYY-MM-DD date key"),
        "status": FieldSpec(
            ChoiceSpec({member.value for member in QuestStatus}), "a quest status"
        ),
        "difficulty": FieldSpec(
            RangeSpec(minimum=1, maximum=5, integer=True), "a difficulty from 1 to 5"
        ),
        "effort_minutes": FieldSpec(RangeSpec(minimum=0, integer=True), "effort minutes"),
        "xp_reward": FieldSpec(RangeSpec(minimum=0, integer=True), "an xp reward"),
        "gold_reward": FieldSpec(RangeSpec(minimum=0, integer=True), "a gold reward"),
    }


QuestInstance.validator = QuestInstanceValidator


@dataclass(slots=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    grace_tokens: int = MAX_GRACE_TOKENS
    max_grace_tokens: int = MAX_GRACE_TOKENS
    streak_shields: int = 0
    last_shield_award: int = 0
    last_completed_date: Optional[str] = None
    is_recovery_day: bool = False
    last_recovery_week: int = 0

    def __post_init__(self) -> None:
        self.current_streak = max(0, int(self.current_streak))
        self.longest_streak = max(self.current_streak, int(self.longest_streak))
        self.max_grace_tokens = max(0, int(self.max_grace_tokens))
        self.grace_tokens = min(self.max_grace_tokens + 1, max(0, int(self.grace_tokens)))
        self.streak_shields = max(0, int(self.streak_shields))
        self.last_shield_award = max(0, int(self.last_shield_award))
        self.is_recovery_day = bool(self.is_recovery_day)
        self.last_recovery_week = max(0, int(self.last_recovery_week))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StreakState":
        return cls(**dataclass_kwargs(cls, data))


__all__ = [
    "Habit",
    "HabitCategory",
    "HabitWindow",
    "QuestInstance",
    "QuestStatus",
    "StreakState",
    "quest_id_for",
]
