"""Character sheet models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from ..constants import LEVEL_CURVE_BASE, MAX_ENERGY, MAX_MORALE, STARTING_STAT_VALUE
from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidator,
    RangeSpec,
    dataclass_kwargs,
    is_non_empty_str,
)


class StatKey(str, Enum):
    """The five character attributes habits can train."""

    STR = "STR"
    INT = "INT"
    DEX = "DEX"
    WIS = "WIS"
    VIT = "VIT"

    @property
    def attribute(self) -> str:
        return _STAT_ATTRIBUTES[self]

    @classmethod
    def from_value(cls, value: "StatKey | str") -> "StatKey":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip()
        upper = normalized.upper()
        for member in cls:
            if member.value == upper or member.attribute == normalized.lower():
                return member
        raise ValueError(f"Unknown stat: {value}")


_STAT_ATTRIBUTES: Dict[StatKey, str] = {
    StatKey.STR: "strength",
    StatKey.INT: "intellect",
    StatKey.DEX: "dexterity",
    StatKey.WIS: "wisdom",
    StatKey.VIT: "vitality",
}

STAT_KEYS: Tuple[StatKey, ...] = tuple(StatKey)


@dataclass(slots=True)
class Stats:
    strength: float = STARTING_STAT_VALUE
    intellect: float = STARTING_STAT_VALUE
    dexterity: float = STARTING_STAT_VALUE
    wisdom: float = STARTING_STAT_VALUE
    vitality: float = STARTING_STAT_VALUE

    def __post_init__(self) -> None:
        for key in STAT_KEYS:
            try:
                value = float(getattr(self, key.attribute))
            except (TypeError, ValueError):
                value = STARTING_STAT_VALUE
            setattr(self, key.attribute, max(0.0, value))

    def get(self, key: StatKey | str) -> float:
        return getattr(self, StatKey.from_value(key).attribute)

    def add(self, key: StatKey | str, amount: float) -> None:
        stat = StatKey.from_value(key)
        setattr(self, stat.attribute, round(self.get(stat) + float(amount), 4))

    def items(self) -> Iterator[tuple[StatKey, float]]:
        for key in STAT_KEYS:
            yield key, getattr(self, key.attribute)

    def to_dict(self) -> dict[str, float]:
        return {key.value: value for key, value in self.items()}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Stats":
        values: dict[str, Any] = {}
        for raw_key, value in data.items():
            try:
                key = StatKey.from_value(raw_key)
            except ValueError:
                continue
            values[key.attribute] = value
        return cls(**values)


@dataclass(slots=True)
class Character:
    id: str
    name: str = "Hero"
    level: int = 1
    xp: int = 0
    xp_to_next_level: int = LEVEL_CURVE_BASE
    total_xp_earned: int = 0
    stats: Stats = field(default_factory=Stats)
    energy: int = MAX_ENERGY
    max_energy: int = MAX_ENERGY
    morale: int = MAX_MORALE
    archetype_id: Optional[str] = None
    created_at: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.stats, Mapping):
            self.stats = Stats.from_mapping(self.stats)
        self.level = max(1, int(self.level))
        self.xp_to_next_level = max(1, int(self.xp_to_next_level))
        self.xp = max(0, int(self.xp))
        self.total_xp_earned = max(0, int(self.total_xp_earned))
        self.max_energy = max(0, int(self.max_energy))
        self.energy = min(self.max_energy, max(0, int(self.energy)))
        self.morale = min(MAX_MORALE, max(0, int(self.morale)))
        if self.archetype_id is not None:
            self.archetype_id = str(self.archetype_id).strip() or None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["stats"] = self.stats.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Character":
        payload = dict(data)
        stats = payload.pop("stats", None)
        character = cls(**dataclass_kwargs(cls, payload))
        if isinstance(stats, Mapping):
            character.stats = Stats.from_mapping(stats)
        return character


class CharacterValidator(ModelValidator):
    model = Character
    fields = {
        "id": FieldSpec(is_non_empty_str, "a character id"),
        "name": FieldSpec(str, "a display name", required=False),
        "level": FieldSpec(RangeSpec(minimum=1, integer=True), "a level of at least 1"),
        "xp": FieldSpec(RangeSpec(minimum=0, integer=True), "a non-negative xp total"),
        "xp_to_next_level": FieldSpec(
            RangeSpec(minimum=1, integer=True), "the xp threshold for the next level"
        ),
        "total_xp_earned": FieldSpec(
            RangeSpec(minimum=0, integer=True), "lifetime xp", required=False
        ),
        "stats": FieldSpec(MappingSpec(str, float), "a stat block"),
        "energy": FieldSpec(RangeSpec(minimum=0, integer=True), "current energy"),
        "max_energy": FieldSpec(RangeSpec(minimum=0, integer=True), "energy capacity"),
        "morale": FieldSpec(
            RangeSpec(minimum=0, maximum=MAX_MORALE, integer=True), "morale between 0 and 100"
        ),
        "archetype_id": FieldSpec(str, "an archetype id", required=False, allow_none=True),
        "created_at": FieldSpec(float, "a creation timestamp", required=False),
    }

    @classmethod
    def check(cls, normalized: Mapping[str, Any]) -> list[str]:
        xp = normalized.get("xp", 0)
        threshold = normalized.get("xp_to_next_level", LEVEL_CURVE_BASE)
        if xp >= threshold:
            return [f"xp {xp} must stay below the level threshold {threshold}"]
        return []


Character.validator = CharacterValidator


__all__ = ["Character", "STAT_KEYS", "StatKey", "Stats"]
