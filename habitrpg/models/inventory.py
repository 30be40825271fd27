"""Inventory, relic and equipment models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ._validation import dataclass_kwargs


class EquipmentSlot(str, Enum):
    TOOL = "tool"
    ACCESSORY = "accessory"
    ENVIRONMENT = "environment"

    @classmethod
    def from_value(cls, value: "EquipmentSlot | str") -> "EquipmentSlot":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @classmethod
    def from_value(cls, value: "Rarity | str") -> "Rarity":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(slots=True)
class Relic:
    id: str
    name: str
    description: str = ""
    rarity: Rarity = Rarity.RARE
    effect: str = ""
    source: str = ""
    obtained_at: float = 0.0

    def __post_init__(self) -> None:
        self.rarity = Rarity.from_value(self.rarity)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Relic":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class EquipmentInstance:
    """An owned copy of a catalog equipment item."""

    id: str
    item_id: str
    durability: float
    acquired_at: float = 0.0

    def __post_init__(self) -> None:
        self.durability = max(0.0, float(self.durability))

    @property
    def is_broken(self) -> bool:
        return self.durability <= 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EquipmentInstance":
        return cls(**dataclass_kwargs(cls, data))


@dataclass(slots=True)
class Inventory:
    gold: int = 0
    essence_shards: int = 0
    relics: List[Relic] = field(default_factory=list)
    consumables: Dict[str, int] = field(default_factory=dict)
    equipment: List[EquipmentInstance] = field(default_factory=list)
    loadout: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.gold = max(0, int(self.gold))
        self.essence_shards = max(0, int(self.essence_shards))
        self.relics = [
            relic if isinstance(relic, Relic) else Relic.from_dict(relic)
            for relic in self.relics
        ]
        self.equipment = [
            item if isinstance(item, EquipmentInstance) else EquipmentInstance.from_dict(item)
            for item in self.equipment
        ]
        self.consumables = {
            str(key): int(value) for key, value in dict(self.consumables).items() if int(value) > 0
        }
        self.loadout = {
            EquipmentSlot.from_value(slot).value: str(instance_id)
            for slot, instance_id in dict(self.loadout).items()
        }

    def has_relic(self, relic_id: str) -> bool:
        return any(relic.id == relic_id for relic in self.relics)

    def consumable_count(self, item_id: str) -> int:
        return self.consumables.get(item_id, 0)

    def add_consumable(self, item_id: str, quantity: int = 1) -> int:
        total = self.consumables.get(item_id, 0) + max(0, int(quantity))
        self.consumables[item_id] = total
        return total

    def remove_consumable(self, item_id: str, quantity: int = 1) -> bool:
        owned = self.consumables.get(item_id, 0)
        if owned < quantity:
            return False
        remaining = owned - quantity
        if remaining:
            self.consumables[item_id] = remaining
        else:
            self.consumables.pop(item_id, None)
        return True

    def find_equipment(self, instance_id: str) -> Optional[EquipmentInstance]:
        for item in self.equipment:
            if item.id == instance_id:
                return item
        return None

    def equipped(self) -> List[EquipmentInstance]:
        items: List[EquipmentInstance] = []
        for instance_id in self.loadout.values():
            item = self.find_equipment(instance_id)
            if item is not None:
                items.append(item)
        return items

    def slot_of(self, instance_id: str) -> Optional[str]:
        for slot, equipped_id in self.loadout.items():
            if equipped_id == instance_id:
                return slot
        return None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Inventory":
        return cls(**dataclass_kwargs(cls, data))


__all__ = ["EquipmentInstance", "EquipmentSlot", "Inventory", "Rarity", "Relic"]
