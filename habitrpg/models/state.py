"""The root profile document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidator,
    RangeSpec,
    SequenceSpec,
    load_model,
)
from .character import Character
from .habits import Habit, QuestInstance, StreakState
from .inventory import Inventory
from .world import (
    BossState,
    GameEvent,
    GameSettings,
    SeasonState,
    ShopState,
    SkillTreeState,
)

CURRENT_VERSION = 2

SECTIONS: Tuple[str, ...] = (
    "character",
    "habits",
    "quests",
    "inventory",
    "streak",
    "skill_tree",
    "boss",
    "season",
    "settings",
    "shop",
    "events",
)


@dataclass(slots=True)
class GameState:
    character: Character
    habits: List[Habit] = field(default_factory=list)
    quests: List[QuestInstance] = field(default_factory=list)
    inventory: Inventory = field(default_factory=Inventory)
    streak: StreakState = field(default_factory=StreakState)
    skill_tree: SkillTreeState = field(default_factory=SkillTreeState)
    boss: BossState = field(default_factory=BossState)
    season: SeasonState = field(default_factory=SeasonState)
    settings: GameSettings = field(default_factory=GameSettings)
    shop: ShopState = field(default_factory=ShopState)
    events: List[GameEvent] = field(default_factory=list)
    version: int = CURRENT_VERSION

    def find_habit(self, habit_id: str) -> Habit | None:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def find_quest(self, quest_id: str) -> QuestInstance | None:
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None

    def quests_for(self, date_key: str) -> List[QuestInstance]:
        return [quest for quest in self.quests if quest.date == date_key]

    def changed_sections(self, other: "GameState") -> Tuple[str, ...]:
        """Return the names of the sections that differ from ``other``."""

        return tuple(
            name for name in SECTIONS if getattr(self, name) != getattr(other, name)
        )

    def section_payload(self, name: str) -> Any:
        value = getattr(self, name)
        if isinstance(value, list):
            return [item.to_dict() for item in value]
        return value.to_dict()

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {"version": self.version}
        for name in SECTIONS:
            document[name] = self.section_payload(name)
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "GameState":
        """Build a state from a document already at ``CURRENT_VERSION``.

        Every persisted section passes through its validator; a payload whose
        shape does not match raises ``ModelValidationError``.
        """

        payload = GameStateValidator.validate(document)
        return cls(
            character=load_model(Character, payload["character"]),
            habits=[load_model(Habit, item) for item in payload.get("habits", [])],
            quests=[load_model(QuestInstance, item) for item in payload.get("quests", [])],
            inventory=Inventory.from_dict(payload.get("inventory", {})),
            streak=StreakState.from_dict(payload.get("streak", {})),
            skill_tree=SkillTreeState.from_dict(payload.get("skill_tree", {})),
            boss=BossState.from_dict(payload.get("boss", {})),
            season=SeasonState.from_dict(payload.get("season", {})),
            settings=GameSettings.from_dict(payload.get("settings", {})),
            shop=ShopState.from_dict(payload.get("shop", {})),
            events=[GameEvent.from_dict(item) for item in payload.get("events", [])],
            version=int(payload["version"]),
        )


class GameStateValidator(ModelValidator):
    model = GameState
    fields = {
        "version": FieldSpec(
            RangeSpec(minimum=CURRENT_VERSION, maximum=CURRENT_VERSION, integer=True),
            f"document version {CURRENT_VERSION}",
        ),
        "character": FieldSpec(MappingSpec(str, Any), "a character table"),
        "habits": FieldSpec(SequenceSpec(MappingSpec(str, Any)), "a list of habits", required=False),
        "quests": FieldSpec(SequenceSpec(MappingSpec(str, Any)), "a list of quests", required=False),
        "inventory": FieldSpec(MappingSpec(str, Any), "an inventory table", required=False),
        "streak": FieldSpec(MappingSpec(str, Any), "a streak table", required=False),
        "skill_tree": FieldSpec(MappingSpec(str, Any), "a skill tree table", required=False),
        "boss": FieldSpec(MappingSpec(str, Any), "a boss table", required=False),
        "season": FieldSpec(MappingSpec(str, Any), "a season table"),
        "settings": FieldSpec(MappingSpec(str, Any), "a settings table", required=False),
        "shop": FieldSpec(MappingSpec(str, Any), "a shop table", required=False),
        "events": FieldSpec(SequenceSpec(MappingSpec(str, Any)), "a list of events", required=False),
    }


GameState.validator = GameStateValidator


__all__ = ["CURRENT_VERSION", "GameState", "SECTIONS"]
