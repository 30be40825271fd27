"""The game store: the only place profile state is mutated.

Every action copies the current state into a draft, checks its
preconditions against the draft and either discards it (returning a failed
``ActionResult``) or swaps it in with a single assignment.  Subscribers are
told which sections changed through a ``StateChange``.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from . import scheduler
from .boss import deal_damage, grant_rewards
from .catalog import (
    ARCHETYPES,
    CONSUMABLES,
    EQUIPMENT,
    ITEM_ENERGY_POTION,
    ITEM_MORALE_BOOST,
    ITEM_REPAIR_KIT_ADVANCED,
    ITEM_REPAIR_KIT_BASIC,
    RECIPES,
    SHOP_LISTINGS,
    SKILL_GRACE_EXTENDED,
    SKILL_NODES,
    SKILL_RECOVERY_DAY_PLUS,
    grace_token_ceiling,
    repair_cost,
)
from .constants import (
    DEFAULT_DAY_START_HOUR,
    DEFAULT_TIMEZONE,
    ENERGY_POTION_RESTORE,
    MAX_EVENTS,
    MORALE_BOOST_AMOUNT,
    MORALE_DECAY_PER_MISS,
    MORALE_GAIN_PER_COMPLETE,
    RECOVERY_DAY_MORALE_BONUS,
    REPAIR_KIT_BASIC_FRACTION,
)
from .gametime import Timestamp, is_known_timezone
from .models import (
    CURRENT_VERSION,
    SECTIONS,
    Character,
    EquipmentInstance,
    EventType,
    GameEvent,
    GameSettings,
    GameState,
    Habit,
    HabitCategory,
    HabitWindow,
    ModelValidationError,
    QuestInstance,
    QuestStatus,
    StatKey,
)
from .notifications import Clock, Notifier, Severity, StateChange, Subscriber, SystemClock
from .progression import (
    apply_xp,
    clamp_morale,
    daily_xp_cap,
    energy_cost,
    gold_reward,
    reward_context,
    stat_growth,
    xp_reward,
)
from .quests import generate_daily_quests

log = logging.getLogger(__name__)

EventList = List[Tuple[EventType, Dict[str, Any]]]


class UnknownEntityError(KeyError):
    """Raised when an action names a quest, habit, item or skill that does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"Unknown {kind}: {entity_id}")

    def __str__(self) -> str:
        return str(self.args[0])


@dataclass(slots=True)
class ActionResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success


def new_game_state(
    character_id: str,
    name: str = "Hero",
    *,
    now: float = 0.0,
    timezone: str = DEFAULT_TIMEZONE,
    day_start_hour: int = DEFAULT_DAY_START_HOUR,
) -> GameState:
    return GameState(
        character=Character(id=str(character_id), name=name or "Hero", created_at=now),
        settings=GameSettings(timezone=timezone, day_start_hour=day_start_hour),
    )


def _new_id(length: int = 12) -> str:
    return uuid.uuid4().hex[:length]


_HABIT_FIELDS = (
    "title",
    "description",
    "category",
    "difficulty",
    "effort_minutes",
    "stat_affinity",
    "window",
)


class GameStore:
    def __init__(
        self,
        state: GameState,
        *,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self._state = state
        self.clock: Clock = clock or SystemClock()
        self.notifier = notifier
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> GameState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _draft(self) -> GameState:
        return copy.deepcopy(self._state)

    def _notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        if self.notifier is None or not self._state.settings.notifications:
            return
        self.notifier.notify(message, severity)

    def _commit(self, draft: GameState, action: str, events: EventList) -> StateChange:
        now = self.clock.now()
        for event_type, data in events:
            draft.events.append(GameEvent(id=_new_id(), type=event_type, timestamp=now, data=data))
        if len(draft.events) > MAX_EVENTS:
            del draft.events[: len(draft.events) - MAX_EVENTS]

        previous = self._state
        self._state = draft
        change = StateChange(
            previous=previous,
            current=draft,
            sections=draft.changed_sections(previous),
            action=action,
        )
        for subscriber in list(self._subscribers):
            try:
                subscriber(change)
            except Exception:
                log.exception("State subscriber failed after %s", action)
        return change

    @staticmethod
    def _quest(state: GameState, quest_id: str) -> QuestInstance:
        quest = state.find_quest(quest_id)
        if quest is None:
            raise UnknownEntityError("quest", quest_id)
        return quest

    @staticmethod
    def _habit(state: GameState, habit_id: str) -> Habit:
        habit = state.find_habit(habit_id)
        if habit is None:
            raise UnknownEntityError("habit", habit_id)
        return habit

    @staticmethod
    def _equipment(state: GameState, instance_id: str) -> EquipmentInstance:
        item = state.inventory.find_equipment(instance_id)
        if item is None:
            raise UnknownEntityError("equipment", instance_id)
        return item

    # ------------------------------------------------------------------
    # Quests
    # ------------------------------------------------------------------

    def complete_quest(self, quest_id: str, proof: Optional[str] = None) -> ActionResult:
        draft = self._draft()
        quest = self._quest(draft, quest_id)
        if not quest.is_pending:
            return ActionResult(False, f"That quest is already {quest.status.value}.")

        character = draft.character
        skills = frozenset(draft.skill_tree.unlocked_skill_ids)
        cost = energy_cost(quest.effort_minutes, skills)
        if character.energy < cost:
            return ActionResult(
                False, f"Not enough energy: {quest.habit_title} needs {cost}, you have {character.energy}."
            )

        now = self.clock.now()
        context = reward_context(draft)
        xp = xp_reward(
            quest.difficulty,
            quest.effort_minutes,
            context,
            stat=quest.stat_affinity,
            has_proof=bool(proof),
        )
        gold = gold_reward(quest.difficulty, context)
        earned_today = sum(
            other.xp_awarded
            for other in draft.quests
            if other.date == quest.date and other.status is QuestStatus.COMPLETED
        )
        xp = max(0, min(xp, daily_xp_cap(character.level) - earned_today))

        events: EventList = []
        character.energy -= cost
        old_level = character.level
        levels = apply_xp(character, xp)
        draft.inventory.gold += gold
        growth = stat_growth(quest.stat_affinity, character.archetype_id)
        character.stats.add(quest.stat_affinity, growth)
        if levels:
            events.append(
                (EventType.LEVEL_UP, {"from_level": old_level, "to_level": character.level})
            )

        boss_state = draft.boss
        boss_state.weekly_quests_completed += 1
        outcome = deal_damage(boss_state, quest.difficulty, quest.stat_affinity)
        relic = None
        if outcome is not None:
            boss = outcome.boss
            events.append(
                (
                    EventType.BOSS_DAMAGED,
                    {"boss_id": boss.id, "damage": outcome.damage, "remaining": outcome.remaining_health},
                )
            )
            if outcome.defeated:
                relic = grant_rewards(draft.inventory, boss, now)
                events.append(
                    (
                        EventType.BOSS_DEFEATED,
                        {
                            "boss_id": boss.id,
                            "gold": boss.rewards.gold,
                            "shards": boss.rewards.shards,
                            "relic_id": relic.id if relic else "",
                        },
                    )
                )

        character.morale = clamp_morale(character.morale + MORALE_GAIN_PER_COMPLETE)

        streak = draft.streak
        if streak.last_completed_date is None or quest.date > streak.last_completed_date:
            streak.current_streak += 1
            streak.longest_streak = max(streak.longest_streak, streak.current_streak)
            streak.last_completed_date = quest.date

        broken: List[str] = []
        for item in draft.inventory.equipped():
            definition = EQUIPMENT.get(item.item_id)
            if definition is None or item.is_broken:
                continue
            item.durability = max(
                0.0, round(item.durability - definition.decay_rate * quest.effort_minutes, 4)
            )
            if item.is_broken:
                broken.append(definition.name)
                events.append((EventType.ITEM_BROKEN, {"instance_id": item.id, "item_id": item.item_id}))

        quest.status = QuestStatus.COMPLETED
        quest.xp_awarded = xp
        quest.gold_awarded = gold
        quest.completed_at = now
        quest.proof = proof
        events.insert(
            0,
            (
                EventType.QUEST_COMPLETED,
                {"quest_id": quest.id, "xp": xp, "gold": gold, "energy": cost},
            ),
        )
        self._commit(draft, "complete_quest", events)

        message = f"Completed {quest.habit_title}: +{xp} XP, +{gold} gold."
        self._notify(message, Severity.SUCCESS)
        if levels:
            self._notify(f"Level up! You are now level {character.level}.", Severity.SUCCESS)
        if outcome is not None and outcome.defeated:
            self._notify("The weekly boss has been defeated!", Severity.SUCCESS)
        for name in broken:
            self._notify(f"{name} broke and needs repair.", Severity.WARNING)
        return ActionResult(
            True,
            message,
            {
                "xp": xp,
                "gold": gold,
                "energy_cost": cost,
                "levels_gained": levels,
                "damage": outcome.damage if outcome else 0,
                "boss_defeated": bool(outcome and outcome.defeated),
                "relic_id": relic.id if relic else None,
            },
        )

    def skip_quest(self, quest_id: str) -> ActionResult:
        draft = self._draft()
        quest = self._quest(draft, quest_id)
        if not quest.is_pending:
            return ActionResult(False, f"That quest is already {quest.status.value}.")
        quest.status = QuestStatus.SKIPPED
        draft.character.morale = clamp_morale(draft.character.morale - MORALE_DECAY_PER_MISS)
        draft.boss.record_miss(quest.stat_affinity)
        self._commit(draft, "skip_quest", [(EventType.QUEST_SKIPPED, {"quest_id": quest.id})])
        return ActionResult(True, f"Skipped {quest.habit_title}.")

    def use_grace_token(self, quest_id: str) -> ActionResult:
        draft = self._draft()
        quest = self._quest(draft, quest_id)
        if not quest.is_pending:
            return ActionResult(False, f"That quest is already {quest.status.value}.")
        streak = draft.streak
        if streak.grace_tokens <= 0:
            return ActionResult(False, "You have no grace tokens left.")
        streak.grace_tokens -= 1
        quest.status = QuestStatus.GRACE
        self._commit(draft, "use_grace_token", [(EventType.QUEST_GRACE, {"quest_id": quest.id})])
        return ActionResult(
            True,
            f"Grace applied to {quest.habit_title}. {streak.grace_tokens} token(s) left.",
            {"grace_tokens": streak.grace_tokens},
        )

    def trigger_recovery_day(self) -> ActionResult:
        """Plan a rest day: today's unfinished quests are forgiven at rollover."""

        draft = self._draft()
        streak = draft.streak
        week = draft.season.current_week
        if streak.is_recovery_day:
            return ActionResult(False, "A recovery day is already planned.")
        if week > 0 and streak.last_recovery_week == week:
            return ActionResult(False, "You already took a recovery day this week.")
        streak.is_recovery_day = True
        streak.last_recovery_week = week
        bonus = 0
        if SKILL_RECOVERY_DAY_PLUS in draft.skill_tree.unlocked_skill_ids:
            before = draft.character.morale
            draft.character.morale = clamp_morale(before + RECOVERY_DAY_MORALE_BONUS)
            bonus = draft.character.morale - before
        self._commit(
            draft,
            "trigger_recovery_day",
            [(EventType.RECOVERY_DAY, {"week": week, "morale": bonus})],
        )
        message = "Recovery day planned. Rest well; today's quests will not cost your streak."
        if bonus:
            message += f" +{bonus} morale."
        return ActionResult(True, message, {"morale": bonus})

    # ------------------------------------------------------------------
    # Economy
    # ------------------------------------------------------------------

    def buy_item(self, item_id: str, quantity: int = 1) -> ActionResult:
        if item_id not in SHOP_LISTINGS:
            if item_id in EQUIPMENT or item_id in CONSUMABLES:
                return ActionResult(False, "That item is not sold in the shop.")
            raise UnknownEntityError("item", item_id)
        listing = SHOP_LISTINGS[item_id]
        if quantity < 1:
            return ActionResult(False, "Quantity must be at least 1.")

        draft = self._draft()
        inventory = draft.inventory
        if draft.character.level < listing.level_required:
            return ActionResult(False, f"Requires level {listing.level_required}.")

        total = listing.price * quantity
        balance = inventory.essence_shards if listing.currency == "essence" else inventory.gold
        if balance < total:
            return ActionResult(False, f"You need {total} {listing.currency} for that purchase.")

        now = self.clock.now()
        created: List[str] = []
        if listing.is_equipment:
            definition = EQUIPMENT[item_id]
            for _ in range(quantity):
                instance = EquipmentInstance(
                    id=_new_id(),
                    item_id=item_id,
                    durability=float(definition.max_durability),
                    acquired_at=now,
                )
                inventory.equipment.append(instance)
                created.append(instance.id)
            name = definition.name
        else:
            consumable = CONSUMABLES[item_id]
            if inventory.consumable_count(item_id) + quantity > consumable.max_stack:
                return ActionResult(False, f"You can hold at most {consumable.max_stack} of those.")
            inventory.add_consumable(item_id, quantity)
            name = consumable.name

        if listing.currency == "essence":
            inventory.essence_shards -= total
        else:
            inventory.gold -= total
        draft.shop.record(item_id, quantity)
        self._commit(
            draft,
            "buy_item",
            [(EventType.ITEM_PURCHASED, {"item_id": item_id, "quantity": quantity, "cost": total})],
        )
        return ActionResult(
            True,
            f"Bought {quantity}x {name} for {total} {listing.currency}.",
            {"instance_ids": created, "cost": total},
        )

    def craft_item(self, recipe_id: str) -> ActionResult:
        recipe = RECIPES.get(recipe_id)
        if recipe is None:
            raise UnknownEntityError("recipe", recipe_id)
        draft = self._draft()
        if draft.season.current_week < recipe.week_unlock:
            return ActionResult(False, f"Crafting unlocks in week {recipe.week_unlock}.")
        if draft.inventory.gold < recipe.gold_cost:
            return ActionResult(False, f"{recipe.name} costs {recipe.gold_cost} gold.")

        character = draft.character
        streak = draft.streak
        if recipe.effect == "grace_token":
            ceiling = grace_token_ceiling(streak.max_grace_tokens)
            if streak.grace_tokens >= ceiling:
                return ActionResult(False, "You already hold the maximum number of grace tokens.")
            streak.grace_tokens = min(ceiling, streak.grace_tokens + recipe.amount)
        elif recipe.effect == "energy":
            character.energy = min(character.max_energy, character.energy + recipe.amount)
        elif recipe.effect == "morale":
            character.morale = clamp_morale(character.morale + recipe.amount)

        draft.inventory.gold -= recipe.gold_cost
        self._commit(
            draft, "craft_item", [(EventType.ITEM_CRAFTED, {"recipe_id": recipe_id})]
        )
        return ActionResult(True, f"Crafted {recipe.name}.")

    def use_consumable(self, item_id: str) -> ActionResult:
        if item_id not in CONSUMABLES:
            raise UnknownEntityError("item", item_id)
        if item_id not in (ITEM_ENERGY_POTION, ITEM_MORALE_BOOST):
            return ActionResult(False, "Repair kits are used through /repair.")
        draft = self._draft()
        if not draft.inventory.remove_consumable(item_id):
            return ActionResult(False, "You do not have any of those.")
        character = draft.character
        if item_id == ITEM_ENERGY_POTION:
            character.energy = min(character.max_energy, character.energy + ENERGY_POTION_RESTORE)
            message = f"Energy restored to {character.energy}."
        else:
            character.morale = clamp_morale(character.morale + MORALE_BOOST_AMOUNT)
            message = f"Morale raised to {character.morale}."
        self._commit(draft, "use_consumable", [(EventType.CONSUMABLE_USED, {"item_id": item_id})])
        return ActionResult(True, message)

    def equip_item(self, instance_id: str) -> ActionResult:
        draft = self._draft()
        item = self._equipment(draft, instance_id)
        definition = EQUIPMENT.get(item.item_id)
        if definition is None:
            raise UnknownEntityError("item", item.item_id)
        if item.is_broken:
            return ActionResult(False, f"{definition.name} is broken and must be repaired first.")
        slot = definition.slot.value
        inventory = draft.inventory
        if inventory.loadout.get(slot) == instance_id:
            return ActionResult(False, f"{definition.name} is already equipped.")
        replaced = inventory.loadout.get(slot)
        inventory.loadout[slot] = instance_id
        self._commit(
            draft,
            "equip_item",
            [
                (
                    EventType.ITEM_EQUIPPED,
                    {"instance_id": instance_id, "slot": slot, "replaced": replaced or ""},
                )
            ],
        )
        return ActionResult(True, f"Equipped {definition.name} as your {slot}.", {"replaced": replaced})

    def repair_item(self, instance_id: str, use_kit: Optional[str] = None) -> ActionResult:
        draft = self._draft()
        item = self._equipment(draft, instance_id)
        definition = EQUIPMENT.get(item.item_id)
        if definition is None:
            raise UnknownEntityError("item", item.item_id)
        maximum = float(definition.max_durability)
        if item.durability >= maximum:
            return ActionResult(False, f"{definition.name} is already in perfect condition.")

        inventory = draft.inventory
        cost = 0
        if use_kit is not None:
            if use_kit not in (ITEM_REPAIR_KIT_BASIC, ITEM_REPAIR_KIT_ADVANCED):
                return ActionResult(False, "That is not a repair kit.")
            if not inventory.remove_consumable(use_kit):
                return ActionResult(False, "You do not own that repair kit.")
            if use_kit == ITEM_REPAIR_KIT_BASIC:
                item.durability = min(maximum, item.durability + maximum * REPAIR_KIT_BASIC_FRACTION)
            else:
                item.durability = maximum
        else:
            cost = repair_cost(definition, item.durability)
            if inventory.gold < cost:
                return ActionResult(False, f"Repairing {definition.name} costs {cost} gold.")
            inventory.gold -= cost
            item.durability = maximum

        self._commit(
            draft,
            "repair_item",
            [
                (
                    EventType.ITEM_REPAIRED,
                    {"instance_id": instance_id, "kit": use_kit or "", "cost": cost},
                )
            ],
        )
        return ActionResult(
            True,
            f"{definition.name} repaired to {item.durability:g}/{definition.max_durability}.",
            {"cost": cost, "durability": item.durability},
        )

    # ------------------------------------------------------------------
    # Character
    # ------------------------------------------------------------------

    def unlock_skill(self, skill_id: str) -> ActionResult:
        node = SKILL_NODES.get(skill_id)
        if node is None:
            raise UnknownEntityError("skill", skill_id)
        draft = self._draft()
        tree = draft.skill_tree
        if tree.is_unlocked(skill_id):
            return ActionResult(False, f"{node.name} is already unlocked.")
        missing = [prereq for prereq in node.prerequisite_ids if not tree.is_unlocked(prereq)]
        if missing:
            names = ", ".join(SKILL_NODES[prereq].name for prereq in missing)
            return ActionResult(False, f"{node.name} requires {names}.")
        if draft.character.level < node.level_required:
            return ActionResult(False, f"{node.name} requires level {node.level_required}.")
        if draft.season.current_week < node.week_unlock:
            return ActionResult(False, f"{node.name} unlocks in week {node.week_unlock}.")
        if draft.inventory.essence_shards < node.cost:
            return ActionResult(False, f"{node.name} costs {node.cost} essence shards.")

        draft.inventory.essence_shards -= node.cost
        tree.unlocked_skill_ids.append(skill_id)
        if skill_id == SKILL_GRACE_EXTENDED:
            draft.streak.max_grace_tokens += 1
        self._commit(draft, "unlock_skill", [(EventType.SKILL_UNLOCKED, {"skill_id": skill_id})])
        return ActionResult(True, f"Unlocked {node.name}: {node.effect}.")

    def set_archetype(self, archetype_id: str) -> ActionResult:
        archetype = ARCHETYPES.get(archetype_id)
        if archetype is None:
            raise UnknownEntityError("archetype", archetype_id)
        if self._state.character.archetype_id is not None:
            return ActionResult(False, "Your archetype has already been chosen.")
        draft = self._draft()
        draft.character.archetype_id = archetype.id
        self._commit(
            draft, "set_archetype", [(EventType.ARCHETYPE_CHOSEN, {"archetype_id": archetype.id})]
        )
        return ActionResult(True, f"You are now a {archetype.name}.")

    def set_character_name(self, name: str) -> ActionResult:
        cleaned = (name or "").strip()
        if not cleaned:
            return ActionResult(False, "Name cannot be empty.")
        if len(cleaned) > 64:
            return ActionResult(False, "Name must be 64 characters or fewer.")
        draft = self._draft()
        draft.character.name = cleaned
        self._commit(draft, "set_character_name", [])
        return ActionResult(True, f"Your hero is now called {cleaned}.")

    # ------------------------------------------------------------------
    # Habits
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_habit_fields(values: Mapping[str, Any]) -> Optional[str]:
        if "title" in values and not str(values["title"] or "").strip():
            return "Habit title cannot be empty."
        if "difficulty" in values:
            try:
                difficulty = int(values["difficulty"])
            except (TypeError, ValueError):
                return "Difficulty must be a number from 1 to 5."
            if not 1 <= difficulty <= 5:
                return "Difficulty must be between 1 and 5."
        if "effort_minutes" in values:
            try:
                minutes = int(values["effort_minutes"])
            except (TypeError, ValueError):
                return "Effort must be a whole number of minutes."
            if minutes < 1:
                return "Effort must be at least one minute."
        try:
            if values.get("category") is not None:
                HabitCategory.from_value(values["category"])
            if values.get("stat_affinity") is not None:
                StatKey.from_value(values["stat_affinity"])
            if values.get("window") is not None:
                HabitWindow.from_value(values["window"])
        except ValueError as exc:
            return str(exc)
        return None

    def add_habit(
        self,
        title: str,
        category: str = HabitCategory.RITUAL.value,
        difficulty: int = 3,
        effort_minutes: int = 10,
        stat_affinity: Optional[str] = None,
        window: str = HabitWindow.ANYTIME.value,
        description: str = "",
    ) -> ActionResult:
        values = {
            "title": title,
            "category": category,
            "difficulty": difficulty,
            "effort_minutes": effort_minutes,
            "stat_affinity": stat_affinity,
            "window": window,
        }
        problem = self._validate_habit_fields(values)
        if problem:
            return ActionResult(False, problem)

        now = self.clock.now()
        draft = self._draft()
        habit = Habit(
            id=_new_id(8),
            title=title,
            category=category,
            difficulty=difficulty,
            effort_minutes=effort_minutes,
            stat_affinity=stat_affinity,
            window=window,
            description=description,
            created_at=now,
            updated_at=now,
        )
        draft.habits.append(habit)
        today = draft.season.last_processed_date
        created: List[QuestInstance] = []
        if today:
            created = generate_daily_quests([habit], draft.quests, today, reward_context(draft))
            draft.quests.extend(created)
        self._commit(
            draft, "add_habit", [(EventType.HABIT_ADDED, {"habit_id": habit.id, "title": habit.title})]
        )
        return ActionResult(
            True,
            f"Added habit {habit.title}.",
            {"habit_id": habit.id, "quest_ids": [quest.id for quest in created]},
        )

    def update_habit(self, habit_id: str, **changes: Any) -> ActionResult:
        """Edit a habit. Quests already generated keep their snapshot."""

        unknown = sorted(set(changes) - set(_HABIT_FIELDS))
        if unknown:
            return ActionResult(False, f"Unknown habit field(s): {', '.join(unknown)}.")
        draft = self._draft()
        habit = self._habit(draft, habit_id)
        updates = {key: value for key, value in changes.items() if value is not None}
        if not updates:
            return ActionResult(False, "Nothing to update.")
        problem = self._validate_habit_fields(updates)
        if problem:
            return ActionResult(False, problem)
        payload = habit.to_dict()
        payload.update(updates)
        if "category" in updates and "stat_affinity" not in updates:
            payload["stat_affinity"] = None
        payload["updated_at"] = self.clock.now()
        index = draft.habits.index(habit)
        draft.habits[index] = Habit.from_dict(payload)
        self._commit(
            draft,
            "update_habit",
            [(EventType.HABIT_UPDATED, {"habit_id": habit_id, "fields": sorted(updates)})],
        )
        return ActionResult(True, f"Updated habit {draft.habits[index].title}.")

    def toggle_habit(self, habit_id: str) -> ActionResult:
        draft = self._draft()
        habit = self._habit(draft, habit_id)
        habit.is_active = not habit.is_active
        habit.updated_at = self.clock.now()
        self._commit(
            draft,
            "toggle_habit",
            [(EventType.HABIT_UPDATED, {"habit_id": habit_id, "is_active": habit.is_active})],
        )
        state = "resumed" if habit.is_active else "paused"
        return ActionResult(True, f"{habit.title} {state}.", {"is_active": habit.is_active})

    def remove_habit(self, habit_id: str) -> ActionResult:
        """Delete a habit and its pending quests; finished quests stay as history."""

        draft = self._draft()
        habit = self._habit(draft, habit_id)
        draft.habits = [item for item in draft.habits if item.id != habit_id]
        draft.quests = [
            quest for quest in draft.quests if not (quest.habit_id == habit_id and quest.is_pending)
        ]
        self._commit(draft, "remove_habit", [(EventType.HABIT_REMOVED, {"habit_id": habit_id})])
        return ActionResult(True, f"Removed habit {habit.title}.")

    # ------------------------------------------------------------------
    # Scheduling, settings and whole-state operations
    # ------------------------------------------------------------------

    def run_scheduler(self, now: Optional[Timestamp] = None) -> ActionResult:
        moment = self.clock.now() if now is None else now
        report = scheduler.run(self._state, moment)
        data = {
            "today": report.today,
            "week": report.week,
            "generated": list(report.generated),
            "skipped": list(report.skipped),
            "graced": list(report.graced),
        }
        if not report.changed:
            return ActionResult(True, "Already up to date.", data)

        self._commit(report.state, "run_scheduler", report.events)
        if report.skipped:
            self._notify(f"{len(report.skipped)} quest(s) were missed.", Severity.WARNING)
        if report.rested:
            self._notify(f"Recovery day: {len(report.rested)} quest(s) forgiven.")
        if report.streak_broken:
            self._notify("Your streak was broken.", Severity.WARNING)
        if report.spawned_boss_id:
            boss = report.state.boss.current_boss
            if boss is not None:
                self._notify(f"A new boss appears: {boss.name} ({boss.max_health} HP).")
        if report.shield_awarded:
            self._notify("You earned a streak shield!", Severity.SUCCESS)
        for feature in report.new_features:
            self._notify(f"Unlocked: {feature.replace('_', ' ')}.")
        return ActionResult(True, f"Advanced to {report.today}.", data)

    def update_settings(
        self,
        *,
        timezone: Optional[str] = None,
        day_start_hour: Optional[int] = None,
        notifications: Optional[bool] = None,
    ) -> ActionResult:
        draft = self._draft()
        settings = draft.settings
        if timezone is not None:
            if not is_known_timezone(timezone):
                return ActionResult(False, f"Unknown timezone: {timezone}.")
            settings.timezone = timezone.strip()
        if day_start_hour is not None:
            if not 0 <= int(day_start_hour) <= 23:
                return ActionResult(False, "Day start hour must be between 0 and 23.")
            settings.day_start_hour = int(day_start_hour)
        if notifications is not None:
            settings.notifications = bool(notifications)
        if settings == self._state.settings:
            return ActionResult(False, "Settings unchanged.")
        self._commit(draft, "update_settings", [(EventType.SETTINGS_UPDATED, settings.to_dict())])
        return ActionResult(True, "Settings saved.")

    def merge_remote(self, snapshot: Mapping[str, Any]) -> ActionResult:
        """Overlay a remote snapshot on the local state.

        Remote sections replace local ones, except that an empty remote habit
        list leaves local habits in place.
        """

        document = self._state.to_document()
        merged: List[str] = []
        for name in SECTIONS:
            if name not in snapshot or snapshot[name] is None:
                continue
            if name == "habits" and not snapshot[name]:
                continue
            document[name] = snapshot[name]
            merged.append(name)
        document["version"] = CURRENT_VERSION
        try:
            merged_state = GameState.from_document(document)
        except ModelValidationError as exc:
            log.warning("Rejected remote snapshot: %s", exc)
            return ActionResult(False, f"Remote data was rejected: {exc}")
        self._commit(merged_state, "merge_remote", [(EventType.REMOTE_MERGED, {"sections": merged})])
        return ActionResult(True, "Merged remote progress.", {"sections": merged})

    def replace_state(self, state: GameState, action: str = "replace_state") -> StateChange:
        return self._commit(copy.deepcopy(state), action, [])

    def reset(self) -> ActionResult:
        current = self._state
        fresh = new_game_state(
            current.character.id,
            current.character.name,
            now=self.clock.now(),
            timezone=current.settings.timezone,
            day_start_hour=current.settings.day_start_hour,
        )
        fresh.settings = copy.deepcopy(current.settings)
        self._commit(fresh, "reset", [(EventType.PROFILE_RESET, {})])
        return ActionResult(True, "Progress reset. A new adventure begins.")

    def summary(self) -> Dict[str, Any]:
        state = self._state
        boss = state.boss.current_boss
        return {
            "name": state.character.name,
            "level": state.character.level,
            "xp": state.character.xp,
            "xp_to_next_level": state.character.xp_to_next_level,
            "gold": state.inventory.gold,
            "essence_shards": state.inventory.essence_shards,
            "streak": state.streak.current_streak,
            "energy": state.character.energy,
            "morale": state.character.morale,
            "week": state.season.current_week,
            "boss": None
            if boss is None
            else {"name": boss.name, "health": boss.current_health, "max_health": boss.max_health},
        }


__all__ = [
    "ActionResult",
    "GameStore",
    "UnknownEntityError",
    "new_game_state",
]
