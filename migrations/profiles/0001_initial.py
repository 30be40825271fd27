"""Initial migration for profile records."""

from __future__ import annotations


FROM_VERSION = 0
TO_VERSION = 1
DESCRIPTION = "Fill in missing profile sections"

_TABLES = ("inventory", "streak", "skill_tree", "boss", "season", "settings")
_LISTS = ("habits", "quests")
_STAT_KEYS = ("STR", "INT", "DEX", "WIS", "VIT")
_CHARACTER_DEFAULTS = {
    "level": 1,
    "xp": 0,
    "xp_to_next_level": 100,
    "energy": 100,
    "max_energy": 100,
    "morale": 100,
}


def apply(context) -> None:  # type: ignore[override]
    document = context.document

    character = document.get("character")
    if not isinstance(character, dict):
        character = {}
        document["character"] = character
        context.log("created missing character table")
    character.setdefault("id", str(context.key))
    character.setdefault("name", "Hero")
    for name, value in _CHARACTER_DEFAULTS.items():
        character.setdefault(name, value)
    if not isinstance(character.get("stats"), dict):
        character["stats"] = {key: 1.0 for key in _STAT_KEYS}

    # Unversioned saves kept gold on the root table.
    legacy_gold = document.pop("gold", None)
    for name in _TABLES:
        if not isinstance(document.get(name), dict):
            document[name] = {}
    for name in _LISTS:
        if not isinstance(document.get(name), list):
            document[name] = []
    if isinstance(legacy_gold, int) and "gold" not in document["inventory"]:
        document["inventory"]["gold"] = legacy_gold
        context.log(f"moved {legacy_gold} gold into inventory")
