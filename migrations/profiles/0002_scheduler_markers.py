"""Add scheduler markers, loadouts and shop history to profiles."""

from __future__ import annotations


FROM_VERSION = 1
TO_VERSION = 2
DESCRIPTION = "Add week marker, equipment loadout, shop and event log"


def apply(context) -> None:  # type: ignore[override]
    document = context.document

    season = document.setdefault("season", {})
    if "last_processed_week" not in season:
        # Profiles that already rolled a day have also processed the week they are in.
        if season.get("last_processed_date"):
            season["last_processed_week"] = int(season.get("current_week", 1) or 1)
        else:
            season["last_processed_week"] = 0
        context.log(f"set last_processed_week to {season['last_processed_week']}")

    inventory = document.setdefault("inventory", {})
    equipment = inventory.get("equipment")
    if not isinstance(equipment, list):
        inventory["equipment"] = []
    loadout = inventory.get("loadout")
    if not isinstance(loadout, dict):
        # Version 1 stored a single equipped instance per slot under "equipped".
        equipped = inventory.pop("equipped", None)
        inventory["loadout"] = dict(equipped) if isinstance(equipped, dict) else {}

    streak = document.setdefault("streak", {})
    if "streak_shields" not in streak and "shields" in streak:
        streak["streak_shields"] = streak.pop("shields")

    if not isinstance(document.get("shop"), dict):
        document["shop"] = {"purchases": {}}
    if not isinstance(document.get("events"), list):
        document["events"] = []
