"""Remote keyed-document store used for cross-device progress."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

from .storage import DataStore

log = logging.getLogger(__name__)

REMOTE_COLLECTION = "remote"

# Sections pushed together through ``save_general_state``.
GENERAL_SECTIONS = (
    "inventory",
    "streak",
    "skill_tree",
    "boss",
    "season",
    "settings",
    "shop",
    "events",
)


class RemoteStoreError(RuntimeError):
    pass


class RemoteStore(ABC):
    """Contract of the remote document service, addressed by user id.

    ``load`` returns a snapshot shaped like a profile document (section name
    to payload) or ``None`` when the user has never synced.
    """

    @abstractmethod
    async def load(self, user_id: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def save_character(self, user_id: str, character: Mapping[str, Any]) -> bool: ...

    @abstractmethod
    async def save_general_state(self, user_id: str, partial: Mapping[str, Any]) -> bool: ...

    @abstractmethod
    async def save_habit(self, user_id: str, habit: Mapping[str, Any]) -> bool: ...

    @abstractmethod
    async def save_quest(self, user_id: str, quest: Mapping[str, Any]) -> bool: ...

    @abstractmethod
    async def delete_habit(self, user_id: str, habit_id: str) -> bool: ...


class FileRemoteStore(RemoteStore):
    """Remote store backed by the ``remote`` collection of a :class:`DataStore`.

    Each user owns one record with ``character`` and ``general`` tables and
    ``habits``/``quests`` tables keyed by record id.
    """

    def __init__(self, datastore: DataStore, collection: str = REMOTE_COLLECTION) -> None:
        self._datastore = datastore
        self._collection = collection
        self._lock = asyncio.Lock()

    async def _read(self, user_id: str) -> Dict[str, Any]:
        record = await self._datastore.get(self._collection, str(user_id))
        return dict(record) if record else {}

    async def _update(self, user_id: str, section: str, key: Optional[str], value: Any) -> bool:
        async with self._lock:
            record = await self._read(user_id)
            if key is None:
                record[section] = value
            else:
                table = dict(record.get(section) or {})
                if value is None:
                    table.pop(key, None)
                else:
                    table[key] = value
                record[section] = table
            await self._datastore.set(self._collection, str(user_id), record)
        return True

    async def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = await self._read(user_id)
        if not record:
            return None
        snapshot: Dict[str, Any] = {}
        if record.get("character"):
            snapshot["character"] = dict(record["character"])
        general = record.get("general") or {}
        for name in GENERAL_SECTIONS:
            if name in general:
                snapshot[name] = general[name]
        snapshot["habits"] = list((record.get("habits") or {}).values())
        snapshot["quests"] = sorted(
            (record.get("quests") or {}).values(),
            key=lambda quest: (str(quest.get("date", "")), str(quest.get("id", ""))),
        )
        return snapshot

    async def save_character(self, user_id: str, character: Mapping[str, Any]) -> bool:
        return await self._update(user_id, "character", None, dict(character))

    async def save_general_state(self, user_id: str, partial: Mapping[str, Any]) -> bool:
        async with self._lock:
            record = await self._read(user_id)
            general = dict(record.get("general") or {})
            for name, value in partial.items():
                if name not in GENERAL_SECTIONS:
                    raise RemoteStoreError(f"{name!r} is not a general state section")
                general[name] = value
            record["general"] = general
            await self._datastore.set(self._collection, str(user_id), record)
        return True

    async def save_habit(self, user_id: str, habit: Mapping[str, Any]) -> bool:
        return await self._update(user_id, "habits", str(habit["id"]), dict(habit))

    async def save_quest(self, user_id: str, quest: Mapping[str, Any]) -> bool:
        return await self._update(user_id, "quests", str(quest["id"]), dict(quest))

    async def delete_habit(self, user_id: str, habit_id: str) -> bool:
        return await self._update(user_id, "habits", str(habit_id), None)


__all__ = [
    "FileRemoteStore",
    "GENERAL_SECTIONS",
    "REMOTE_COLLECTION",
    "RemoteStore",
    "RemoteStoreError",
]
