"""Reconcile a session's local state with the remote store.

The first ``sign_in`` of a session pulls the remote snapshot and merges it.
From then on every change to a tracked section marks it dirty and re-arms a
single debounce timer; when the timer fires the dirty sub-states are pushed
whole.  Pushes run one after another, so the remote ends with the newest
value.  Writes are last-writer-wins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Set

from .constants import SYNC_DEBOUNCE_SECONDS
from .models import GameState
from .notifications import StateChange
from .remote import GENERAL_SECTIONS, RemoteStore

if TYPE_CHECKING:
    from .session import Session

log = logging.getLogger(__name__)

TRACKED_SECTIONS = frozenset(("character", "habits", "quests", *GENERAL_SECTIONS))


class SyncReconciler:
    def __init__(
        self,
        session: "Session",
        remote: RemoteStore,
        *,
        debounce: float = SYNC_DEBOUNCE_SECONDS,
    ) -> None:
        self._session = session
        self._remote = remote
        self._debounce = max(0.0, float(debounce))
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loading: Optional[asyncio.Future[bool]] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._dirty: Set[str] = set()
        self._inflight: Set[asyncio.Task[None]] = set()
        self._push_lock = asyncio.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pushed_habits: Dict[str, Dict[str, Any]] = {}
        self._pushed_quests: Dict[str, Dict[str, Any]] = {}

    @property
    def user_id(self) -> str:
        return self._session.user_id

    @property
    def dirty_sections(self) -> frozenset[str]:
        return frozenset(self._dirty)

    @property
    def has_pending_push(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Initial load
    # ------------------------------------------------------------------

    async def sign_in(self) -> bool:
        """Fetch and merge the remote snapshot once per session.

        A second call while the first fetch is running waits for it; later
        calls return immediately.  Returns ``True`` when remote data was merged.
        """

        if self._session.remote_loaded:
            return False
        if self._loading is None:
            self._loop = asyncio.get_running_loop()
            self._loading = asyncio.ensure_future(self._load_and_merge())
        loading = self._loading
        try:
            return await asyncio.shield(loading)
        finally:
            if loading.done() and not self._session.remote_loaded:
                # Failed fetch: allow a later retry.
                self._loading = None

    async def _load_and_merge(self) -> bool:
        store = self._session.store
        try:
            snapshot = await self._remote.load(self.user_id)
        except Exception:
            log.exception("Could not load remote progress for %s", self.user_id)
            return False

        merged = False
        if snapshot is None:
            log.info("No remote progress for %s; pushing local state", self.user_id)
            self._dirty.update(TRACKED_SECTIONS)
        else:
            result = store.merge_remote(snapshot)
            merged = result.success
            if not merged:
                log.warning("Remote progress for %s not merged: %s", self.user_id, result.message)
            self._pushed_habits = _records_by_id(snapshot.get("habits"))
            self._pushed_quests = _records_by_id(snapshot.get("quests"))
            if _records_differ(self._pushed_habits, store.state, "habits"):
                self._dirty.add("habits")

        self._session.remote_loaded = True
        self._unsubscribe = store.subscribe(self._on_change)
        if self._dirty:
            self._schedule()
        return merged

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def _on_change(self, change: StateChange) -> None:
        touched = TRACKED_SECTIONS.intersection(change.sections)
        if not touched:
            return
        self._dirty.update(touched)
        self._schedule()

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._start_push()

    def _start_push(self) -> Optional[asyncio.Task[None]]:
        if not self._dirty:
            return None
        sections = set(self._dirty)
        self._dirty.clear()
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._push(sections))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    # ------------------------------------------------------------------
    # Pushing
    # ------------------------------------------------------------------

    async def _push(self, sections: Set[str]) -> None:
        # One push at a time, each sending the state as it is when its turn comes.
        async with self._push_lock:
            await self._send(sections, self._session.store.state)

    async def _send(self, sections: Set[str], state: GameState) -> None:
        user_id = self.user_id
        failed: Set[str] = set()

        if "character" in sections:
            payload = state.section_payload("character")
            if not await self._call("character", self._remote.save_character(user_id, payload)):
                failed.add("character")

        general = {
            name: state.section_payload(name)
            for name in GENERAL_SECTIONS
            if name in sections
        }
        if general:
            if not await self._call("general state", self._remote.save_general_state(user_id, general)):
                failed.update(general)

        if "habits" in sections:
            current = {habit.id: _comparable(habit.to_dict()) for habit in state.habits}
            for habit_id, payload in current.items():
                if self._pushed_habits.get(habit_id) == payload:
                    continue
                if await self._call(f"habit {habit_id}", self._remote.save_habit(user_id, payload)):
                    self._pushed_habits[habit_id] = payload
                else:
                    failed.add("habits")
            for habit_id in [key for key in self._pushed_habits if key not in current]:
                if await self._call(f"habit {habit_id}", self._remote.delete_habit(user_id, habit_id)):
                    self._pushed_habits.pop(habit_id, None)
                else:
                    failed.add("habits")

        if "quests" in sections:
            for quest in state.quests:
                payload = _comparable(quest.to_dict())
                if self._pushed_quests.get(quest.id) == payload:
                    continue
                if await self._call(f"quest {quest.id}", self._remote.save_quest(user_id, payload)):
                    self._pushed_quests[quest.id] = payload
                else:
                    failed.add("quests")

        if failed:
            # Retried on the next debounce cycle or flush.
            self._dirty.update(failed)

    async def _call(self, label: str, operation) -> bool:
        try:
            result = await operation
        except Exception:
            log.exception("Remote save of %s failed for %s", label, self.user_id)
            return False
        if result is False:
            log.warning("Remote store refused %s for %s", label, self.user_id)
            return False
        return True

    async def flush(self) -> None:
        """Push everything dirty now and wait for all in-flight pushes."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._start_push()
        if self._inflight:
            await asyncio.gather(*list(self._inflight))

    def close(self) -> None:
        """Stop tracking changes. Unsent changes are dropped."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._dirty:
            log.debug("Dropping unsent sections for %s: %s", self.user_id, sorted(self._dirty))
        self._dirty.clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


def _comparable(record: Dict[str, Any]) -> Dict[str, Any]:
    # Stored records omit empty values.
    return {key: value for key, value in record.items() if value is not None}


def _records_by_id(records: Any) -> Dict[str, Dict[str, Any]]:
    if not isinstance(records, list):
        return {}
    return {
        str(record["id"]): _comparable(record)
        for record in records
        if isinstance(record, dict) and "id" in record
    }


def _records_differ(pushed: Dict[str, Dict[str, Any]], state: GameState, section: str) -> bool:
    current = {item.id: _comparable(item.to_dict()) for item in getattr(state, section)}
    return current != pushed


__all__ = ["SyncReconciler", "TRACKED_SECTIONS"]
