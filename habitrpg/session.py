"""Per-user sessions owned by the bot.

A :class:`Session` bundles one user's :class:`GameStore`, the notifications
waiting for their next command reply, the ``remote_loaded`` flag and the sync
reconciler.  :class:`SessionRegistry` creates sessions on first use, persists
every committed change through the :class:`DataStore` and tears sessions down.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .constants import DEFAULT_DAY_START_HOUR, DEFAULT_TIMEZONE, SYNC_DEBOUNCE_SECONDS
from .game import GameStore, new_game_state
from .notifications import Clock, NotificationQueue, SharedStateHub, StateChange, SystemClock
from .remote import RemoteStore
from .storage import DataStore
from .sync import SyncReconciler

log = logging.getLogger(__name__)


def profile_channel(user_id: str) -> str:
    return f"profile:{user_id}"


@dataclass(slots=True)
class Session:
    user_id: str
    store: GameStore
    notifications: NotificationQueue = field(default_factory=NotificationQueue)
    remote_loaded: bool = False
    reconciler: Optional[SyncReconciler] = None


class SessionRegistry:
    def __init__(
        self,
        datastore: DataStore,
        *,
        remote: Optional[RemoteStore] = None,
        hub: Optional[SharedStateHub] = None,
        clock: Optional[Clock] = None,
        timezone: str = DEFAULT_TIMEZONE,
        day_start_hour: int = DEFAULT_DAY_START_HOUR,
        sync_debounce: float = SYNC_DEBOUNCE_SECONDS,
    ) -> None:
        self.datastore = datastore
        self.remote = remote
        self.hub = hub or SharedStateHub()
        self.clock: Clock = clock or SystemClock()
        self.timezone = timezone
        self.day_start_hour = day_start_hour
        self.sync_debounce = sync_debounce
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending_saves: Set[asyncio.Task[None]] = set()

    def __contains__(self, user_id: object) -> bool:
        return str(user_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def peek(self, user_id: int | str) -> Optional[Session]:
        return self._sessions.get(str(user_id))

    async def get(self, user_id: int | str, name: str = "Hero") -> Session:
        """Return the user's session, loading or creating the profile once."""

        key = str(user_id)
        session = self._sessions.get(key)
        if session is not None:
            return session
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            session = self._sessions.get(key)
            if session is None:
                session = await self._open(key, name)
                self._sessions[key] = session
        return session

    async def _open(self, user_id: str, name: str) -> Session:
        state = await self.datastore.load_profile(user_id)
        created = state is None
        if state is None:
            state = new_game_state(
                user_id,
                name,
                now=self.clock.now(),
                timezone=self.timezone,
                day_start_hour=self.day_start_hour,
            )
            log.info("Created profile for %s", user_id)

        queue = NotificationQueue()
        store = GameStore(state, clock=self.clock, notifier=queue)
        session = Session(user_id=user_id, store=store, notifications=queue)
        store.subscribe(lambda change: self._on_change(session, change))

        if self.remote is not None:
            session.reconciler = SyncReconciler(session, self.remote, debounce=self.sync_debounce)
            await session.reconciler.sign_in()

        store.run_scheduler()
        if created:
            await self.datastore.save_profile(store.state)
        self.hub.publish(profile_channel(user_id), store.summary())
        return session

    def _on_change(self, session: Session, change: StateChange) -> None:
        self.hub.publish(profile_channel(session.user_id), session.store.summary())
        task = asyncio.get_running_loop().create_task(self._save(session))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, session: Session) -> None:
        # Always writes the newest state, so out-of-order saves converge.
        try:
            await self.datastore.save_profile(session.store.state)
        except OSError:
            log.exception("Failed to save profile %s", session.user_id)

    async def flush(self) -> None:
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves))

    async def close(self, user_id: int | str) -> None:
        """Flush and tear down one session."""

        session = self._sessions.pop(str(user_id), None)
        if session is None:
            return
        if session.reconciler is not None:
            await session.reconciler.flush()
            session.reconciler.close()
        await self.flush()
        await self.datastore.save_profile(session.store.state)

    async def close_all(self) -> None:
        for user_id in list(self._sessions):
            await self.close(user_id)


__all__ = ["Session", "SessionRegistry", "profile_channel"]
