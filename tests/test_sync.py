from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.game import GameStore, new_game_state
from habitrpg.notifications import ManualClock
from habitrpg.remote import GENERAL_SECTIONS, RemoteStore
from habitrpg.session import Session
from habitrpg.sync import TRACKED_SECTIONS, SyncReconciler


class MemoryRemote(RemoteStore):
    def __init__(self, snapshot: Optional[Dict[str, Any]] = None) -> None:
        self.snapshot = snapshot
        self.calls: List[Tuple[str, Any]] = []
        self.loads = 0
        self.fail_loads = 0
        self.fail_saves: set[str] = set()

    async def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        self.loads += 1
        if self.fail_loads:
            self.fail_loads -= 1
            raise ConnectionError("remote unavailable")
        return self.snapshot

    def _record(self, kind: str, payload: Any) -> bool:
        if kind in self.fail_saves:
            raise ConnectionError(f"{kind} rejected")
        self.calls.append((kind, payload))
        return True

    async def save_character(self, user_id: str, character: Mapping[str, Any]) -> bool:
        return self._record("character", dict(character))

    async def save_general_state(self, user_id: str, partial: Mapping[str, Any]) -> bool:
        return self._record("general", dict(partial))

    async def save_habit(self, user_id: str, habit: Mapping[str, Any]) -> bool:
        return self._record("habit", dict(habit))

    async def save_quest(self, user_id: str, quest: Mapping[str, Any]) -> bool:
        return self._record("quest", dict(quest))

    async def delete_habit(self, user_id: str, habit_id: str) -> bool:
        return self._record("delete_habit", habit_id)

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.calls]


def _session() -> Session:
    store = GameStore(new_game_state("1", "Local"), clock=ManualClock(1_700_000_000.0))
    store.add_habit("Read", category="practice")
    return Session(user_id="1", store=store)


def test_empty_remote_pushes_everything() -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote(None)
        reconciler = SyncReconciler(session, remote, debounce=60)

        merged = await reconciler.sign_in()

        assert merged is False
        assert session.remote_loaded
        assert reconciler.dirty_sections == TRACKED_SECTIONS
        assert reconciler.has_pending_push

        await reconciler.flush()

        assert remote.kinds().count("character") == 1
        assert remote.kinds().count("general") == 1
        general = dict(remote.calls)["general"]
        assert set(general) == set(GENERAL_SECTIONS)
        assert remote.kinds().count("habit") == 1
        assert not reconciler.has_pending_push
        assert reconciler.dirty_sections == frozenset()
        reconciler.close()

    asyncio.run(scenario())


def test_empty_remote_habits_keep_local_habits() -> None:
    async def scenario() -> None:
        session = _session()
        remote_character = new_game_state("1", "Remote").character.to_dict()
        remote_character["level"] = 3
        remote = MemoryRemote({"character": remote_character, "habits": []})
        reconciler = SyncReconciler(session, remote, debounce=60)

        merged = await reconciler.sign_in()

        state = session.store.state
        assert merged is True
        assert state.character.name == "Remote"
        assert state.character.level == 3
        assert [habit.title for habit in state.habits] == ["Read"]
        assert reconciler.dirty_sections == frozenset({"habits"})

        await reconciler.flush()
        assert remote.kinds() == ["habit"]
        reconciler.close()

    asyncio.run(scenario())


def test_sign_in_runs_once() -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote(None)
        reconciler = SyncReconciler(session, remote, debounce=60)

        results = await asyncio.gather(reconciler.sign_in(), reconciler.sign_in())
        again = await reconciler.sign_in()

        assert remote.loads == 1
        assert list(results) == [False, False]
        assert again is False
        reconciler.close()

    asyncio.run(scenario())


def test_failed_load_is_logged_and_retried(caplog: pytest.LogCaptureFixture) -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote(None)
        remote.fail_loads = 1
        reconciler = SyncReconciler(session, remote, debounce=60)

        with caplog.at_level(logging.ERROR, logger="habitrpg.sync"):
            assert await reconciler.sign_in() is False
        assert not session.remote_loaded
        assert "Could not load remote progress" in caplog.text

        await reconciler.sign_in()
        assert session.remote_loaded
        assert remote.loads == 2
        reconciler.close()

    asyncio.run(scenario())


def test_changes_rearm_a_single_timer() -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote({"character": session.store.state.character.to_dict()})
        reconciler = SyncReconciler(session, remote, debounce=0.05)
        await reconciler.sign_in()
        await reconciler.flush()
        remote.calls.clear()

        session.store.set_character_name("First")
        first_timer = reconciler._timer
        session.store.set_character_name("Second")

        assert first_timer is not None and first_timer.cancelled()
        assert reconciler.has_pending_push

        await asyncio.sleep(0.2)
        await reconciler.flush()

        assert remote.kinds() == ["character"]
        assert remote.calls[0][1]["name"] == "Second"
        reconciler.close()

    asyncio.run(scenario())


def test_untracked_actions_do_not_schedule() -> None:
    async def scenario() -> None:
        session = _session()
        reconciler = SyncReconciler(session, MemoryRemote({"habits": []}), debounce=60)
        await reconciler.sign_in()
        await reconciler.flush()

        session.store.replace_state(session.store.state)

        assert not reconciler.has_pending_push
        reconciler.close()

    asyncio.run(scenario())


def test_push_errors_are_logged_and_retried(caplog: pytest.LogCaptureFixture) -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote({"character": session.store.state.character.to_dict()})
        reconciler = SyncReconciler(session, remote, debounce=60)
        await reconciler.sign_in()
        await reconciler.flush()
        remote.fail_saves.add("character")

        session.store.set_character_name("Offline")
        with caplog.at_level(logging.ERROR, logger="habitrpg.sync"):
            await reconciler.flush()

        assert "Remote save of character failed" in caplog.text
        assert "character" in reconciler.dirty_sections

        remote.fail_saves.clear()
        await reconciler.flush()
        assert remote.calls[-1][0] == "character"
        assert remote.calls[-1][1]["name"] == "Offline"
        reconciler.close()

    asyncio.run(scenario())


def test_removed_habits_are_deleted_remotely() -> None:
    async def scenario() -> None:
        session = _session()
        reconciler = SyncReconciler(session, MemoryRemote(None), debounce=60)
        remote = reconciler._remote
        await reconciler.sign_in()
        await reconciler.flush()
        habit_id = session.store.state.habits[0].id
        remote.calls.clear()

        session.store.remove_habit(habit_id)
        await reconciler.flush()

        assert ("delete_habit", habit_id) in remote.calls
        reconciler.close()

    asyncio.run(scenario())


def test_close_drops_unsent_changes() -> None:
    async def scenario() -> None:
        session = _session()
        remote = MemoryRemote({"habits": []})
        reconciler = SyncReconciler(session, remote, debounce=60)
        await reconciler.sign_in()
        await reconciler.flush()
        remote.calls.clear()

        session.store.set_character_name("Unsent")
        reconciler.close()
        await reconciler.flush()
        session.store.set_character_name("Ignored")

        assert remote.calls == []
        assert not reconciler.has_pending_push

    asyncio.run(scenario())


class SlowFirstSaveRemote(MemoryRemote):
    def __init__(self, snapshot: Optional[Dict[str, Any]] = None, delay: float = 0.3) -> None:
        super().__init__(snapshot)
        self.delay = delay

    async def save_character(self, user_id: str, character: Mapping[str, Any]) -> bool:
        delay, self.delay = self.delay, 0.0
        if delay:
            await asyncio.sleep(delay)
        return self._record("character", dict(character))


def test_slow_push_does_not_overwrite_newer_value() -> None:
    async def scenario() -> None:
        session = _session()
        remote = SlowFirstSaveRemote({"character": session.store.state.character.to_dict()})
        reconciler = SyncReconciler(session, remote, debounce=0.05)
        await reconciler.sign_in()
        await reconciler.flush()
        remote.calls.clear()
        remote.delay = 0.3

        session.store.set_character_name("First")
        await asyncio.sleep(0.1)
        session.store.set_character_name("Second")
        await reconciler.flush()

        names = [payload["name"] for kind, payload in remote.calls if kind == "character"]
        assert names[-1] == "Second"
        assert not reconciler.has_pending_push
        assert reconciler.dirty_sections == frozenset()
        reconciler.close()

    asyncio.run(scenario())
