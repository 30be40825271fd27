from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from habitrpg.notifications import ManualClock, SharedStateHub
from habitrpg.remote import FileRemoteStore
from habitrpg.session import SessionRegistry, profile_channel
from habitrpg.storage import DataStore

START = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc).timestamp()


def _registry(tmp_path: Path, **kwargs) -> SessionRegistry:
    return SessionRegistry(DataStore(tmp_path), clock=ManualClock(START), **kwargs)


def test_first_use_creates_and_saves_profile(tmp_path: Path) -> None:
    hub = SharedStateHub()
    registry = _registry(tmp_path, hub=hub)

    async def scenario() -> None:
        session = await registry.get(42, "Ada")

        assert session.user_id == "42"
        assert session.store.state.character.name == "Ada"
        assert session.store.state.season.last_processed_date == "2024-03-10"
        stored = await registry.datastore.load_profile(42)
        assert stored is not None
        assert stored.character.name == "Ada"
        assert hub.get(profile_channel("42"))["name"] == "Ada"

    asyncio.run(scenario())
    assert (tmp_path / "data" / "profiles" / "42.toml").exists()


def test_concurrent_gets_share_one_session(tmp_path: Path) -> None:
    registry = _registry(tmp_path)

    async def scenario() -> None:
        first, second = await asyncio.gather(registry.get("7"), registry.get(7))
        assert first is second
        assert len(registry) == 1
        assert "7" in registry
        assert registry.peek(7) is first

    asyncio.run(scenario())


def test_changes_are_persisted_and_published(tmp_path: Path) -> None:
    hub = SharedStateHub()
    registry = _registry(tmp_path, hub=hub)
    updates = []
    hub.subscribe(profile_channel("5"), updates.append)

    async def scenario() -> None:
        session = await registry.get(5)
        session.store.add_habit("Read")
        await registry.flush()

        stored = await registry.datastore.load_profile(5)
        assert [habit.title for habit in stored.habits] == ["Read"]
        assert len(stored.quests) == 1

    asyncio.run(scenario())
    assert len(updates) >= 2


def test_existing_profile_is_loaded_not_recreated(tmp_path: Path) -> None:
    async def first_visit() -> None:
        registry = _registry(tmp_path)
        session = await registry.get(9, "Ada")
        session.store.set_character_name("Grace")
        await registry.close_all()

    async def second_visit() -> None:
        registry = _registry(tmp_path)
        session = await registry.get(9, "Ignored")
        assert session.store.state.character.name == "Grace"

    asyncio.run(first_visit())
    asyncio.run(second_visit())


def test_close_flushes_remote_and_removes_session(tmp_path: Path) -> None:
    datastore = DataStore(tmp_path)
    remote = FileRemoteStore(datastore)

    async def scenario() -> None:
        registry = SessionRegistry(
            datastore, remote=remote, clock=ManualClock(START), sync_debounce=60
        )
        session = await registry.get(3, "Ada")
        assert session.remote_loaded
        session.store.add_habit("Read")

        await registry.close(3)

        assert 3 not in registry
        snapshot = await remote.load("3")
        assert snapshot is not None
        assert snapshot["character"]["name"] == "Ada"
        assert [habit["title"] for habit in snapshot["habits"]] == ["Read"]
        assert len(snapshot["quests"]) == 1
        assert snapshot["season"]["last_processed_date"] == "2024-03-10"

    asyncio.run(scenario())


def test_remote_progress_is_merged_on_first_use(tmp_path: Path) -> None:
    datastore = DataStore(tmp_path)
    remote = FileRemoteStore(datastore)

    async def seed() -> None:
        registry = SessionRegistry(
            datastore, remote=remote, clock=ManualClock(START), sync_debounce=60
        )
        session = await registry.get(8, "Ada")
        session.store.set_character_name("Synced")
        await registry.close(8)
        await datastore.delete("profiles", "8")

    async def fresh_device() -> None:
        registry = SessionRegistry(
            datastore, remote=remote, clock=ManualClock(START), sync_debounce=60
        )
        session = await registry.get(8, "New")
        assert session.store.state.character.name == "Synced"
        await registry.close_all()

    asyncio.run(seed())
    asyncio.run(fresh_device())
