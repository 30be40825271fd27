from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import tomllib

from habitrpg.storage import _read_toml, _toml_dumps, _write_toml


def test_write_toml_preserves_original_on_replace_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "data.toml"
    _write_toml(target, {"alpha": 1})
    original_contents = target.read_text(encoding="utf8")

    def _boom(src: Path, dst: Path) -> None:
        raise RuntimeError("simulated failure")

    monkeypatch.setattr("habitrpg.storage.os.replace", _boom)

    with pytest.raises(RuntimeError):
        _write_toml(target, {"alpha": 2})

    assert target.read_text(encoding="utf8") == original_contents
    leftovers = [p for p in target.parent.iterdir() if p.name != "data.toml"]
    assert leftovers == []


def test_whole_floats_stay_floats() -> None:
    text = _toml_dumps({"durability": 20.0, "ratio": 0.25, "count": 3})

    parsed = tomllib.loads(text)

    assert parsed["durability"] == 20.0
    assert isinstance(parsed["durability"], float)
    assert parsed["ratio"] == 0.25
    assert parsed["count"] == 3
    assert isinstance(parsed["count"], int)


def test_nested_tables_and_record_arrays_survive(tmp_path: Path) -> None:
    payload = {
        "version": 2,
        "character": {"id": "7", "name": 'Ada "the bold"', "stats": {"STR": 1.5}},
        "quests": [
            {"id": "2024-01-01-a", "status": "pending", "proof": None},
            {"id": "2024-01-01-b", "status": "completed", "proof": "ran 5k"},
        ],
        "events": [{"id": "e1", "type": "level_up", "data": {"levels": [1, 2]}}],
        "habits": [],
    }
    target = tmp_path / "profile.toml"

    _write_toml(target, payload)
    loaded = _read_toml(target)

    assert loaded["character"]["name"] == 'Ada "the bold"'
    assert loaded["character"]["stats"] == {"STR": 1.5}
    assert [quest["id"] for quest in loaded["quests"]] == ["2024-01-01-a", "2024-01-01-b"]
    assert "proof" not in loaded["quests"][0]
    assert loaded["events"][0]["data"] == {"levels": [1, 2]}
    assert loaded["habits"] == []


def test_read_toml_returns_none_for_corrupt_file(tmp_path: Path) -> None:
    target = tmp_path / "broken.toml"
    target.write_text("this is = = not toml", encoding="utf8")

    assert _read_toml(target) is None
    assert _read_toml(tmp_path / "missing.toml") is None
