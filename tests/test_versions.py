from __future__ import annotations

import json
from pathlib import Path

from scratchlink.versions import VersionStore, is_current, load_versions, save_versions


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    assert load_versions(tmp_path / "library-version.json") == {}


def test_unparsable_file_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "library-version.json"
    path.write_text('{"Servo": 2', encoding="utf-8")
    assert load_versions(path) == {}


def test_non_integer_versions_load_empty(tmp_path: Path) -> None:
    path = tmp_path / "library-version.json"
    path.write_text(json.dumps({"Servo": "2"}), encoding="utf-8")
    assert load_versions(path) == {}


def test_save_overwrites_whole_file(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "firmware-version.json"
    save_versions(path, {"uno": 1, "nano": 3})
    save_versions(path, {"uno": 2})

    assert json.loads(path.read_text(encoding="utf-8")) == {"uno": 2}
    assert load_versions(path) == {"uno": 2}


def test_store_exists_tracks_file(tmp_path: Path) -> None:
    store = VersionStore(tmp_path / "firmware-version.json")
    assert not store.exists
    assert store.load() == {}

    store.save({})
    assert store.exists
    assert store.load() == {}


def test_is_current() -> None:
    stored = {"Servo": 2}
    assert is_current(stored, "Servo", 2)
    assert is_current(stored, "Servo", 1)
    assert not is_current(stored, "Servo", 3)
    assert not is_current(stored, "Motor", 1)
