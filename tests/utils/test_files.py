from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from guild_settings.utils import files
from guild_settings.utils.files import read_json, write_json_atomic


def leftovers(directory: Path) -> list[str]:
    return [path.name for path in directory.iterdir() if path.name.endswith(".tmp")]


def test_write_creates_parent_directories(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "guilds" / "schema.json"
    write_json_atomic(target, {"type": "Folder", "name": "café"})

    assert read_json(target) == {"type": "Folder", "name": "café"}
    assert "café" in target.read_text(encoding="utf-8")
    assert leftovers(target.parent) == []


def test_write_replaces_existing_document(tmp_path: Path) -> None:
    target = tmp_path / "schema.json"
    write_json_atomic(target, {"version": 1})
    write_json_atomic(target, {"version": 2}, indent=None)

    assert target.read_text(encoding="utf-8") == '{"version": 2}'


def test_failed_replace_keeps_the_previous_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "schema.json"
    write_json_atomic(target, {"version": 1})

    def fail(src: str, dst: os.PathLike[str]) -> None:
        raise OSError("read-only file system")

    monkeypatch.setattr(files.os, "replace", fail)

    with pytest.raises(OSError, match="read-only"):
        write_json_atomic(target, {"version": 2})
    assert read_json(target) == {"version": 1}
    assert leftovers(tmp_path) == []


def test_unserialisable_data_leaves_nothing_behind(tmp_path: Path) -> None:
    target = tmp_path / "schema.json"

    with pytest.raises(TypeError):
        write_json_atomic(target, {"value": object()})
    assert list(tmp_path.iterdir()) == []


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_permissions(tmp_path: Path) -> None:
    target = tmp_path / "schema.json"
    write_json_atomic(target, {"version": 1})
    assert stat.S_IMODE(target.stat().st_mode) == files.DEFAULT_MODE

    target.chmod(0o640)
    write_json_atomic(target, {"version": 2})
    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert read_json(target) == {"version": 2}
