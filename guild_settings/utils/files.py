"""Atomic reads and writes of the schema document."""

from __future__ import annotations

import contextlib
import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from guild_settings.log import get_logger


__all__ = ("read_json", "write_json_atomic")

log = get_logger(__name__)

# permissions of documents which did not exist before
DEFAULT_MODE = 0o644


def read_json(path: str | os.PathLike[str]) -> Any:
    """Read and decode a JSON document."""
    return json.loads(Path(path).read_text(encoding="utf-8"))


def write_json_atomic(path: str | os.PathLike[str], data: Any, *, indent: int | None = 2) -> None:
    """
    Serialise `data` and replace the file at `path` with it in one step.

    The document is written to a temporary file in the target's directory, flushed to disk,
    and renamed over the target, so readers see either the old or the new document in full.
    The replaced file keeps its permissions, a new one is created with `DEFAULT_MODE`.
    The temporary file is removed if anything fails before the rename.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(data, indent=indent, ensure_ascii=False)
    try:
        mode = stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        mode = DEFAULT_MODE

    fd, tmp_path = tempfile.mkstemp(prefix=target.name + ".", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise
    log.debug("Wrote %d bytes to %s", len(text), target)
