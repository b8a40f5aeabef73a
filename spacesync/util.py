"""Small filesystem helpers shared by the synchronisation code."""

from __future__ import annotations

import os
from pathlib import Path

_IGNORED_PREFIXES = (".", "~", "#")
_IGNORED_SUFFIXES = ("~",)


def last_modified_timestamp(path: str | os.PathLike[str]) -> int:
    """Return the modification time of ``path`` in whole milliseconds since the epoch."""
    return os.stat(path).st_mtime_ns // 1_000_000


def ignore_file(relative_path: str | os.PathLike[str]) -> bool:
    """Tell whether a path names a hidden, backup or lock file that must not be synced."""
    name = Path(relative_path).name
    if not name or name == "..":
        return False
    return name.startswith(_IGNORED_PREFIXES) or name.endswith(_IGNORED_SUFFIXES)


def canonicalize_to_string(path: str | os.PathLike[str]) -> str:
    """Resolve ``path`` to an absolute path without symlinks; the path must exist."""
    return str(Path(path).resolve(strict=True))