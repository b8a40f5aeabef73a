"""Changes found at startup, on disk and remotely, and how their conflicts are settled."""

from __future__ import annotations

import enum
import os
import sqlite3
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from spacesync.state import StateError
from spacesync.util import ignore_file, last_modified_timestamp


class ChangeKind(enum.Enum):
    """What happened to a content since the last synchronisation."""

    NEW = "new"
    UPDATED = "updated"
    DISAPPEAR = "disappear"


@dataclass(frozen=True)
class LocalChange:
    """A change seen on disk, designated by its path relative to the workspace."""

    kind: ChangeKind
    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        return f"{self.kind.value}({self.path})"


@dataclass(frozen=True)
class RemoteChange:
    """A change seen on the server, for a content id at a workspace relative path."""

    kind: ChangeKind
    content_id: int
    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def __str__(self) -> str:
        return f"{self.kind.value}({self.content_id}, {self.path})"


class ResolveMethod(enum.Enum):
    """Which side wins when both changed the same path."""

    FORCE_LOCAL = "force_local"
    FORCE_REMOTE = "force_remote"


class StartupSyncResolver:
    """Drop, from the losing side, the changes whose path was changed on both sides."""

    def __init__(
        self,
        remote_changes: Iterable[RemoteChange],
        local_changes: Iterable[LocalChange],
        method: ResolveMethod,
    ) -> None:
        self.remote_changes = list(remote_changes)
        self.local_changes = list(local_changes)
        self.method = method

    def resolve(self) -> tuple[list[RemoteChange], list[LocalChange]]:
        """Return the remote and local changes to keep, in their original order."""
        local_paths = {change.path for change in self.local_changes}
        # Parent paths are not checked for conflicts, only exact paths.
        conflicts = {
            change.path for change in self.remote_changes if change.path in local_paths
        }

        if self.method is ResolveMethod.FORCE_LOCAL:
            return (
                [change for change in self.remote_changes if change.path not in conflicts],
                list(self.local_changes),
            )
        return (
            list(self.remote_changes),
            [change for change in self.local_changes if change.path not in conflicts],
        )


def _walk(root: Path) -> Iterator[tuple[Path, bool]]:
    """Yield ``(path, is_dir)`` for ``root`` and everything under it, pruning ignored entries."""
    if ignore_file(root):
        return
    yield root, root.is_dir()
    if not root.is_dir():
        return

    def descend(directory: Path) -> Iterator[tuple[Path, bool]]:
        with os.scandir(directory) as entries:
            ordered = sorted(entries, key=lambda entry: entry.name)
        for entry in ordered:
            path = Path(entry.path)
            if ignore_file(path):
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            yield path, is_dir
            if is_dir:
                yield from descend(path)

    yield from descend(root)


class LocalSync:
    """Compare the workspace folder with the index to find what changed offline."""

    def __init__(self, db: sqlite3.Connection, workspace_path: str | os.PathLike[str]) -> None:
        self._db = db
        self.workspace_path = Path(workspace_path)

    def changes(self) -> list[LocalChange]:
        """New and updated entries found on disk, then indexed entries gone from disk."""
        changes: list[LocalChange] = []
        on_disk: set[Path] = set()

        for absolute_path, is_dir in _walk(self.workspace_path):
            relative_path = absolute_path.relative_to(self.workspace_path)
            on_disk.add(relative_path)
            if absolute_path == self.workspace_path:
                continue
            change = self._change(absolute_path, relative_path, is_dir)
            if change is not None:
                changes.append(change)

        changes.extend(self._changes_from_db(on_disk))
        return changes

    def _change(self, absolute_path: Path, relative_path: Path, is_dir: bool) -> LocalChange | None:
        known_timestamp = self._known_disk_timestamp(relative_path)
        if known_timestamp is None:
            return LocalChange(ChangeKind.NEW, relative_path)
        # Folders only change by renaming, and their modification time is unreliable.
        if is_dir:
            return None
        try:
            modified = last_modified_timestamp(absolute_path)
        except OSError as error:
            raise StateError(f"Get disk timestamp of {relative_path}: {error}") from error
        if modified != known_timestamp:
            return LocalChange(ChangeKind.UPDATED, relative_path)
        return None

    def _known_disk_timestamp(self, relative_path: Path) -> int | None:
        try:
            row = self._db.execute(
                "SELECT last_modified_timestamp FROM file WHERE relative_path = ?",
                (str(relative_path),),
            ).fetchone()
        except sqlite3.Error as error:
            raise StateError(f"Read path {relative_path} from db but : {error}") from error
        return None if row is None else row[0]

    def _changes_from_db(self, on_disk: set[Path]) -> list[LocalChange]:
        try:
            rows = self._db.execute("SELECT relative_path FROM file").fetchall()
        except sqlite3.Error as error:
            raise StateError(f"Read raw relative_path from db: {error}") from error
        return [
            LocalChange(ChangeKind.DISAPPEAR, Path(raw_path))
            for (raw_path,) in rows
            if Path(raw_path) not in on_disk
        ]