"""State persisted in an SQLite index file inside the workspace folder."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from types import TracebackType
from typing import Any

from spacesync.state import (
    Content,
    ContentPath,
    ContentType,
    PathAlreadyExistError,
    State,
    StateError,
    UnknownContentError,
    folders_first,
)

DB_NAME = ".spacesync.db"

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS file (
    relative_path TEXT PRIMARY KEY,
    content_id INTEGER NOT NULL,
    revision_id INTEGER NOT NULL,
    parent_id INTEGER,
    last_modified_timestamp INTEGER NOT NULL
);
"""
_CREATE_PATH_INDEX = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_local_relative_path ON file (relative_path)"
)
_CREATE_ID_INDEX = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_local_content_id ON file (content_id)"
)
_PATH_CONFLICT_MESSAGE = "UNIQUE constraint failed: file.relative_path"


def db_path(workspace_path: str | os.PathLike[str]) -> Path:
    """Location of the index database of a workspace."""
    return Path(workspace_path) / DB_NAME


def connection(workspace_path: str | os.PathLike[str]) -> sqlite3.Connection:
    """Open (creating it if needed) the index database of a workspace, in autocommit mode."""
    return sqlite3.connect(db_path(workspace_path), isolation_level=None)


def _path_key(path: str | os.PathLike[str]) -> str:
    return str(Path(path))


class DiskState(State):
    """A state stored in the ``file`` table of the workspace index."""

    def __init__(
        self, db: sqlite3.Connection, workspace_path: str | os.PathLike[str]
    ) -> None:
        self._db = db
        self.workspace_path = Path(workspace_path)

    def __enter__(self) -> DiskState:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying database connection."""
        self._db.close()

    def create_tables(self) -> None:
        """Create the ``file`` table and its indexes when missing."""
        for statement, what in (
            (_CREATE_TABLE, "tables"),
            (_CREATE_PATH_INDEX, "relative_path index"),
            (_CREATE_ID_INDEX, "content_id index"),
        ):
            try:
                self._db.execute(statement)
            except sqlite3.Error as error:
                raise StateError(f"Create {what}: {error}") from error

    def _fetchone(self, query: str, params: tuple[Any, ...], what: str) -> tuple[Any, ...] | None:
        try:
            return self._db.execute(query, params).fetchone()
        except sqlite3.Error as error:
            raise StateError(f"{what}: {error}") from error

    def _fetchall(self, query: str, params: tuple[Any, ...], what: str) -> list[tuple[Any, ...]]:
        try:
            return self._db.execute(query, params).fetchall()
        except sqlite3.Error as error:
            raise StateError(f"{what}: {error}") from error

    def _content_from_raw(
        self,
        content_id: int,
        relative_path: str,
        revision_id: int,
        parent_id: int | None,
    ) -> Content:
        file_name = Path(relative_path).name
        if not file_name:
            raise StateError(f"Get file name from {relative_path}")
        content_type = ContentType.from_path(self.workspace_path / relative_path)
        return Content(content_id, revision_id, file_name, parent_id, content_type)

    def known(self, content_id: int) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM file WHERE content_id = ?",
            (content_id,),
            f"Check if content {content_id} is known",
        )
        return row is not None

    def get(self, content_id: int) -> Content | None:
        row = self._fetchone(
            "SELECT relative_path, revision_id, parent_id FROM file WHERE content_id = ?",
            (content_id,),
            f"Read Content {content_id} from db",
        )
        if row is None:
            return None
        relative_path, revision_id, parent_id = row
        return self._content_from_raw(content_id, relative_path, revision_id, parent_id)

    def content_id_for_path(self, path: str | os.PathLike[str]) -> int | None:
        row = self._fetchone(
            "SELECT content_id FROM file WHERE relative_path = ?",
            (_path_key(path),),
            f"Read content id for {os.fspath(path)}",
        )
        return None if row is None else row[0]

    def path(self, content_id: int) -> ContentPath:
        content = self.get(content_id)
        if content is None:
            raise UnknownContentError(content_id)
        parts = [content]
        seen = {content_id}
        while content.parent_id is not None:
            parent_id = content.parent_id
            if parent_id in seen:
                raise StateError(f"Parent cycle found while building path of {content_id}")
            parent = self.get(parent_id)
            if parent is None:
                raise StateError(f"Expect content for parent {parent_id} (of {content_id})")
            seen.add(parent_id)
            parts.append(parent)
            content = parent
        return ContentPath(tuple(reversed(parts)))

    def contents(self) -> list[Content]:
        rows = self._fetchall(
            "SELECT content_id, relative_path, revision_id, parent_id FROM file",
            (),
            "Read raw contents from db",
        )
        return folders_first(self._content_from_raw(*row) for row in rows)

    def direct_children_ids(self, content_id: int) -> list[int]:
        rows = self._fetchall(
            "SELECT content_id FROM file WHERE parent_id = ?",
            (content_id,),
            f"Read children of {content_id}",
        )
        return [row[0] for row in rows]

    def forgot(self, content_id: int) -> None:
        try:
            self._db.execute("DELETE FROM file WHERE content_id = ?", (content_id,))
        except sqlite3.Error as error:
            raise StateError(f"Forgot {content_id}: {error}") from error

    def add(self, content: Content, relative_path: str | os.PathLike[str], timestamp: int) -> None:
        try:
            self._db.execute(
                "INSERT INTO file (relative_path, content_id, revision_id, parent_id, "
                "last_modified_timestamp) VALUES (?, ?, ?, ?, ?)",
                (
                    _path_key(relative_path),
                    content.id,
                    content.revision_id,
                    content.parent_id,
                    timestamp,
                ),
            )
        except sqlite3.Error as error:
            if str(error) == _PATH_CONFLICT_MESSAGE:
                raise PathAlreadyExistError(relative_path, content.id) from error
            raise StateError(str(error)) from error

    def update(
        self,
        content_id: int,
        file_name: str,
        revision_id: int,
        parent_id: int | None,
        timestamp: int,
    ) -> None:
        new_path = Path(file_name)
        if parent_id is not None:
            try:
                new_path = self.path(parent_id).to_path() / file_name
            except StateError:
                new_path = Path(file_name)
        try:
            self._db.execute(
                "UPDATE file SET relative_path = ?, revision_id = ?, parent_id = ?, "
                "last_modified_timestamp = ? WHERE content_id = ?",
                (_path_key(new_path), revision_id, parent_id, timestamp, content_id),
            )
        except sqlite3.Error as error:
            raise StateError(f"Update content {content_id}: {error}") from error