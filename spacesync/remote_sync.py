"""Startup comparison of the server's contents with the local index."""

from __future__ import annotations

import abc
import sqlite3
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from spacesync.state import Content, ContentType, MemoryState, StateError
from spacesync.sync import ChangeKind, RemoteChange


@dataclass(frozen=True)
class RemoteContent:
    """A content as described by the server."""

    content_id: int
    current_revision_id: int
    parent_id: int | None
    content_type: str
    filename: str
    modified: str = ""
    raw_content: str | None = None
    is_deleted: bool = False
    is_archived: bool = False
    sub_content_types: tuple[str, ...] = field(default_factory=tuple)

    def to_content(self) -> Content:
        """Build the state content this remote content stands for."""
        try:
            content_type = ContentType(self.content_type)
        except ValueError:
            raise StateError(
                f"Unknown content type '{self.content_type}' for content {self.content_id}"
            ) from None
        try:
            return Content(
                self.content_id,
                self.current_revision_id,
                self.filename,
                self.parent_id,
                content_type,
            )
        except ValueError as error:
            raise StateError(str(error)) from error


class TracimClient(abc.ABC):
    """Access to the contents of one remote workspace."""

    @abc.abstractmethod
    def get_contents(self) -> list[RemoteContent]:
        """Return every content of the workspace, deleted and archived ones included."""


class RemoteSync:
    """Find what changed on the server since the index was last written."""

    def __init__(
        self,
        ignore: Collection[int],
        db: sqlite3.Connection,
        client: TracimClient,
    ) -> None:
        self.ignore = ignore
        self._db = db
        self._client = client

    def state(self) -> MemoryState:
        """The remote workspace as a state, without deleted contents and attachments."""
        all_remote_contents = list(self._client.get_contents())
        by_id = {remote.content_id: remote for remote in all_remote_contents}
        contents: dict[int, Content] = {}

        for remote in all_remote_contents:
            if _is_deleted(remote, by_id) or _is_attachment(remote, by_id):
                continue
            content = remote.to_content()
            contents[content.id] = content

        try:
            return MemoryState(contents)
        except StateError as error:
            raise StateError(f"Build memory state from remote contents: {error}") from error

    def changes(self) -> list[RemoteChange]:
        """New and updated remote contents, then indexed contents gone from the server."""
        changes: list[RemoteChange] = []
        remote_state = self.state()

        for content in remote_state.contents():
            if content.id in self.ignore:
                continue
            path = remote_state.path(content.id).to_path()
            known_revision_id = self._known_revision_id(content.id)
            if known_revision_id is None:
                changes.append(RemoteChange(ChangeKind.NEW, content.id, path))
            elif content.revision_id != known_revision_id:
                changes.append(RemoteChange(ChangeKind.UPDATED, content.id, path))

        for content_id, relative_path in self._known_contents():
            if not remote_state.known(content_id):
                changes.append(RemoteChange(ChangeKind.DISAPPEAR, content_id, Path(relative_path)))

        return changes

    def _query(self, query: str, params: tuple[Any, ...], what: str) -> list[tuple[Any, ...]]:
        try:
            return self._db.execute(query, params).fetchall()
        except sqlite3.Error as error:
            raise StateError(f"{what}: {error}") from error

    def _known_revision_id(self, content_id: int) -> int | None:
        rows = self._query(
            "SELECT revision_id FROM file WHERE content_id = ?",
            (content_id,),
            f"Read revision_id for {content_id} from db",
        )
        return rows[0][0] if rows else None

    def _known_contents(self) -> list[tuple[int, str]]:
        return [
            (content_id, relative_path)
            for content_id, relative_path in self._query(
                "SELECT content_id, relative_path FROM file",
                (),
                "Read previously known contents",
            )
        ]


def _is_deleted(remote: RemoteContent, by_id: dict[int, RemoteContent]) -> bool:
    """Deleted or archived itself or through an ancestor; a missing ancestor counts as deleted."""
    seen = {remote.content_id}
    current = remote
    while True:
        if current.is_deleted or current.is_archived:
            return True
        if current.parent_id is None:
            return False
        parent = by_id.get(current.parent_id)
        if parent is None or parent.content_id in seen:
            return True
        seen.add(parent.content_id)
        current = parent


def _is_attachment(remote: RemoteContent, by_id: dict[int, RemoteContent]) -> bool:
    """A file whose parent is something other than a folder."""
    if remote.content_type != ContentType.FILE.value or remote.parent_id is None:
        return False
    parent = by_id.get(remote.parent_id)
    return parent is not None and parent.content_type != ContentType.FOLDER.value


def remote_contents(contents: Sequence[RemoteContent]) -> dict[int, RemoteContent]:
    """Index remote contents by their id."""
    return {content.content_id: content for content in contents}