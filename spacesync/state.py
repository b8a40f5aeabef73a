"""Content model and the states that remember synchronised contents."""

from __future__ import annotations

import abc
import enum
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Mapping

HTML_DOCUMENT_SUFFIX = ".document.html"


class ContentType(enum.Enum):
    """Kind of a workspace content."""

    FILE = "file"
    FOLDER = "folder"
    HTML_DOCUMENT = "html-document"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> ContentType:
        """Guess the content type of something on disk."""
        path = Path(path)
        if path.is_dir():
            return cls.FOLDER
        if path.name.endswith(HTML_DOCUMENT_SUFFIX):
            return cls.HTML_DOCUMENT
        return cls.FILE


@dataclass
class Content:
    """A content known by a state: identifier, revision, name, parent and type."""

    id: int
    revision_id: int
    file_name: str
    parent_id: int | None
    content_type: ContentType

    def __post_init__(self) -> None:
        if not self.file_name:
            raise ValueError(f"Content {self.id} must have a file name")


@dataclass(frozen=True)
class ContentPath:
    """The chain of contents from a workspace root down to one content."""

    parts: tuple[Content, ...]

    def __post_init__(self) -> None:
        parts = tuple(self.parts)
        if not parts:
            raise ValueError("A content path holds at least one content")
        object.__setattr__(self, "parts", parts)

    @property
    def last(self) -> Content:
        return self.parts[-1]

    def to_path(self) -> Path:
        """Relative filesystem path made of the parts' file names."""
        return Path(*(part.file_name for part in self.parts))

    def __fspath__(self) -> str:
        return str(self.to_path())

    def __str__(self) -> str:
        return str(self.to_path())


class StateError(Exception):
    """A state could not answer or apply a change."""


class UnknownContentError(StateError):
    """The requested content is not in the state."""

    def __init__(self, content_id: int) -> None:
        super().__init__(f"Unknown content {content_id}")
        self.content_id = content_id


class PathAlreadyExistError(StateError):
    """Another content already occupies the path."""

    def __init__(self, path: str | os.PathLike[str], content_id: int) -> None:
        super().__init__(f"Path {os.fspath(path)} already exists (adding content {content_id})")
        self.path = Path(path)
        self.content_id = content_id


@dataclass(frozen=True)
class Forgot:
    """Drop a content and all its descendants."""

    content_id: int


@dataclass(frozen=True)
class Add:
    """Record a new content."""

    content: Content
    relative_path: Path
    timestamp: int


@dataclass(frozen=True)
class Update:
    """Change name, revision, parent and disk timestamp of a known content."""

    content_id: int
    file_name: str
    revision_id: int
    parent_id: int | None
    timestamp: int


StateModification = Forgot | Add | Update


def folders_first(contents: Iterable[Content]) -> list[Content]:
    """Order contents so that every folder comes before any other content."""
    return sorted(contents, key=lambda content: content.content_type is not ContentType.FOLDER)


class State(abc.ABC):
    """What is known about the contents of a workspace."""

    @abc.abstractmethod
    def known(self, content_id: int) -> bool: ...

    @abc.abstractmethod
    def get(self, content_id: int) -> Content | None: ...

    @abc.abstractmethod
    def content_id_for_path(self, path: str | os.PathLike[str]) -> int | None: ...

    @abc.abstractmethod
    def path(self, content_id: int) -> ContentPath:
        """Build the content path on demand, as the parent hierarchy may change."""

    @abc.abstractmethod
    def contents(self) -> list[Content]:
        """All contents, folders first."""

    @abc.abstractmethod
    def direct_children_ids(self, content_id: int) -> list[int]: ...

    @abc.abstractmethod
    def forgot(self, content_id: int) -> None: ...

    @abc.abstractmethod
    def add(self, content: Content, relative_path: str | os.PathLike[str], timestamp: int) -> None: ...

    @abc.abstractmethod
    def update(
        self,
        content_id: int,
        file_name: str,
        revision_id: int,
        parent_id: int | None,
        timestamp: int,
    ) -> None: ...

    def change(self, modification: StateModification) -> None:
        """Apply one modification to the state."""
        match modification:
            case Forgot(content_id):
                self.forgot_with_children(content_id)
            case Add(content, relative_path, timestamp):
                self.add(content, relative_path, timestamp)
            case Update(content_id, file_name, revision_id, parent_id, timestamp):
                self.update(content_id, file_name, revision_id, parent_id, timestamp)
            case _:
                raise TypeError(f"Unknown state modification {modification!r}")

    def forgot_with_children(self, content_id: int) -> None:
        """Forget a content after forgetting, recursively, all its children."""
        for child_id in self.direct_children_ids(content_id):
            self.forgot_with_children(child_id)
        self.forgot(content_id)


class MemoryState(State):
    """A state held in memory, keyed by content id."""

    def __init__(
        self,
        contents: Mapping[int, Content] | None = None,
        timestamps: Mapping[int, int] | None = None,
    ) -> None:
        contents = dict(contents or {})
        for content in contents.values():
            if content.parent_id is not None and content.parent_id not in contents:
                raise StateError(
                    f"Content {content.parent_id} is absent (parent of {content.id})"
                )
        self._contents = contents
        self.timestamps: dict[int, int] = dict(timestamps or {})

    def known(self, content_id: int) -> bool:
        return content_id in self._contents

    def get(self, content_id: int) -> Content | None:
        content = self._contents.get(content_id)
        return None if content is None else replace(content)

    def content_id_for_path(self, path: str | os.PathLike[str]) -> int | None:
        wanted = Path(path)
        for content_id in self._contents:
            if self.path(content_id).to_path() == wanted:
                return content_id
        return None

    def path(self, content_id: int) -> ContentPath:
        content = self._contents.get(content_id)
        if content is None:
            raise UnknownContentError(content_id)
        parts = [content]
        seen = {content_id}
        while content.parent_id is not None:
            parent_id = content.parent_id
            if parent_id in seen:
                raise StateError(f"Parent cycle found while building path of {content_id}")
            content = self._contents.get(parent_id)
            if content is None:
                raise StateError(f"Parent {parent_id} of content {content_id} is absent")
            seen.add(parent_id)
            parts.append(content)
        return ContentPath(tuple(reversed(parts)))

    def contents(self) -> list[Content]:
        return folders_first(replace(content) for content in self._contents.values())

    def direct_children_ids(self, content_id: int) -> list[int]:
        return [
            content.id for content in self._contents.values() if content.parent_id == content_id
        ]

    def forgot(self, content_id: int) -> None:
        try:
            del self._contents[content_id]
        except KeyError:
            raise UnknownContentError(content_id) from None

    def add(self, content: Content, relative_path: str | os.PathLike[str], timestamp: int) -> None:
        self.timestamps[content.id] = timestamp
        self._contents[content.id] = content

    def update(
        self,
        content_id: int,
        file_name: str,
        revision_id: int,
        parent_id: int | None,
        timestamp: int,
    ) -> None:
        content = self._contents.get(content_id)
        if content is None:
            raise UnknownContentError(content_id)
        content.revision_id = revision_id
        content.parent_id = parent_id
        content.file_name = file_name
        self.timestamps[content_id] = timestamp