"""Turn the server's live message stream into remote events for one workspace."""

from __future__ import annotations

import enum
import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from typing import Any

from spacesync.state import StateError

logger = logging.getLogger(__name__)

LAST_ACTIVITY_TIMEOUT = 60.0
_MESSAGE_PREFIX = b"event: message"
_DATA_PREFIX = "data: "
_CONTENT_TYPES = ("html-document", "file", "folder")


class RemoteEventKind(enum.Enum):
    """What the server reports about a content."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


_ACTIONS = {
    "modified": RemoteEventKind.UPDATED,
    "created": RemoteEventKind.CREATED,
    "deleted": RemoteEventKind.DELETED,
    "undeleted": RemoteEventKind.CREATED,
}

MANAGED_EVENT_TYPES: dict[str, RemoteEventKind] = {
    f"content.{action}.{content_type}": kind
    for action, kind in _ACTIONS.items()
    for content_type in _CONTENT_TYPES
}


@dataclass(frozen=True)
class RemoteEvent:
    """A change of one content on the server."""

    kind: RemoteEventKind
    content_id: int


class LiveEventParseError(ValueError):
    """A live message payload is not a valid event."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Error when parsing Tracim live event '{value}' : {reason}")
        self.value = value
        self.reason = reason


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class TracimLiveEvent:
    """One event of the live message stream."""

    event_id: int
    event_type: str
    fields: Any

    @classmethod
    def from_json(cls, value: str) -> TracimLiveEvent:
        """Parse the JSON payload of a ``data:`` line."""
        try:
            raw = json.loads(value)
        except json.JSONDecodeError as error:
            raise LiveEventParseError(value, str(error)) from error
        if not isinstance(raw, dict):
            raise LiveEventParseError(value, "expected a JSON object")
        for name in ("event_id", "event_type", "fields"):
            if name not in raw:
                raise LiveEventParseError(value, f"missing field `{name}`")
        if not _is_int(raw["event_id"]):
            raise LiveEventParseError(value, "`event_id` must be an integer")
        if not isinstance(raw["event_type"], str):
            raise LiveEventParseError(value, "`event_type` must be a string")
        return cls(raw["event_id"], raw["event_type"], raw["fields"])


def _nested_int(fields: Any, section: str, key: str) -> int:
    container = fields.get(section) if isinstance(fields, dict) else None
    if not isinstance(container, dict):
        raise ValueError(f"Remote event {section} does not appear to be an object")
    value = container.get(key)
    if not _is_int(value):
        raise ValueError(f"Remote event {section} {key} does not appear to be an integer")
    return value


class RemoteWatcher:
    """React to the server's live messages by emitting remote events."""

    def __init__(
        self,
        db: sqlite3.Connection,
        workspace_id: int,
        ignore: Collection[int],
        stop_signal: threading.Event,
        restart_signal: threading.Event,
        sender: Callable[[RemoteEvent], Any],
        *,
        activity_timeout: float = LAST_ACTIVITY_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._db = db
        self.workspace_id = workspace_id
        self.ignore = ignore
        self.stop_signal = stop_signal
        self.restart_signal = restart_signal
        self._send = sender
        self.activity_timeout = activity_timeout
        self._clock = clock

    def listen(self, chunks: Iterable[bytes | None]) -> None:
        """Consume stream chunks; ``None`` stands for a poll that brought no data.

        Stops on the stop signal; asks for a restart when the stream ends or stays
        silent longer than the activity timeout.
        """
        last_activity = self._clock()
        for chunk in chunks:
            if chunk is not None:
                last_activity = self._clock()
                try:
                    self.proceed_event_lines(chunk)
                except (ValueError, StateError) as error:
                    logger.error("Error when proceed remote event lines: %s", error)
            elif self._clock() - last_activity > self.activity_timeout:
                logger.info("No activity since '%s' seconds, break", self.activity_timeout)
                self.restart_signal.set()
                return
            if self.stop_signal.is_set():
                logger.info("Finished remote listening (on stop signal)")
                return
        logger.info("Remote live message stream ended")
        self.restart_signal.set()

    def proceed_event_lines(self, lines: bytes) -> None:
        """Handle one ``event: message`` block; undecodable payloads are logged and skipped."""
        if not lines.startswith(_MESSAGE_PREFIX):
            return
        for line in lines.decode("utf-8").splitlines():
            if not line.startswith(_DATA_PREFIX):
                continue
            payload = line[len(_DATA_PREFIX):]
            try:
                remote_event = TracimLiveEvent.from_json(payload)
            except LiveEventParseError as error:
                logger.error(
                    "Error when decoding event : '%s'. Event as str was: '%s'", error, payload
                )
                continue
            self.proceed_remote_event(remote_event)

    def proceed_remote_event(self, remote_event: TracimLiveEvent) -> None:
        """Send the remote event a live event stands for, if any."""
        logger.debug("Proceed remote event %r", remote_event)
        kind = MANAGED_EVENT_TYPES.get(remote_event.event_type)
        if kind is None:
            logger.debug("Ignore remote event : '%s'", remote_event.event_type)
            return

        content_id = _nested_int(remote_event.fields, "content", "content_id")
        if content_id in self.ignore:
            logger.debug("Ignore %s", content_id)
            return

        workspace_id = _nested_int(remote_event.fields, "workspace", "workspace_id")
        if workspace_id != self.workspace_id:
            # A known content reported elsewhere has moved out of this workspace.
            if not self._content_id_is_known(content_id):
                logger.debug("Remote event is not for current workspace, skip")
                return
            message = RemoteEvent(RemoteEventKind.DELETED, content_id)
        else:
            logger.info("remote event : %s (%s)", remote_event.event_type, content_id)
            message = RemoteEvent(kind, content_id)

        try:
            self._send(message)
        except Exception as error:  # noqa: BLE001 - a failing consumer must not stop the watcher
            logger.error("Error when send operational message from remote watcher : '%s'", error)

    def _content_id_is_known(self, content_id: int) -> bool:
        try:
            row = self._db.execute(
                "SELECT 1 FROM file WHERE content_id = ?", (content_id,)
            ).fetchone()
        except sqlite3.Error as error:
            raise StateError(f"Check if content {content_id} is known: {error}") from error
        return row is not None