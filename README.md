# spacesync

spacesync works out what changed between a local folder and a remote
collaborative workspace. It keeps a record of what has already been
synchronised in a small SQLite index, `.spacesync.db`, inside the workspace
folder. From that index it reports what changed on disk and on the server
since the last run.

## What it provides

- `spacesync.state` holds the content model: `Content`, `ContentType` and
  `ContentPath`. It also holds the abstract `State` interface and
  `MemoryState`, an in-memory implementation.
  - State modifications are described by `Forgot`, `Add` and `Update`, and
    applied with `State.change`.
  - `Forgot` removes a content together with all its descendants.
  - Errors are raised as `StateError`, or as its subclasses
    `UnknownContentError` and `PathAlreadyExistError`.
- `spacesync.disk` provides `DiskState`, a `State` stored in the `file` table
  of the index.
  - `db_path` gives the location of a workspace's index.
  - `connection` opens the index in autocommit mode.
  - `DiskState.create_tables` creates the table and its indexes if they are
    missing.
  - `DiskState` can be used as a context manager, which closes its connection.
- `spacesync.sync` handles local changes and startup conflicts.
  - `LocalSync.changes` walks the workspace folder and compares it with the
    index.
  - It reports `LocalChange` values of kind `ChangeKind.NEW`, `UPDATED` or
    `DISAPPEAR`.
  - Folders are never reported as updated.
  - Hidden, backup and lock files are skipped. These are names starting with
    `.`, `~` or `#`, or ending with `~`.
  - `StartupSyncResolver.resolve` drops the conflicting changes of the losing
    side, chosen by `ResolveMethod.FORCE_LOCAL` or `FORCE_REMOTE`. A conflict
    means that both sides changed the same path.
- `spacesync.remote_sync` handles remote changes.
  - `RemoteSync` takes the `RemoteContent` list returned by a `TracimClient`
    and builds a `MemoryState` with `RemoteSync.state`.
  - `RemoteSync.state` leaves out contents that are deleted or archived,
    directly or through an ancestor. It also leaves out attachments, which are
    files whose parent is not a folder.
  - `RemoteSync.changes` compares that state with the index and reports
    `RemoteChange` values.
  - Content ids given in `ignore` are skipped.
- `spacesync.watcher` reads the live event stream.
  - `RemoteWatcher.listen` consumes chunks of a server-sent live event stream,
    where `None` stands for a poll that brought no data.
  - It turns `content.created/modified/deleted/undeleted` events into
    `RemoteEvent` values for the current workspace, and hands them to a
    sender callable.
  - A known content reported in another workspace is sent as deleted.
  - The watcher stops when the stop signal is set. It sets the restart signal
    when the stream ends or stays silent longer than the activity timeout.
  - `TracimLiveEvent.from_json` parses one event payload.
- `spacesync.util` holds small helpers:
  - `last_modified_timestamp` returns a file's modification time in
    milliseconds.
  - `ignore_file` tells whether a path is one of the skipped names listed
    above.
  - `canonicalize_to_string` returns a path's canonical form as a string.

## Example

```python
from pathlib import Path

from spacesync.disk import DiskState, connection
from spacesync.sync import LocalSync

workspace = Path("my-workspace")
workspace.mkdir(exist_ok=True)
with DiskState(connection(workspace), workspace) as state:
    state.create_tables()

for change in LocalSync(connection(workspace), workspace).changes():
    print(change)
```

## What it does not do

spacesync detects and reports changes. It does not act on them.

- It does not download or upload files, and it does not write the index after
  an operation.
- It has no HTTP client: `TracimClient` is an abstract interface to implement,
  and `RemoteWatcher.listen` expects the stream chunks to be supplied by the
  caller.
- It does not watch the local folder for live changes.
- It has no command-line program or background service.

## Installing

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```