from pathlib import Path

import pytest

from spacesync.disk import DiskState, connection
from spacesync.remote_sync import RemoteContent, RemoteSync, TracimClient
from spacesync.state import ContentType, StateError
from spacesync.sync import ChangeKind, RemoteChange


class FakeClient(TracimClient):
    def __init__(self, contents):
        self._contents = list(contents)
        self.calls = 0

    def get_contents(self):
        self.calls += 1
        return list(self._contents)


def remote(content_id, revision_id, filename, parent_id=None, content_type="file", **kwargs):
    return RemoteContent(
        content_id=content_id,
        current_revision_id=revision_id,
        parent_id=parent_id,
        content_type=content_type,
        filename=filename,
        **kwargs,
    )


def insert_content(db, relative_path, content_id, revision_id, parent_id, timestamp):
    db.execute(
        "INSERT INTO file (relative_path, content_id, revision_id, parent_id, "
        "last_modified_timestamp) VALUES (?, ?, ?, ?, ?)",
        (relative_path, content_id, revision_id, parent_id, timestamp),
    )


@pytest.fixture
def db(tmp_path):
    db = connection(tmp_path)
    DiskState(db, tmp_path).create_tables()
    yield db
    db.close()


def test_state_empty(db):
    client = FakeClient([])
    state = RemoteSync(frozenset(), db, client).state()
    assert state.contents() == []
    assert client.calls == 1


def test_state_flat(db):
    client = FakeClient([remote(1, 1, "a.txt"), remote(2, 2, "b.txt")])
    state = RemoteSync(frozenset(), db, client).state()
    assert len(state.contents()) == 2
    assert client.calls == 1


def test_state_tree(db):
    client = FakeClient(
        [remote(1, 1, "Folder", content_type="folder"), remote(2, 2, "a.txt", parent_id=1)]
    )
    contents = RemoteSync(frozenset(), db, client).state().contents()
    assert [content.id for content in contents] == [1, 2]
    assert contents[0].content_type is ContentType.FOLDER


def test_state_flat_with_deleted(db):
    client = FakeClient([remote(1, 1, "a.txt"), remote(2, 2, "b.txt", is_deleted=True)])
    contents = RemoteSync(frozenset(), db, client).state().contents()
    assert [content.id for content in contents] == [1]


def test_state_tree_with_parent_deleted(db):
    client = FakeClient(
        [
            remote(1, 1, "Folder", content_type="folder", is_deleted=True),
            remote(2, 2, "a.txt", parent_id=1),
        ]
    )
    assert RemoteSync(frozenset(), db, client).state().contents() == []


def test_state_archived_and_orphan_are_excluded(db):
    client = FakeClient(
        [
            remote(1, 1, "a.txt", is_archived=True),
            remote(2, 1, "b.txt", parent_id=99),
            remote(3, 1, "c.txt"),
        ]
    )
    contents = RemoteSync(frozenset(), db, client).state().contents()
    assert [content.id for content in contents] == [3]


def test_state_excludes_attachments(db):
    client = FakeClient(
        [
            remote(1, 1, "doc.document.html", content_type="html-document"),
            remote(2, 1, "attached.txt", parent_id=1),
        ]
    )
    contents = RemoteSync(frozenset(), db, client).state().contents()
    assert [(content.id, content.content_type) for content in contents] == [
        (1, ContentType.HTML_DOCUMENT)
    ]


def test_state_unknown_content_type(db):
    client = FakeClient([remote(1, 1, "x", content_type="thread")])
    with pytest.raises(StateError):
        RemoteSync(frozenset(), db, client).state()


def test_changes_file_no_change(db):
    insert_content(db, "a.txt", 1, 1, None, 0)
    client = FakeClient([remote(1, 1, "a.txt")])
    assert RemoteSync(frozenset(), db, client).changes() == []


def test_changes_file_is_new(db):
    client = FakeClient([remote(1, 1, "a.txt")])
    assert RemoteSync(frozenset(), db, client).changes() == [
        RemoteChange(ChangeKind.NEW, 1, Path("a.txt"))
    ]


def test_changes_file_is_updated(db):
    insert_content(db, "a.txt", 1, 1, None, 0)
    client = FakeClient([remote(1, 2, "a.txt")])
    assert RemoteSync(frozenset(), db, client).changes() == [
        RemoteChange(ChangeKind.UPDATED, 1, Path("a.txt"))
    ]


def test_changes_file_is_deleted(db):
    insert_content(db, "a.txt", 1, 1, None, 0)
    client = FakeClient([])
    assert RemoteSync(frozenset(), db, client).changes() == [
        RemoteChange(ChangeKind.DISAPPEAR, 1, Path("a.txt"))
    ]


def test_changes_nested_new_file_has_full_path(db):
    client = FakeClient(
        [remote(2, 2, "a.txt", parent_id=1), remote(1, 1, "Folder", content_type="folder")]
    )
    assert RemoteSync(frozenset(), db, client).changes() == [
        RemoteChange(ChangeKind.NEW, 1, Path("Folder")),
        RemoteChange(ChangeKind.NEW, 2, Path("Folder/a.txt")),
    ]


def test_changes_skip_ignored_contents(db):
    client = FakeClient([remote(1, 1, "a.txt"), remote(2, 1, "b.txt")])
    assert RemoteSync({1}, db, client).changes() == [
        RemoteChange(ChangeKind.NEW, 2, Path("b.txt"))
    ]


def test_remote_content_to_content():
    content = remote(5, 7, "Folder", parent_id=3, content_type="folder").to_content()
    assert (content.id, content.revision_id, content.file_name, content.parent_id) == (
        5,
        7,
        "Folder",
        3,
    )
    assert content.content_type is ContentType.FOLDER