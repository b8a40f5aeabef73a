from pathlib import Path

import pytest

from spacesync.state import (
    Add,
    Content,
    ContentPath,
    ContentType,
    Forgot,
    MemoryState,
    StateError,
    UnknownContentError,
    Update,
)


def content_type(file_name):
    return ContentType.FILE if file_name.endswith(".txt") else ContentType.FOLDER


def build_memory_state(raw_contents):
    contents = {}
    for raw_id, raw_revision_id, raw_file_name, raw_parent_id in raw_contents:
        contents[raw_id] = Content(
            raw_id, raw_revision_id, raw_file_name, raw_parent_id, content_type(raw_file_name)
        )
    return MemoryState(contents, {})


@pytest.mark.parametrize(
    "raw_contents, from_, expected",
    [
        ([(1, 1, "a.txt", None)], 1, "a.txt"),
        ([(1, 1, "Folder", None), (2, 2, "a.txt", 1)], 2, "Folder/a.txt"),
        (
            [(1, 1, "Folder1", None), (2, 2, "Folder2", 1), (3, 3, "a.txt", 2)],
            3,
            "Folder1/Folder2/a.txt",
        ),
    ],
)
def test_content_path(raw_contents, from_, expected):
    state = build_memory_state(raw_contents)

    path = state.path(from_)

    assert str(path.to_path()) == expected
    assert str(path) == expected


def test_content_path_last_is_target():
    state = build_memory_state([(1, 1, "Folder", None), (2, 2, "a.txt", 1)])

    assert state.path(2).last.id == 2
    assert [part.id for part in state.path(2).parts] == [1, 2]


def test_content_path_requires_parts():
    with pytest.raises(ValueError):
        ContentPath(())


def test_content_requires_file_name():
    with pytest.raises(ValueError):
        Content(1, 1, "", None, ContentType.FILE)


def test_missing_parent_is_rejected():
    with pytest.raises(StateError):
        build_memory_state([(2, 2, "a.txt", 1)])


def test_path_of_unknown_content():
    state = build_memory_state([(1, 1, "a.txt", None)])

    with pytest.raises(UnknownContentError) as info:
        state.path(42)
    assert info.value.content_id == 42


def test_known_and_get():
    state = build_memory_state([(1, 2, "a.txt", None)])

    assert state.known(1) is True
    assert state.known(2) is False
    content = state.get(1)
    assert content == Content(1, 2, "a.txt", None, ContentType.FILE)
    assert state.get(2) is None


def test_content_id_for_path():
    state = build_memory_state([(1, 1, "Folder", None), (2, 2, "a.txt", 1)])

    assert state.content_id_for_path(Path("Folder/a.txt")) == 2
    assert state.content_id_for_path("Folder") == 1
    assert state.content_id_for_path("a.txt") is None


def test_contents_folders_first():
    state = build_memory_state(
        [(3, 3, "b.txt", None), (1, 1, "Folder", None), (2, 2, "a.txt", 1)]
    )

    contents = state.contents()

    assert len(contents) == 3
    assert contents[0].id == 1
    assert {content.id for content in contents[1:]} == {2, 3}


def test_direct_children_ids():
    state = build_memory_state(
        [(1, 1, "Folder", None), (2, 2, "Sub", 1), (3, 3, "a.txt", 2), (4, 4, "b.txt", 1)]
    )

    assert sorted(state.direct_children_ids(1)) == [2, 4]
    assert state.direct_children_ids(3) == []


def test_change_forgot_removes_children():
    state = build_memory_state(
        [(1, 1, "Folder", None), (2, 2, "Sub", 1), (3, 3, "a.txt", 2), (4, 4, "b.txt", None)]
    )

    state.change(Forgot(1))

    assert [content.id for content in state.contents()] == [4]


def test_forgot_unknown_content():
    state = build_memory_state([])

    with pytest.raises(UnknownContentError):
        state.forgot(1)


def test_change_add():
    state = build_memory_state([])
    content = Content(1, 2, "a.txt", None, ContentType.FILE)

    state.change(Add(content, Path("a.txt"), 42))

    assert state.get(1) == content
    assert state.timestamps[1] == 42
    assert str(state.path(1)) == "a.txt"


def test_change_update_moves_content():
    state = build_memory_state([(1, 1, "Folder", None), (2, 2, "a.txt", None)])

    state.change(Update(2, "b.txt", 3, 1, 7))

    content = state.get(2)
    assert content.revision_id == 3
    assert content.parent_id == 1
    assert content.file_name == "b.txt"
    assert str(state.path(2)) == "Folder/b.txt"
    assert state.timestamps[2] == 7


def test_update_unknown_content():
    state = build_memory_state([])

    with pytest.raises(UnknownContentError):
        state.update(1, "a.txt", 1, None, 0)


def test_change_rejects_unknown_modification():
    state = build_memory_state([])

    with pytest.raises(TypeError):
        state.change("not a modification")


def test_get_returns_copy():
    state = build_memory_state([(1, 1, "a.txt", None)])

    state.get(1).file_name = "other.txt"

    assert state.get(1).file_name == "a.txt"


def test_content_type_from_path(tmp_path):
    (tmp_path / "Folder").mkdir()
    (tmp_path / "a.txt").write_text("a")

    assert ContentType.from_path(tmp_path / "Folder") is ContentType.FOLDER
    assert ContentType.from_path(tmp_path / "a.txt") is ContentType.FILE


def test_content_type_strings():
    assert str(ContentType.FILE) == "file"
    assert str(ContentType.FOLDER) == "folder"
    assert ContentType("html-document") is ContentType.HTML_DOCUMENT