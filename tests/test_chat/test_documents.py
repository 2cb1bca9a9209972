"""Tests for the folder-backed document store."""
from __future__ import annotations

import pytest

from notepilot.documents import FolderDocumentStore, StoreEditorBuffer, normalise_name
from notepilot.errors import NPAlreadyExistsError, NPStorageError, NPTargetNotFoundError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("notes", "notes.md"),
        ("notes.MD", "notes.MD"),
        ("  /daily//today ", "daily/today.md"),
        ("work\\plan.md", "work/plan.md"),
        ("", ""),
    ],
)
def test_normalise_name(raw: str, expected: str) -> None:
    assert normalise_name(raw) == expected


def test_create_read_modify_delete(tmp_path) -> None:
    store = FolderDocumentStore(tmp_path)

    store.create("journal/day.md", "first")
    assert (tmp_path / "journal" / "day.md").read_text(encoding="utf-8") == "first"
    assert store.exists("journal/day.md")

    store.modify("journal/day.md", "second")
    assert store.read("journal/day.md") == "second"

    store.delete("journal/day.md")
    assert not store.exists("journal/day.md")


def test_errors_map_to_typed_exceptions(tmp_path) -> None:
    store = FolderDocumentStore(tmp_path)
    store.create("a.md", "x")

    with pytest.raises(NPAlreadyExistsError):
        store.create("a.md", "y")
    with pytest.raises(NPTargetNotFoundError):
        store.read("missing.md")
    with pytest.raises(NPTargetNotFoundError):
        store.delete("missing.md")
    with pytest.raises(NPStorageError):
        store.read("../outside.md")


def test_list_documents_filters_by_extension(tmp_path) -> None:
    store = FolderDocumentStore(tmp_path)
    store.create("b.md", "")
    store.create("sub/a.md", "")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")

    assert store.list_documents() == ["b.md", "sub/a.md"]
    assert FolderDocumentStore(tmp_path / "absent").list_documents() == []


def test_store_editor_buffer_replaces_ranges(tmp_path) -> None:
    store = FolderDocumentStore(tmp_path)
    store.create("a.md", "hello cruel world")
    editor = StoreEditorBuffer(store, "a.md")

    editor.replace_range(6, 12, "")

    assert editor.get_value() == "hello world"
    with pytest.raises(ValueError):
        editor.replace_range(5, 100, "")
