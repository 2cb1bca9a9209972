"""Tests for fuzzy document name resolution."""
from __future__ import annotations

import pytest

from notepilot.resolver import FuzzyResolver, similarity


def test_similarity_is_shared_multiset_ratio() -> None:
    assert similarity("abc", "abc") == 1.0
    assert similarity("aab", "abb") == pytest.approx(2 / 3)
    assert similarity("", "abc") == 0.0


def test_resolve_exact_path(memory_store) -> None:
    memory_store.documents = {"notes/todo.md": "", "todo.md": ""}
    resolver = FuzzyResolver(memory_store)

    assert resolver.resolve("notes/todo") == "notes/todo.md"
    assert resolver.resolve("/notes//todo.md") == "notes/todo.md"
    assert resolver.resolve("notes\\todo.md") == "notes/todo.md"


def test_resolve_case_insensitive_file_name(memory_store) -> None:
    memory_store.documents = {"archive/Meeting-Notes.md": ""}
    resolver = FuzzyResolver(memory_store)

    assert resolver.resolve("meeting-notes") == "archive/Meeting-Notes.md"


def test_resolve_similar_name_above_threshold(memory_store) -> None:
    memory_store.documents = {"shopping.md": "", "meeting-notes.md": ""}
    resolver = FuzzyResolver(memory_store)

    assert resolver.resolve("MeetingNotes") == "meeting-notes.md"


def test_resolve_returns_none_below_threshold(memory_store) -> None:
    memory_store.documents = {"zzz.md": ""}
    resolver = FuzzyResolver(memory_store)

    assert resolver.resolve("quick-brown-fox") is None
    assert resolver.resolve("") is None
    assert resolver.resolve(None) is None


def test_resolve_ties_keep_first_candidate(memory_store) -> None:
    memory_store.documents = {"ab.md": "", "ba.md": ""}
    resolver = FuzzyResolver(memory_store)

    assert resolver.resolve("aab") == "ab.md"


def test_resolve_uses_custom_scorer(memory_store) -> None:
    memory_store.documents = {"alpha.md": ""}
    resolver = FuzzyResolver(memory_store, scorer=lambda a, b: 0.9)

    assert resolver.resolve("totally-different") == "alpha.md"
