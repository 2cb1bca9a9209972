"""Tests for the action marker parser and request heuristics."""
from __future__ import annotations

import pytest

from notepilot.models import ActionType
from notepilot.parser import detect_request_kind, parse_action


def test_parse_create_marker_with_filename() -> None:
    intent, stripped = parse_action("[ACTION:create filename:recipes.md]Ingredients: eggs")

    assert intent.type is ActionType.CREATE
    assert intent.filename == "recipes.md"
    assert intent.content == "Ingredients: eggs"
    assert "[ACTION" not in stripped
    assert stripped == "Ingredients: eggs"


def test_parse_without_marker_returns_text_unchanged() -> None:
    text = "  Just a normal answer.\n"
    intent, stripped = parse_action(text)

    assert intent.type is ActionType.NONE
    assert not intent.has_action
    assert stripped == text


def test_parse_is_case_insensitive_on_type() -> None:
    intent, _ = parse_action("[action:WRITE filename:notes.md]Body")

    assert intent.type is ActionType.WRITE
    assert intent.filename == "notes.md"


def test_parse_converts_lines_to_zero_based() -> None:
    intent, _ = parse_action("[ACTION:remove_content filename:a.md, startLine:2, endLine:4]")

    assert intent.type is ActionType.REMOVE_CONTENT
    assert intent.start_line == 1
    assert intent.end_line == 3
    assert intent.pattern is None


def test_parse_accepts_parameters_in_any_order() -> None:
    intent, _ = parse_action("[ACTION:remove_content endLine:3 pattern:loops filename:code.md startLine:1]")

    assert intent.filename == "code.md"
    assert intent.pattern == "loops"
    assert intent.start_line == 0
    assert intent.end_line == 2


def test_parse_quoted_pattern_keeps_spaces_and_brackets() -> None:
    intent, _ = parse_action('[ACTION:remove_content filename:a.md pattern:"the [old] part"]')

    assert intent.pattern == "the [old] part"
    assert intent.filename == "a.md"


def test_parse_filename_with_spaces() -> None:
    intent, _ = parse_action("[ACTION:write filename:meeting notes.md]Agenda")

    assert intent.filename == "meeting notes.md"
    assert intent.content == "Agenda"


def test_parse_filename_with_apostrophe() -> None:
    intent, stripped = parse_action("[ACTION:write filename:Bob's notes.md]Agenda item")

    assert intent.type is ActionType.WRITE
    assert intent.filename == "Bob's notes.md"
    assert intent.content == "Agenda item"
    assert stripped == "Agenda item"


def test_parse_apostrophes_do_not_extend_the_marker() -> None:
    intent, _ = parse_action("[ACTION:write filename:Bob's notes.md]It's done] ok")

    assert intent.filename == "Bob's notes.md"
    assert intent.content == "It's done] ok"


def test_parse_unquoted_pattern_with_apostrophe() -> None:
    intent, stripped = parse_action("[ACTION:remove_content filename:a.md pattern:don't panic]")

    assert intent.type is ActionType.REMOVE_CONTENT
    assert intent.pattern == "don't panic"
    assert stripped == ""


def test_parse_quoted_value_after_spaced_colon() -> None:
    intent, _ = parse_action("[ACTION:remove_content filename: 'a.md' pattern: 'x ] y']")

    assert intent.filename == "a.md"
    assert intent.pattern == "x ] y"


def test_only_first_marker_is_honoured() -> None:
    text = "Intro [ACTION:delete filename:a.md] then [ACTION:create filename:b.md]stuff"
    intent, stripped = parse_action(text)

    assert intent.type is ActionType.DELETE
    assert intent.filename == "a.md"
    assert intent.content == "then [ACTION:create filename:b.md]stuff"
    assert stripped.startswith("Intro")
    assert "[ACTION:delete" not in stripped


def test_unknown_parameters_are_ignored() -> None:
    intent, _ = parse_action("[ACTION:delete colour:blue filename:x.md]")

    assert intent.type is ActionType.DELETE
    assert intent.filename == "x.md"


def test_marker_without_parameters() -> None:
    intent, stripped = parse_action("[ACTION:write]Some notes")

    assert intent.type is ActionType.WRITE
    assert intent.filename is None
    assert intent.content == "Some notes"
    assert stripped == "Some notes"


def test_unrecognised_action_type_is_not_a_marker() -> None:
    text = "[ACTION:rename filename:a.md]"
    intent, stripped = parse_action(text)

    assert intent.type is ActionType.NONE
    assert stripped == text


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Please create a new file for my recipes", ActionType.CREATE),
        ("Delete this file, I don't need it", ActionType.DELETE),
        ("Remove the paragraph about loops", ActionType.REMOVE_CONTENT),
        ("Delete the section on history", ActionType.REMOVE_CONTENT),
        ("What is functional programming?", ActionType.NONE),
    ],
)
def test_detect_request_kind(message: str, expected: ActionType) -> None:
    assert detect_request_kind(message) is expected
