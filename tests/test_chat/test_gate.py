"""Tests for the confirmation gate."""
from __future__ import annotations

import pytest

from notepilot.errors import NPGateError, NPStorageError
from notepilot.gate import ConfirmationGate, GateState, is_affirmative
from notepilot.models import CreateOperation, DeleteOperation, RemoveContentOperation, WriteOperation


@pytest.mark.parametrize("reply", ["yes", "YES please", "I confirm", "y", " Y "])
def test_affirmative_replies(reply: str) -> None:
    assert is_affirmative(reply)


@pytest.mark.parametrize("reply", ["no", "nope", "maybe later", ""])
def test_negative_replies(reply: str) -> None:
    assert not is_affirmative(reply)


def test_stage_builds_confirmation_prompt() -> None:
    gate = ConfirmationGate()

    prompt = gate.stage(DeleteOperation(target="notes/old.md"), "old.md", "I can remove that file.")

    assert prompt == "I can remove that file.\n\nWould you like me to delete old.md?"
    assert gate.state is GateState.AWAITING_CONFIRMATION


def test_stage_remove_content_prompt() -> None:
    gate = ConfirmationGate()

    prompt = gate.stage(RemoveContentOperation(target="a.md", pattern="x"), "a.md")

    assert prompt == "Would you like me to remove content from a.md?"


def test_single_slot_refuses_second_operation() -> None:
    gate = ConfirmationGate()
    gate.stage(DeleteOperation(target="a.md"), "a.md")

    with pytest.raises(NPGateError):
        gate.stage(DeleteOperation(target="b.md"), "b.md")

    assert gate.operation == DeleteOperation(target="a.md")


def test_non_destructive_operations_are_not_staged() -> None:
    gate = ConfirmationGate()

    with pytest.raises(NPGateError):
        gate.stage(WriteOperation(content="x"), "a.md")
    with pytest.raises(NPGateError):
        gate.stage(CreateOperation(filename="a.md", content="x"), "a.md")

    assert gate.state is GateState.IDLE


def test_negative_reply_cancels_without_executing() -> None:
    gate = ConfirmationGate()
    gate.stage(DeleteOperation(target="a.md"), "a.md")
    calls = []

    result = gate.resolve("no", calls.append)

    assert calls == []
    assert not result.success
    assert result.message == "Delete operation cancelled."
    assert gate.state is GateState.IDLE


def test_affirmative_reply_executes_once() -> None:
    gate = ConfirmationGate()
    operation = RemoveContentOperation(target="a.md", start_line=0, end_line=0)
    gate.stage(operation, "a.md")
    calls = []

    def _execute(op):
        calls.append(op)
        return "done"

    result = gate.resolve("yes", _execute)

    assert calls == [operation]
    assert result.success
    assert result.message == "done"
    assert not gate.awaiting


def test_failed_execution_returns_to_idle() -> None:
    gate = ConfirmationGate()
    gate.stage(DeleteOperation(target="a.md"), "a.md")

    def _execute(op):
        raise NPStorageError("disk full")

    result = gate.resolve("confirm", _execute)

    assert not result.success
    assert result.message == "disk full"
    assert gate.state is GateState.IDLE


def test_custom_affirmations() -> None:
    gate = ConfirmationGate(["ok"])
    gate.stage(DeleteOperation(target="a.md"), "a.md")

    assert gate.resolve("ok then", lambda op: "deleted").success


def test_resolve_without_pending_operation() -> None:
    with pytest.raises(NPGateError):
        ConfirmationGate().resolve("yes", lambda op: "x")
