"""Tests for the pending-change ledger."""
from __future__ import annotations

import pytest

from notepilot.errors import NPChangeStateError
from notepilot.ledger import PendingChangeLedger
from notepilot.models import ChangeStatus


@pytest.fixture
def ledger(executor) -> PendingChangeLedger:
    return PendingChangeLedger(executor)


def _write(executor, context, ledger, name: str, content: str, message_id: str = "m1"):
    return ledger.add(executor.write(content, name, context, message_id=message_id))


def test_accept_marks_change_accepted(executor, context, ledger, memory_store) -> None:
    memory_store.documents = {"a.md": "start"}
    change = _write(executor, context, ledger, "a.md", "extra")

    result = ledger.accept(change.id)

    assert result.success
    assert result.change_id == change.id
    assert change.status is ChangeStatus.ACCEPTED
    assert memory_store.documents["a.md"] == "start\n\nextra"


def test_status_transitions_are_terminal(executor, context, ledger, memory_store) -> None:
    memory_store.documents = {"a.md": "start"}
    change = _write(executor, context, ledger, "a.md", "extra")

    assert ledger.reject(change.id).success
    after_reject = memory_store.documents["a.md"]

    again = ledger.accept(change.id)
    assert not again.success
    assert change.status is ChangeStatus.REJECTED
    assert memory_store.documents["a.md"] == after_reject

    assert not ledger.reject(change.id).success
    assert change.status is ChangeStatus.REJECTED


def test_unknown_change_is_reported(ledger) -> None:
    result = ledger.accept("id_missing")

    assert not result.success
    assert result.message == "Change not found."


def test_accept_all_reports_partial_failure(executor, context, ledger, memory_store) -> None:
    memory_store.documents = {"a.md": "A", "b.md": "B", "c.md": "C"}
    first = _write(executor, context, ledger, "a.md", "one")
    second = _write(executor, context, ledger, "b.md", "two")
    third = _write(executor, context, ledger, "c.md", "three")
    memory_store.fail_on.add(("modify", "b.md"))

    result = ledger.accept_all()

    assert result.success_count == 2
    assert result.attempted == 3
    assert result.message == "Accepted 2 of 3 pending changes."
    assert first.status is ChangeStatus.ACCEPTED
    assert second.status is ChangeStatus.PENDING
    assert third.status is ChangeStatus.ACCEPTED
    assert [change.id for change in ledger.pending()] == [second.id]


def test_reject_all_skips_non_pending(executor, context, ledger, memory_store) -> None:
    memory_store.documents = {"a.md": "A", "b.md": "B"}
    first = _write(executor, context, ledger, "a.md", "one")
    _write(executor, context, ledger, "b.md", "two")
    ledger.accept(first.id)

    result = ledger.reject_all()

    assert result.attempted == 1
    assert result.success_count == 1
    assert memory_store.documents["b.md"] == "B"
    assert ledger.pending() == []


def test_create_change_lifecycle(executor, ledger, memory_store) -> None:
    change = ledger.add(executor.stage_create("new.md", "hello", message_id="m2"))

    assert ledger.for_message("m2") == [change]
    assert ledger.accept(change.id).message == "File 'new.md' has been created."
    assert memory_store.documents["new.md"] == "hello"


def test_toggle_expanded_is_presentation_only(executor, ledger) -> None:
    change = ledger.add(executor.stage_create("new.md", "hello", message_id="m2"))

    assert ledger.toggle_expanded(change.id) is False
    assert ledger.toggle_expanded(change.id) is True
    assert change.is_pending

    with pytest.raises(NPChangeStateError):
        ledger.toggle_expanded("id_missing")


def test_duplicate_change_id_is_refused(executor, ledger) -> None:
    change = ledger.add(executor.stage_create("new.md", "hello", message_id="m2"))

    with pytest.raises(NPChangeStateError):
        ledger.add(change)


def test_snapshot_includes_audit_events(executor, ledger) -> None:
    change = ledger.add(executor.stage_create("new.md", "hello", message_id="m2"))
    ledger.reject(change.id)

    payload = ledger.snapshot().to_dict()

    assert payload["changes"][0]["status"] == "rejected"
    assert [event["operation"] for event in payload["events"]] == ["proposed", "rejected"]
