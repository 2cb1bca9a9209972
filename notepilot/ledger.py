"""Pending-change ledger with accept/reject bookkeeping and an audit trail."""
from __future__ import annotations

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from notepilot.errors import NPChangeStateError, NPError
from notepilot.models import ActionResult, BulkResult, ChangeStatus, PendingChange

if TYPE_CHECKING:  # pragma: no cover - typing only
    from notepilot.executor import MutationExecutor

__all__ = ["LedgerEvent", "LedgerSnapshot", "PendingChangeLedger"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """Single audit entry describing a change lifecycle step."""

    timestamp: datetime
    change_id: str
    operation: str
    target: str
    summary: str
    success: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "change_id": self.change_id,
            "operation": self.operation,
            "target": self.target,
            "summary": self.summary,
            "success": self.success,
        }


@dataclass
class LedgerSnapshot:
    """Serialisable view of the ledger for presentation layers."""

    changes: List[PendingChange]
    events: List[LedgerEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "changes": [change.to_dict() for change in self.changes],
            "events": [event.to_dict() for event in self.events],
        }


class PendingChangeLedger:
    """Authoritative record of every change proposed in a session.

    Status moves from pending to accepted or rejected exactly once. When the
    executor fails to apply an accept or reject, the change stays pending and
    the failure is returned as an :class:`ActionResult`.
    """

    def __init__(self, executor: "MutationExecutor", *, max_events: int = 500) -> None:
        self._executor = executor
        self._changes: "OrderedDict[str, PendingChange]" = OrderedDict()
        self._events: deque[LedgerEvent] = deque(maxlen=max_events)
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------
    def add(self, change: PendingChange) -> PendingChange:
        with self._lock:
            if change.id in self._changes:
                raise NPChangeStateError(f"Change '{change.id}' is already recorded.")
            self._changes[change.id] = change
            self._record(change, "proposed", change.content[:80])
        logger.debug("Recorded %s change '%s' for '%s'", change.action, change.id, change.target_id)
        return change

    def get(self, change_id: str) -> Optional[PendingChange]:
        with self._lock:
            return self._changes.get(change_id)

    def changes(self) -> List[PendingChange]:
        with self._lock:
            return list(self._changes.values())

    def pending(self) -> List[PendingChange]:
        with self._lock:
            return [change for change in self._changes.values() if change.is_pending]

    def for_message(self, message_id: str) -> List[PendingChange]:
        with self._lock:
            return [change for change in self._changes.values() if change.message_id == message_id]

    def toggle_expanded(self, change_id: str) -> bool:
        """Flip the presentation-only expanded flag and return the new value."""

        with self._lock:
            change = self._changes.get(change_id)
            if change is None:
                raise NPChangeStateError(f"Change '{change_id}' not found.")
            change.expanded = not change.expanded
            return change.expanded

    def clear(self) -> None:
        with self._lock:
            self._changes.clear()
            self._events.clear()

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(changes=list(self._changes.values()), events=list(self._events))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def accept(self, change_id: str) -> ActionResult:
        return self._transition(change_id, ChangeStatus.ACCEPTED, self._executor.accept)

    def reject(self, change_id: str) -> ActionResult:
        return self._transition(change_id, ChangeStatus.REJECTED, self._executor.reject)

    def accept_all(self) -> BulkResult:
        return self._bulk("Accepted", self.accept)

    def reject_all(self) -> BulkResult:
        return self._bulk("Rejected", self.reject)

    def _transition(
        self,
        change_id: str,
        status: ChangeStatus,
        apply: Callable[[PendingChange], str],
    ) -> ActionResult:
        with self._lock:
            change = self._changes.get(change_id)
            if change is None:
                return ActionResult(False, "Change not found.", change_id)
            if not change.is_pending:
                return ActionResult(False, f"Change was already {change.status.value}.", change_id)

            try:
                message = apply(change)
            except NPError as exc:
                logger.warning("Could not mark change '%s' %s: %s", change_id, status.value, exc)
                self._record(change, status.value, str(exc), success=False)
                verb = "accept" if status is ChangeStatus.ACCEPTED else "reject"
                return ActionResult(False, f"Failed to {verb} change: {exc}", change_id)

            change.status = status
            self._record(change, status.value, message)
            return ActionResult(True, message, change_id)

    def _bulk(self, verb: str, apply: Callable[[str], ActionResult]) -> BulkResult:
        ids = [change.id for change in self.pending()]
        results = [apply(change_id) for change_id in ids]
        success_count = sum(1 for result in results if result.success)
        logger.debug("%s %d of %d pending changes", verb, success_count, len(ids))
        return BulkResult(verb=verb, success_count=success_count, attempted=len(ids), results=results)

    def _record(self, change: PendingChange, operation: str, summary: str, *, success: bool = True) -> None:
        self._events.append(LedgerEvent(
            timestamp=datetime.now(timezone.utc),
            change_id=change.id,
            operation=operation,
            target=change.target_id,
            summary=summary,
            success=success,
        ))

    def events(self) -> List[LedgerEvent]:
        with self._lock:
            return list(self._events)
