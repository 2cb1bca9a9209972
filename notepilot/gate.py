"""Single-slot confirmation gate for destructive actions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from notepilot.errors import NPError, NPGateError
from notepilot.models import ActionResult, ActionType, PendingOperation

__all__ = ["GateState", "ConfirmationGate", "is_affirmative"]

logger = logging.getLogger(__name__)

_DEFAULT_AFFIRMATIONS = ("yes", "confirm")

_PROMPT_VERBS = {
    ActionType.DELETE: "delete",
    ActionType.REMOVE_CONTENT: "remove content from",
}

_CANCEL_NAMES = {
    ActionType.DELETE: "Delete",
    ActionType.REMOVE_CONTENT: "Remove content",
}


class GateState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


def is_affirmative(reply: str, affirmations: Iterable[str] = _DEFAULT_AFFIRMATIONS) -> bool:
    """Return ``True`` when ``reply`` contains an affirmation or is exactly ``y``."""

    lowered = (reply or "").strip().lower()
    if lowered == "y":
        return True
    return any(word and word.lower() in lowered for word in affirmations)


class ConfirmationGate:
    """Hold at most one destructive operation until the user answers.

    ``stage`` moves the gate from idle to awaiting confirmation; ``resolve``
    consumes the next user reply and always returns the gate to idle.
    """

    def __init__(self, affirmations: Sequence[str] = _DEFAULT_AFFIRMATIONS) -> None:
        self._affirmations = tuple(affirmations)
        self._operation: Optional[PendingOperation] = None

    @property
    def state(self) -> GateState:
        return GateState.IDLE if self._operation is None else GateState.AWAITING_CONFIRMATION

    @property
    def awaiting(self) -> bool:
        return self._operation is not None

    @property
    def operation(self) -> Optional[PendingOperation]:
        return self._operation

    def stage(self, operation: PendingOperation, target_name: str, visible_text: str = "") -> str:
        """Hold ``operation`` and return the confirmation prompt to show."""

        if self._operation is not None:
            raise NPGateError("A confirmation is already pending.")
        verb = _PROMPT_VERBS.get(operation.kind)
        if verb is None:
            raise NPGateError(f"Operation '{operation.kind.value}' does not need confirmation.")
        self._operation = operation
        logger.debug("Awaiting confirmation for %s on '%s'", operation.kind.value, target_name)
        question = f"Would you like me to {verb} {target_name}?"
        return f"{visible_text}\n\n{question}" if visible_text else question

    def resolve(self, reply: str, execute: Callable[[PendingOperation], str]) -> ActionResult:
        """Run or discard the held operation depending on ``reply``."""

        operation = self._operation
        if operation is None:
            raise NPGateError("No confirmation is pending.")
        self._operation = None

        if not is_affirmative(reply, self._affirmations):
            logger.debug("Cancelled %s operation", operation.kind.value)
            return ActionResult(False, f"{_CANCEL_NAMES[operation.kind]} operation cancelled.")

        try:
            return ActionResult(True, execute(operation))
        except NPError as exc:
            logger.warning("Confirmed %s operation failed: %s", operation.kind.value, exc)
            return ActionResult(False, str(exc))

    def cancel(self) -> None:
        self._operation = None
