"""Error hierarchy shared by the notepilot chat and action layers."""

from __future__ import annotations

__all__ = [
    "NPError",
    "NPConfigError",
    "NPProviderError",
    "NPActionError",
    "NPTargetNotFoundError",
    "NPValidationError",
    "NPStorageError",
    "NPAlreadyExistsError",
    "NPChangeStateError",
    "NPGateError",
]


class NPError(Exception):
    """Base error for all notepilot failures."""


class NPConfigError(NPError):
    """Raised when chat configuration values are missing or invalid."""


class NPProviderError(NPError):
    """Raised when a model provider fails or behaves unexpectedly."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NPActionError(NPError):
    """Base error for an attempted document action that could not complete."""


class NPTargetNotFoundError(NPActionError):
    """Raised when no document resolves for the requested name or context."""


class NPValidationError(NPActionError):
    """Raised when an action is missing parameters or carries invalid ones."""


class NPStorageError(NPActionError):
    """Raised when the document store fails to read or write."""


class NPAlreadyExistsError(NPStorageError):
    """Raised when creating a document under a name that is already taken."""


class NPChangeStateError(NPActionError):
    """Raised when a pending change is unknown or no longer pending."""


class NPGateError(NPActionError):
    """Raised when the confirmation slot is used out of turn."""
