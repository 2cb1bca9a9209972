"""Chat-driven document editing: model replies turned into reviewable edits."""

from .config import ChatConfig, ModelPreset, ModelSettings
from .documents import DocumentAccessor, EditorBuffer, FolderDocumentStore
from .errors import (
    NPActionError,
    NPAlreadyExistsError,
    NPChangeStateError,
    NPConfigError,
    NPError,
    NPGateError,
    NPProviderError,
    NPStorageError,
    NPTargetNotFoundError,
    NPValidationError,
)
from .models import ActionIntent, ActionResult, ActionType, BulkResult, ChatMessage, ChatSession, PendingChange
from .pipeline import ChatPipeline, SessionContext
from .sessions import JsonSessionStore, SessionManager
from .streaming import CancellationToken, StreamAccumulator, StreamOutcome, StreamOutcomeKind

__all__ = [
    "ChatConfig",
    "ModelSettings",
    "ModelPreset",
    "ChatPipeline",
    "SessionContext",
    "DocumentAccessor",
    "EditorBuffer",
    "FolderDocumentStore",
    "JsonSessionStore",
    "SessionManager",
    "CancellationToken",
    "StreamAccumulator",
    "StreamOutcome",
    "StreamOutcomeKind",
    "ActionIntent",
    "ActionResult",
    "ActionType",
    "BulkResult",
    "ChatMessage",
    "ChatSession",
    "PendingChange",
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
