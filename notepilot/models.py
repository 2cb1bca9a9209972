"""Data transfer objects shared across the notepilot chat pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union
from uuid import uuid4

__all__ = [
    "generate_id",
    "MessageRole",
    "ChatSession",
    "ChatMessage",
    "ChangeStatus",
    "PendingChange",
    "ActionType",
    "ActionIntent",
    "WriteOperation",
    "CreateOperation",
    "DeleteOperation",
    "RemoveContentOperation",
    "PendingOperation",
    "ActionResult",
    "BulkResult",
]


def generate_id() -> str:
    """Return a new identifier safe to embed in document annotations."""

    return f"id_{uuid4().hex}"


class MessageRole(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatSession:
    """A named conversation with its own message history."""

    id: str
    title: str = "New Chat"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatSession":
        return cls(id=str(data["id"]), title=str(data.get("title") or "New Chat"))


@dataclass
class ChatMessage:
    """A single message in a chat session."""

    id: str
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=str(data["id"]),
            role=MessageRole(data.get("role", "assistant")),
            content=str(data.get("content") or ""),
        )

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(id=generate_id(), role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, message_id: Optional[str] = None) -> "ChatMessage":
        return cls(id=message_id or generate_id(), role=MessageRole.ASSISTANT, content=content)


class ChangeStatus(str, Enum):
    """Approval state of a pending change. Non-pending states are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class PendingChange:
    """Ledger record for one proposed additive mutation.

    ``action`` is ``"write"`` when the content was inserted into an existing
    document as an annotated region, and ``"create"`` when the content is
    staged for a document that will only be written on acceptance.
    """

    id: str
    target_id: str
    target_name: str
    content: str
    message_id: str
    action: str = "write"
    status: ChangeStatus = ChangeStatus.PENDING
    expanded: bool = True

    @property
    def is_pending(self) -> bool:
        return self.status is ChangeStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "content": self.content,
            "message_id": self.message_id,
            "action": self.action,
            "status": self.status.value,
            "expanded": self.expanded,
        }


class ActionType(str, Enum):
    """Kinds of document action a model reply can request."""

    WRITE = "write"
    CREATE = "create"
    DELETE = "delete"
    REMOVE_CONTENT = "remove_content"
    NONE = "none"


@dataclass(frozen=True)
class ActionIntent:
    """Structured action parsed out of a model reply.

    Line numbers are 0-indexed; the wire format is 1-indexed.
    """

    type: ActionType = ActionType.NONE
    filename: Optional[str] = None
    content: Optional[str] = None
    pattern: Optional[str] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    @property
    def has_action(self) -> bool:
        return self.type is not ActionType.NONE


@dataclass(frozen=True)
class WriteOperation:
    kind: ClassVar[ActionType] = ActionType.WRITE

    content: str
    filename: Optional[str] = None


@dataclass(frozen=True)
class CreateOperation:
    kind: ClassVar[ActionType] = ActionType.CREATE

    filename: str
    content: str


@dataclass(frozen=True)
class DeleteOperation:
    kind: ClassVar[ActionType] = ActionType.DELETE

    target: str


@dataclass(frozen=True)
class RemoveContentOperation:
    kind: ClassVar[ActionType] = ActionType.REMOVE_CONTENT

    target: str
    pattern: Optional[str] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None


# Every action kind has an operation variant, but only delete and
# remove_content are ever held by the confirmation gate. Write and create go
# straight to the ledger as pending changes, and the gate refuses them.
PendingOperation = Union[WriteOperation, CreateOperation, DeleteOperation, RemoveContentOperation]


@dataclass
class ActionResult:
    """Outcome of an attempted action, phrased for the chat transcript."""

    success: bool
    message: str
    change_id: Optional[str] = None


@dataclass
class BulkResult:
    """Outcome of an accept-all or reject-all request."""

    verb: str
    success_count: int
    attempted: int
    results: list[ActionResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.success_count > 0

    @property
    def message(self) -> str:
        return f"{self.verb} {self.success_count} of {self.attempted} pending changes."
