"""Chat session persistence and the in-memory session manager."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from notepilot.errors import NPStorageError, NPValidationError
from notepilot.models import ChatMessage, ChatSession, MessageRole, generate_id

__all__ = ["SessionStore", "JsonSessionStore", "SessionManager", "derive_title"]

logger = logging.getLogger(__name__)

_TITLE_LIMIT = 20


def derive_title(text: str) -> str:
    """Return a session title from the first user message."""

    text = text.strip()
    return f"{text[:_TITLE_LIMIT]}..." if len(text) > _TITLE_LIMIT else text


@runtime_checkable
class SessionStore(Protocol):
    """Persistence boundary for sessions and their message histories."""

    def list_sessions(self) -> list[ChatSession]:
        ...

    def save_sessions(self, sessions: list[ChatSession]) -> None:
        ...

    def load_messages(self, session_id: str) -> Optional[list[ChatMessage]]:
        ...

    def save_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        ...

    def delete_messages(self, session_id: str) -> None:
        ...


class JsonSessionStore:
    """Session store writing JSON files into a folder."""

    SESSIONS_FILE = "sessions.json"

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    def list_sessions(self) -> list[ChatSession]:
        data = self._read(self._root / self.SESSIONS_FILE)
        if not isinstance(data, list):
            return []
        return [ChatSession.from_dict(entry) for entry in data if isinstance(entry, dict) and "id" in entry]

    def save_sessions(self, sessions: list[ChatSession]) -> None:
        self._write(self._root / self.SESSIONS_FILE, [session.to_dict() for session in sessions])

    def load_messages(self, session_id: str) -> Optional[list[ChatMessage]]:
        data = self._read(self._history_path(session_id))
        if not isinstance(data, list):
            return None
        return [ChatMessage.from_dict(entry) for entry in data if isinstance(entry, dict) and "id" in entry]

    def save_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        self._write(self._history_path(session_id), [message.to_dict() for message in messages])

    def delete_messages(self, session_id: str) -> None:
        path = self._history_path(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise NPStorageError(f"Failed to delete history for '{session_id}': {exc}") from exc

    def _history_path(self, session_id: str) -> Path:
        return self._root / f"chat-history-{session_id}.json"

    def _read(self, path: Path) -> object:
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable session file '%s'", path)
            return None
        except OSError as exc:
            raise NPStorageError(f"Failed to read '{path.name}': {exc}") from exc

    def _write(self, path: Path, payload: object) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise NPStorageError(f"Failed to write '{path.name}': {exc}") from exc


class SessionManager:
    """Track the session list, the current session and its messages.

    Messages of different sessions are never mixed: switching replaces the
    in-memory list with the stored history of the target session.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._sessions: list[ChatSession] = store.list_sessions()
        if not self._sessions:
            self._sessions = [ChatSession(id=generate_id())]
            self._store.save_sessions(self._sessions)
        self._current_id = self._sessions[0].id
        self._messages: list[ChatMessage] = self._store.load_messages(self._current_id) or []

    @property
    def sessions(self) -> list[ChatSession]:
        return list(self._sessions)

    @property
    def current_id(self) -> str:
        return self._current_id

    @property
    def current(self) -> ChatSession:
        return self._get(self._current_id)

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def new_chat(self) -> ChatSession:
        session = ChatSession(id=generate_id())
        self._sessions.append(session)
        self._store.save_sessions(self._sessions)
        self._current_id = session.id
        self._messages = []
        logger.debug("Started chat session '%s'", session.id)
        return session

    def switch(self, session_id: str) -> ChatSession:
        session = self._get(session_id)
        self._current_id = session.id
        self._messages = self._store.load_messages(session.id) or []
        return session

    def delete(self, session_id: str) -> None:
        if len(self._sessions) <= 1:
            raise NPValidationError("Cannot delete the only chat session.")
        session = self._get(session_id)
        self._sessions = [entry for entry in self._sessions if entry.id != session.id]
        self._store.save_sessions(self._sessions)
        self._store.delete_messages(session.id)
        if session.id == self._current_id:
            self.switch(self._sessions[0].id)
        logger.debug("Deleted chat session '%s'", session.id)

    def append(self, message: ChatMessage) -> ChatMessage:
        """Add a message to the current session and persist the history."""

        if message.role is MessageRole.USER and not any(m.role is MessageRole.USER for m in self._messages):
            self.current.title = derive_title(message.content)
            self._store.save_sessions(self._sessions)
        self._messages.append(message)
        self._store.save_messages(self._current_id, self._messages)
        return message

    def _get(self, session_id: str) -> ChatSession:
        for session in self._sessions:
            if session.id == session_id:
                return session
        raise NPValidationError(f"Chat session '{session_id}' not found.")
