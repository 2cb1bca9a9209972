"""Shared fixtures for the notepilot test-suite."""
from __future__ import annotations

from typing import Optional

import pytest

from notepilot.config import ChatConfig
from notepilot.errors import NPAlreadyExistsError, NPStorageError, NPTargetNotFoundError
from notepilot.executor import MutationExecutor
from notepilot.gate import ConfirmationGate
from notepilot.ledger import PendingChangeLedger
from notepilot.pipeline import SessionContext
from notepilot.resolver import FuzzyResolver


class MemoryDocumentStore:
    """In-memory document accessor recording calls and injecting failures."""

    def __init__(self, documents: Optional[dict[str, str]] = None) -> None:
        self.documents: dict[str, str] = dict(documents or {})
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[tuple[str, str]] = set()

    def _check(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        if (operation, name) in self.fail_on:
            raise NPStorageError(f"{operation} failed for {name}")

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def exists(self, name: str) -> bool:
        return name in self.documents

    def read(self, name: str) -> str:
        self._check("read", name)
        if name not in self.documents:
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        return self.documents[name]

    def create(self, name: str, content: str) -> None:
        self._check("create", name)
        if name in self.documents:
            raise NPAlreadyExistsError(f"Document '{name}' already exists.")
        self.documents[name] = content

    def modify(self, name: str, content: str) -> None:
        self._check("modify", name)
        if name not in self.documents:
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        self.documents[name] = content

    def delete(self, name: str) -> None:
        self._check("delete", name)
        if name not in self.documents:
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        del self.documents[name]

    def list_documents(self) -> list[str]:
        return list(self.documents)


class RecordingEditor:
    """Editor buffer over a memory store that records range replacements."""

    def __init__(self, store: MemoryDocumentStore, name: str) -> None:
        self.store = store
        self.name = name
        self.replacements: list[tuple[int, int, str]] = []

    def get_value(self) -> str:
        return self.store.documents[self.name]

    def replace_range(self, start: int, end: int, text: str) -> None:
        self.replacements.append((start, end, text))
        content = self.store.documents[self.name]
        self.store.documents[self.name] = content[:start] + text + content[end:]


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def make_editor():
    return RecordingEditor


@pytest.fixture
def executor(memory_store: MemoryDocumentStore) -> MutationExecutor:
    return MutationExecutor(memory_store, FuzzyResolver(memory_store))


@pytest.fixture
def context(executor: MutationExecutor) -> SessionContext:
    return SessionContext(ledger=PendingChangeLedger(executor), gate=ConfirmationGate())


@pytest.fixture
def chat_config(monkeypatch: pytest.MonkeyPatch) -> ChatConfig:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    config = ChatConfig()
    config.api_key = "test-key"
    return config
