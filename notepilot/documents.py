"""Document store boundary used by the action pipeline."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Protocol, runtime_checkable

from notepilot.errors import NPAlreadyExistsError, NPStorageError, NPTargetNotFoundError

__all__ = [
    "DocumentAccessor",
    "EditorBuffer",
    "FolderDocumentStore",
    "StoreEditorBuffer",
    "normalise_name",
]

logger = logging.getLogger(__name__)


def normalise_name(name: str, extension: str = ".md") -> str:
    """Return ``name`` as a canonical store path.

    Backslashes become forward slashes, duplicate and leading slashes are
    collapsed, and ``extension`` is appended when missing.
    """

    cleaned = (name or "").strip().replace("\\", "/")
    cleaned = posixpath.normpath(cleaned) if cleaned else ""
    cleaned = cleaned.lstrip("/")
    if cleaned in ("", "."):
        return ""
    if extension and not cleaned.lower().endswith(extension.lower()):
        cleaned += extension
    return cleaned


@runtime_checkable
class DocumentAccessor(Protocol):
    """Create/read/modify/delete primitives over named documents.

    Names passed in are already normalised by the caller. ``read`` raises
    :class:`NPTargetNotFoundError` for unknown names, ``create`` raises
    :class:`NPAlreadyExistsError` for taken names, and any other I/O failure
    surfaces as :class:`NPStorageError`.
    """

    def exists(self, name: str) -> bool:
        ...

    def read(self, name: str) -> str:
        ...

    def create(self, name: str, content: str) -> None:
        ...

    def modify(self, name: str, content: str) -> None:
        ...

    def delete(self, name: str) -> None:
        ...

    def list_documents(self) -> list[str]:
        ...


@runtime_checkable
class EditorBuffer(Protocol):
    """Live editor view of the active document, used for precise edits."""

    def get_value(self) -> str:
        ...

    def replace_range(self, start: int, end: int, text: str) -> None:
        ...


class FolderDocumentStore:
    """Document store backed by a folder of text files."""

    def __init__(self, root: Path | str, *, extension: str = ".md", encoding: str = "utf-8") -> None:
        self._root = Path(root)
        self._extension = extension
        self._encoding = encoding

    @property
    def root(self) -> Path:
        return self._root

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def read(self, name: str) -> str:
        path = self._path(name)
        if not path.is_file():
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        try:
            return path.read_text(encoding=self._encoding)
        except OSError as exc:
            raise NPStorageError(f"Failed to read '{name}': {exc}") from exc

    def create(self, name: str, content: str) -> None:
        path = self._path(name)
        if path.exists():
            raise NPAlreadyExistsError(f"Document '{name}' already exists.")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding=self._encoding)
        except OSError as exc:
            raise NPStorageError(f"Failed to create '{name}': {exc}") from exc
        logger.debug("Created document '%s'", name)

    def modify(self, name: str, content: str) -> None:
        path = self._path(name)
        if not path.is_file():
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        try:
            path.write_text(content, encoding=self._encoding)
        except OSError as exc:
            raise NPStorageError(f"Failed to write '{name}': {exc}") from exc

    def delete(self, name: str) -> None:
        path = self._path(name)
        if not path.is_file():
            raise NPTargetNotFoundError(f"Document '{name}' not found.")
        try:
            path.unlink()
        except OSError as exc:
            raise NPStorageError(f"Failed to delete '{name}': {exc}") from exc
        logger.debug("Deleted document '%s'", name)

    def list_documents(self) -> list[str]:
        if not self._root.is_dir():
            return []
        pattern = f"*{self._extension}" if self._extension else "*"
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in self._root.rglob(pattern)
            if path.is_file()
        )

    def _path(self, name: str) -> Path:
        relative = normalise_name(name, "")
        if not relative or relative.startswith("../") or relative == "..":
            raise NPStorageError(f"Invalid document name '{name}'.")
        return self._root / relative


class StoreEditorBuffer:
    """Editor buffer that reads and writes straight through a document store."""

    def __init__(self, store: DocumentAccessor, name: str) -> None:
        self._store = store
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def get_value(self) -> str:
        return self._store.read(self._name)

    def replace_range(self, start: int, end: int, text: str) -> None:
        content = self._store.read(self._name)
        if not 0 <= start <= end <= len(content):
            raise ValueError(f"Range [{start}:{end}] outside document of length {len(content)}")
        self._store.modify(self._name, content[:start] + text + content[end:])
