"""Turn parsed action intents into concrete document mutations."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import TYPE_CHECKING, Optional

from notepilot import regions
from notepilot.documents import DocumentAccessor, EditorBuffer, normalise_name
from notepilot.errors import (
    NPAlreadyExistsError,
    NPChangeStateError,
    NPTargetNotFoundError,
    NPValidationError,
)
from notepilot.models import (
    DeleteOperation,
    PendingChange,
    PendingOperation,
    RemoveContentOperation,
    generate_id,
)
from notepilot.resolver import FuzzyResolver

if TYPE_CHECKING:  # pragma: no cover - typing only
    from notepilot.pipeline import SessionContext

__all__ = ["MutationExecutor", "sanitize_content", "section_insert_offset"]

logger = logging.getLogger(__name__)

DEFAULT_NEW_FILE = "new-file.md"

_HEADING = re.compile(r"^#+\s+.+$")

_LEAD_IN = re.compile(
    r"^(here('s| is|'re)|i('ve| have)|i('ll| will)|i (can|could)|let me|sure|certainly|absolutely|of course)"
    r"[\s\S]*?:\s*",
    re.IGNORECASE,
)
_OFFER = re.compile(r"\n\nwould you like [\s\S]*?\Z", re.IGNORECASE)
_SIGN_OFF = re.compile(r"\n\n(here('s| is|'re)|i('ve| have)|i('ll| will)) [\s\S]*?\.\s*\Z", re.IGNORECASE)
_CHECK_IN = re.compile(r"\n\n(does this|how does this|is this|would this) [\s\S]*?\Z", re.IGNORECASE)


def sanitize_content(content: str) -> str:
    """Strip conversational wrapping from model content meant for a document."""

    cleaned = _LEAD_IN.sub("", content, count=1)
    cleaned = _OFFER.sub("", cleaned, count=1)
    cleaned = _SIGN_OFF.sub("", cleaned, count=1)
    cleaned = _CHECK_IN.sub("", cleaned, count=1)
    return cleaned.strip()


def section_insert_offset(text: str) -> int:
    """Return the offset at the end of the last heading's section.

    Documents without headings, or whose last section runs to the end, get
    the end of the text.
    """

    lines = text.split("\n")
    last_heading = -1
    for index, line in enumerate(lines):
        if _HEADING.match(line):
            last_heading = index

    section_end = len(lines)
    if last_heading >= 0:
        for index in range(last_heading + 1, len(lines)):
            if _HEADING.match(lines[index]):
                section_end = index
                break

    if section_end >= len(lines):
        return len(text)
    return sum(len(line) + 1 for line in lines[:section_end])


def _display_name(path: str) -> str:
    return posixpath.basename(path) or path


class MutationExecutor:
    """Apply write, create, delete and remove-content actions to documents."""

    def __init__(
        self,
        store: DocumentAccessor,
        resolver: FuzzyResolver,
        *,
        extension: str = ".md",
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._extension = extension

    @property
    def store(self) -> DocumentAccessor:
        return self._store

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------
    def resolve_target(self, filename: Optional[str], context: "SessionContext") -> str:
        """Return the document an action applies to, or raise if none does."""

        if filename:
            target = self._resolver.resolve(filename)
            if target is None:
                raise NPTargetNotFoundError(f'No target file found. File "{filename}" not found.')
            return target
        if context.active_document:
            return context.active_document
        raise NPTargetNotFoundError("No target file found. No file is open.")

    # ------------------------------------------------------------------
    # Additive actions
    # ------------------------------------------------------------------
    def write(
        self,
        content: str,
        filename: Optional[str],
        context: "SessionContext",
        *,
        message_id: str,
    ) -> PendingChange:
        """Insert sanitized content as an annotated region and return its change."""

        target = self.resolve_target(filename, context)
        current = self._store.read(target)
        body = sanitize_content(content)
        change_id = generate_id()
        updated = regions.insert_region(current, body, change_id, section_insert_offset(current))
        self._store.modify(target, updated)
        logger.debug("Inserted change '%s' into '%s'", change_id, target)
        return PendingChange(
            id=change_id,
            target_id=target,
            target_name=_display_name(target),
            content=body,
            message_id=message_id,
            action="write",
        )

    def stage_create(self, filename: Optional[str], content: str, *, message_id: str) -> Optional[PendingChange]:
        """Stage a new document; nothing is written until acceptance."""

        if not content:
            return None
        target = normalise_name(filename or DEFAULT_NEW_FILE, self._extension)
        return PendingChange(
            id=generate_id(),
            target_id=target,
            target_name=target,
            content=content,
            message_id=message_id,
            action="create",
        )

    def write_message(self, change: PendingChange) -> str:
        return f"Content added to {change.target_name}. Changes highlighted in the file."

    # ------------------------------------------------------------------
    # Destructive actions
    # ------------------------------------------------------------------
    def prepare_delete(self, filename: Optional[str], context: "SessionContext") -> DeleteOperation:
        return DeleteOperation(target=self.resolve_target(filename, context))

    def prepare_remove_content(
        self,
        filename: Optional[str],
        context: "SessionContext",
        *,
        pattern: Optional[str] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
    ) -> RemoveContentOperation:
        target = self.resolve_target(filename, context)
        has_range = start_line is not None and end_line is not None
        if not pattern and not has_range:
            raise NPValidationError("No pattern or line range provided for content removal.")
        if pattern:
            _compile(pattern)
        else:
            _check_range(start_line, end_line, self._store.read(target), _display_name(target))
        return RemoveContentOperation(target=target, pattern=pattern, start_line=start_line, end_line=end_line)

    def execute(self, operation: PendingOperation, context: "SessionContext") -> str:
        """Run a confirmed destructive operation and return its result message."""

        if isinstance(operation, DeleteOperation):
            self._store.delete(operation.target)
            logger.debug("Deleted '%s' after confirmation", operation.target)
            return f"File '{operation.target}' has been deleted."
        if isinstance(operation, RemoveContentOperation):
            return self._remove_content(operation, context)
        raise NPValidationError(f"Operation '{operation.kind.value}' does not need confirmation.")

    def _remove_content(self, operation: RemoveContentOperation, context: "SessionContext") -> str:
        target = operation.target
        name = _display_name(target)
        current = self._store.read(target)
        lines = current.split("\n")
        start, end = operation.start_line, operation.end_line

        if start is not None and end is not None and 0 <= start <= end < len(lines):
            del lines[start:end + 1]
            self._store.modify(target, "\n".join(lines))
            return f"Content from lines {start + 1} to {end + 1} has been removed from {name}."

        if not operation.pattern:
            if start is not None and end is not None:
                _check_range(start, end, current, name)
            raise NPValidationError("No pattern or line range provided for content removal.")

        regex = _compile(operation.pattern)
        editor: Optional[EditorBuffer] = context.editor if target == context.active_document else None
        if editor is not None:
            match = regex.search(editor.get_value())
            if match is not None:
                editor.replace_range(match.start(), match.end(), "")
        else:
            match = regex.search(current)
            if match is not None:
                self._store.modify(target, current[:match.start()] + current[match.end():])

        if match is None:
            raise NPValidationError(f'Could not find content matching "{operation.pattern}" in {name}.')
        return f'Content matching "{operation.pattern}" has been removed from {name}.'

    # ------------------------------------------------------------------
    # Accept / reject
    # ------------------------------------------------------------------
    def accept(self, change: PendingChange) -> str:
        """Make a pending change permanent in the document store."""

        if change.action == "create":
            return self._create_document(change)

        current = self._store.read(change.target_id)
        updated = regions.unwrap_region(current, change.id)
        if updated is None:
            raise NPChangeStateError(f"Change region '{change.id}' not found in {change.target_name}.")
        self._store.modify(change.target_id, updated)
        return f"Changes accepted in {change.target_name}."

    def reject(self, change: PendingChange) -> str:
        """Undo a pending change, restoring the document to its prior shape."""

        if change.action == "create":
            return f"Discarded proposed file '{change.target_id}'."

        if not self._store.exists(change.target_id):
            return "File not found, nothing to reject."
        current = self._store.read(change.target_id)
        updated = regions.remove_region(current, change.id)
        if updated is None:
            logger.warning("Region for change '%s' not found in '%s'", change.id, change.target_id)
        else:
            self._store.modify(change.target_id, updated)
        return f"Changes rejected and removed from {change.target_name}."

    def _create_document(self, change: PendingChange) -> str:
        try:
            self._store.create(change.target_id, change.content)
        except NPAlreadyExistsError:
            current = self._store.read(change.target_id)
            self._store.modify(change.target_id, f"{current}\n\n{change.content}")
            return f"File '{change.target_id}' has been updated."
        return f"File '{change.target_id}' has been created."


def _check_range(start: int, end: int, text: str, name: str) -> None:
    line_count = len(text.split("\n"))
    if not 0 <= start <= end < line_count:
        raise NPValidationError(
            f"Invalid line range {start + 1} to {end + 1} for {name}, which has {line_count} lines."
        )


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise NPValidationError(f'Invalid pattern "{pattern}": {exc}') from exc
