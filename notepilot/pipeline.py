"""Chat pipeline tying the model stream to document actions."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Optional

from notepilot.config import ChatConfig, ModelSettings
from notepilot.documents import DocumentAccessor, EditorBuffer
from notepilot.errors import NPActionError, NPConfigError
from notepilot.executor import MutationExecutor
from notepilot.gate import ConfirmationGate
from notepilot.ledger import PendingChangeLedger
from notepilot.models import (
    ActionIntent,
    ActionResult,
    ActionType,
    BulkResult,
    ChatMessage,
    ChatSession,
    PendingChange,
    generate_id,
)
from notepilot.parser import detect_request_kind, parse_action
from notepilot.prompts import build_prompt, build_system_prompt
from notepilot.resolver import FuzzyResolver
from notepilot.sessions import SessionManager
from notepilot.streaming import CancellationToken, StreamAccumulator, StreamOutcomeKind

__all__ = ["SessionContext", "ChatPipeline"]

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Per-session state passed explicitly through every action."""

    ledger: PendingChangeLedger
    gate: ConfirmationGate
    active_document: Optional[str] = None
    editor: Optional[EditorBuffer] = None


class ChatPipeline:
    """Run user turns through the model and apply the resulting actions.

    Each turn either answers an outstanding confirmation or streams a new
    model reply, parses it once the stream has finished, and routes any
    action to the executor, the ledger or the confirmation gate. The reply is
    appended to the current session.
    """

    def __init__(
        self,
        config: ChatConfig,
        store: DocumentAccessor,
        sessions: SessionManager,
        *,
        adapter: Any = None,
    ) -> None:
        self._config = config
        self._store = store
        self._sessions = sessions
        self._adapter = adapter
        self._owns_adapter = adapter is None
        self._adapter_settings: Optional[ModelSettings] = None
        self._resolver = FuzzyResolver(
            store,
            extension=config.default_extension,
            threshold=config.fuzzy_threshold,
        )
        self._executor = MutationExecutor(store, self._resolver, extension=config.default_extension)
        self._context = self._new_context()
        self._placeholder: Optional[ChatMessage] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def resolver(self) -> FuzzyResolver:
        return self._resolver

    @property
    def awaiting_confirmation(self) -> bool:
        return self._context.gate.awaiting

    @property
    def visible_messages(self) -> list[ChatMessage]:
        """Return the persisted messages plus the in-progress reply, if any."""

        messages = self._sessions.messages
        if self._placeholder is not None:
            messages.append(self._placeholder)
        return messages

    def set_active_document(self, name: Optional[str], editor: Optional[EditorBuffer] = None) -> None:
        self._context.active_document = self._resolver.normalise(name) if name else None
        self._context.editor = editor if name else None

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------
    async def handle_user_message(
        self,
        text: str,
        on_partial: Optional[Callable[[str], None]] = None,
        token: Optional[CancellationToken] = None,
    ) -> Optional[ChatMessage]:
        """Process one user message and return the assistant reply.

        Returns ``None`` for blank input and for streams that were cancelled.
        """

        if not text or not text.strip():
            return None

        if self._context.gate.awaiting:
            result = self._context.gate.resolve(text, self._execute_confirmed)
            return self._sessions.append(ChatMessage.assistant(result.message))

        history = self._sessions.messages
        user_message = self._sessions.append(ChatMessage.user(text))

        try:
            adapter = self._ensure_adapter()
        except NPConfigError as exc:
            logger.warning("Chat provider is not available: %s", exc)
            return self._sessions.append(ChatMessage.assistant(f"Error: {exc}"))

        prompt = build_prompt(self._system_prompt(text), history, user_message)
        placeholder = ChatMessage.assistant("")
        self._placeholder = placeholder

        def _on_partial(buffer: str) -> None:
            placeholder.content = buffer
            if on_partial is not None:
                on_partial(buffer)

        accumulator = StreamAccumulator(adapter, prefer_streaming=self._config.streaming)
        try:
            outcome = await accumulator.run(
                prompt,
                self._adapter_settings or self._config.model_settings,
                on_partial=_on_partial,
                token=token,
            )
        finally:
            self._placeholder = None

        if outcome.kind is StreamOutcomeKind.CANCELLED:
            logger.debug("Discarded cancelled reply")
            return None

        message_id = generate_id()
        if outcome.completed:
            content = self._process_response(outcome.text, message_id)
        else:
            content = outcome.text
        return self._sessions.append(ChatMessage.assistant(content, message_id))

    def _process_response(self, text: str, message_id: str) -> str:
        intent, visible = parse_action(text)
        if not intent.has_action:
            return visible
        try:
            return self._apply_intent(intent, visible, message_id)
        except NPActionError as exc:
            logger.debug("Action %s failed: %s", intent.type.value, exc)
            return f"{visible}\n\n{exc}" if visible else str(exc)

    def _apply_intent(self, intent: ActionIntent, visible: str, message_id: str) -> str:
        context = self._context
        executor = self._executor

        if intent.type is ActionType.WRITE:
            change = executor.write(intent.content or "", intent.filename, context, message_id=message_id)
            context.ledger.add(change)
            return visible or executor.write_message(change)
        elif intent.type is ActionType.CREATE:
            change = executor.stage_create(intent.filename, intent.content or "", message_id=message_id)
            if change is not None:
                context.ledger.add(change)
        elif intent.type is ActionType.DELETE:
            operation = executor.prepare_delete(intent.filename, context)
            return context.gate.stage(operation, posixpath.basename(operation.target), visible)
        elif intent.type is ActionType.REMOVE_CONTENT:
            operation = executor.prepare_remove_content(
                intent.filename,
                context,
                pattern=intent.pattern,
                start_line=intent.start_line,
                end_line=intent.end_line,
            )
            return context.gate.stage(operation, posixpath.basename(operation.target), visible)
        return visible

    def _execute_confirmed(self, operation: Any) -> str:
        return self._executor.execute(operation, self._context)

    def _system_prompt(self, text: str) -> str:
        name = self._context.active_document
        content: Optional[str] = None
        if name:
            try:
                content = self._store.read(name)
            except NPActionError as exc:
                logger.warning("Could not read active document '%s': %s", name, exc)
                name = None
        return build_system_prompt(
            posixpath.basename(name) if name else None,
            content,
            extension=self._config.default_extension,
            request_kind=detect_request_kind(text),
        )

    # ------------------------------------------------------------------
    # Pending changes
    # ------------------------------------------------------------------
    def accept_change(self, change_id: str) -> ActionResult:
        return self._context.ledger.accept(change_id)

    def reject_change(self, change_id: str) -> ActionResult:
        return self._context.ledger.reject(change_id)

    def accept_all_changes(self) -> BulkResult:
        return self._context.ledger.accept_all()

    def reject_all_changes(self) -> BulkResult:
        return self._context.ledger.reject_all()

    def toggle_change_expanded(self, change_id: str) -> bool:
        return self._context.ledger.toggle_expanded(change_id)

    def changes_for_message(self, message_id: str) -> list[PendingChange]:
        return self._context.ledger.for_message(message_id)

    # ------------------------------------------------------------------
    # Sessions and model
    # ------------------------------------------------------------------
    def new_chat(self) -> ChatSession:
        self._reset_context()
        return self._sessions.new_chat()

    def switch_session(self, session_id: str) -> ChatSession:
        session = self._sessions.switch(session_id)
        self._reset_context()
        return session

    def delete_session(self, session_id: str) -> None:
        was_current = session_id == self._sessions.current_id
        self._sessions.delete(session_id)
        if was_current:
            self._reset_context()

    def change_model(self, provider: str, model: str) -> Optional[ChatMessage]:
        """Switch the configured model, noting the change in a running conversation."""

        self._config.provider = provider
        self._config.model = model
        return self._model_changed()

    def load_preset(self, name: str) -> Optional[ChatMessage]:
        """Switch to a saved preset. Unknown names raise ``NPConfigError``."""

        self._config.load_preset(name)
        return self._model_changed()

    def close(self) -> None:
        """Close the adapter created from configuration, if any."""

        adapter = self._adapter if self._owns_adapter else None
        if adapter is None:
            return
        self._adapter = None
        self._adapter_settings = None
        closer = getattr(adapter, "close", None)
        if callable(closer):
            closer()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_adapter(self) -> Any:
        if self._adapter is not None:
            return self._adapter
        try:
            self._adapter = self._config.create_provider()
        except NPConfigError as exc:
            if not self._config.fallback_preset:
                raise
            try:
                adapter, preset = self._config.create_fallback_provider()
            except NPConfigError as fallback_exc:
                logger.warning("Fallback preset is not usable either: %s", fallback_exc)
                raise exc
            logger.warning("Using fallback preset '%s': %s", preset.name, exc)
            self._adapter = adapter
            self._adapter_settings = preset.model_settings
        return self._adapter

    def _model_changed(self) -> Optional[ChatMessage]:
        if self._owns_adapter:
            self.close()
        if not self._sessions.messages:
            return None
        notice = (
            f"Model changed to {self._config.provider} / {self._config.model}. "
            "This conversation will continue with the new model."
        )
        return self._sessions.append(ChatMessage.assistant(notice))

    def _new_context(self) -> SessionContext:
        return SessionContext(
            ledger=PendingChangeLedger(self._executor),
            gate=ConfirmationGate(self._config.affirmations),
        )

    def _reset_context(self) -> None:
        previous = self._context
        orphaned = [change.id for change in previous.ledger.pending()]
        if orphaned:
            logger.warning(
                "Leaving %d pending changes untracked in their documents: %s",
                len(orphaned),
                ", ".join(orphaned),
            )
        self._context = self._new_context()
        self._context.active_document = previous.active_document
        self._context.editor = previous.editor
