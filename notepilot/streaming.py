"""Accumulate model output into a final reply with typed terminal outcomes."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Union

__all__ = [
    "AUTH_ERROR_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "CancellationToken",
    "StreamAccumulator",
    "StreamChunk",
    "StreamOutcome",
    "StreamOutcomeKind",
    "classify_failure",
]

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGE = (
    "API key error: The API key appears to be invalid or missing. "
    "Please check your API key in the settings."
)
RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded: The service is currently rate-limited. "
    "Please try again later or switch to a different model."
)
TRANSPORT_ERROR_PREFIX = "Error: Unable to get a response from the model."
EMPTY_RESPONSE = "No response"

_EXHAUSTED = object()


class CancellationToken:
    """Cancellation flag shared between a caller and a running stream."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal the stream to stop at the next chunk boundary."""

        self._event.set()

    def cancelled(self) -> bool:
        return self._event.is_set()


class StreamOutcomeKind(str, Enum):
    COMPLETED = "completed"
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamChunk:
    """One incremental fragment plus the buffer accumulated so far."""

    delta: str
    buffer: str


@dataclass(frozen=True)
class StreamOutcome:
    """Terminal value of a stream.

    ``text`` is the reply to show: the accumulated response for completed
    streams, or the user-facing error message for failures. ``truncated`` is
    set when a stream ended early but kept its partial text.
    """

    kind: StreamOutcomeKind
    text: str
    error: Optional[str] = None
    truncated: bool = False

    @property
    def completed(self) -> bool:
        return self.kind is StreamOutcomeKind.COMPLETED


StreamEvent = Union[StreamChunk, StreamOutcome]


def classify_failure(exc: BaseException) -> StreamOutcomeKind:
    """Map an adapter failure onto an outcome kind.

    A known HTTP status decides alone; the message text is only consulted for
    failures that carry no status.
    """

    status = getattr(exc, "status_code", None)
    if status is not None:
        if status == 401:
            return StreamOutcomeKind.AUTH_ERROR
        if status == 429:
            return StreamOutcomeKind.RATE_LIMITED
        return StreamOutcomeKind.TRANSPORT_ERROR

    message = str(exc).lower()
    if "401" in message or "invalid_api_key" in message:
        return StreamOutcomeKind.AUTH_ERROR
    if "429" in message or "rate_limit" in message:
        return StreamOutcomeKind.RATE_LIMITED
    return StreamOutcomeKind.TRANSPORT_ERROR


def _failure_outcome(exc: BaseException, buffer: str) -> StreamOutcome:
    kind = classify_failure(exc)
    error = str(exc) or exc.__class__.__name__
    if kind is StreamOutcomeKind.AUTH_ERROR:
        return StreamOutcome(kind, AUTH_ERROR_MESSAGE, error=error, truncated=bool(buffer))
    if kind is StreamOutcomeKind.RATE_LIMITED:
        return StreamOutcome(kind, RATE_LIMIT_MESSAGE, error=error, truncated=bool(buffer))
    if buffer:
        return StreamOutcome(StreamOutcomeKind.COMPLETED, buffer, error=error, truncated=True)
    return StreamOutcome(kind, f"{TRANSPORT_ERROR_PREFIX} {error}", error=error)


class StreamAccumulator:
    """Drive a model adapter and fold its output into one response.

    Adapters expose ``complete(prompt, settings)`` and optionally
    ``iterate(prompt, settings)``. Either may be synchronous or asynchronous;
    synchronous calls and each pull from a synchronous iterator run in a
    worker thread so the event loop keeps running between chunks.
    Failures never escape :meth:`stream`; they arrive as a terminal
    :class:`StreamOutcome`.
    """

    def __init__(self, adapter: Any, *, prefer_streaming: bool = True) -> None:
        self._adapter = adapter
        self._prefer_streaming = prefer_streaming

    @property
    def streams(self) -> bool:
        iterate = getattr(self._adapter, "iterate", None)
        return (
            self._prefer_streaming
            and callable(iterate)
            and bool(getattr(self._adapter, "supports_streaming", True))
        )

    async def stream(
        self,
        prompt: str,
        settings: Any = None,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield :class:`StreamChunk` values followed by one :class:`StreamOutcome`."""

        if not self.streams:
            yield await self._complete_once(prompt, settings, token)
            return

        parts: list[str] = []
        source: Any = None
        try:
            iterate = self._adapter.iterate
            if inspect.isasyncgenfunction(iterate):
                source = iterate(prompt, settings)
            else:
                source = await asyncio.to_thread(iterate, prompt, settings)
            if hasattr(source, "__aiter__"):
                async for chunk in source:
                    if token is not None and token.cancelled():
                        break
                    if chunk:
                        parts.append(chunk)
                        yield StreamChunk(chunk, "".join(parts))
            else:
                iterator = iter(source)
                while token is None or not token.cancelled():
                    chunk = await asyncio.to_thread(next, iterator, _EXHAUSTED)
                    if chunk is _EXHAUSTED:
                        break
                    if token is not None and token.cancelled():
                        break
                    if chunk:
                        parts.append(chunk)
                        yield StreamChunk(chunk, "".join(parts))
        except Exception as exc:  # noqa: BLE001 - adapter failures become outcomes
            buffer = "".join(parts)
            logger.debug("Stream failed after %d characters: %s", len(buffer), exc)
            yield _failure_outcome(exc, buffer)
            return
        finally:
            await _close_source(source)

        buffer = "".join(parts)
        if token is not None and token.cancelled():
            logger.debug("Stream cancelled after %d characters", len(buffer))
            yield StreamOutcome(StreamOutcomeKind.CANCELLED, buffer, truncated=True)
            return

        logger.debug("Stream finished with %d characters", len(buffer))
        yield StreamOutcome(StreamOutcomeKind.COMPLETED, buffer)

    async def run(
        self,
        prompt: str,
        settings: Any = None,
        *,
        on_partial: Optional[Callable[[str], None]] = None,
        token: Optional[CancellationToken] = None,
    ) -> StreamOutcome:
        """Consume :meth:`stream`, reporting the growing buffer to ``on_partial``."""

        outcome: Optional[StreamOutcome] = None
        async for event in self.stream(prompt, settings, token):
            if isinstance(event, StreamChunk):
                if on_partial is not None:
                    on_partial(event.buffer)
            else:
                outcome = event
        if outcome is None:  # pragma: no cover - stream always ends with an outcome
            outcome = StreamOutcome(StreamOutcomeKind.CANCELLED, "")
        return outcome

    async def _complete_once(
        self,
        prompt: str,
        settings: Any,
        token: Optional[CancellationToken],
    ) -> StreamOutcome:
        try:
            complete = self._adapter.complete
            if inspect.iscoroutinefunction(complete):
                result = await complete(prompt, settings)
            else:
                result = await asyncio.to_thread(complete, prompt, settings)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:  # noqa: BLE001 - adapter failures become outcomes
            logger.debug("Completion failed: %s", exc)
            return _failure_outcome(exc, "")
        if token is not None and token.cancelled():
            return StreamOutcome(StreamOutcomeKind.CANCELLED, "", truncated=True)
        text = str(result) if result else ""
        return StreamOutcome(StreamOutcomeKind.COMPLETED, text or EMPTY_RESPONSE)


async def _close_source(source: Any) -> None:
    if source is None:
        return
    try:
        async_closer = getattr(source, "aclose", None)
        if async_closer is not None:
            await async_closer()
            return
        closer = getattr(source, "close", None)
        if closer is not None:
            await asyncio.to_thread(closer)
    except Exception as exc:  # noqa: BLE001 - closing is best effort
        logger.debug("Ignoring error while closing stream: %s", exc)
