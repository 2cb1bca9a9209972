"""Model adapter that sends chat completions through the ``openai`` client."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping, Sequence

import httpx
from openai import APIStatusError, OpenAIError
from openai import OpenAI as _OpenAIClient

from notepilot.config import ModelSettings
from notepilot.errors import NPProviderError

from .base import BaseProvider, ProviderSettings

logger = logging.getLogger(__name__)


class OpenAISDKProvider(BaseProvider):
    """Adapter running completions and streams through ``openai.OpenAI``.

    SDK errors are normalised to :class:`NPProviderError`, keeping the HTTP
    status of ``APIStatusError`` so stream failures can be classified.
    """

    def __init__(self, settings: ProviderSettings) -> None:
        super().__init__(settings)
        self._client: Any | None = None
        self._http_client: httpx.Client | None = None

    # ------------------------------------------------------------------
    # BaseProvider overrides
    # ------------------------------------------------------------------
    def complete(self, prompt: str, settings: ModelSettings | None = None) -> str:
        client = self._ensure_client()
        try:
            response = client.chat.completions.create(
                stream=False,
                **self._build_payload(prompt, settings or ModelSettings()),
            )
        except Exception as exc:  # noqa: BLE001 - normalise to provider error
            raise _wrap_exception(exc, endpoint="chat.completions") from exc
        return _collapse_chat_output(response)

    def iterate(self, prompt: str, settings: ModelSettings | None = None) -> Iterator[str]:
        client = self._ensure_client()
        try:
            stream = client.chat.completions.create(
                stream=True,
                **self._build_payload(prompt, settings or ModelSettings()),
            )
        except Exception as exc:  # noqa: BLE001 - normalise to provider error
            raise _wrap_exception(exc, endpoint="chat.completions") from exc

        try:
            yield from _yield_chat_text(stream)
        except OpenAIError as exc:
            raise _wrap_exception(exc, endpoint="chat.completions") from exc
        finally:
            closer = getattr(stream, "close", None)
            if callable(closer):
                closer()

    def list_models(self) -> list[dict[str, Any]]:
        client = self._ensure_client()
        try:
            response = client.models.list()
        except Exception as exc:  # noqa: BLE001 - normalise to provider error
            raise _wrap_exception(exc, endpoint="models.list") from exc

        models: list[dict[str, Any]] = []
        for entry in getattr(response, "data", None) or []:
            payload = _safe_as_dict(entry)
            if payload.get("id"):
                models.append({"id": str(payload["id"]), "owned_by": payload.get("owned_by")})
        return models

    def close(self) -> None:
        client = self._client
        if client is not None:
            closer = getattr(client, "close", None)
            if callable(closer):
                closer()
            self._client = None
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    # ------------------------------------------------------------------
    # OpenAI client helpers
    # ------------------------------------------------------------------
    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client

        client_kwargs: dict[str, Any] = {
            "api_key": self.settings.api_key,
            "base_url": self.settings.base_url,
        }
        if self.settings.timeout:
            client_kwargs["timeout"] = float(self.settings.timeout)

        headers: dict[str, str] = {}
        if self.settings.user_agent:
            headers["User-Agent"] = self.settings.user_agent
        if self.settings.extra_headers:
            headers.update(self.settings.extra_headers)
        if headers:
            client_kwargs["default_headers"] = headers

        if self.settings.transport is not None:
            self._http_client = httpx.Client(
                transport=self.settings.transport,
                timeout=self.settings.timeout,
            )
            client_kwargs["http_client"] = self._http_client

        self._client = _OpenAIClient(**client_kwargs)
        return self._client

    def _build_payload(self, prompt: str, settings: ModelSettings) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": self.build_messages(prompt, settings),
        }
        payload.update(self.build_options(settings))
        return payload


def _wrap_exception(exc: Exception, *, endpoint: str) -> NPProviderError:
    status_code: int | None = None
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, APIStatusError):
        status_code = getattr(exc, "status_code", None)
        message = getattr(exc, "message", None) or message
    elif isinstance(exc, OpenAIError):
        message = getattr(exc, "message", None) or message
    elif isinstance(exc, NPProviderError):
        return exc
    logger.debug("OpenAI SDK call to %s failed: %s", endpoint, message)
    return NPProviderError(message, status_code=status_code)


def _safe_as_dict(data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    converter = getattr(data, "model_dump", None)
    if callable(converter):
        return converter()
    if hasattr(data, "__dict__"):
        return {key: value for key, value in vars(data).items() if not key.startswith("_")}
    return {}


def _flatten_text_payload(payload: Any) -> Iterator[str]:
    if payload is None:
        return
    if isinstance(payload, str):
        yield payload
        return
    if isinstance(payload, Mapping):
        if payload.get("type") == "text" and isinstance(payload.get("text"), str):
            yield payload["text"]
        elif "content" in payload:
            yield from _flatten_text_payload(payload.get("content"))
        return
    if isinstance(payload, Sequence):
        for item in payload:
            yield from _flatten_text_payload(item)


def _yield_chat_text(events: Iterable[Any]) -> Iterator[str]:
    for chunk in events:
        choices = _safe_as_dict(chunk).get("choices")
        if not isinstance(choices, Sequence):
            continue
        for choice in choices:
            delta = _safe_as_dict(choice).get("delta")
            if delta is None:
                continue
            for text in _flatten_text_payload(_safe_as_dict(delta).get("content")):
                if text:
                    yield text


def _collapse_chat_output(response: Any) -> str:
    if response is None:
        return ""
    choices = _safe_as_dict(response).get("choices")
    if not isinstance(choices, Sequence):
        return ""
    combined: list[str] = []
    for choice in choices:
        message = _safe_as_dict(choice).get("message")
        if message is None:
            continue
        combined.extend(_flatten_text_payload(_safe_as_dict(message).get("content")))
    return "".join(combined)
