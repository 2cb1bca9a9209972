"""OpenAI API compatible provider speaking chat completions over httpx."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

import httpx

from notepilot.config import ModelSettings
from notepilot.errors import NPProviderError

from .base import BaseProvider, ProviderSettings

logger = logging.getLogger(__name__)


_CHAT_COMPLETIONS_ENDPOINT = "chat/completions"
_MODELS_COLLECTION_ENDPOINT = "models"

_LISTING_TIMEOUT = httpx.Timeout(10.0)
_USER_AGENT = "notepilot/1.0"
_SSE_DONE = "[DONE]"


class OpenAICompatibleProvider(BaseProvider):
    """Provider implementation for OpenAI compatible HTTP endpoints.

    Endpoint paths are resolved relative to the configured base URL, which is
    expected to include the API version segment (``https://host/v1``).
    """

    def __init__(self, settings: ProviderSettings) -> None:
        super().__init__(settings)
        self._client: httpx.Client | None = None

    # ------------------------------------------------------------------
    # BaseProvider overrides
    # ------------------------------------------------------------------
    def complete(self, prompt: str, settings: ModelSettings | None = None) -> str:
        payload = self._build_chat_payload(prompt, settings or ModelSettings(), stream=False)
        client = self._ensure_client()
        try:
            response = client.post(_CHAT_COMPLETIONS_ENDPOINT, json=payload)
        except httpx.HTTPError as exc:
            raise NPProviderError(f"Request to {_CHAT_COMPLETIONS_ENDPOINT} failed: {exc}") from exc

        if response.status_code >= 400:
            raise NPProviderError(
                self._build_error_message(_CHAT_COMPLETIONS_ENDPOINT, response),
                status_code=response.status_code,
            )
        return _collapse_chat_output(self._safe_json(response))

    def iterate(self, prompt: str, settings: ModelSettings | None = None) -> Iterator[str]:
        payload = self._build_chat_payload(prompt, settings or ModelSettings(), stream=True)
        client = self._ensure_client()
        try:
            with client.stream("POST", _CHAT_COMPLETIONS_ENDPOINT, json=payload) as response:
                if response.status_code >= 400:
                    response.read()
                    raise NPProviderError(
                        self._build_error_message(_CHAT_COMPLETIONS_ENDPOINT, response),
                        status_code=response.status_code,
                    )
                yield from _iter_sse_text(response.iter_lines())
        except httpx.HTTPError as exc:
            raise NPProviderError(f"Streaming from {_CHAT_COMPLETIONS_ENDPOINT} failed: {exc}") from exc

    def list_models(self) -> list[dict[str, Any]]:
        """Return the model catalogue as ``{"id", "owned_by"}`` entries."""

        client = self._ensure_client()
        try:
            response = client.get(_MODELS_COLLECTION_ENDPOINT, timeout=_LISTING_TIMEOUT)
        except httpx.HTTPError as exc:
            raise NPProviderError(f"Failed to fetch available models: {exc}") from exc

        if response.status_code >= 400:
            raise NPProviderError(
                self._build_error_message(_MODELS_COLLECTION_ENDPOINT, response),
                status_code=response.status_code,
            )
        payload = self._safe_json(response)
        items = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise NPProviderError("Model listing payload did not include a data array.")
        return [
            {"id": str(entry["id"]), "owned_by": entry.get("owned_by")}
            for entry in items
            if isinstance(entry, dict) and entry.get("id")
        ]

    def close(self) -> None:
        client = self._client
        if client is not None:
            client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client

        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.settings.user_agent or _USER_AGENT,
        }
        if self.settings.extra_headers:
            headers.update(self.settings.extra_headers)

        base_url = httpx.URL(self.settings.base_url)
        path = base_url.path if base_url.path.endswith("/") else f"{base_url.path}/"
        self._client = httpx.Client(
            base_url=base_url.copy_with(path=path, query=None, fragment=None),
            headers=headers,
            timeout=self.settings.timeout,
            transport=self.settings.transport,
        )
        logger.debug("Opened HTTP client for '%s'", self.settings.base_url)
        return self._client

    def _build_chat_payload(self, prompt: str, settings: ModelSettings, *, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": self.build_messages(prompt, settings),
        }
        payload.update(self.build_options(settings))
        if stream:
            payload["stream"] = True
        return payload

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError:
            return response.text

    @staticmethod
    def _build_error_message(endpoint: str, response: httpx.Response) -> str:
        payload = OpenAICompatibleProvider._safe_json(response)
        if isinstance(payload, dict) and "error" in payload:
            detail = payload["error"]
            if isinstance(detail, dict) and "message" in detail:
                return f"{endpoint} {response.status_code}: {detail['message']}"
            return f"{endpoint} {response.status_code}: {detail}"
        return f"{endpoint} {response.status_code}"


def _collapse_chat_output(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    combined: list[str] = []
    for choice in payload.get("choices") or []:
        message = choice.get("message") if isinstance(choice, dict) else None
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            combined.append(message["content"])
    return "".join(combined)


def _iter_sse_text(lines: Iterator[str]) -> Iterator[str]:
    """Yield content deltas from server-sent chat completion events."""

    for line in lines:
        line = line.strip()
        if not line or not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data == _SSE_DONE:
            break
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed stream event: %s", data[:80])
            continue
        if isinstance(event, dict) and "error" in event:
            detail = event["error"]
            message = detail.get("message") if isinstance(detail, dict) else str(detail)
            raise NPProviderError(message or "Provider reported a streaming error.")
        if not isinstance(event, dict):
            continue
        for choice in event.get("choices") or []:
            delta = choice.get("delta") if isinstance(choice, dict) else None
            if isinstance(delta, dict) and isinstance(delta.get("content"), str) and delta["content"]:
                yield delta["content"]
