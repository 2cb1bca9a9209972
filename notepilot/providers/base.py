"""Base model adapter abstractions shared by notepilot providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator, Mapping

if TYPE_CHECKING:  # pragma: no cover - typing only
    import httpx

from notepilot.config import ModelSettings
from notepilot.errors import NPProviderError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderSettings:
    """Connection settings for a provider instance."""

    base_url: str
    api_key: str
    model: str
    timeout: float = 30.0
    extra_headers: Mapping[str, str] | None = None
    user_agent: str | None = None
    transport: "httpx.BaseTransport" | None = None


class BaseProvider(ABC):
    """Model adapter exposing one-shot and incremental completion calls.

    The prompt is a single string; :meth:`build_messages` turns it into the
    chat message list sent upstream, keeping only the last
    ``context_length`` characters.
    """

    supports_streaming: bool = True

    def __init__(self, settings: ProviderSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> ProviderSettings:
        """Return the provider settings."""

        return self._settings

    @abstractmethod
    def complete(self, prompt: str, settings: ModelSettings | None = None) -> str:
        """Return the full completion for ``prompt``."""

    @abstractmethod
    def iterate(self, prompt: str, settings: ModelSettings | None = None) -> Iterator[str]:
        """Yield completion text fragments for ``prompt`` as they arrive."""

    def list_models(self) -> list[dict[str, Any]]:
        """Return the provider's model catalogue."""

        raise NPProviderError("Model listing is not supported for this provider.")

    def close(self) -> None:
        """Release any resources held by the provider instance."""

    def __enter__(self) -> "BaseProvider":  # pragma: no cover - context mgr sugar
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - context mgr sugar
        self.close()

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------
    @staticmethod
    def build_messages(prompt: str, settings: ModelSettings) -> list[dict[str, str]]:
        limit = settings.context_length
        text = prompt[-limit:] if limit and len(prompt) > limit else prompt
        return [{"role": "user", "content": text}]

    def build_options(self, settings: ModelSettings) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if settings.max_tokens is not None:
            options["max_tokens"] = settings.max_tokens
        if settings.temperature is not None:
            options["temperature"] = settings.temperature
        return options
