"""Provider factory helpers for notepilot."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Mapping

from notepilot.errors import NPConfigError

from .base import BaseProvider, ProviderSettings
from .openai_compatible import OpenAICompatibleProvider
from .openai_sdk import OpenAISDKProvider

if TYPE_CHECKING:  # pragma: no cover - typing only
    import httpx
    from notepilot.config import ChatConfig

logger = logging.getLogger(__name__)


_PROVIDER_REGISTRY: Mapping[str, Callable[[ProviderSettings], BaseProvider]] = {
    "openai": OpenAICompatibleProvider,
    "openai-compatible": OpenAICompatibleProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "groq": OpenAICompatibleProvider,
    "openai-sdk": OpenAISDKProvider,
    "openai_sdk": OpenAISDKProvider,
}


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def create_provider(provider_id: str, settings: ProviderSettings) -> BaseProvider:
    """Instantiate a provider by identifier using the registered factories."""

    normalised = (provider_id or "openai").strip().lower()
    try:
        factory = _PROVIDER_REGISTRY[normalised]
    except KeyError as exc:
        raise NPConfigError(f"Unsupported provider '{provider_id}'.") from exc

    provider = factory(settings)
    logger.debug("Created provider '%s' with base URL '%s'", normalised, settings.base_url)
    return provider


def provider_from_config(
    config: "ChatConfig",
    *,
    transport: "httpx.BaseTransport" | None = None,
) -> BaseProvider:
    """Create a provider instance based on a :class:`ChatConfig` object."""

    return create_provider(config.provider, config.build_provider_settings(transport=transport))
