"""Model adapters for the notepilot chat pipeline."""

from .base import BaseProvider, ProviderSettings
from .factory import available_providers, create_provider, provider_from_config
from .openai_compatible import OpenAICompatibleProvider
from .openai_sdk import OpenAISDKProvider

__all__ = [
    "ProviderSettings",
    "BaseProvider",
    "OpenAICompatibleProvider",
    "OpenAISDKProvider",
    "available_providers",
    "create_provider",
    "provider_from_config",
]
