"""Configuration helpers for the notepilot chat pipeline."""

from __future__ import annotations

import logging
import os
from configparser import ConfigParser
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from notepilot.errors import NPConfigError, NPProviderError

if TYPE_CHECKING:  # pragma: no cover - typing only
    import httpx
    from notepilot.providers.base import BaseProvider, ProviderSettings

logger = logging.getLogger(__name__)


_DEF_BASE_URL = "https://api.openai.com/v1"
_GROQ_BASE_URL = "https://api.groq.com/openai/v1"

_ENV_API_KEYS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "openai-sdk": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
}

_PROVIDER_SYNONYMS: dict[str, str] = {
    "openai": "openai",
    "openai-compatible": "openai",
    "openai_compatible": "openai",
    "openai-sdk": "openai-sdk",
    "openai_sdk": "openai-sdk",
    "groq": "groq",
}


class ModelSettings(BaseModel):
    """Per-model generation settings passed through to the provider."""

    context_length: int = Field(default=4000, gt=0)
    max_tokens: Optional[int] = Field(default=2048, gt=0)
    temperature: Optional[float] = Field(default=0.7, ge=0.0, le=2.0)

    @classmethod
    def parse_blob(cls, raw: str | None) -> "ModelSettings":
        """Parse a JSON settings blob, falling back to defaults when invalid."""

        if not raw or not raw.strip():
            return cls()
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            logger.warning("Invalid model settings, using defaults")
            return cls()

    def to_blob(self) -> str:
        return self.model_dump_json()


class ModelPreset(BaseModel):
    """Named provider and model combination that can be loaded in one step."""

    name: str = Field(min_length=1)
    provider: str
    model: str
    base_url: Optional[str] = None
    model_settings: ModelSettings = Field(default_factory=ModelSettings)


_PRESET_LIST = TypeAdapter(list[ModelPreset])


def _parse_presets(raw: str | None) -> list[ModelPreset]:
    if not raw or not raw.strip():
        return []
    try:
        return _PRESET_LIST.validate_json(raw)
    except ValidationError:
        logger.warning("Invalid model presets, ignoring them")
        return []


def _default_base_url(provider: str) -> str:
    return _GROQ_BASE_URL if provider == "groq" else _DEF_BASE_URL


class ChatConfig:
    """Encapsulates persistent configuration for the chat pipeline."""

    __slots__ = (
        "provider",
        "model",
        "base_url",
        "api_key",
        "timeout",
        "streaming",
        "default_extension",
        "fuzzy_threshold",
        "affirmations",
        "model_settings",
        "presets",
        "fallback_preset",
        "_api_key_from_env",
    )

    SECTION = "Chat"

    def __init__(self) -> None:
        self.provider: str = "openai"
        self.model: str = "gpt-4o-mini"
        self.base_url: str = _DEF_BASE_URL
        self.api_key: str = ""
        self.timeout: int = 30
        self.streaming: bool = True
        self.default_extension: str = ".md"
        self.fuzzy_threshold: float = 0.5
        self.affirmations: list[str] = ["yes", "confirm"]
        self.model_settings: ModelSettings = ModelSettings()
        self.presets: list[ModelPreset] = []
        self.fallback_preset: Optional[str] = None
        self._api_key_from_env: bool = False

    @property
    def api_key_from_env(self) -> bool:
        """Return ``True`` when the API key originates from an env var."""

        return self._api_key_from_env

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def load_from_config(self, conf: ConfigParser) -> None:
        """Populate the chat settings from a config parser."""

        reader = _ReaderFacade(conf)
        section = self.SECTION

        self.provider = self._normalise_provider_id(reader.get_str(section, "provider", self.provider))
        self.model = reader.get_str(section, "model", self.model)
        default_url = _GROQ_BASE_URL if self.provider == "groq" else self.base_url
        self.base_url = reader.get_str(section, "base_url", default_url)
        self.timeout = reader.get_int(section, "timeout", self.timeout)
        self.streaming = reader.get_bool(section, "streaming", self.streaming)
        self.default_extension = self._normalise_extension(
            reader.get_str(section, "default_extension", self.default_extension)
        )
        self.fuzzy_threshold = reader.get_float(section, "fuzzy_threshold", self.fuzzy_threshold)
        self.affirmations = reader.get_str_list(section, "affirmations", self.affirmations)
        self.model_settings = ModelSettings.parse_blob(reader.get_str(section, "model_settings", ""))
        self.presets = _parse_presets(reader.get_str(section, "presets", ""))
        fallback = reader.get_str(section, "fallback_preset", "").strip()
        if fallback and self.get_preset(fallback) is None:
            logger.warning("Fallback preset '%s' does not exist, ignoring it", fallback)
            fallback = ""
        self.fallback_preset = fallback or None

        stored_key = reader.get_str(section, "api_key", "")
        env_name = _ENV_API_KEYS.get(self.provider, "OPENAI_API_KEY")
        env_key = os.environ.get(env_name, "").strip()

        if env_key:
            self.api_key = env_key
            self._api_key_from_env = True
            if stored_key:
                logger.debug("Ignoring stored API key due to %s override", env_name)
        else:
            self.api_key = stored_key
            self._api_key_from_env = False

    def save_to_config(self, conf: ConfigParser) -> None:
        """Persist the current chat settings into a config parser."""

        section = self.SECTION
        if not conf.has_section(section):
            conf[section] = {}

        conf[section]["provider"] = self._normalise_provider_id(self.provider)
        conf[section]["model"] = str(self.model)
        conf[section]["base_url"] = str(self.base_url)
        conf[section]["timeout"] = str(self.timeout)
        conf[section]["streaming"] = str(self.streaming)
        conf[section]["default_extension"] = str(self.default_extension)
        conf[section]["fuzzy_threshold"] = str(self.fuzzy_threshold)
        conf[section]["affirmations"] = ", ".join(self.affirmations)
        conf[section]["model_settings"] = self.model_settings.to_blob()
        conf[section]["presets"] = _PRESET_LIST.dump_json(self.presets).decode("utf-8")
        conf[section]["fallback_preset"] = self.fallback_preset or ""

        if self._api_key_from_env:
            if conf.has_option(section, "api_key"):
                conf.remove_option(section, "api_key")
        else:
            conf[section]["api_key"] = str(self.api_key)

    def build_provider_settings(
        self,
        *,
        transport: "httpx.BaseTransport" | None = None,
    ) -> "ProviderSettings":
        """Translate configuration values into :class:`ProviderSettings`."""

        return self._provider_settings(self.base_url, self.api_key, self.model, transport)

    def create_provider(
        self,
        *,
        transport: "httpx.BaseTransport" | None = None,
    ) -> "BaseProvider":
        """Instantiate the configured provider implementation."""

        from notepilot.providers.factory import provider_from_config

        try:
            return provider_from_config(self, transport=transport)
        except NPProviderError as exc:
            raise NPConfigError(str(exc) or exc.__class__.__name__) from exc

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------
    def get_preset(self, name: Optional[str]) -> Optional[ModelPreset]:
        for preset in self.presets:
            if preset.name == name:
                return preset
        return None

    def save_preset(self, name: str) -> ModelPreset:
        """Store the current provider, model and settings under ``name``.

        An existing preset with the same name is overwritten in place.
        """

        cleaned = (name or "").strip()
        if not cleaned:
            raise NPConfigError("Preset name must not be empty.")

        preset = ModelPreset(
            name=cleaned,
            provider=self._normalise_provider_id(self.provider),
            model=self.model,
            base_url=self.base_url,
            model_settings=self.model_settings.model_copy(),
        )
        for index, existing in enumerate(self.presets):
            if existing.name == cleaned:
                self.presets[index] = preset
                break
        else:
            self.presets.append(preset)
        logger.debug("Saved preset '%s' for %s / %s", cleaned, preset.provider, preset.model)
        return preset

    def load_preset(self, name: str) -> ModelPreset:
        """Make the named preset the current provider and model."""

        preset = self.get_preset(name)
        if preset is None:
            raise NPConfigError(f"Unknown preset '{name}'.")

        self.provider = self._normalise_provider_id(preset.provider)
        self.model = preset.model
        self.base_url = preset.base_url or _default_base_url(self.provider)
        self.model_settings = preset.model_settings.model_copy()
        return preset

    def delete_preset(self, name: str) -> bool:
        remaining = [preset for preset in self.presets if preset.name != name]
        if len(remaining) == len(self.presets):
            return False
        self.presets = remaining
        if self.fallback_preset == name:
            self.fallback_preset = None
        return True

    def set_fallback_preset(self, name: Optional[str]) -> None:
        """Select the preset used when the current model cannot be set up."""

        if name and self.get_preset(name) is None:
            raise NPConfigError(f"Unknown preset '{name}'.")
        self.fallback_preset = name or None

    def create_fallback_provider(
        self,
        *,
        transport: "httpx.BaseTransport" | None = None,
    ) -> tuple["BaseProvider", ModelPreset]:
        """Instantiate the fallback preset's provider without changing the config."""

        from notepilot.providers.factory import create_provider

        preset = self.get_preset(self.fallback_preset)
        if preset is None:
            raise NPConfigError("No fallback preset is configured.")

        provider_id = self._normalise_provider_id(preset.provider)
        env_key = os.environ.get(_ENV_API_KEYS.get(provider_id, "OPENAI_API_KEY"), "").strip()
        settings = self._provider_settings(
            preset.base_url or _default_base_url(provider_id),
            env_key or self.api_key,
            preset.model,
            transport,
        )
        try:
            return create_provider(provider_id, settings), preset
        except NPProviderError as exc:
            raise NPConfigError(str(exc) or exc.__class__.__name__) from exc

    def _provider_settings(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        model: Optional[str],
        transport: "httpx.BaseTransport" | None,
    ) -> "ProviderSettings":
        from notepilot.providers.base import ProviderSettings  # Local import to avoid cycles

        base_url = (base_url or "").strip()
        if not base_url:
            raise NPConfigError("Provider base URL is not configured.")

        api_key = (api_key or "").strip()
        if not api_key:
            raise NPConfigError("API key is not configured.")

        model = (model or "").strip()
        if not model:
            raise NPConfigError("Model name must be configured for the provider.")

        return ProviderSettings(
            base_url=base_url,
            api_key=api_key,
            model=model,
            timeout=float(self.timeout),
            transport=transport,
        )

    def _normalise_provider_id(self, provider: str) -> str:
        key = (provider or "openai").strip().lower()
        return _PROVIDER_SYNONYMS.get(key, key)

    @staticmethod
    def _normalise_extension(value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            return ".md"
        return cleaned if cleaned.startswith(".") else f".{cleaned}"


class _ReaderFacade:
    """Typed accessors over :class:`ConfigParser` with logged fallbacks."""

    __slots__ = ("_conf",)

    def __init__(self, conf: ConfigParser) -> None:
        self._conf = conf

    def get_str(self, section: str, option: str, default: str) -> str:
        return self._conf.get(section, option, fallback=default)

    def get_bool(self, section: str, option: str, default: bool) -> bool:
        try:
            return self._conf.getboolean(section, option, fallback=default)
        except ValueError:
            logger.warning("Invalid boolean for '%s:%s' in chat config", section, option)
            return default

    def get_int(self, section: str, option: str, default: int) -> int:
        try:
            return self._conf.getint(section, option, fallback=default)
        except ValueError:
            logger.warning("Invalid integer for '%s:%s' in chat config", section, option)
            return default

    def get_float(self, section: str, option: str, default: float) -> float:
        try:
            return self._conf.getfloat(section, option, fallback=default)
        except ValueError:
            logger.warning("Invalid float for '%s:%s' in chat config", section, option)
            return default

    def get_str_list(self, section: str, option: str, default: list[str]) -> list[str]:
        if self._conf.has_option(section, option):
            raw = self._conf.get(section, option, fallback="")
            items = [item.strip().lower() for item in raw.split(",") if item.strip()]
            return items or default.copy()
        return default.copy()
