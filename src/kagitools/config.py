"""Configuration loading and per-call tool config resolution.

Settings are loaded in priority order (highest first):
  1. Environment variables  (KAGITOOLS__TOOLS__SUMMARIZER__ENGINE=agnes)
  2. kagitools.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. Provider fields default to ``None`` so that
"not configured" stays observable: every tool setting is resolved per call by
a small resolver below, in three explicit tiers (caller value where one
applies, configured value, built-in default). The API key has its own middle
tier, the shared ``KAGI_API_KEY`` environment variable.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from kagitools.keys import canonical_choice, canonical_language

API_KEY_ENV_VAR = "KAGI_API_KEY"

DEFAULT_CACHE_TTL_MINUTES = 15
# Longer TTLs are clamped; roughly one hundred years
MAX_CACHE_TTL_MINUTES = 100 * 365 * 24 * 60
FASTGPT_DEFAULT_TIMEOUT_SECONDS = 30.0
SUMMARIZER_DEFAULT_TIMEOUT_SECONDS = 60.0

SUMMARIZER_ENGINES: tuple[str, ...] = ("cecil", "agnes", "muriel")
SUMMARY_TYPES: tuple[str, ...] = ("summary", "takeaway")
# ISO language codes accepted by the Kagi Summarizer
TARGET_LANGUAGES: tuple[str, ...] = (
    "BG", "CS", "DA", "DE", "EL", "EN", "ES", "ET", "FI", "FR",
    "HU", "ID", "IT", "JA", "KO", "LT", "LV", "NB", "NL", "PL",
    "PT", "RO", "RU", "SK", "SL", "SV", "TR", "UK", "ZH", "ZH-HANT",
)  # fmt: skip
DEFAULT_ENGINE = "cecil"
DEFAULT_SUMMARY_TYPE = "summary"


def _find_config_file() -> str | None:
    """Return the path of the first kagitools.yaml found, or None."""
    candidates = [
        Path("kagitools.yaml"),
        Path(platformdirs.user_config_dir("kagitools")) / "kagitools.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class FastGPTSettings(BaseModel):
    enabled: bool | None = None
    api_key: str | None = None
    timeout_seconds: float | None = None
    cache: bool | None = None
    cache_ttl_minutes: float | None = None


class SummarizerSettings(BaseModel):
    enabled: bool | None = None
    api_key: str | None = None
    timeout_seconds: float | None = None
    cache: bool | None = None
    cache_ttl_minutes: float | None = None
    engine: str | None = None
    summary_type: str | None = None
    target_language: str | None = None


class ToolsSettings(BaseModel):
    fastgpt: FastGPTSettings = FastGPTSettings()
    summarizer: SummarizerSettings = SummarizerSettings()


class WebhookSettings(BaseModel):
    enabled: bool = True
    path: str = "/webhooks/postmark"
    # When set, formatted email summaries are POSTed here as {"message": ...}
    forward_url: str | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: KAGITOOLS__SERVER__PORT=9090
        env_prefix="KAGITOOLS__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    # Sandboxed runtimes get the tools even without a credential; calls then
    # report missing_kagi_api_key instead of the tool being hidden.
    sandboxed: bool = False
    server: ServerSettings = ServerSettings()
    logging: LoggingSettings = LoggingSettings()
    tools: ToolsSettings = ToolsSettings()
    webhook: WebhookSettings = WebhookSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

ProviderSettings = FastGPTSettings | SummarizerSettings


def resolve_enabled(config: ProviderSettings) -> bool:
    if config.enabled is not None:
        return config.enabled
    return True


def resolve_api_key(
    config: ProviderSettings, environ: Mapping[str, str] | None = None
) -> str | None:
    """Configured key, else ``KAGI_API_KEY`` from the environment, else None."""
    from_config = (config.api_key or "").strip()
    if from_config:
        return from_config
    env = os.environ if environ is None else environ
    from_env = env.get(API_KEY_ENV_VAR, "").strip()
    if from_env:
        return from_env
    return None


def resolve_timeout_seconds(config: ProviderSettings, default: float) -> float:
    value = config.timeout_seconds
    if value is not None and 0 < value < float("inf"):
        return value
    return default


def resolve_cache_ttl_seconds(config: ProviderSettings) -> float:
    minutes = config.cache_ttl_minutes
    if minutes is not None and 0 <= minutes < float("inf"):
        return min(minutes, MAX_CACHE_TTL_MINUTES) * 60
    return DEFAULT_CACHE_TTL_MINUTES * 60


def resolve_default_cache(config: ProviderSettings) -> bool:
    if config.cache is not None:
        return config.cache
    return True


def resolve_cache(requested: bool | None, configured_default: bool) -> bool:
    """Caller value, else the configured (already defaulted) value."""
    if requested is not None:
        return requested
    return configured_default


def resolve_default_engine(config: SummarizerSettings) -> str:
    return canonical_choice(config.engine, SUMMARIZER_ENGINES) or DEFAULT_ENGINE


def resolve_default_summary_type(config: SummarizerSettings) -> str:
    return canonical_choice(config.summary_type, SUMMARY_TYPES) or DEFAULT_SUMMARY_TYPE


def resolve_default_target_language(config: SummarizerSettings) -> str | None:
    return canonical_language(config.target_language, TARGET_LANGUAGES)


@dataclass(frozen=True)
class ResolvedToolConfig:
    """Tool configuration for one call. Never cached between calls."""

    enabled: bool
    api_key: str | None
    timeout_seconds: float
    cache_default: bool
    cache_ttl_seconds: float
    engine: str | None = None
    summary_type: str | None = None
    target_language: str | None = None


def resolve_fastgpt_config(
    settings: Settings, environ: Mapping[str, str] | None = None
) -> ResolvedToolConfig:
    config = settings.tools.fastgpt
    return ResolvedToolConfig(
        enabled=resolve_enabled(config),
        api_key=resolve_api_key(config, environ),
        timeout_seconds=resolve_timeout_seconds(config, FASTGPT_DEFAULT_TIMEOUT_SECONDS),
        cache_default=resolve_default_cache(config),
        cache_ttl_seconds=resolve_cache_ttl_seconds(config),
    )


def resolve_summarizer_config(
    settings: Settings, environ: Mapping[str, str] | None = None
) -> ResolvedToolConfig:
    config = settings.tools.summarizer
    return ResolvedToolConfig(
        enabled=resolve_enabled(config),
        api_key=resolve_api_key(config, environ),
        timeout_seconds=resolve_timeout_seconds(config, SUMMARIZER_DEFAULT_TIMEOUT_SECONDS),
        cache_default=resolve_default_cache(config),
        cache_ttl_seconds=resolve_cache_ttl_seconds(config),
        engine=resolve_default_engine(config),
        summary_type=resolve_default_summary_type(config),
        target_language=resolve_default_target_language(config),
    )
