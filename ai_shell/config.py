"""
Configuration constants and Pydantic models for ai-shell.
"""

import os
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ai_shell.errors import ConfigError


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_PROVIDER: str = "openai"
SUPPORTED_PROVIDERS: tuple[str, ...] = ("openai", "local")

DEFAULT_OPENAI_ENDPOINT: str = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL: str = "gpt-4o-mini"

DEFAULT_LOCAL_ENDPOINT: str = "http://localhost:11434"
DEFAULT_LOCAL_MODEL: str = "llama2"

DEFAULT_TIMEOUT_SECONDS: float = 300  # 5 minutes


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

MAX_COMPLETION_COUNT: int = 10

# Sampling parameters sent to local dialects that accept them
LOCAL_TEMPERATURE: float = 0.7
LOCAL_TOP_P: float = 0.9

STREAM_CONTENT_TYPES: tuple[str, ...] = ("application/x-ndjson", "text/event-stream")

# Known local models offered when the server cannot be asked
DEFAULT_LOCAL_MODELS: list[str] = [
    "llama2",
    "llama2:7b",
    "llama2:13b",
    "llama2:70b",
    "llama2:7b-chat",
    "llama2:13b-chat",
    "llama2:70b-chat",
    "codellama",
    "codellama:7b",
    "codellama:34b-code-q5_K_M",
    "codellama:13b",
    "codellama:34b",
    "nous-hermes2:34b",
    "nous-hermes:34b-instruct",
]


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def _env(key: str) -> Optional[str]:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def get_provider_name() -> str:
    """
    Get the active provider name from environment or default.

    Set AI_SHELL_PROVIDER in .env (default: openai).
    """
    return _env("AI_SHELL_PROVIDER") or DEFAULT_PROVIDER


def get_api_key() -> Optional[str]:
    """
    Get the API credential from environment.

    AI_SHELL_API_KEY wins over OPENAI_API_KEY.
    """
    return _env("AI_SHELL_API_KEY") or _env("OPENAI_API_KEY")


def get_api_endpoint() -> Optional[str]:
    """Get the API base URL from environment (None = provider default)."""
    return _env("AI_SHELL_API_ENDPOINT")


def get_model() -> Optional[str]:
    """Get the model name from environment (None = provider default)."""
    return _env("AI_SHELL_MODEL")


def get_local_format() -> Optional[str]:
    """
    Get the pinned local wire format from environment.

    Set AI_SHELL_LOCAL_FORMAT to ollama, lmstudio or openai to skip
    negotiation. Unset means every format is tried in order.
    """
    return _env("AI_SHELL_LOCAL_FORMAT")


def get_timeout_seconds() -> float:
    """
    Get the HTTP transport timeout from environment or default.

    Set AI_SHELL_TIMEOUT_SECONDS in .env (default: 300).
    """
    try:
        return float(os.environ.get("AI_SHELL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def default_endpoint_for(provider: str) -> str:
    return DEFAULT_LOCAL_ENDPOINT if provider == "local" else DEFAULT_OPENAI_ENDPOINT


def default_model_for(provider: str) -> str:
    return DEFAULT_LOCAL_MODEL if provider == "local" else DEFAULT_OPENAI_MODEL


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class AppConfig(BaseModel):
    """Resolved configuration handed to the completion call sites."""
    provider: str = DEFAULT_PROVIDER
    api_key: Optional[str] = None
    api_endpoint: Optional[str] = None
    model: Optional[str] = None
    local_format: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        if value not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Invalid provider: {value}. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return value

    @field_validator("local_format")
    @classmethod
    def _check_local_format(cls, value: Optional[str]) -> Optional[str]:
        from ai_shell.adapters.local_stream import WireFormat

        if value is None:
            return None
        try:
            return WireFormat(value).value
        except ValueError:
            supported = ", ".join(f.value for f in WireFormat)
            raise ConfigError(
                f"Invalid local format: {value}. Supported formats: {supported}"
            ) from None

    @model_validator(mode="after")
    def _apply_provider_defaults(self) -> "AppConfig":
        if self.provider == "openai" and not self.api_key:
            raise ConfigError(
                "Please set your API key via the AI_SHELL_API_KEY environment variable"
            )
        if not self.api_endpoint:
            self.api_endpoint = default_endpoint_for(self.provider)
        if not self.model:
            self.model = default_model_for(self.provider)
        return self


def load_config(overrides: Optional[dict] = None) -> AppConfig:
    """
    Build AppConfig from environment variables.

    Non-None values in ``overrides`` (e.g. CLI flags) take precedence over
    the environment.

    Raises:
        ConfigError: On an unsupported provider/format or a missing API key
    """
    values = {
        "provider": get_provider_name(),
        "api_key": get_api_key(),
        "api_endpoint": get_api_endpoint(),
        "model": get_model(),
        "local_format": get_local_format(),
        "timeout_seconds": get_timeout_seconds(),
    }
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    return AppConfig(**values)
