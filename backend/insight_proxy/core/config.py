"""Application-wide settings and the resolved proxy configuration."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insight_proxy.core.errors import ConfigurationError

GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.5-flash-preview-05-20:generateContent"
)

MAX_PROMPT_LENGTH = 4000
MAX_RETRIES_CAP = 3

DEFAULT_REQUEST_TIMEOUT_MS = 15_000
DEFAULT_MAX_RETRIES = 1
DEFAULT_RATE_MAX_REQUESTS = 5
DEFAULT_RATE_WINDOW_MS = 60_000


class CredentialMode(str, enum.Enum):
    """Where the upstream API key comes from."""

    SERVER_SECRET = "server"
    CLIENT_SECRET = "client"


class Settings(BaseSettings):
    """Raw environment configuration.

    Field names match the environment variables case-insensitively, e.g.
    ``GENERATE_INSIGHT_MAX_REQUESTS`` populates ``generate_insight_max_requests``.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    allowed_origins: str = Field(default="")
    allow_all_origins_when_unset: bool = Field(default=True)

    generate_insight_credential_mode: CredentialMode = Field(
        default=CredentialMode.SERVER_SECRET
    )
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_api_url: str = Field(default=GEMINI_API_URL)
    generate_insight_access_tokens: str = Field(default="")
    generate_insight_require_access_token: bool = Field(default=True)

    # Rate limiting; any non-numeric value falls back to the default
    generate_insight_max_requests: Optional[str] = Field(default=None)
    generate_insight_window_ms: Optional[str] = Field(default=None)

    # Upstream resilience
    generate_insight_timeout_ms: Optional[str] = Field(default=None)
    generate_insight_max_retries: Optional[str] = Field(default=None)
    generate_insight_retry_backoff_ms: int = Field(default=200)

    @field_validator(
        "generate_insight_max_requests",
        "generate_insight_window_ms",
        "generate_insight_timeout_ms",
        "generate_insight_max_retries",
        mode="before",
    )
    @classmethod
    def _numbers_as_text(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


@dataclass(frozen=True, slots=True)
class RateConfig:
    max_requests: int
    window_ms: int

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000.0


@dataclass(frozen=True, slots=True)
class RequestConfig:
    timeout_ms: int
    max_retries: int
    backoff_ms: int = 200

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    """Immutable per-invocation view of the configuration.

    Produced once by :func:`resolve_config` and handed to every stage of the
    request pipeline so that none of them read the environment.
    """

    production: bool
    allowed_origins: frozenset[str]
    credential_mode: CredentialMode
    upstream_api_key: str | None
    upstream_url: str
    access_tokens: frozenset[str]
    require_access_token: bool
    rate: RateConfig
    request: RequestConfig

    @property
    def allowed_headers(self) -> str:
        if self.credential_mode is CredentialMode.CLIENT_SECRET:
            return "Content-Type, Authorization, X-Gemini-Api-Key"
        return "Content-Type, Authorization"


def split_csv(raw: str | None) -> frozenset[str]:
    """Split a comma-separated setting into a set of trimmed, non-empty items."""

    if not raw:
        return frozenset()
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def _parse_number(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def resolve_rate_config(settings: Settings) -> RateConfig:
    max_requests = _parse_number(settings.generate_insight_max_requests)
    window_ms = _parse_number(settings.generate_insight_window_ms)
    return RateConfig(
        max_requests=(
            int(max_requests) if max_requests is not None else DEFAULT_RATE_MAX_REQUESTS
        ),
        window_ms=(
            int(window_ms)
            if window_ms is not None and window_ms > 0
            else DEFAULT_RATE_WINDOW_MS
        ),
    )


def resolve_request_config(settings: Settings) -> RequestConfig:
    timeout_ms = _parse_number(settings.generate_insight_timeout_ms)
    max_retries = _parse_number(settings.generate_insight_max_retries)
    return RequestConfig(
        timeout_ms=(
            int(timeout_ms)
            if timeout_ms is not None and timeout_ms > 0
            else DEFAULT_REQUEST_TIMEOUT_MS
        ),
        max_retries=(
            min(int(max_retries), MAX_RETRIES_CAP)
            if max_retries is not None and max_retries >= 0
            else DEFAULT_MAX_RETRIES
        ),
        backoff_ms=max(0, settings.generate_insight_retry_backoff_ms),
    )


def resolve_allowed_origins(settings: Settings) -> frozenset[str]:
    origins = split_csv(settings.allowed_origins)
    if origins:
        return origins
    if settings.is_production:
        raise ConfigurationError("ALLOWED_ORIGINS is not configured in production")
    if settings.allow_all_origins_when_unset:
        return frozenset({"*"})
    raise ConfigurationError("ALLOWED_ORIGINS is not configured")


def resolve_config(settings: Settings) -> ProxyConfig:
    """Resolve raw settings into the immutable :class:`ProxyConfig`.

    Raises :class:`ConfigurationError` when the allowed-origin set cannot be
    established; credential misconfiguration is reported later by the
    credential resolver so that CORS preflight keeps working.
    """

    return ProxyConfig(
        production=settings.is_production,
        allowed_origins=resolve_allowed_origins(settings),
        credential_mode=settings.generate_insight_credential_mode,
        upstream_api_key=(settings.gemini_api_key or "").strip() or None,
        upstream_url=settings.gemini_api_url,
        access_tokens=split_csv(settings.generate_insight_access_tokens),
        require_access_token=settings.generate_insight_require_access_token,
        rate=resolve_rate_config(settings),
        request=resolve_request_config(settings),
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = [
    "CredentialMode",
    "MAX_PROMPT_LENGTH",
    "ProxyConfig",
    "RateConfig",
    "RequestConfig",
    "Settings",
    "get_settings",
    "resolve_config",
    "split_csv",
]
