"""Tests for settings resolution into the immutable proxy config."""
from __future__ import annotations

import dataclasses

import pytest

from insight_proxy.core.config import (
    CredentialMode,
    Settings,
    resolve_config,
    split_csv,
)
from insight_proxy.core.errors import ConfigurationError


def test_defaults() -> None:
    config = resolve_config(Settings(allowed_origins="https://a.example"))

    assert config.rate.max_requests == 5
    assert config.rate.window_ms == 60_000
    assert config.request.timeout_ms == 15_000
    assert config.request.max_retries == 1
    assert config.request.backoff_ms == 200
    assert config.credential_mode is CredentialMode.SERVER_SECRET
    assert config.allowed_headers == "Content-Type, Authorization"


def test_allowed_origins_are_split_and_trimmed() -> None:
    config = resolve_config(
        Settings(allowed_origins=" https://a.example, *.b.example ,,https://a.example")
    )

    assert config.allowed_origins == frozenset({"https://a.example", "*.b.example"})


def test_unset_origins_in_production_is_fatal() -> None:
    with pytest.raises(ConfigurationError):
        resolve_config(Settings(app_env="production", allowed_origins=""))


def test_unset_origins_outside_production_defaults_to_wildcard() -> None:
    config = resolve_config(Settings(app_env="preview", allowed_origins=""))

    assert config.allowed_origins == frozenset({"*"})


def test_wildcard_fallback_can_be_turned_off() -> None:
    with pytest.raises(ConfigurationError):
        resolve_config(Settings(allowed_origins="", allow_all_origins_when_unset=False))


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://env.example")
    monkeypatch.setenv("GENERATE_INSIGHT_MAX_REQUESTS", "9")
    monkeypatch.setenv("GENERATE_INSIGHT_WINDOW_MS", "1000")
    monkeypatch.setenv("GENERATE_INSIGHT_TIMEOUT_MS", "2500")
    monkeypatch.setenv("GENERATE_INSIGHT_MAX_RETRIES", "2")
    monkeypatch.setenv("GENERATE_INSIGHT_CREDENTIAL_MODE", "client")

    config = resolve_config(Settings())

    assert config.allowed_origins == frozenset({"https://env.example"})
    assert config.rate.max_requests == 9
    assert config.rate.window_ms == 1000
    assert config.request.timeout_ms == 2500
    assert config.request.max_retries == 2
    assert config.credential_mode is CredentialMode.CLIENT_SECRET
    assert "X-Gemini-Api-Key" in config.allowed_headers


def test_retries_are_capped() -> None:
    config = resolve_config(
        Settings(allowed_origins="*", generate_insight_max_retries=10)
    )

    assert config.request.max_retries == 3
    assert config.request.max_attempts == 4


@pytest.mark.parametrize(
    ("timeout", "retries", "expected_timeout", "expected_retries"),
    [
        ("abc", "xyz", 15_000, 1),
        ("0", "-1", 15_000, 1),
        ("-5", "0", 15_000, 0),
        ("nan", "inf", 15_000, 1),
    ],
)
def test_invalid_request_overrides_fall_back(
    timeout: str, retries: str, expected_timeout: int, expected_retries: int
) -> None:
    config = resolve_config(
        Settings(
            allowed_origins="*",
            generate_insight_timeout_ms=timeout,
            generate_insight_max_retries=retries,
        )
    )

    assert config.request.timeout_ms == expected_timeout
    assert config.request.max_retries == expected_retries


def test_invalid_rate_overrides_fall_back() -> None:
    config = resolve_config(
        Settings(
            allowed_origins="*",
            generate_insight_max_requests="many",
            generate_insight_window_ms="0",
        )
    )

    assert config.rate.max_requests == 5
    assert config.rate.window_ms == 60_000


def test_zero_max_requests_disables_limiter() -> None:
    config = resolve_config(Settings(allowed_origins="*", generate_insight_max_requests=0))

    assert config.rate.enabled is False


def test_config_is_immutable() -> None:
    config = resolve_config(Settings(allowed_origins="*"))

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.production = True  # type: ignore[misc]


def test_split_csv() -> None:
    assert split_csv(None) == frozenset()
    assert split_csv(" a , ,b") == frozenset({"a", "b"})
