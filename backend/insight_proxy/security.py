"""Credential resolution for the insight proxy.

Two credential models are supported:

- ``server``: the upstream Gemini key is held in configuration and callers
  prove access with a static bearer token from a configured set.
- ``client``: callers bring their own Gemini key, either in the
  ``X-Gemini-Api-Key`` header or as a bearer token.

Presented secrets are only ever hashed (for the rate-limit identity) and
compared; they are never logged.
"""
from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass
from typing import AbstractSet, Mapping, Optional

from insight_proxy.core.config import CredentialMode, ProxyConfig
from insight_proxy.core.errors import AuthInvalid, AuthRequired, ConfigurationError

API_KEY_HEADER = "x-gemini-api-key"

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ResolvedCredential:
    upstream_key: str
    # sha256 of the presented secret, None when the caller presented nothing
    identity: Optional[str] = None


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    raw = headers.get("authorization")
    if not isinstance(raw, str):
        return None
    match = _BEARER.match(raw.strip())
    if not match:
        return None
    return match.group(1).strip() or None


def _token_in(token: str, allowed: AbstractSet[str]) -> bool:
    # constant-time per entry, no early exit
    found = False
    for candidate in allowed:
        if hmac.compare_digest(candidate.encode("utf-8"), token.encode("utf-8")):
            found = True
    return found


def _resolve_server_secret(
    config: ProxyConfig, headers: Mapping[str, str]
) -> ResolvedCredential:
    if not config.upstream_api_key:
        raise ConfigurationError("GEMINI_API_KEY is not configured")

    if not config.access_tokens:
        if config.require_access_token:
            raise ConfigurationError("GENERATE_INSIGHT_ACCESS_TOKENS is not configured")
        return ResolvedCredential(upstream_key=config.upstream_api_key)

    token = bearer_token(headers)
    if not token:
        raise AuthRequired("missing bearer access token")
    if not _token_in(token, config.access_tokens):
        raise AuthInvalid("access token not recognised")
    return ResolvedCredential(
        upstream_key=config.upstream_api_key, identity=hash_secret(token)
    )


def _resolve_client_secret(headers: Mapping[str, str]) -> ResolvedCredential:
    supplied = (headers.get(API_KEY_HEADER) or "").strip() or bearer_token(headers)
    if not supplied:
        raise AuthRequired("no client API key supplied")
    return ResolvedCredential(upstream_key=supplied, identity=hash_secret(supplied))


def resolve_credential(
    config: ProxyConfig, headers: Mapping[str, str]
) -> ResolvedCredential:
    """Pick the upstream key for this request and authorise the caller.

    ``headers`` must use lower-case names.
    """

    if config.credential_mode is CredentialMode.CLIENT_SECRET:
        return _resolve_client_secret(headers)
    return _resolve_server_secret(config, headers)


def client_key(
    credential: ResolvedCredential,
    headers: Mapping[str, str],
    client_host: Optional[str] = None,
) -> str:
    """Rate-limit identity: hashed secret, else forwarded address, else peer."""

    if credential.identity:
        return f"token:{credential.identity}"
    forwarded = headers.get("x-forwarded-for")
    if isinstance(forwarded, str) and forwarded.strip():
        return forwarded.split(",")[0].strip()
    return client_host or "unknown"


__all__ = [
    "API_KEY_HEADER",
    "ResolvedCredential",
    "bearer_token",
    "client_key",
    "hash_secret",
    "resolve_credential",
]
