"""CORS origin policy for the insight endpoint."""
from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, Optional
from urllib.parse import urlsplit

from insight_proxy.core.errors import OriginDenied

ALLOWED_METHODS = "POST, OPTIONS"
MAX_AGE_SECONDS = "600"


@dataclass(frozen=True, slots=True)
class OriginDecision:
    allowed: bool
    allow_origin: Optional[str] = None

    @property
    def origin_dependent(self) -> bool:
        return self.allow_origin is not None


def _hostname(origin: str) -> Optional[str]:
    try:
        return urlsplit(origin).hostname
    except ValueError:
        return None


def _matches_suffix(pattern: str, origin: str) -> bool:
    suffix = pattern[2:].lower()
    if not suffix:
        return False
    host = _hostname(origin)
    if not host:
        return False
    return host == suffix or host.endswith("." + suffix)


def evaluate_origin(allowed: AbstractSet[str], origin: Optional[str]) -> OriginDecision:
    """Decide whether ``origin`` may call the endpoint.

    A request without an ``Origin`` header is treated as same-origin and is
    always allowed without any CORS origin header. Otherwise the first
    matching entry wins: an exact origin, ``*``, or ``*.suffix`` compared
    against the origin's hostname.
    """

    if not origin:
        return OriginDecision(allowed=True)

    if origin in allowed:
        return OriginDecision(allowed=True, allow_origin=origin)

    for pattern in allowed:
        if pattern.startswith("*.") and _matches_suffix(pattern, origin):
            return OriginDecision(allowed=True, allow_origin=origin)

    if "*" in allowed:
        return OriginDecision(allowed=True, allow_origin="*")

    return OriginDecision(allowed=False)


def enforce_origin(allowed: AbstractSet[str], origin: Optional[str]) -> OriginDecision:
    decision = evaluate_origin(allowed, origin)
    if not decision.allowed:
        raise OriginDenied(f"origin {origin!r} is not in the allowed set")
    return decision


def cors_headers(decision: OriginDecision, *, allowed_headers: str) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if decision.allow_origin is not None:
        headers["Access-Control-Allow-Origin"] = decision.allow_origin
        headers["Vary"] = "Origin"
    headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    headers["Access-Control-Allow-Headers"] = allowed_headers
    headers["Access-Control-Max-Age"] = MAX_AGE_SECONDS
    return headers


__all__ = ["OriginDecision", "cors_headers", "enforce_origin", "evaluate_origin"]
