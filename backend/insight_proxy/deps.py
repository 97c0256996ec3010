"""FastAPI dependency helpers."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from insight_proxy.core.config import Settings, get_settings
from insight_proxy.services.audit import AuditLogger
from insight_proxy.services.gemini_client import GeminiClient
from insight_proxy.services.insight import InsightProxyService
from insight_proxy.services.rate_limit import RateLimiter


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter shared by all requests."""

    return RateLimiter()


@lru_cache
def get_audit_logger() -> AuditLogger:
    return AuditLogger()


def get_gemini_client(settings: Settings = Depends(get_settings)) -> GeminiClient:
    return GeminiClient(settings.gemini_api_url)


def get_insight_service(
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
    client: GeminiClient = Depends(get_gemini_client),
) -> InsightProxyService:
    """Provide an insight proxy service instance per request."""

    return InsightProxyService(settings, limiter=limiter, client=client)
