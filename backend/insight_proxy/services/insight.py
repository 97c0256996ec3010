"""Request pipeline that proxies insight prompts to Gemini."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from insight_proxy.core.config import ProxyConfig, Settings, resolve_config
from insight_proxy.core.errors import (
    ConfigurationError,
    InsightProxyError,
    RateLimited,
    UpstreamError,
)
from insight_proxy.security import client_key, resolve_credential
from insight_proxy.services.gemini_client import GeminiClient
from insight_proxy.services.origin_policy import cors_headers, enforce_origin
from insight_proxy.services.rate_limit import RateLimiter
from insight_proxy.services.validation import validate_request

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InboundRequest:
    """Framework-independent view of an incoming request."""

    method: str
    headers: Mapping[str, str]
    body: bytes | str | Mapping[str, Any] | None = None
    client_host: Optional[str] = None

    @classmethod
    def build(
        cls,
        method: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | Mapping[str, Any] | None = None,
        client_host: Optional[str] = None,
    ) -> "InboundRequest":
        lowered = {str(k).lower(): v for k, v in (headers or {}).items()}
        return cls(method=method.upper(), headers=lowered, body=body, client_host=client_host)


@dataclass(slots=True)
class ProxyResponse:
    status_code: int
    # None renders as an empty body
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


class InsightProxyService:
    """Run one insight request through the proxy pipeline.

    Order: origin policy, preflight, credential, validation, rate limit,
    upstream. Every failure becomes a JSON ``{"error": ...}`` response with
    the public message of the raised :class:`InsightProxyError`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        limiter: RateLimiter,
        client: GeminiClient | None = None,
    ) -> None:
        self._settings = settings
        self._limiter = limiter
        self._client = client

    async def handle(
        self, request: InboundRequest, *, request_id: str | None = None
    ) -> ProxyResponse:
        request_id = request_id or uuid4().hex

        try:
            config = resolve_config(self._settings)
        except ConfigurationError as exc:
            logger.error(
                "Rejecting request, CORS configuration is missing",
                extra={"request_id": request_id, "reason": exc.detail},
            )
            return _error_response(exc)

        try:
            decision = enforce_origin(config.allowed_origins, request.headers.get("origin"))
        except InsightProxyError as exc:
            logger.info(
                "Origin not allowed",
                extra={"request_id": request_id, "origin": request.headers.get("origin")},
            )
            return _error_response(exc)

        cors = cors_headers(decision, allowed_headers=config.allowed_headers)
        if request.method.upper() == "OPTIONS":
            return ProxyResponse(status_code=204, headers=cors)

        started = time.perf_counter()
        try:
            data = await self._process(request, config=config, request_id=request_id)
        except RateLimited as exc:
            return _error_response(exc, {**cors, "Retry-After": str(exc.retry_after)})
        except InsightProxyError as exc:
            _log_failure(exc, request_id)
            return _error_response(exc, cors)

        logger.info(
            "Insight generated",
            extra={
                "request_id": request_id,
                "duration_ms": (time.perf_counter() - started) * 1000,
            },
        )
        return ProxyResponse(status_code=200, body=data, headers=cors)

    async def _process(
        self, request: InboundRequest, *, config: ProxyConfig, request_id: str
    ) -> Any:
        credential = resolve_credential(config, request.headers)
        prompt = validate_request(request.method, request.headers, request.body)

        key = client_key(credential, request.headers, request.client_host)
        try:
            self._limiter.enforce(key, config.rate)
        except RateLimited as exc:
            logger.info(
                "Rate limit exceeded for client",
                extra={
                    "request_id": request_id,
                    "client_key": key,
                    "retry_after": exc.retry_after,
                },
            )
            raise

        client = self._client or GeminiClient(config.upstream_url)
        return await client.generate(
            prompt,
            api_key=credential.upstream_key,
            request_config=config.request,
            request_id=request_id,
        )


def _error_response(
    exc: InsightProxyError, headers: Mapping[str, str] | None = None
) -> ProxyResponse:
    return ProxyResponse(
        status_code=exc.status_code,
        body={"error": exc.public_message},
        headers=dict(headers or {}),
    )


def _log_failure(exc: InsightProxyError, request_id: str) -> None:
    extra = {"request_id": request_id, "reason": exc.detail, "status_code": exc.status_code}
    if isinstance(exc, (ConfigurationError, UpstreamError)):
        logger.error("Insight request failed", extra=extra)
    else:
        logger.info("Insight request rejected", extra=extra)


__all__ = ["InboundRequest", "InsightProxyService", "ProxyResponse"]
