"""Outbound calls to the Gemini generateContent API."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

import httpx

from insight_proxy.core.config import GEMINI_API_URL, RequestConfig
from insight_proxy.core.errors import (
    UpstreamError,
    UpstreamFatalError,
    UpstreamTransientError,
)
from insight_proxy.schemas.insight import GenerateContentRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# upstream error text is logged, but only this much of it
_LOGGED_BODY_CHARS = 500


@asynccontextmanager
async def async_gemini_client(
    request_config: RequestConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an ``httpx.AsyncClient`` bounded by the request timeout and close it."""

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(request_config.timeout_seconds),
        transport=transport,
        headers={"Content-Type": "application/json"},
    )
    try:
        yield client
    finally:
        await client.aclose()


class GeminiClient:
    """Send a prompt to Gemini with a per-attempt timeout and bounded retry.

    Timeouts and 5xx responses are retried up to ``max_retries`` times with a
    linearly growing delay. Anything else fails immediately. Errors raised
    from here carry upstream details for the server log only.
    """

    def __init__(
        self,
        url: str = GEMINI_API_URL,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._transport = transport
        self._sleep = sleep

    async def generate(
        self,
        prompt: str,
        *,
        api_key: str,
        request_config: RequestConfig,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        payload = GenerateContentRequest.from_prompt(prompt).model_dump()
        async with async_gemini_client(request_config, transport=self._transport) as client:
            return await self._execute_with_retries(
                lambda: self._post(client, payload=payload, api_key=api_key, request_id=request_id),
                request_config=request_config,
                request_id=request_id,
            )

    async def _post(
        self,
        client: httpx.AsyncClient,
        *,
        payload: dict[str, Any],
        api_key: str,
        request_id: str | None,
    ) -> dict[str, Any]:
        response = await client.post(self._url, params={"key": api_key}, json=payload)

        if not response.is_success:
            logger.warning(
                "Gemini API returned non-OK response",
                extra={
                    "request_id": request_id,
                    "upstream_status": response.status_code,
                    "upstream_text": response.text[:_LOGGED_BODY_CHARS],
                },
            )
            if response.status_code >= 500:
                raise UpstreamTransientError(f"upstream returned {response.status_code}")
            raise UpstreamFatalError(f"upstream returned {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFatalError("upstream returned a non-JSON body") from exc

    async def _execute_with_retries(
        self,
        task: Callable[[], Awaitable[T]],
        *,
        request_config: RequestConfig,
        request_id: str | None,
    ) -> T:
        attempts = request_config.max_attempts
        last_error: UpstreamError | None = None

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(task(), timeout=request_config.timeout_seconds)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                logger.warning(
                    "Gemini request aborted due to timeout",
                    extra={"request_id": request_id, "attempt": attempt},
                )
                last_error = UpstreamTransientError(
                    f"no response within {request_config.timeout_ms}ms"
                )
            except UpstreamTransientError as exc:
                last_error = exc
            except httpx.HTTPError as exc:
                raise UpstreamFatalError(
                    f"transport failure: {type(exc).__name__}"
                ) from exc

            if attempt == attempts:
                break

            wait_seconds = request_config.backoff_ms / 1000.0 * attempt
            logger.warning(
                "Gemini attempt %s failed, retrying",
                attempt,
                extra={
                    "request_id": request_id,
                    "retry_after_s": wait_seconds,
                    "reason": last_error.detail,
                },
            )
            if wait_seconds > 0:
                await self._sleep(wait_seconds)

        assert last_error is not None
        raise last_error


__all__ = ["GeminiClient", "async_gemini_client"]
