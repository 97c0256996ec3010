"""Error taxonomy for the insight proxy.

Every error carries the HTTP status it maps to and the message shown to the
caller. ``detail`` is for server-side logs only and is never rendered.
"""
from __future__ import annotations


class InsightProxyError(Exception):
    status_code: int = 500
    public_message: str = "Failed to generate insight."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message


class ConfigurationError(InsightProxyError):
    """Raised when the service is misconfigured; fatal for the request."""

    status_code = 500
    public_message = "Server misconfiguration."


class OriginDenied(InsightProxyError):
    status_code = 403
    public_message = "Origin not allowed."


class AuthRequired(InsightProxyError):
    status_code = 401
    public_message = "A valid access token is required."


class AuthInvalid(InsightProxyError):
    status_code = 401
    public_message = "Unauthorized."


class MethodNotAllowed(InsightProxyError):
    status_code = 405
    public_message = "Method Not Allowed"


class UnsupportedContentType(InsightProxyError):
    status_code = 415
    public_message = "Content-Type must be application/json."


class ValidationError(InsightProxyError):
    status_code = 400
    public_message = "Prompt is required in the request body."


class PromptTooLong(ValidationError):
    status_code = 413
    public_message = "Prompt is too long."


class RateLimited(InsightProxyError):
    status_code = 429
    public_message = "Too many requests. Please slow down."

    def __init__(self, retry_after: int, detail: str | None = None) -> None:
        super().__init__(detail)
        self.retry_after = retry_after


class UpstreamError(InsightProxyError):
    """Raised when the generative-language API call fails."""

    status_code = 500
    public_message = "Failed to generate insight."


class UpstreamTransientError(UpstreamError):
    """Timeout or 5xx; retried before surfacing."""


class UpstreamFatalError(UpstreamError):
    """Non-retryable upstream failure."""


__all__ = [
    "AuthInvalid",
    "AuthRequired",
    "ConfigurationError",
    "InsightProxyError",
    "MethodNotAllowed",
    "OriginDenied",
    "PromptTooLong",
    "RateLimited",
    "UnsupportedContentType",
    "UpstreamError",
    "UpstreamFatalError",
    "UpstreamTransientError",
    "ValidationError",
]
