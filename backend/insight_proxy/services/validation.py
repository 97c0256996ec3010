"""Inbound request validation for the insight endpoint."""
from __future__ import annotations

import json
from typing import Any, Mapping

from insight_proxy.core.config import MAX_PROMPT_LENGTH
from insight_proxy.core.errors import (
    MethodNotAllowed,
    PromptTooLong,
    UnsupportedContentType,
    ValidationError,
)

ACCEPTED_METHOD = "POST"
JSON_MEDIA_TYPE = "application/json"


def _parse_body(body: bytes | str | Mapping[str, Any] | None) -> Any:
    if body is None:
        return None
    if isinstance(body, Mapping):
        return body
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("request body is not valid UTF-8") from exc
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ValidationError("request body is not valid JSON") from exc


def validate_request(
    method: str,
    headers: Mapping[str, str],
    body: bytes | str | Mapping[str, Any] | None,
    *,
    max_length: int = MAX_PROMPT_LENGTH,
) -> str:
    """Check method, content type and prompt; return the prompt unchanged.

    Checks run in order and the first failure wins.
    """

    if method.upper() != ACCEPTED_METHOD:
        raise MethodNotAllowed(f"method {method} is not accepted")

    content_type = headers.get("content-type") or ""
    if JSON_MEDIA_TYPE not in content_type.lower():
        raise UnsupportedContentType(f"content type {content_type!r} is not JSON")

    payload = _parse_body(body)
    prompt = payload.get("prompt") if isinstance(payload, Mapping) else None
    if not isinstance(prompt, str):
        raise ValidationError("prompt is missing or not a string")

    if not prompt.strip():
        raise ValidationError("prompt is blank")

    if len(prompt) > max_length:
        raise PromptTooLong(f"prompt has {len(prompt)} characters, limit is {max_length}")

    return prompt


__all__ = ["ACCEPTED_METHOD", "validate_request"]
