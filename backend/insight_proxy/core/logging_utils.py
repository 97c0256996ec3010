"""Logging setup that keeps credentials and prompt text out of log output."""
from __future__ import annotations

import logging
import sys

# Extra fields that must never reach a handler
SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "authorization",
        "token",
        "access_token",
        "secret",
        "prompt",
        "raw_prompt",
        "response_body",
    }
)

_HANDLER_NAME = "insight_proxy.stdout"


class SensitiveFieldFilter(logging.Filter):
    """Strip secret-bearing ``extra=`` fields from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in SENSITIVE_KEYS:
            if key in record.__dict__:
                record.__dict__[key] = "[redacted]"
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install a stdout handler on the package logger.

    Safe to call more than once; the handler is only added the first time.
    """

    logger = logging.getLogger("insight_proxy")
    try:
        logger.setLevel(getattr(logging, level.upper()))
    except AttributeError:
        logger.setLevel(logging.INFO)

    if not any(getattr(h, "name", None) == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler.addFilter(SensitiveFieldFilter())
        logger.addHandler(handler)

    # httpx logs full request URLs, and the upstream key travels in the query
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


__all__ = ["SENSITIVE_KEYS", "SensitiveFieldFilter", "configure_logging"]
