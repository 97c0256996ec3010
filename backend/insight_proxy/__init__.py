"""Gemini insight proxy: CORS, credentials, rate limiting and retrying upstream calls."""

__version__ = "0.1.0"
