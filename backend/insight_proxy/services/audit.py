"""Per-request audit line written to the application log.

One record per request with path, method, status code and timing. Nothing
is persisted; the log stream is the audit trail.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuditRecord:
    request_id: str
    method: str
    path: str
    status_code: int
    ip: str | None = None
    user_agent: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class AuditLogger:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def log(self, record: AuditRecord) -> None:
        level = logging.WARNING if record.status_code >= 500 else logging.INFO
        self._log.log(
            level,
            "%s %s -> %s",
            record.method,
            record.path,
            record.status_code,
            extra={"audit": asdict(record)},
        )


__all__ = ["AuditLogger", "AuditRecord"]
