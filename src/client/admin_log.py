"""Admin-visible log panel.

Client modules log through the standard ``logging`` tree; ``AdminLog`` is a
handler attached to the ``editorial.client`` logger that keeps the most
recent records so the admin UI (or the CLI) can show what happened.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime

DEFAULT_CAPACITY = 500

_LEVEL_KINDS = {
    logging.DEBUG: "info",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


@dataclass(frozen=True)
class LogEntry:
    """One line of the admin log."""

    timestamp: datetime
    kind: str  # "info", "success", "warning", "error"
    message: str


class AdminLog(logging.Handler):
    """Bounded in-memory log of client activity."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        kind = getattr(record, "kind", None) or _LEVEL_KINDS.get(record.levelno, "info")
        self._entries.append(
            LogEntry(
                timestamp=datetime.fromtimestamp(record.created),
                kind=kind,
                message=record.getMessage(),
            )
        )

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


def log_success(logger: logging.Logger, message: str, *args: object) -> None:
    """Log at INFO, shown as a success line in the admin panel."""
    logger.info(message, *args, extra={"kind": "success"})
