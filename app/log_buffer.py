"""In-memory circular buffer log handler behind the /api/logs endpoint."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from dataclasses import dataclass, asdict

# Loggers whose records are kept for /api/logs
TARGET_LOGGERS = (
    "app.main",
    "app.live.scheduler",
    "app.live.notifier",
    "app.live.provider",
    "app.stats.refresh",
    "app.ingestion.sync",
    "app.ingestion.espn_client",
    "app.settings",
)


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class BufferHandler(logging.Handler):
    """Stores the last *maxlen* log records in a deque."""

    def __init__(self, maxlen: int = 500) -> None:
        super().__init__()
        self._buffer: deque[LogEntry] = deque(maxlen=maxlen)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc)
                .strftime("%Y-%m-%d %H:%M:%S UTC"),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            )
            self._buffer.append(entry)
        except Exception:
            self.handleError(record)

    def entries(self, limit: int = 100, min_level: str | None = None) -> list[dict]:
        """Return the most recent *limit* entries (newest first).

        *min_level* (e.g. "WARNING") drops entries below that level.
        """
        items = list(self._buffer)
        if min_level:
            threshold = logging.getLevelName(min_level.upper())
            if isinstance(threshold, int):
                items = [
                    e for e in items
                    if logging.getLevelName(e.level) >= threshold
                ]
        items = items[-limit:] if limit > 0 else []
        items.reverse()
        return [asdict(e) for e in items]


# Module-level singleton
_handler: BufferHandler | None = None


def get_buffer_handler() -> BufferHandler:
    """Return (and lazily create) the singleton BufferHandler."""
    global _handler
    if _handler is None:
        _handler = BufferHandler(maxlen=500)
        _handler.setFormatter(logging.Formatter("%(message)s"))
        _handler.setLevel(logging.DEBUG)
    return _handler


def install_buffer_handler(level: int = logging.INFO) -> BufferHandler:
    """Attach the buffer handler to the service loggers."""
    handler = get_buffer_handler()
    for name in TARGET_LOGGERS:
        lg = logging.getLogger(name)
        if handler not in lg.handlers:
            lg.addHandler(handler)
        lg.setLevel(level)

    return handler
