"""
In-memory ring buffer for log entries, exposed via a logging.Handler.

Each worker process keeps its own buffer (module-level singleton). The /logs
endpoint pages through it with a sequence cursor, optionally filtered by
level, so a dashboard can poll without duplicates or gaps.
"""

import logging
import os
import threading
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class LogEntry:
    timestamp: float
    level: str
    levelno: int
    logger_name: str
    message: str
    worker_pid: int
    sequence: int


class LogBuffer(logging.Handler):
    """Thread-safe ring buffer that captures log records."""

    def __init__(self, maxlen: int = 2000, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self._buf: deque[LogEntry] = deque(maxlen=maxlen)
        self._seq = 0
        self._lock = threading.Lock()
        self._pid = os.getpid()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:
            msg = record.getMessage()

        with self._lock:
            self._seq += 1
            self._buf.append(LogEntry(
                timestamp=record.created,
                level=record.levelname,
                levelno=record.levelno,
                logger_name=record.name,
                message=msg,
                worker_pid=self._pid,
                sequence=self._seq,
            ))

    def get_entries(
        self, since_sequence: int = 0, limit: int = 200, min_level: str = "DEBUG"
    ) -> tuple[list[dict[str, Any]], int]:
        """Return the newest `limit` entries with sequence > since_sequence.

        Unknown level names are treated as DEBUG.

        Returns:
            (entries_as_dicts, latest_sequence)
        """
        threshold = logging.getLevelName(min_level.upper())
        if not isinstance(threshold, int):
            threshold = logging.DEBUG

        with self._lock:
            latest = self._seq
            if since_sequence >= latest:
                return [], latest
            entries = [
                asdict(e) for e in self._buf
                if e.sequence > since_sequence and e.levelno >= threshold
            ]
        return entries[-limit:], latest


# Module-level singleton, one per process
log_buffer = LogBuffer()
