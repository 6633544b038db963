"""In-memory activity log shown to the operator.

Entries are kept in a bounded buffer and mirrored to the ``novelsync.activity``
logger so server logs carry the same trail. ``SUCCESS`` has no stdlib level and
is logged as INFO.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

from novelsync.models.logs import LogEntry, LogLevel

logger = logging.getLogger("novelsync.activity")

_STDLIB_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ActivityLog:
    def __init__(self, max_entries: int = 1000) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._seq = 0

    def add(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        with self._lock:
            self._seq += 1
            entry = LogEntry(
                seq=self._seq,
                id=uuid.uuid4().hex[:7],
                timestamp=datetime.now(timezone.utc),
                level=level,
                message=message,
            )
            self._entries.append(entry)
        logger.log(_STDLIB_LEVELS[level], "[%s] %s", level.value, message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add(message, LogLevel.INFO)

    def success(self, message: str) -> LogEntry:
        return self.add(message, LogLevel.SUCCESS)

    def warning(self, message: str) -> LogEntry:
        return self.add(message, LogLevel.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.add(message, LogLevel.ERROR)

    def entries(self, since: int = 0) -> List[LogEntry]:
        """Return entries with ``seq`` greater than ``since`` (oldest first)."""
        with self._lock:
            return [e for e in self._entries if e.seq > since]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
