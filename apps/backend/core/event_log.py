"""
In-memory structured event log for scrape runs.

Every event is also forwarded to the standard logger so console output
stays the same whether or not anyone reads the recorded entries.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

LEVELS = ('info', 'success', 'warn', 'error')

_LOGGING_LEVELS = {
    'info': logging.INFO,
    'success': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}

_ICONS = {
    'info': 'ℹ️ ',
    'success': '✅',
    'warn': '⚠️ ',
    'error': '❌',
}


class LogEntry:
    """One recorded event. Treat as immutable once created."""

    __slots__ = ('timestamp', 'level', 'message', 'site', 'data')

    def __init__(self, level: str, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.level = level
        self.message = message
        self.site = site
        self.data = dict(data) if data else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'level': self.level,
            'site': self.site,
            'message': self.message,
            'data': self.data,
        }

    def __repr__(self):
        return f"LogEntry(level={self.level!r}, site={self.site!r}, message={self.message!r})"


class EventLog:
    """Append-only event sink shared by all scrapes in a run"""

    def __init__(self, logger_name: str = 'jobscraper'):
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()
        self._logger = logging.getLogger(logger_name)

    def log(self, level: str, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        if level not in LEVELS:
            raise ValueError(f"Unknown event level: {level!r}")

        entry = LogEntry(level, message, site, data)
        with self._lock:
            self._entries.append(entry)

        prefix = f"[{site}] " if site else ""
        suffix = f" {entry.data}" if entry.data else ""
        self._logger.log(_LOGGING_LEVELS[level], f"{_ICONS[level]} {prefix}{message}{suffix}")
        return entry

    def info(self, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.log('info', message, site, data)

    def success(self, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.log('success', message, site, data)

    def warn(self, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.log('warn', message, site, data)

    def error(self, message: str, site: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> LogEntry:
        return self.log('error', message, site, data)

    def get_logs(self, site: Optional[str] = None, level: Optional[str] = None) -> List[LogEntry]:
        """Snapshot of recorded entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)
        if site is not None:
            entries = [e for e in entries if e.site == site]
        if level is not None:
            entries = [e for e in entries if e.level == level]
        return entries

    def get_summary(self) -> Dict[str, int]:
        entries = self.get_logs()
        summary = {'total': len(entries)}
        for level in LEVELS:
            summary[level] = sum(1 for e in entries if e.level == level)
        return summary

    def summary_by_site(self) -> Dict[str, Dict[str, int]]:
        """Per-site level counts; run-level events (no site) are left out."""
        by_site: Dict[str, Dict[str, int]] = {}
        for entry in self.get_logs():
            if entry.site is None:
                continue
            counts = by_site.setdefault(entry.site, {level: 0 for level in LEVELS})
            counts[entry.level] += 1
        return by_site

    def clear(self):
        with self._lock:
            self._entries = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
