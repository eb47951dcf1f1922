"""
Logging - Application logging configuration and the node log buffer.

Provides:
- Python logging configuration with console output
- LogRingBuffer: bounded, timestamped buffer of node/installer output
- Optional persistence of buffer entries to daily files: node-YYYY-MM-DD.log
- Automatic cleanup of old log files
"""

from collections import deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional
import logging
import threading

DEFAULT_LOG_CAPACITY = 1000

node_logger = logging.getLogger("node")


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure Python logging for the application.

    Sets up a root logger with console output. Node output is kept in the
    LogRingBuffer and optionally persisted by it.

    Args:
        level: Logging level (default: INFO)
    """
    root_logger = logging.getLogger()

    # Only configure if not already configured
    if root_logger.handlers:
        return

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


# ============================================
# Read/Write Lock
# ============================================

class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    def acquire_read(self) -> None:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            while self._writing or self._readers > 0:
                self._cond.wait()
            self._writing = True

    def release_write(self) -> None:
        with self._cond:
            self._writing = False
            self._cond.notify_all()


# ============================================
# Log Ring Buffer
# ============================================

class LogRingBuffer:
    """
    Fixed-capacity FIFO of "[HH:MM:SS] message" lines.

    Writers are the node output readers and the supervisor/installer; readers
    are status queries. Once full, the oldest entry is evicted first.

    Args:
        capacity: Maximum number of entries kept in memory
        logs_dir: Directory for daily files (required when persisting)
        retention_days: If > 0, entries are also appended to daily files and
            files older than this are removed
    """

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY,
                 logs_dir: Optional[Path] = None, retention_days: int = 0):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.retention_days = retention_days if self.logs_dir else 0
        self._entries: deque[str] = deque(maxlen=capacity)
        self._lock = ReadWriteLock()

        if self.retention_days > 0:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            cleanup_old_logs(self.logs_dir, self.retention_days)
            self._entries.extend(load_recent_logs(self.logs_dir, capacity))

    def append(self, message: str) -> str:
        """Timestamp and store a message. Returns the stored entry."""
        now = datetime.now()
        entry = f"[{now.strftime('%H:%M:%S')}] {message}"

        self._lock.acquire_write()
        try:
            self._entries.append(entry)
        finally:
            self._lock.release_write()

        node_logger.debug(message)
        if self.retention_days > 0:
            append_log(self.logs_dir, message, now)
        return entry

    def recent(self, last_n: int = 0) -> list[str]:
        """
        Return the most recent entries, oldest first.

        last_n <= 0 or larger than the buffer returns everything.
        """
        self._lock.acquire_read()
        try:
            entries = list(self._entries)
        finally:
            self._lock.release_read()

        if last_n <= 0 or last_n >= len(entries):
            return entries
        return entries[-last_n:]

    def clear(self) -> None:
        self._lock.acquire_write()
        try:
            self._entries.clear()
        finally:
            self._lock.release_write()

    def __len__(self) -> int:
        self._lock.acquire_read()
        try:
            return len(self._entries)
        finally:
            self._lock.release_read()


# ============================================
# Disk Persistence
# ============================================

def get_log_file_path(logs_dir: Path, date: Optional[datetime] = None) -> Path:
    """Get the log file path for a specific date (defaults to today)."""
    if date is None:
        date = datetime.now()
    return Path(logs_dir) / f"node-{date.strftime('%Y-%m-%d')}.log"


def append_log(logs_dir: Path, message: str, when: Optional[datetime] = None) -> None:
    """Append one message to the daily log file."""
    when = when or datetime.now()
    log_path = get_log_file_path(logs_dir, when)
    try:
        with open(log_path, 'a', encoding='utf-8') as f:
            f.write(f"[{when.strftime('%Y-%m-%d %H:%M:%S')}] {message}\n")
    except OSError as e:
        # Losing a persisted line must not take the node reader down
        logging.getLogger(__name__).warning(f"Failed to persist log line: {e}")


def load_recent_logs(logs_dir: Path, max_lines: int = 500) -> list[str]:
    """
    Load recent log lines from disk in buffer format.

    Reads today's file and, if needed, yesterday's. Returns oldest first.
    """
    if max_lines <= 0:
        return []

    lines = []
    today_path = get_log_file_path(logs_dir)
    if today_path.exists():
        lines = _read_last_n_lines(today_path, max_lines)

    if len(lines) < max_lines:
        yesterday_path = get_log_file_path(logs_dir, datetime.now() - timedelta(days=1))
        if yesterday_path.exists():
            lines = _read_last_n_lines(yesterday_path, max_lines - len(lines)) + lines

    return [format_log_for_display(line) for line in lines]


def _read_last_n_lines(file_path: Path, n: int) -> list[str]:
    """Read the last N lines from a file."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except (OSError, UnicodeDecodeError):
        return []
    return [line.rstrip('\n') for line in all_lines[-n:]]


def cleanup_old_logs(logs_dir: Path, retention_days: int) -> int:
    """
    Delete node log files older than retention_days.

    Returns:
        Number of files deleted
    """
    if retention_days < 0:
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for file_path in Path(logs_dir).glob("node-*.log"):
        try:
            file_date = datetime.strptime(file_path.stem.replace("node-", ""), "%Y-%m-%d")
            if file_date < cutoff_date:
                file_path.unlink()
                deleted_count += 1
        except (ValueError, OSError):
            # Skip files that don't match expected format
            pass

    return deleted_count


def format_log_for_display(log_line: str) -> str:
    """
    Convert a stored log line back to buffer format.

    Stored: [2026-02-08 14:32:15] Node started
    Display: [14:32:15] Node started
    """
    if log_line.startswith('[') and len(log_line) > 20 and log_line[11] == ' ':
        return f"[{log_line[12:20]}]{log_line[21:]}"
    return log_line
