"""Node log ring buffer and its daily files."""

import re
import threading
from datetime import datetime
from pathlib import Path

import pytest

from services.logging import (
    LogRingBuffer,
    cleanup_old_logs,
    format_log_for_display,
    get_log_file_path,
)

ENTRY_RE = re.compile(r"^\[\d{2}:\d{2}:\d{2}\] ")


def test_entries_are_timestamped():
    buffer = LogRingBuffer()
    entry = buffer.append("Node started")
    assert ENTRY_RE.match(entry)
    assert entry.endswith("] Node started")
    assert buffer.recent() == [entry]


def test_overflow_keeps_newest_in_order():
    buffer = LogRingBuffer(capacity=1000)
    for i in range(1500):
        buffer.append(f"line {i}")

    entries = buffer.recent()
    assert len(entries) == 1000
    assert entries[0].endswith(" line 500")
    assert entries[-1].endswith(" line 1499")
    assert [int(e.rsplit(" ", 1)[1]) for e in entries] == list(range(500, 1500))


def test_recent_tail():
    buffer = LogRingBuffer()
    for i in range(10):
        buffer.append(f"line {i}")

    assert [e.rsplit(" ", 1)[1] for e in buffer.recent(3)] == ["7", "8", "9"]
    assert len(buffer.recent(0)) == 10
    assert len(buffer.recent(-1)) == 10
    assert len(buffer.recent(50)) == 10


def test_clear():
    buffer = LogRingBuffer()
    buffer.append("x")
    buffer.clear()
    assert len(buffer) == 0
    assert buffer.recent() == []


def test_invalid_capacity():
    with pytest.raises(ValueError):
        LogRingBuffer(capacity=0)


def test_concurrent_writers_and_readers():
    buffer = LogRingBuffer(capacity=1000)
    errors = []

    def write(worker):
        for i in range(400):
            buffer.append(f"w{worker} {i}")

    def read():
        try:
            for _ in range(200):
                assert len(buffer.recent()) <= 1000
        except AssertionError as e:
            errors.append(e)

    threads = [threading.Thread(target=write, args=(n,)) for n in range(4)]
    threads += [threading.Thread(target=read) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(buffer) == 1000
    # Per-writer order survives interleaving
    for worker in range(4):
        seen = [int(e.rsplit(" ", 1)[1]) for e in buffer.recent() if f"] w{worker} " in e]
        assert seen == sorted(seen)


# ============================================
# Disk persistence
# ============================================

def test_persisted_entries_are_reloaded(tmp_path):
    buffer = LogRingBuffer(logs_dir=tmp_path, retention_days=7)
    buffer.append("Node started (direct)")
    buffer.append("height=42")

    log_file = get_log_file_path(tmp_path)
    assert log_file.exists()
    assert "height=42" in log_file.read_text()

    reloaded = LogRingBuffer(logs_dir=tmp_path, retention_days=7)
    assert [e.split("] ", 1)[1] for e in reloaded.recent()] == ["Node started (direct)", "height=42"]
    assert all(ENTRY_RE.match(e) for e in reloaded.recent())


def test_memory_only_writes_nothing(tmp_path):
    buffer = LogRingBuffer(logs_dir=tmp_path, retention_days=0)
    buffer.append("hello")
    assert list(tmp_path.iterdir()) == []


def test_cleanup_old_logs(tmp_path):
    old = tmp_path / "node-2000-01-01.log"
    old.write_text("[2000-01-01 00:00:00] ancient\n")
    odd = tmp_path / "node-notadate.log"
    odd.write_text("keep me\n")
    today = get_log_file_path(tmp_path)
    today.write_text("[2026-01-01 00:00:00] fresh\n")

    assert cleanup_old_logs(tmp_path, retention_days=7) == 1
    assert not old.exists()
    assert odd.exists()
    assert today.exists()


def test_format_log_for_display():
    assert format_log_for_display("[2026-02-08 14:32:15] Node started") == "[14:32:15] Node started"
    assert format_log_for_display("plain line") == "plain line"


def test_log_file_name():
    path = get_log_file_path(Path("/logs"), datetime(2026, 3, 4))
    assert path == Path("/logs/node-2026-03-04.log")
