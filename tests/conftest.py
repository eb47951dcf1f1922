"""Shared fixtures: isolated data directories and fake node executables."""

import os
import sys
import textwrap
import time
from pathlib import Path

import pytest

from services.logging import LogRingBuffer
from utils import NodePaths


@pytest.fixture
def paths(tmp_path) -> NodePaths:
    return NodePaths(tmp_path / "data").ensure()


@pytest.fixture
def logs() -> LogRingBuffer:
    return LogRingBuffer()


@pytest.fixture
def make_script():
    """Write an executable Python script that stands in for a node binary."""

    def _make(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        os.chmod(path, 0o755)
        return path

    return _make


@pytest.fixture
def wait_for():
    """Poll until predicate() is true or the timeout elapses."""

    def _wait(predicate, timeout: float = 10.0, interval: float = 0.05) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
