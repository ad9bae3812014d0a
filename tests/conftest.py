"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import itertools
import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chitchat.store import Store  # noqa: E402

START_TIME = 1_600_000_000


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: int = START_TIME) -> None:
        self._ticks: Iterator[int] = itertools.count(start)
        self.last: int | None = None

    def __call__(self) -> float:
        self.last = next(self._ticks)
        return float(self.last)


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def store(clock: FakeClock) -> Store:
    """Unbounded store with a fixed, advancing clock."""
    return Store(clock=clock)


@pytest.fixture(scope="function")
def missing_config(tmp_path: Path) -> str:
    """Path to a config file that does not exist (forces built-in defaults)."""
    return str(tmp_path / "missing.yaml")


@pytest.fixture(scope="function", autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    monkeypatch.delenv("CHITCHAT_CONFIG", raising=False)
    for var in list(os.environ):
        if var.startswith("CHITCHAT__"):
            monkeypatch.delenv(var, raising=False)
    yield
