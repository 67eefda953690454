"""Shared test fixtures for klik tests."""

import random
import tempfile
from datetime import date
from pathlib import Path

import pytest

from core.models import CharSessionStats
from core.sqlite_adapter import SQLiteStatsStore
from utils.config import AppSettings


@pytest.fixture
def temp_db_path():
    """Create a temporary database path and clean up afterwards."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield db_path


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def store(temp_db_path):
    """Initialized SQLite store on a temporary file."""
    store = SQLiteStatsStore(temp_db_path)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def rng():
    return random.Random(1234)


def _make_stats(
    character: str,
    total: int,
    correct: int,
    total_time_ms: int = 0,
    min_time_ms: int | None = None,
    max_time_ms: int | None = None,
    session_date: date | None = None,
) -> CharSessionStats:
    """Build a stats row, deriving timings for correct attempts when omitted."""
    if correct and min_time_ms is None:
        avg = total_time_ms // correct
        min_time_ms = max_time_ms = avg
        total_time_ms = avg * correct
    return CharSessionStats(
        character=character,
        total_attempts=total,
        correct_attempts=correct,
        total_time_ms=total_time_ms,
        min_time_ms=min_time_ms,
        max_time_ms=max_time_ms,
        session_date=session_date,
    )


@pytest.fixture
def make_stats():
    """Factory for stats rows."""
    return _make_stats

