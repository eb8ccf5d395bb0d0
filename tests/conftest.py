"""Pytest configuration and shared fixtures for tests."""

import json
from datetime import date
from pathlib import Path
from typing import Callable, Optional

import pytest

from sleepsync.models import SleepLog, parse_sleep_log

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sleep_fixture_data() -> dict:
    """Load the sleep log fixture data."""
    with open(FIXTURES_DIR / "sleep_logs_2025-10-01_2025-10-15.json") as f:
        return json.load(f)


@pytest.fixture
def sleep_data_list(sleep_fixture_data: dict) -> list[dict]:
    """Get the list of sleep log records from fixture."""
    return sleep_fixture_data["data"]


@pytest.fixture
def sleep_logs(sleep_data_list: list[dict]) -> list[SleepLog]:
    """Get the fixture records parsed into SleepLog objects."""
    return [parse_sleep_log(record) for record in sleep_data_list]


@pytest.fixture
def make_log() -> Callable[..., SleepLog]:
    """Factory for SleepLog objects with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make_log(
        day: date,
        duration: float = 8.0,
        quality: int = 7,
        bedtime: str = "22:30",
        waketime: str = "06:30",
        mood: str = "neutral",
        factors: tuple[str, ...] = (),
        log_id: Optional[str] = None,
    ) -> SleepLog:
        return SleepLog(
            id=log_id or f"test-{next(counter)}",
            date=day,
            bedtime=bedtime,
            waketime=waketime,
            duration=duration,
            quality=quality,
            mood=mood,
            factors=tuple(factors),
            notes="",
        )

    return _make_log
