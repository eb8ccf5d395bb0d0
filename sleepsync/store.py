"""JSON file persistence for the sleep log collection."""

import json
import logging
import os
import random
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from sleepsync.models import (
    MalformedInputError,
    Mood,
    SleepLog,
    generate_id,
    parse_sleep_log,
    sleep_log_to_dict,
)

logger = logging.getLogger(__name__)

SAMPLE_DATA_DAYS = 7
SAMPLE_MOODS = (Mood.ENERGIZED, Mood.REFRESHED, Mood.NEUTRAL)


def generate_sample_data(today: Optional[date] = None, rng: Optional[random.Random] = None) -> list[SleepLog]:
    """Generate a week of demo logs ending today.

    Every night runs 22:30 to 06:30 with the "exercise" factor; quality is
    drawn from 7-9 and mood from the three positive moods.
    """
    if today is None:
        today = date.today()
    if rng is None:
        rng = random.Random()

    sample_data = []
    for days_ago in range(SAMPLE_DATA_DAYS - 1, -1, -1):
        sample_data.append(SleepLog(
            id=generate_id(),
            date=today - timedelta(days=days_ago),
            bedtime="22:30",
            waketime="06:30",
            duration=8.0,
            quality=rng.randint(7, 9),
            mood=rng.choice(SAMPLE_MOODS).value,
            factors=("exercise",),
            notes="",
        ))
    return sample_data


class SleepLogStore:
    """
    Owns the sleep log collection and keeps it in sync with a JSON file.

    The collection only grows by append (or is cleared as a whole). Readers get
    a tuple snapshot from snapshot(), so analytics never see a list that is
    being modified by a concurrent request.
    """

    def __init__(self, path: Path, seed_sample_data: bool = False):
        """
        Initialize the store. Nothing is read until load() is called.

        Args:
            path: JSON file holding the collection.
            seed_sample_data: Seed a week of demo logs when the file does not exist.
        """
        self._path = Path(path)
        self._seed_sample_data = seed_sample_data
        self._logs: list[SleepLog] = []
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Get the backing file path."""
        return self._path

    def load(self) -> tuple[SleepLog, ...]:
        """Load the collection from disk, seeding it if configured and missing.

        Raises:
            MalformedInputError: If the file is not valid JSON or holds an unparseable record.
        """
        with self._lock:
            if not self._path.exists():
                if self._seed_sample_data:
                    sample_data = generate_sample_data()
                    self._write(sample_data)
                    self._logs = sample_data
                    logger.info(f"Seeded {len(self._logs)} sample sleep logs into {self._path}")
                else:
                    self._logs = []
                    logger.info(f"No sleep log file at {self._path}, starting empty")
                return tuple(self._logs)

            with open(self._path, "r") as f:
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise MalformedInputError(f"Sleep log file {self._path} is not valid JSON: {e}") from e

            # Older exports are a bare list; saved files wrap it with metadata
            records = data.get("data", []) if isinstance(data, dict) else data
            if not isinstance(records, list):
                raise MalformedInputError(f"Sleep log file {self._path} does not hold a list of records")
            self._logs = [parse_sleep_log(record) for record in records]
            logger.info(f"Loaded {len(self._logs)} sleep logs from {self._path}")
            return tuple(self._logs)

    def snapshot(self) -> tuple[SleepLog, ...]:
        """Get an immutable view of the current collection."""
        with self._lock:
            return tuple(self._logs)

    def append(self, log: SleepLog) -> None:
        """Add a log and persist the collection."""
        with self._lock:
            logs = self._logs + [log]
            self._write(logs)
            self._logs = logs
        logger.info(f"Saved sleep log {log.id} for {log.date}")

    def clear(self) -> None:
        """Remove all logs and persist the empty collection."""
        with self._lock:
            count = len(self._logs)
            self._write([])
            self._logs = []
        logger.info(f"Cleared {count} sleep logs")

    def export(self) -> list[dict]:
        """Serialize the collection in insertion order."""
        with self._lock:
            return [sleep_log_to_dict(log) for log in self._logs]

    def _write(self, logs: list[SleepLog]) -> None:
        """Write `logs` with metadata, replacing the file atomically. Caller must hold the lock.

        The file is written to a temporary sibling first, so a failed write
        leaves the previous file intact.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "_metadata": {
                "saved_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                "count": len(logs),
            },
            "data": [sleep_log_to_dict(log) for log in logs],
        }

        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self._path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
