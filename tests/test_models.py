"""Tests for the sleep log data model."""

import dataclasses
import re
from datetime import date

import pytest

from sleepsync.models import (
    Mood,
    SleepLog,
    MalformedInputError,
    InsufficientSampleError,
    create_sleep_log,
    generate_id,
    normalize_factors,
    parse_sleep_log,
    sleep_log_to_dict,
)


class TestMood:
    """Tests for the Mood enumeration."""

    def test_known_moods(self):
        """Test that every known mood string maps to its member."""
        assert Mood.from_value("energized") == Mood.ENERGIZED
        assert Mood.from_value("exhausted") == Mood.EXHAUSTED

    def test_unknown_mood_falls_back_to_neutral(self):
        """Test that unrecognized or missing moods are treated as neutral."""
        assert Mood.from_value("groggy") == Mood.NEUTRAL
        assert Mood.from_value(None) == Mood.NEUTRAL

    def test_unknown_mood_is_kept_verbatim_on_the_log(self, sleep_logs):
        """Test that the raw mood string survives parsing."""
        groggy = next(log for log in sleep_logs if log.mood == "groggy")

        assert groggy.mood == "groggy"
        assert Mood.from_value(groggy.mood) == Mood.NEUTRAL


class TestCreateSleepLog:
    """Tests for create_sleep_log function."""

    def test_computes_duration(self):
        """Test that the duration is derived from bed and wake times."""
        log = create_sleep_log("2025-10-01", "23:00", "06:45", quality=7)

        assert log.date == date(2025, 10, 1)
        assert log.duration == 7.8

    def test_normalizes_fields(self):
        """Test that factors are deduplicated and notes stripped."""
        log = create_sleep_log(
            date(2025, 10, 1), "22:30", "06:30", quality=8,
            mood="refreshed", factors=["exercise", "caffeine", "exercise", ""], notes="  slept well \n",
        )

        assert log.factors == ("exercise", "caffeine")
        assert log.notes == "slept well"
        assert log.mood == "refreshed"

    def test_generates_unique_ids(self):
        """Test that each new log gets its own id."""
        first = create_sleep_log("2025-10-01", "22:30", "06:30", quality=8)
        second = create_sleep_log("2025-10-01", "22:30", "06:30", quality=8)

        assert first.id != second.id

    def test_malformed_time_raises(self):
        """Test that an invalid clock time fails fast."""
        with pytest.raises(MalformedInputError):
            create_sleep_log("2025-10-01", "10pm", "06:30", quality=8)

    def test_logs_are_immutable(self):
        """Test that a created log cannot be modified."""
        log = create_sleep_log("2025-10-01", "22:30", "06:30", quality=8)

        with pytest.raises(dataclasses.FrozenInstanceError):
            log.quality = 3


class TestSerialization:
    """Tests for parse_sleep_log and sleep_log_to_dict functions."""

    def test_round_trip_preserves_every_field(self, sleep_data_list: list[dict]):
        """Test that parsing then serializing returns the stored records unchanged."""
        for record in sleep_data_list:
            assert sleep_log_to_dict(parse_sleep_log(record)) == record

    def test_stored_duration_is_not_recomputed(self):
        """Test that a stored duration is kept even if it disagrees with the times."""
        log = parse_sleep_log({
            "id": "x", "date": "2025-10-01", "bedtime": "22:30", "waketime": "06:30",
            "duration": 7.9, "quality": 8,
        })

        assert log.duration == 7.9
        assert log.mood == "neutral"
        assert log.factors == ()

    @pytest.mark.parametrize("record", [
        {"id": "x", "bedtime": "22:30", "waketime": "06:30", "duration": 8.0, "quality": 8},
        {"id": "x", "date": "2025/10/01", "bedtime": "22:30", "waketime": "06:30", "duration": 8.0, "quality": 8},
        {"id": "x", "date": "2025-10-01", "bedtime": "22h30", "waketime": "06:30", "duration": 8.0, "quality": 8},
        {"id": "x", "date": "2025-10-01", "bedtime": "22:30", "waketime": "06:30", "duration": "long", "quality": 8},
        ["x"],
        "x",
        None,
    ])
    def test_malformed_records_raise(self, record):
        """Test that unparseable records, including non-objects, raise MalformedInputError."""
        with pytest.raises(MalformedInputError):
            parse_sleep_log(record)


class TestHelpers:
    """Tests for id generation, factor normalization and errors."""

    def test_id_format(self):
        """Test that ids are epoch millis plus a base36 suffix."""
        assert re.fullmatch(r"\d+-[0-9a-z]{9}", generate_id())

    def test_normalize_factors(self):
        """Test dedup keeps first-seen order."""
        assert normalize_factors(["b", "a", "b", "c", "a"]) == ("b", "a", "c")
        assert normalize_factors(None) == ()

    def test_insufficient_sample_message(self):
        """Test that the error carries the sample sizes."""
        error = InsufficientSampleError(required=14, actual=3)

        assert error.required == 14
        assert error.actual == 3
        assert "14" in str(error)

    def test_sleep_log_equality(self):
        """Test that logs with equal fields compare equal."""
        a = SleepLog(id="1", date=date(2025, 10, 1), bedtime="22:30", waketime="06:30", duration=8.0, quality=8)
        b = SleepLog(id="1", date=date(2025, 10, 1), bedtime="22:30", waketime="06:30", duration=8.0, quality=8)

        assert a == b
