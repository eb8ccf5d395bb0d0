"""Sleep log data model, parsing and serialization."""

import random
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time
from enum import Enum
from typing import Iterable, Optional, Union


class SleepAnalyticsError(Exception):
    """Base class for conditions signaled by the analytics engine."""
    pass


class EmptyInputError(SleepAnalyticsError):
    """Raised when an aggregation is requested over zero records."""
    pass


class InsufficientSampleError(SleepAnalyticsError):
    """Raised when there are fewer records than a computation needs."""

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(f"At least {required} records are required, got {actual}")


class MalformedInputError(SleepAnalyticsError, ValueError):
    """Raised when a date, clock time or stored record cannot be parsed."""
    pass


class Mood(str, Enum):
    """Mood reported on waking."""
    ENERGIZED = "energized"
    REFRESHED = "refreshed"
    NEUTRAL = "neutral"
    TIRED = "tired"
    EXHAUSTED = "exhausted"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "Mood":
        """Map a stored mood string to a Mood, falling back to NEUTRAL."""
        try:
            return cls(value)
        except ValueError:
            return cls.NEUTRAL


class Trend(str, Enum):
    """Week-over-week sleep duration trend."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


DateLike = Union[str, date]
TimeLike = Union[str, dt_time]


def parse_sleep_date(value: DateLike) -> date:
    """Parse a YYYY-MM-DD string (or pass through a date) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"Invalid date {value!r}: expected YYYY-MM-DD") from e


def parse_clock_time(value: TimeLike) -> dt_time:
    """Parse an HH:MM 24-hour clock string (or pass through a time)."""
    if isinstance(value, dt_time):
        return value
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"Invalid time {value!r}: expected HH:MM") from e


def normalize_factors(factors: Optional[Iterable[str]]) -> tuple[str, ...]:
    """Drop duplicate and blank factor tags, keeping first-seen order."""
    if not factors:
        return ()
    return tuple(dict.fromkeys(f for f in factors if f))


def generate_id() -> str:
    """Generate an opaque id: epoch millis plus a random base36 suffix."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choices(alphabet, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class SleepLog:
    """One logged night of sleep. `duration` is in hours."""
    id: str
    date: date
    bedtime: str
    waketime: str
    duration: float
    quality: int
    mood: str = Mood.NEUTRAL.value
    factors: tuple[str, ...] = field(default_factory=tuple)
    notes: str = ""


def create_sleep_log(
    sleep_date: DateLike,
    bedtime: TimeLike,
    waketime: TimeLike,
    quality: int,
    mood: str = Mood.NEUTRAL.value,
    factors: Optional[Iterable[str]] = None,
    notes: str = "",
    log_id: Optional[str] = None,
) -> SleepLog:
    """Build a new SleepLog, computing its duration from bed and wake times."""
    from sleepsync.analytics import compute_duration

    parsed_date = parse_sleep_date(sleep_date)
    bed = parse_clock_time(bedtime)
    wake = parse_clock_time(waketime)
    return SleepLog(
        id=log_id or generate_id(),
        date=parsed_date,
        bedtime=bed.strftime("%H:%M"),
        waketime=wake.strftime("%H:%M"),
        duration=compute_duration(bed, wake, parsed_date),
        quality=int(quality),
        mood=mood,
        factors=normalize_factors(factors),
        notes=notes.strip(),
    )


def parse_sleep_log(data: dict) -> SleepLog:
    """Parse a stored record dict. The stored duration is kept as-is."""
    if not isinstance(data, dict):
        raise MalformedInputError(f"Invalid sleep log record: expected an object, got {type(data).__name__}")
    try:
        # Clock times are validated but stored verbatim
        parse_clock_time(data["bedtime"])
        parse_clock_time(data["waketime"])
        return SleepLog(
            id=str(data["id"]),
            date=parse_sleep_date(data["date"]),
            bedtime=data["bedtime"],
            waketime=data["waketime"],
            duration=float(data["duration"]),
            quality=int(data["quality"]),
            mood=data.get("mood", Mood.NEUTRAL.value),
            factors=normalize_factors(data.get("factors")),
            notes=data.get("notes", ""),
        )
    except MalformedInputError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedInputError(f"Invalid sleep log record {data.get('id', '?')!r}: {e}") from e


def sleep_log_to_dict(log: SleepLog) -> dict:
    """Serialize a SleepLog to its JSON-compatible shape."""
    return {
        "id": log.id,
        "date": log.date.isoformat(),
        "bedtime": log.bedtime,
        "waketime": log.waketime,
        "duration": log.duration,
        "quality": log.quality,
        "mood": log.mood,
        "factors": list(log.factors),
        "notes": log.notes,
    }
