"""Sleep log analytics module. No I/O, no state kept between calls."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Hashable, Iterable, Optional, Sequence, TypeVar
import pandas as pd

from sleepsync.models import (
    DateLike,
    EmptyInputError,
    InsufficientSampleError,
    SleepLog,
    TimeLike,
    Trend,
    parse_clock_time,
    parse_sleep_date,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

# Sunday-first weekday numbering, used for every per-weekday bucket
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Trend compares the last TREND_WINDOW_SIZE records against the TREND_WINDOW_SIZE before them,
# by position after sorting by date (not by calendar week)
TREND_WINDOW_SIZE = 7
TREND_MIN_RECORDS = 2 * TREND_WINDOW_SIZE

# Change in average hours needed before a trend counts as improving/declining
TREND_THRESHOLD_HOURS = 0.3

# Minimum quality rating for a night to count towards the optimal bedtime
OPTIMAL_BEDTIME_MIN_QUALITY = 8

DEFAULT_RECENT_LOGS_LIMIT = 5
DEFAULT_CHART_LIMIT = 7

SLEEP_LOG_COLUMNS = [
    "id", "date", "weekday", "bedtime", "waketime", "duration", "quality", "mood", "factors", "notes",
]


@dataclass
class DayOfWeekStats:
    """Sleep duration statistics for one weekday."""
    count: int
    average_duration: float


@dataclass
class FactorStats:
    """Average quality of the nights a factor was logged on."""
    factor: str
    average_quality: float
    count: int


@dataclass
class ChartPoint:
    """One bar/point of the duration and quality chart."""
    date: date
    duration: float
    quality: int


@dataclass
class DashboardStats:
    """Headline numbers for the dashboard. Averages are None without data."""
    total_logs: int
    average_duration: Optional[float]
    average_quality: Optional[float]
    streak: int

    @classmethod
    def empty(cls) -> "DashboardStats":
        """Create a DashboardStats instance for an empty collection."""
        return cls(total_logs=0, average_duration=None, average_quality=None, streak=0)


@dataclass
class SleepInsights:
    """Behavioral insights. A field is None when its input was empty or too small."""
    best_day: Optional[str]
    best_day_average: Optional[float]
    optimal_bedtime: Optional[str]
    top_factor: Optional[str]
    weekly_trend: Optional[Trend]

    @classmethod
    def empty(cls) -> "SleepInsights":
        """Create a SleepInsights instance with nothing available."""
        return cls(
            best_day=None,
            best_day_average=None,
            optimal_bedtime=None,
            top_factor=None,
            weekly_trend=None,
        )


def weekday_name(day: date) -> str:
    """Sunday-first weekday name of a date."""
    # date.weekday() is Monday=0
    return WEEKDAY_NAMES[(day.weekday() + 1) % 7]


def sleep_logs_to_dataframe(logs: Sequence[SleepLog]) -> pd.DataFrame:
    """Convert sleep logs to a DataFrame, one row per log in insertion order."""
    records = []
    for log in logs:
        record = {
            "id": log.id,
            "date": log.date,
            "weekday": weekday_name(log.date),
            "bedtime": log.bedtime,
            "waketime": log.waketime,
            "duration": log.duration,
            "quality": log.quality,
            "mood": log.mood,
            "factors": log.factors,
            "notes": log.notes,
        }
        records.append(record)
    return pd.DataFrame(records, columns=SLEEP_LOG_COLUMNS)


def _sorted_by_date(logs: Iterable[SleepLog], descending: bool = False) -> list[SleepLog]:
    # sorted() is stable in both directions, so same-date logs keep insertion order
    return sorted(logs, key=lambda log: log.date, reverse=descending)


def compute_duration(bedtime: TimeLike, waketime: TimeLike, sleep_date: DateLike) -> float:
    """Compute hours slept between bedtime and waketime.

    Bedtime is placed on `sleep_date`. Waketime is placed on the same day unless
    that would put it at or before bedtime, in which case it moves to the next day.
    Equal bed and wake times therefore give a full 24 hour session.

    Args:
        bedtime: "HH:MM" string or time.
        waketime: "HH:MM" string or time.
        sleep_date: "YYYY-MM-DD" string or date the night is attributed to.

    Returns:
        Hours rounded to one decimal place, halves rounded away from zero.

    Raises:
        MalformedInputError: If any input cannot be parsed.
    """
    night = parse_sleep_date(sleep_date)
    bed_at = datetime.combine(night, parse_clock_time(bedtime))
    wake_at = datetime.combine(night, parse_clock_time(waketime))

    if wake_at <= bed_at:
        wake_at += timedelta(days=1)

    # Decimal keeps exact halves (e.g. 3 minutes = 0.05h) from rounding down
    seconds = Decimal(str((wake_at - bed_at).total_seconds()))
    hours = (seconds / Decimal(3600)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(hours)


def compute_streak(logs: Iterable[SleepLog], today: Optional[DateLike] = None) -> int:
    """Count consecutive days, ending today, that have at least one log.

    The streak is the currently active one: without a log dated today it is 0.
    Several logs on the same date count as a single day.
    """
    if today is None:
        today = date.today()
    else:
        today = parse_sleep_date(today)

    logged_days = {log.date for log in logs}

    streak = 0
    expected = today
    while expected in logged_days:
        streak += 1
        expected -= timedelta(days=1)
    return streak


def average_duration(logs: Sequence[SleepLog]) -> float:
    """Mean sleep duration in hours. Raises EmptyInputError without logs."""
    if not logs:
        raise EmptyInputError("Cannot average sleep duration of zero logs")
    df = sleep_logs_to_dataframe(logs)
    return float(df["duration"].mean())


def average_quality(logs: Sequence[SleepLog]) -> float:
    """Mean quality rating. Raises EmptyInputError without logs."""
    if not logs:
        raise EmptyInputError("Cannot average sleep quality of zero logs")
    df = sleep_logs_to_dataframe(logs)
    return float(df["quality"].mean())


def day_of_week_stats(logs: Sequence[SleepLog]) -> dict[str, DayOfWeekStats]:
    """Bucket logs by weekday and average their durations.

    Buckets are keyed by Sunday-first weekday name and ordered by when each
    bucket was first populated while walking the logs in insertion order.
    That order is the tie-break used by best_day().
    """
    df = sleep_logs_to_dataframe(logs)
    if df.empty:
        return {}

    # sort=False keeps groups in order of first appearance
    grouped = df.groupby("weekday", sort=False)["duration"].agg(total="sum", count="count")

    return {
        str(weekday): DayOfWeekStats(
            count=int(row["count"]),
            average_duration=float(row["total"] / row["count"]),
        )
        for weekday, row in grouped.iterrows()
    }


def best_day(logs: Sequence[SleepLog]) -> tuple[str, DayOfWeekStats]:
    """Weekday with the highest average duration.

    Ties go to the weekday bucket populated first (see day_of_week_stats).

    Raises:
        EmptyInputError: If there are no logs.
    """
    stats = day_of_week_stats(logs)
    if not stats:
        raise EmptyInputError("Cannot pick a best day from zero logs")
    # max() returns the first maximal item in iteration order
    return max(stats.items(), key=lambda item: item[1].average_duration)


def factor_quality_stats(logs: Sequence[SleepLog]) -> list[FactorStats]:
    """Average quality per factor tag, best first.

    Every log adds its full quality rating to each of its factors, so a log
    with two factors counts towards both. Logs without factors are ignored.
    Factors with equal averages keep the order they were first seen in.
    """
    df = sleep_logs_to_dataframe(logs)
    if df.empty:
        return []

    # One row per (log, factor); logs without factors explode to NaN
    exploded = df[["factors", "quality"]].explode("factors").dropna(subset=["factors"])
    if exploded.empty:
        return []

    grouped = exploded.groupby("factors", sort=False)["quality"].agg(total="sum", count="count")

    stats = [
        FactorStats(
            factor=str(factor),
            average_quality=float(row["total"] / row["count"]),
            count=int(row["count"]),
        )
        for factor, row in grouped.iterrows()
    ]
    return sorted(stats, key=lambda s: s.average_quality, reverse=True)


def top_factor(logs: Sequence[SleepLog]) -> FactorStats:
    """Factor with the best average quality. Raises EmptyInputError if no log has factors."""
    stats = factor_quality_stats(logs)
    if not stats:
        raise EmptyInputError("No factors have been logged")
    return stats[0]


def most_common(values: Iterable[T]) -> T:
    """Most frequent value; ties go to the value encountered first.

    Raises:
        EmptyInputError: If `values` is empty.
    """
    counts: dict[T, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1

    if not counts:
        raise EmptyInputError("Cannot find the most common value of an empty sequence")

    # dicts keep insertion order, so max() picks the first-seen value among ties
    return max(counts, key=counts.__getitem__)


def optimal_bedtime(logs: Iterable[SleepLog], min_quality: int = OPTIMAL_BEDTIME_MIN_QUALITY) -> str:
    """Most common bedtime among nights rated at least `min_quality`."""
    bedtimes = [log.bedtime for log in logs if log.quality >= min_quality]
    if not bedtimes:
        raise EmptyInputError(f"No logs with quality >= {min_quality}")
    return most_common(bedtimes)


def _weekly_duration_delta(logs: Sequence[SleepLog]) -> Decimal:
    if len(logs) < TREND_MIN_RECORDS:
        raise InsufficientSampleError(TREND_MIN_RECORDS, len(logs))

    # Stored durations have one decimal place; Decimal keeps a change of exactly
    # TREND_THRESHOLD_HOURS from landing a hair above or below it
    durations = [Decimal(str(log.duration)) for log in _sorted_by_date(logs)]
    recent = durations[-TREND_WINDOW_SIZE:]
    previous = durations[-TREND_MIN_RECORDS:-TREND_WINDOW_SIZE]

    return (sum(recent) - sum(previous)) / TREND_WINDOW_SIZE


def weekly_duration_change(logs: Sequence[SleepLog]) -> float:
    """Average duration of the last 7 logs minus that of the 7 before them.

    Logs are sorted by date first; the two windows are taken by position, so
    gaps in the calendar are not accounted for.

    Raises:
        InsufficientSampleError: With fewer than 14 logs.
    """
    return float(_weekly_duration_delta(logs))


def weekly_trend(logs: Sequence[SleepLog]) -> Trend:
    """Classify the week-over-week duration change.

    More than TREND_THRESHOLD_HOURS up is improving, more than that down is
    declining, anything in between is stable.

    Raises:
        InsufficientSampleError: With fewer than 14 logs, rather than
            reporting a stable trend the data cannot support.
    """
    delta = _weekly_duration_delta(logs)
    threshold = Decimal(str(TREND_THRESHOLD_HOURS))
    if delta > threshold:
        return Trend.IMPROVING
    if delta < -threshold:
        return Trend.DECLINING
    return Trend.STABLE


def recent_logs(logs: Iterable[SleepLog], limit: int = DEFAULT_RECENT_LOGS_LIMIT) -> list[SleepLog]:
    """Most recent logs by date, newest first."""
    return _sorted_by_date(logs, descending=True)[:limit]


def chart_points(logs: Sequence[SleepLog], limit: int = DEFAULT_CHART_LIMIT) -> list[ChartPoint]:
    """The last `limit` logs in insertion order, as chart points."""
    if limit <= 0:
        return []
    return [
        ChartPoint(date=log.date, duration=log.duration, quality=log.quality)
        for log in list(logs)[-limit:]
    ]


def analyze_dashboard(logs: Sequence[SleepLog], today: Optional[DateLike] = None) -> DashboardStats:
    """Compute the dashboard headline numbers.

    Empty input yields DashboardStats.empty() rather than an error, leaving
    the "no data" rendering to the presentation layer.
    """
    if not logs:
        return DashboardStats.empty()

    return DashboardStats(
        total_logs=len(logs),
        average_duration=average_duration(logs),
        average_quality=average_quality(logs),
        streak=compute_streak(logs, today),
    )


def analyze_insights(logs: Sequence[SleepLog]) -> SleepInsights:
    """Compute all insights, leaving unavailable ones as None.

    Each insight is computed independently: a collection can have a best day
    but no optimal bedtime (no night rated 8+) or no trend (under 14 logs).
    """
    if not logs:
        return SleepInsights.empty()

    insights = SleepInsights.empty()

    day, day_stats = best_day(logs)
    insights.best_day = day
    insights.best_day_average = day_stats.average_duration

    try:
        insights.optimal_bedtime = optimal_bedtime(logs)
    except EmptyInputError:
        logger.debug(f"No logs rated >= {OPTIMAL_BEDTIME_MIN_QUALITY}, optimal bedtime unavailable")

    try:
        insights.top_factor = top_factor(logs).factor
    except EmptyInputError:
        logger.debug("No factors logged, top factor unavailable")

    try:
        insights.weekly_trend = weekly_trend(logs)
    except InsufficientSampleError as e:
        logger.debug(f"Weekly trend unavailable: {e}")

    return insights
