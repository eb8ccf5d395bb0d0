"""Display helpers for hours, dates, clock times and moods."""

import math
from datetime import date, datetime
from typing import Optional

from sleepsync.models import Mood, Trend, parse_clock_time

MOOD_EMOJI = {
    Mood.ENERGIZED: "😄",
    Mood.REFRESHED: "😊",
    Mood.NEUTRAL: "😐",
    Mood.TIRED: "😴",
    Mood.EXHAUSTED: "😫",
}

TREND_LABELS = {
    Trend.IMPROVING: "↗ Improving",
    Trend.STABLE: "→ Stable",
    Trend.DECLINING: "↘ Declining",
}

NOT_AVAILABLE = "N/A"


def format_duration(hours: float) -> str:
    """Format hours as "8h 30m", or "8h" when there are no leftover minutes."""
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{whole}h {minutes}m" if minutes > 0 else f"{whole}h"


def format_date(day: date) -> str:
    """Format a date as "Mon, Jan 6"."""
    return f"{day.strftime('%a')}, {day.strftime('%b')} {day.day}"


def format_time(clock: str) -> str:
    """Format an "HH:MM" 24-hour time as a 12-hour "10:30 PM"."""
    parsed = parse_clock_time(clock)
    suffix = "PM" if parsed.hour >= 12 else "AM"
    hour12 = parsed.hour % 12 or 12
    return f"{hour12}:{parsed.minute:02d} {suffix}"


def format_streak(days: int) -> str:
    return f"{days} {'day' if days == 1 else 'days'}"


def format_quality(quality: Optional[float]) -> str:
    """Format an average quality as "7.5/10"."""
    if quality is None:
        return NOT_AVAILABLE
    return f"{quality:.1f}/10"


def mood_emoji(mood: Optional[str]) -> str:
    """Emoji for a mood; unknown moods show as neutral."""
    return MOOD_EMOJI[Mood.from_value(mood)]


def trend_label(trend: Optional[Trend]) -> str:
    if trend is None:
        return NOT_AVAILABLE
    return TREND_LABELS[trend]


def capitalize_factor(factor: str) -> str:
    """Capitalize the first letter only ("late_meal" -> "Late_meal")."""
    return factor[:1].upper() + factor[1:]


def export_filename(today: Optional[date] = None) -> str:
    if today is None:
        today = datetime.now().date()
    return f"sleepsync-data-{today.isoformat()}.json"
