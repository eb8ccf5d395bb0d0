import argparse
import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Configure logging to match uvicorn's format
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(name)s - %(message)s",
)

from sleepsync.config import DEFAULT_DATA_FILE, SEED_SAMPLE_DATA
from sleepsync.models import MalformedInputError, SleepLog, create_sleep_log, sleep_log_to_dict
from sleepsync.store import SleepLogStore
from sleepsync.analytics import (
    DEFAULT_CHART_LIMIT,
    DEFAULT_RECENT_LOGS_LIMIT,
    analyze_dashboard,
    analyze_insights,
    chart_points,
    recent_logs,
)
from sleepsync.formatting import (
    NOT_AVAILABLE,
    capitalize_factor,
    export_filename,
    format_date,
    format_duration,
    format_quality,
    format_streak,
    format_time,
    mood_emoji,
    trend_label,
)

logger = logging.getLogger(__name__)

# Create routers for grouping endpoints
# Handlers are plain functions: the store blocks on its lock and on file I/O,
# so FastAPI runs them in its threadpool instead of on the event loop
logs_router = APIRouter(prefix="/logs", tags=["logs"])
analytics_router = APIRouter(prefix="/analytics", tags=["analytics"])

# Global store instance, initialized at startup
sleep_store: SleepLogStore | None = None

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
MAX_NOTES_LENGTH = 500


class SleepLogCreate(BaseModel):
    """Request body for logging a night of sleep."""
    model_config = ConfigDict(populate_by_name=True)

    sleep_date: date = Field(..., alias="date", description="Night the sleep is attributed to (YYYY-MM-DD)")
    bedtime: str = Field(..., pattern=CLOCK_PATTERN, description="Bedtime (HH:MM, 24h)")
    waketime: str = Field(..., pattern=CLOCK_PATTERN, description="Wake time (HH:MM, 24h)")
    quality: int = Field(5, ge=1, le=10, description="Subjective quality rating 1-10")
    mood: str = "neutral"
    factors: list[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("sleep_date")
    @classmethod
    def not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("date cannot be in the future")
        return value

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: str) -> str:
        value = value.strip()
        if len(value) > MAX_NOTES_LENGTH:
            raise ValueError(f"notes cannot exceed {MAX_NOTES_LENGTH} characters")
        return value


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    # Environment variable takes precedence, then CLI arg, then default
    env_data_file = os.environ.get("SLEEPSYNC_DATA_FILE")

    parser = argparse.ArgumentParser(description="SleepSync API")
    parser.add_argument(
        "--data-file",
        type=Path,
        default=DEFAULT_DATA_FILE,
        help="JSON file the sleep logs are stored in",
    )
    parser.add_argument(
        "--seed-sample-data",
        action="store_true",
        default=SEED_SAMPLE_DATA,
        help="Seed a week of sample logs if the data file does not exist",
    )
    # Use parse_known_args to ignore uvicorn's arguments when running with uvicorn
    args, _ = parser.parse_known_args()
    if env_data_file:
        args.data_file = Path(env_data_file)
    return args


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global sleep_store
    args = parse_args()
    sleep_store = SleepLogStore(args.data_file, seed_sample_data=args.seed_sample_data)
    logs = sleep_store.load()
    logger.info(f"SleepSync initialized with {len(logs)} sleep logs from {args.data_file}")
    yield


app = FastAPI(
    title="SleepSync API",
    description="""
## SleepSync API

Log nightly sleep sessions and get statistics and insights from your history.

### Features
- **Sleep Logs**: Record bedtime, wake time, quality, mood and contributing factors
- **Dashboard Stats**: Average duration and quality, current streak, total logs
- **Insights**: Best sleep day, optimal bedtime, top factor and weekly trend
- **Export**: Download all logs as JSON

### Storage
Logs are stored in a JSON file, configured via `--data-file` flag or
`SLEEPSYNC_DATA_FILE` environment variable.
    """,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    openapi_url="/openapi.json",  # OpenAPI schema
)


def _get_store() -> SleepLogStore:
    if sleep_store is None:
        raise HTTPException(status_code=500, detail="Store not initialized")
    return sleep_store


def _format_log(log: SleepLog) -> dict:
    """Serialize a log with the display fields the log list shows."""
    return {
        **sleep_log_to_dict(log),
        "display_date": format_date(log.date),
        "display_duration": format_duration(log.duration),
        "mood_emoji": mood_emoji(log.mood),
    }


@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "message": "SleepSync API",
        "logs_count": len(sleep_store.snapshot()) if sleep_store else 0,
    }


@logs_router.get("")
def list_logs():
    """Get all sleep logs in the order they were logged."""
    store = _get_store()
    return {"data": store.export()}


@logs_router.post("", status_code=201)
def create_log(body: SleepLogCreate):
    """
    Log a night of sleep.

    Duration is computed from bedtime and wake time; a wake time at or before
    bedtime is taken to be on the following morning.
    """
    store = _get_store()

    try:
        log = create_sleep_log(
            sleep_date=body.sleep_date,
            bedtime=body.bedtime,
            waketime=body.waketime,
            quality=body.quality,
            mood=body.mood,
            factors=body.factors,
            notes=body.notes,
        )
        store.append(log)
    except MalformedInputError as e:
        logger.warning(f"Rejected sleep log: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to save sleep log: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return _format_log(log)


@logs_router.delete("")
def clear_logs():
    """Delete all sleep logs."""
    store = _get_store()
    try:
        store.clear()
    except Exception as e:
        logger.error(f"Failed to clear sleep logs: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "cleared"}


@logs_router.get("/recent")
def list_recent_logs(
    limit: int = Query(DEFAULT_RECENT_LOGS_LIMIT, ge=1, le=100, description="Number of logs to return"),
):
    """Get the most recent sleep logs by date, newest first."""
    store = _get_store()
    return {"data": [_format_log(log) for log in recent_logs(store.snapshot(), limit)]}


@logs_router.get("/export")
def export_logs():
    """Download all sleep logs as a JSON file."""
    store = _get_store()
    return JSONResponse(
        content=store.export(),
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@analytics_router.get("/stats")
def dashboard_stats(
    today: Optional[date] = Query(None, description="Reference date for the streak (YYYY-MM-DD), defaults to today"),
):
    """
    Get dashboard statistics.

    Returns average duration and quality, the current streak of consecutive
    logged days ending today, and the total number of logs. Averages are null
    when nothing has been logged yet.
    """
    store = _get_store()

    try:
        stats = analyze_dashboard(store.snapshot(), today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to compute dashboard stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "total_logs": stats.total_logs,
        "average_duration": float(round(stats.average_duration, 2)) if stats.average_duration is not None else None,
        "average_quality": float(round(stats.average_quality, 2)) if stats.average_quality is not None else None,
        "streak": stats.streak,
        "display": {
            "average_duration": format_duration(stats.average_duration) if stats.average_duration is not None else "0h",
            "average_quality": format_quality(stats.average_quality),
            "streak": format_streak(stats.streak),
            "total_logs": str(stats.total_logs),
        },
    }


@analytics_router.get("/chart")
def duration_chart(
    limit: int = Query(DEFAULT_CHART_LIMIT, ge=1, le=90, description="Number of most recently added logs to chart"),
):
    """Get duration and quality series for the most recently added logs."""
    store = _get_store()
    points = chart_points(store.snapshot(), limit)
    return {
        "labels": [format_date(point.date) for point in points],
        "durations": [point.duration for point in points],
        "qualities": [point.quality for point in points],
    }


@analytics_router.get("/insights")
def insights():
    """
    Get sleep insights.

    Returns the weekday with the longest average sleep, the most common
    bedtime on nights rated 8 or higher, the factor with the best average
    quality and the week-over-week duration trend. Insights that cannot be
    computed yet are reported as "N/A".
    """
    store = _get_store()

    try:
        result = analyze_insights(store.snapshot())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to compute insights: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "best_day": result.best_day or NOT_AVAILABLE,
        "best_day_detail": (
            f"Avg: {format_duration(result.best_day_average)}"
            if result.best_day_average is not None else "No data yet"
        ),
        "optimal_bedtime": format_time(result.optimal_bedtime) if result.optimal_bedtime else NOT_AVAILABLE,
        "top_factor": capitalize_factor(result.top_factor) if result.top_factor else NOT_AVAILABLE,
        "weekly_trend": result.weekly_trend.value if result.weekly_trend else None,
        "weekly_trend_label": trend_label(result.weekly_trend),
    }

app.include_router(logs_router)
app.include_router(analytics_router)
