from contextlib import asynccontextmanager
from collections import OrderedDict
from fastapi import FastAPI, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pathlib import Path
from typing import Dict, List, Optional
import csv
import io
import json
import logging
import time

from api.config import settings
from scrapers.base import AggregationResult
from scrapers.crawlers import make_browser_factory
from scrapers.manager import ScraperManager
from scrapers.utils.normalizers import summary_rows
from pydantic import BaseModel

# Setup logging directory
settings.log_dir.mkdir(exist_ok=True)

# Configure logging using settings
# Use basicConfig but prevent duplicate logs by configuring child loggers
import re

# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)

# Setup logging with color support for console, stripped for file
file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
file_handler.setFormatter(ColorStripFormatter(settings.log_format))

console_handler = logging.StreamHandler()
console_handler.setFormatter(logging.Formatter(settings.log_format))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[file_handler, console_handler],
    force=True  # Override any existing configuration
)

# Per-source scraper loggers get their own handlers and do not propagate,
# so every message appears once
scraper_logger = logging.getLogger('scraper')
scraper_logger.propagate = False
# Only add handlers if not already present (prevents duplicates on module reload)
if not scraper_logger.handlers:
    # File handler with color stripping
    scraper_file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    scraper_file_handler.setFormatter(ColorStripFormatter(settings.log_format))
    scraper_logger.addHandler(scraper_file_handler)

    # Console handler with colors
    scraper_console_handler = logging.StreamHandler()
    scraper_console_handler.setFormatter(logging.Formatter(settings.log_format))
    scraper_logger.addHandler(scraper_console_handler)
scraper_logger.setLevel(getattr(logging, settings.log_level.upper()))

logger = logging.getLogger(__name__)


# Filter to suppress noisy polling endpoint access logs
class PollingEndpointFilter(logging.Filter):
    # Endpoints that poll frequently and clutter logs
    SUPPRESSED_ENDPOINTS = ['/api/logs/']

    def filter(self, record):
        try:
            msg = record.getMessage()
        except Exception:
            msg = str(record.msg)
        # Suppress requests to polling endpoints
        for endpoint in self.SUPPRESSED_ENDPOINTS:
            if endpoint in msg:
                return False
        return True

# Apply filter to uvicorn access logger at module load time
uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.addFilter(PollingEndpointFilter())


# Last aggregation, served until it is older than the TTL
_schedule_cache: Optional[AggregationResult] = None
_schedule_cache_timestamp: float = 0

# Captured logs of recent sessions, oldest evicted first
_session_logs: "OrderedDict[str, List[dict]]" = OrderedDict()

# Session ids become file names
SESSION_ID_PATTERN = re.compile(r'[A-Za-z0-9-]{1,64}')


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Tour Schedule Backend Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"Source deadlines: {settings.source_timeouts}")
    cleanup_session_logs()
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    # Shutdown
    logger.info("=" * 60)
    logger.info("Tour Schedule Backend Shutting Down")
    logger.info("=" * 60)
    clear_caches()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Tour Schedule API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Id"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Pydantic models for API responses
class ShowResponse(BaseModel):
    dateISO: str
    dateLabel: str
    country: str
    city: str
    show: str
    orchestra: str


class CountrySummaryResponse(BaseModel):
    total: int
    months: Dict[str, int]  # "YYYY-MM" -> count


class SourceStatusResponse(BaseModel):
    source: str
    count: int
    duration_seconds: float
    timed_out: bool
    error: Optional[str] = None
    success: bool


class ScheduleResponse(BaseModel):
    shows: List[ShowResponse]
    summary: Dict[str, CountrySummaryResponse]
    loadTime: str
    sessionId: Optional[str] = None
    sources: List[SourceStatusResponse]


class LogEntryResponse(BaseModel):
    timestamp: str
    level: str
    logger: str
    message: str


class SessionLogsResponse(BaseModel):
    sessionId: str
    logs: List[LogEntryResponse]


class SourceInfoResponse(BaseModel):
    key: str
    name: str
    orchestra: str
    enabled: bool
    implemented: bool
    url: str
    timeout_seconds: float


def get_manager() -> ScraperManager:
    """Build a ScraperManager from settings (overridable in tests)."""
    return ScraperManager(
        timeouts=settings.source_timeouts,
        batch_size=settings.country_batch_size,
        navigation_timeout=settings.navigation_timeout,
        crawler_factory=make_browser_factory(headless=settings.scraper_headless),
        session_log_limit=settings.session_log_limit,
    )


def clear_caches():
    """Drop the cached schedule and all stored session logs."""
    global _schedule_cache, _schedule_cache_timestamp
    _schedule_cache = None
    _schedule_cache_timestamp = 0
    _session_logs.clear()


def session_log_file(session_id: str) -> Optional[Path]:
    """Path of a session's log file, or None for ids that are not safe file names."""
    if not SESSION_ID_PATTERN.fullmatch(session_id):
        return None
    return settings.session_logs_path / f"session-{session_id}.log"


def write_session_log(session_id: str, entries: List[dict]):
    """Write a session's entries as JSON lines."""
    log_file = session_log_file(session_id)
    if log_file is None:
        return
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, 'w', encoding='utf-8') as f:
            for entry in entries:
                f.write(json.dumps(entry) + '\n')
    except OSError as e:
        logger.warning(f"Failed to write session log {log_file}: {e}")


def read_session_log(session_id: str) -> List[dict]:
    """Entries from a session's log file; empty when there is none."""
    log_file = session_log_file(session_id)
    if log_file is None or not log_file.exists():
        return []
    entries = []
    try:
        with open(log_file, encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    entries.append({"timestamp": "", "level": "INFO", "logger": "", "message": line})
    except OSError as e:
        logger.error(f"Failed to read session log {log_file}: {e}")
        return []
    return entries


def cleanup_session_logs() -> int:
    """Delete session log files older than the configured age. Returns the count removed."""
    log_dir = settings.session_logs_path
    if not settings.session_log_files or not log_dir.exists():
        return 0
    cutoff = time.time() - settings.session_log_max_age_days * 24 * 60 * 60
    removed = 0
    for log_file in log_dir.glob("session-*.log"):
        try:
            if log_file.stat().st_mtime < cutoff:
                log_file.unlink()
                removed += 1
        except OSError as e:
            logger.warning(f"Failed to remove {log_file.name}: {e}")
    if removed:
        logger.info(f"Removed {removed} old session log files")
    return removed


def remember_session(result: AggregationResult):
    """Store a session's logs, evicting the oldest beyond the history limit."""
    if not result.session_id:
        return
    _session_logs[result.session_id] = result.logs
    _session_logs.move_to_end(result.session_id)
    while len(_session_logs) > max(1, settings.session_history):
        _session_logs.popitem(last=False)
    if settings.session_log_files:
        write_session_log(result.session_id, result.logs)


def get_session_entries(session_id: str) -> List[dict]:
    """Logs of a session from memory, falling back to its log file."""
    if session_id in _session_logs:
        return _session_logs[session_id]
    if settings.session_log_files:
        return read_session_log(session_id)
    return []


async def load_schedule(manager: ScraperManager, refresh: bool = False) -> AggregationResult:
    """Aggregate all sources, or serve the cached result while it is fresh."""
    global _schedule_cache, _schedule_cache_timestamp

    current_time = time.time()
    if (
        not refresh
        and _schedule_cache is not None
        and settings.cache_ttl_seconds > 0
        and (current_time - _schedule_cache_timestamp) < settings.cache_ttl_seconds
    ):
        logger.info(f"Serving cached schedule (session {_schedule_cache.session_id})")
        return _schedule_cache

    result = await manager.aggregate()
    remember_session(result)
    _schedule_cache = result
    _schedule_cache_timestamp = time.time()
    return result


def schedule_csv(result: AggregationResult) -> str:
    """Render shows, then the per-country month summary, as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Date", "Country", "City", "Show", "Orchestra"])
    for show in result.shows:
        writer.writerow([show.date_label, show.country, show.city, show.show, show.orchestra])

    writer.writerow([])
    writer.writerow(["Country", "Month", "Shows"])
    for row in summary_rows(result.summary):
        writer.writerow(row)
    return buffer.getvalue()


def failure_response(error: Exception, started: float) -> JSONResponse:
    logger.error(f"Error fetching schedules: {error}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Failed to fetch schedules",
            "details": str(error),
            "loadTime": f"{time.monotonic() - started:.1f}",
        },
    )


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Tour Schedule API", "version": "1.0.0"}


@app.get("/api/schedule", response_model=ScheduleResponse)
async def get_schedule(
    response: Response,
    refresh: bool = Query(False, description="Bypass the cached result"),
    manager: ScraperManager = Depends(get_manager),
):
    """Merged, sorted schedule of all sources with a per-country month summary."""
    started = time.monotonic()
    try:
        result = await load_schedule(manager, refresh)
    except Exception as e:
        return failure_response(e, started)

    if result.session_id:
        response.headers["X-Session-Id"] = result.session_id
    return result.to_dict()


@app.get("/api/schedule/export")
async def export_schedule(
    refresh: bool = Query(False, description="Bypass the cached result"),
    manager: ScraperManager = Depends(get_manager),
):
    """Schedule as a CSV download."""
    started = time.monotonic()
    try:
        result = await load_schedule(manager, refresh)
    except Exception as e:
        return failure_response(e, started)

    return Response(
        content=schedule_csv(result),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="tour-schedule.csv"'},
    )


@app.get("/api/logs/{session_id}", response_model=SessionLogsResponse)
async def get_session_logs(session_id: str):
    """Log entries captured while serving one aggregation (empty if unknown)."""
    return {"sessionId": session_id, "logs": get_session_entries(session_id)}


@app.get("/api/sources", response_model=List[SourceInfoResponse])
async def get_sources(manager: ScraperManager = Depends(get_manager)):
    """Configured sources and their deadlines."""
    return manager.list_scrapers()


if __name__ == "__main__":
    import uvicorn

    # Configure uvicorn for faster shutdown
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        access_log=True,
        log_config=None,  # Use default but our filter will handle it
        timeout_keep_alive=5,  # Reduce keep-alive timeout
        timeout_graceful_shutdown=5.0,  # Graceful shutdown timeout (5 seconds)
    )
