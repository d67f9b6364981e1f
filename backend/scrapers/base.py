"""
Base classes for the tour schedule scraper system.

This module defines the abstract base class and data structures
used by all source-specific scrapers.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar
from dataclasses import dataclass, field
from datetime import datetime
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


class ScrapeCancelledException(Exception):
    """Raised inside a scrape when its source deadline has passed."""


class CancellationToken:
    """
    Cooperative stop signal shared by every task of one source scrape.

    The deadline runner sets it; scrapers check it before each navigation
    and between batches so they can stop and close their browser.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = 'cancelled'):
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ScrapeCancelledException(self.reason or 'cancelled')


def is_cancelled(token: Optional[CancellationToken]) -> bool:
    """True when a token is present and has been signalled."""
    return token is not None and token.cancelled


@dataclass(frozen=True)
class SourceConfig:
    """Configuration for one schedule publisher."""
    key: str                            # Registry key (e.g., 'samurai')
    name: str                           # Display name
    orchestra: str                      # Orchestra name stamped on every record
    base_url: str                       # Origin used to resolve relative links
    start_url: str                      # Landing page
    timeout_seconds: float              # Deadline for the whole source
    settle_seconds: float = 2.0         # Delay after DOM content loaded
    navigation_timeout: float = 20.0    # Per-navigation timeout
    day_first: bool = True              # Ambiguous D/M dates read day-first
    table_selectors: Sequence[str] = ('table',)
    tour_link_selectors: Sequence[str] = ()
    batch_size: int = 5                 # Concurrent sub-pages per batch
    enabled: bool = True


@dataclass(frozen=True)
class RawExtraction:
    """One row or card pulled from a page, before date normalization."""
    date_text: str
    country: Optional[str]
    city: Optional[str]
    show: Optional[str]
    orchestra: str


@dataclass(frozen=True)
class ShowRecord:
    """A normalized show. Exists only when its date text parsed."""
    date: datetime
    date_label: str
    country: str
    city: str
    show: str
    orchestra: str

    @property
    def date_iso(self) -> str:
        return self.date.isoformat(timespec='milliseconds')

    @property
    def month_key(self) -> str:
        return f"{self.date.year}-{self.date.month:02d}"

    def to_dict(self) -> Dict[str, str]:
        return {
            'dateISO': self.date_iso,
            'dateLabel': self.date_label,
            'country': self.country,
            'city': self.city,
            'show': self.show,
            'orchestra': self.orchestra,
        }


@dataclass(frozen=True)
class ColumnMap:
    """
    Column positions of the semantic fields within one table.

    ``None`` means the header was not found. A table is only usable
    when the date column resolved.
    """
    date: Optional[int] = None
    city: Optional[int] = None
    show: Optional[int] = None
    country: Optional[int] = None

    @property
    def usable(self) -> bool:
        return self.date is not None

    def cell(self, cells: Sequence[Any], field_name: str) -> str:
        """Trimmed text of the cell for a field, or '' when absent or out of range."""
        index = getattr(self, field_name)
        if index is None or index >= len(cells):
            return ''
        return cells[index].get_text(' ', strip=True)


@dataclass
class SourceResult:
    """Outcome of scraping one source within an aggregation."""
    source: str
    records: List[ShowRecord] = field(default_factory=list)
    duration_seconds: float = 0.0
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.timed_out and self.error is None

    def to_dict(self) -> Dict:
        return {
            'source': self.source,
            'count': len(self.records),
            'duration_seconds': round(self.duration_seconds, 1),
            'timed_out': self.timed_out,
            'error': self.error,
            'success': self.success,
        }


@dataclass
class AggregationResult:
    """Merged, sorted and summarized output of one aggregation request."""
    shows: List[ShowRecord]
    summary: Dict[str, Dict[str, Any]]
    load_time: str
    session_id: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)
    sources: List[SourceResult] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'shows': [s.to_dict() for s in self.shows],
            'summary': self.summary,
            'loadTime': self.load_time,
            'sessionId': self.session_id,
            'sources': [s.to_dict() for s in self.sources],
        }


async def gather_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[List[R]]],
    batch_size: int,
    token: Optional[CancellationToken] = None,
    log: Optional[logging.Logger] = None,
) -> List[R]:
    """
    Run ``worker`` over ``items`` in sequential batches of ``batch_size``.

    Items within a batch run concurrently. Results are concatenated in
    submission order once the whole batch has resolved. A worker that
    raises contributes nothing; the rest of its batch is kept.
    """
    log = log or logger
    batch_size = max(1, batch_size)
    collected: List[R] = []
    total_batches = (len(items) + batch_size - 1) // batch_size

    for start in range(0, len(items), batch_size):
        if token is not None:
            token.raise_if_cancelled()

        batch = items[start:start + batch_size]
        batch_no = start // batch_size + 1
        log.info(f"Processing batch {batch_no}/{total_batches} ({len(batch)} items)")

        outcomes = await asyncio.gather(
            *(worker(item) for item in batch),
            return_exceptions=True,
        )
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, ScrapeCancelledException):
                raise outcome
            if isinstance(outcome, BaseException):
                log.error(f"   {Colors.red('[ERR]')} {item}: {outcome}")
                continue
            collected.extend(outcome)

    return collected


CrawlerFactory = Callable[[SourceConfig], Any]


class BaseScraper(ABC):
    """
    Abstract base class for all source scrapers.

    Subclasses must implement:
    - scrape(): Fetch and extract every show the source publishes

    Each scraper opens its own browser session(s) through
    ``crawler_factory`` and never shares them with other scrapers.
    """

    def __init__(self, config: SourceConfig, crawler_factory: Optional[CrawlerFactory] = None):
        """
        Initialize the scraper.

        Args:
            config: Source configuration
            crawler_factory: Callable building a crawler for this source
                (defaults to a headless BrowserCrawler)
        """
        self.config = config
        self.crawler_factory = crawler_factory or _default_crawler_factory
        self.logger = logging.getLogger(f"scraper.{config.key}")

    def new_crawler(self):
        return self.crawler_factory(self.config)

    @abstractmethod
    async def scrape(self, token: Optional[CancellationToken] = None) -> List[ShowRecord]:
        """
        Scrape the source and return normalized shows.

        Args:
            token: Cancellation token signalled when the source deadline passes

        Returns:
            List of ShowRecord objects (possibly empty)
        """
        pass


def _default_crawler_factory(config: SourceConfig):
    # Imported lazily so the data model does not pull in Playwright
    from .crawlers.browser import make_browser_factory
    return make_browser_factory()(config)
