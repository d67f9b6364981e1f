"""
Scraper Manager - orchestrates all source scrapers.

Runs every enabled source concurrently, each under its own deadline,
then merges, sorts and summarizes whatever the sources returned.
"""

import asyncio
import time
from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Optional, Type
import logging

from .base import (
    AggregationResult,
    BaseScraper,
    CancellationToken,
    Colors,
    CrawlerFactory,
    ShowRecord,
    SourceResult,
)
from .config import SOURCES, get_source_config, get_enabled_sources
from .session_log import SessionLog
from .sites.samurai import SamuraiScraper
from .sites.lords import LordsScraper
from .utils.normalizers import sort_shows, summarize_by_country_month

logger = logging.getLogger(__name__)


# Registry of implemented scrapers
SCRAPER_REGISTRY: Dict[str, Type[BaseScraper]] = {
    'samurai': SamuraiScraper,
    'lords': LordsScraper,
}


async def run_with_deadline(
    source: str,
    work: Callable[[CancellationToken], Awaitable[List[ShowRecord]]],
    timeout: float,
    log: Optional[logging.Logger] = None,
) -> SourceResult:
    """
    Run one source's scrape under a deadline.

    On expiry the token is signalled and the task cancelled, then the
    task is awaited so its browser sessions close before this returns.
    A late source contributes nothing, not a partial list.

    Args:
        source: Source key, for the result and diagnostics
        work: Coroutine function taking the cancellation token
        timeout: Deadline in seconds

    Returns:
        SourceResult (records empty when timed out or failed)
    """
    log = log or logger
    token = CancellationToken()
    started = time.monotonic()
    result = SourceResult(source=source)

    task = asyncio.create_task(work(token))
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        token.cancel('aggregation cancelled')
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise

    if task in done:
        try:
            result.records = task.result()
        except Exception as e:
            log.error(f"Scraper failed for {source}: {e}")
            result.error = str(e)
    else:
        token.cancel(f"deadline of {timeout:.0f}s exceeded")
        task.cancel()
        # Wait for the scraper's cleanup; its outcome is discarded
        await asyncio.gather(task, return_exceptions=True)
        log.warning(f"{Colors.yellow('[TIMEOUT]')} {source} exceeded {timeout:.0f}s, discarding its results")
        result.timed_out = True

    result.duration_seconds = time.monotonic() - started
    return result


class ScraperManager:
    """
    Manages and orchestrates all source scrapers.

    Usage:
        manager = ScraperManager()

        # Run every enabled source and merge
        result = await manager.aggregate()

        # Run a single source
        source_result = await manager.scrape_source('samurai')

        # Check status
        status = manager.list_scrapers()
    """

    def __init__(
        self,
        timeouts: Optional[Dict[str, float]] = None,
        batch_size: Optional[int] = None,
        navigation_timeout: Optional[float] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        session_log_limit: int = 1000,
    ):
        """
        Initialize the scraper manager.

        Args:
            timeouts: Per-source deadline overrides in seconds
            batch_size: Concurrent sub-pages per batch override
            navigation_timeout: Per-navigation timeout override in seconds
            crawler_factory: Crawler factory handed to every scraper
            session_log_limit: Max log entries kept per aggregation
        """
        self.timeouts = timeouts or {}
        self.batch_size = batch_size
        self.navigation_timeout = navigation_timeout
        self.crawler_factory = crawler_factory
        self.session_log_limit = session_log_limit
        self.results: Dict[str, SourceResult] = {}

    def get_scraper(self, source_key: str) -> Optional[BaseScraper]:
        """
        Get a scraper instance for a source, with overrides applied.

        Returns:
            Scraper instance or None if not implemented
        """
        if source_key not in SCRAPER_REGISTRY:
            logger.warning(f"Scraper not implemented for source: {source_key}")
            return None

        config = get_source_config(source_key)
        overrides = {}
        if source_key in self.timeouts:
            overrides['timeout_seconds'] = self.timeouts[source_key]
        if self.batch_size is not None:
            overrides['batch_size'] = self.batch_size
        if self.navigation_timeout is not None:
            overrides['navigation_timeout'] = self.navigation_timeout
        if overrides:
            config = replace(config, **overrides)

        scraper_class = SCRAPER_REGISTRY[source_key]
        return scraper_class(config=config, crawler_factory=self.crawler_factory)

    async def scrape_source(self, source_key: str) -> SourceResult:
        """
        Run the scraper for a single source under its deadline.

        Raises:
            ValueError: If source_key is not configured
        """
        config = get_source_config(source_key)
        scraper = self.get_scraper(source_key)
        if scraper is None:
            result = SourceResult(source=source_key, error=f'Scraper not implemented for {source_key}')
            self.results[source_key] = result
            return result

        timeout = scraper.config.timeout_seconds
        logger.info(f"Starting scrape for {config.name} ({source_key}), deadline {timeout:.0f}s")
        result = await run_with_deadline(source_key, scraper.scrape, timeout, logger)

        if result.success:
            logger.info(
                f"{Colors.green('[OK]')} {config.name}: {len(result.records)} shows "
                f"in {result.duration_seconds:.1f}s"
            )
        self.results[source_key] = result
        return result

    async def aggregate(self, source_keys: Optional[List[str]] = None) -> AggregationResult:
        """
        Scrape sources concurrently, then merge, sort and summarize.

        A source that fails or times out contributes no records; the
        request itself only fails on errors outside the sources.

        Args:
            source_keys: Sources to run (defaults to all enabled and implemented)

        Returns:
            AggregationResult with the session's captured log entries
        """
        started = time.monotonic()
        if source_keys is None:
            source_keys = [k for k in get_enabled_sources() if k in SCRAPER_REGISTRY]

        session = SessionLog(limit=self.session_log_limit)
        with session.attach():
            logger.info(f"Starting aggregation for {len(source_keys)} sources: {source_keys}")
            tasks = [asyncio.create_task(self.scrape_source(k)) for k in source_keys]
            try:
                source_results = await asyncio.gather(*tasks)
            except BaseException:
                # Stop the other sources and let their browsers close before re-raising
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

            merged = [record for result in source_results for record in result.records]
            shows = sort_shows(merged)
            summary = summarize_by_country_month(shows)
            elapsed = time.monotonic() - started
            logger.info(f"Total shows: {len(shows)} from {len(summary)} countries in {elapsed:.1f}s")

        return AggregationResult(
            shows=shows,
            summary=summary,
            load_time=f"{elapsed:.1f}",
            session_id=session.session_id,
            logs=session.entries,
            sources=list(source_results),
        )

    def list_scrapers(self) -> List[Dict]:
        """
        List all configured sources and their implementation status.

        Returns:
            List of source info dictionaries
        """
        scrapers = []
        for key, config in SOURCES.items():
            scrapers.append({
                'key': key,
                'name': config.name,
                'orchestra': config.orchestra,
                'enabled': config.enabled,
                'implemented': key in SCRAPER_REGISTRY,
                'url': config.start_url,
                'timeout_seconds': self.timeouts.get(key, config.timeout_seconds),
            })
        return scrapers


# Convenience function for standalone usage

async def aggregate(**kwargs) -> AggregationResult:
    """
    Scrape and merge all enabled sources.

    Args:
        **kwargs: Passed to ScraperManager

    Returns:
        AggregationResult
    """
    manager = ScraperManager(**kwargs)
    return await manager.aggregate()
