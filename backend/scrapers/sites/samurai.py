"""
38 SAMURAI scraper.

The site publishes a single schedule table. Depending on the current
layout it sits on the landing page or on a separate tour page linked
from the navigation.

Site structure:
- Landing page: schedule <table> with Date / City / Show headers, or none
- Tour page: reached through the first link whose text or URL mentions "tour"
"""

from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..base import BaseScraper, CancellationToken, ScrapeCancelledException, ShowRecord, SourceConfig
from ..config import get_source_config
from ..utils.extractors import extract_shows

# Navigation timeout for the tour page hop (seconds)
TOUR_PAGE_TIMEOUT = 30.0


def find_tour_link(links: Iterable[Tuple[str, str]], base_url: str) -> Optional[str]:
    """
    Pick the first link whose text or href mentions "tour".

    Examples:
        [("Home", "/"), ("Tour", "/schedule")] -> https://38samurai.com/schedule
        [("Dates", "tour-2025")] -> https://38samurai.com/tour-2025

    Returns:
        Absolute URL or None
    """
    for text, href in links:
        if not href:
            continue
        if 'tour' in (text or '').lower() or 'tour' in href.lower():
            return urljoin(base_url.rstrip('/') + '/', href.strip())
    return None


class SamuraiScraper(BaseScraper):
    """
    Scraper for 38 SAMURAI.

    Flow:
    1. Load the landing page
    2. No <table> there: follow one tour link and load that page instead
    3. Run table strategies, then card strategies, over the final page
    """

    def __init__(self, config: Optional[SourceConfig] = None, crawler_factory=None):
        super().__init__(config or get_source_config('samurai'), crawler_factory)

    async def scrape(self, token: Optional[CancellationToken] = None) -> List[ShowRecord]:
        try:
            async with self.new_crawler() as crawler:
                soup = await self.load_schedule_page(crawler, token)
        except ScrapeCancelledException:
            raise
        except Exception as e:
            self.logger.error(f"Error scraping {self.config.name}: {e}")
            return []

        self.logger.info("Starting data extraction...")
        records = self.extract(soup)
        self.logger.info(f"Extracted {len(records)} shows")
        return records

    async def load_schedule_page(self, crawler, token: Optional[CancellationToken] = None) -> BeautifulSoup:
        """Landing page, or the tour page when the landing page has no table."""
        if token is not None:
            token.raise_if_cancelled()

        self.logger.info(f"Fetching {self.config.start_url}")
        html = await crawler.fetch(self.config.start_url)
        soup = BeautifulSoup(html, 'html.parser')
        if soup.find('table') is not None:
            return soup

        self.logger.info("No table on main page, trying Tour page...")
        tour_soup = await self.follow_tour_link(crawler, token)
        return tour_soup if tour_soup is not None else soup

    async def follow_tour_link(self, crawler, token: Optional[CancellationToken] = None) -> Optional[BeautifulSoup]:
        """
        Navigate to the first tour link found by the configured selectors.

        Exactly one extra navigation is made. A failed hop is logged and
        the caller keeps the landing page.
        """
        for selector in self.config.tour_link_selectors:
            try:
                links = await crawler.find_links(selector)
            except Exception as e:
                self.logger.debug(f"Link lookup failed for {selector}: {e}")
                continue

            url = find_tour_link(links, self.config.base_url)
            if not url:
                continue

            if token is not None:
                token.raise_if_cancelled()
            self.logger.info(f"Found tour link: {url}")
            try:
                html = await crawler.fetch(url, timeout=TOUR_PAGE_TIMEOUT)
            except Exception as e:
                self.logger.warning(f"Could not navigate to tour page: {e}")
                return None
            return BeautifulSoup(html, 'html.parser')

        self.logger.info("No tour link found")
        return None

    def extract(self, soup: BeautifulSoup) -> List[ShowRecord]:
        # Rows carry their own country (if any); there is no page-level one
        return extract_shows(
            soup,
            self.config.table_selectors,
            country='',
            orchestra=self.config.orchestra,
            day_first=self.config.day_first,
            log=self.logger,
        )
