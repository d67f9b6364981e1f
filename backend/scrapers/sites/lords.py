"""
Lords of the Sound scraper.

The landing page links to one page per country; each country page
carries its own schedule table.

Site structure:
- Landing page: <a href=".../countries/<slug>/#tour">Country</a> links
- Country page: <h1> country name, schedule in `.shedule table`
"""

from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..base import (
    BaseScraper,
    CancellationToken,
    Colors,
    ScrapeCancelledException,
    ShowRecord,
    SourceConfig,
    gather_in_batches,
)
from ..config import get_source_config
from ..utils.extractors import extract_shows
from ..utils.normalizers import clean_country, country_from_url

# Link texts this long are paragraphs, not country names
MAX_LINK_TEXT = 50

COUNTRY_NAME_SELECTORS = ('h1', '.country-name', '.page-title')


def collect_country_links(links: Iterable[Tuple[str, str]], base_url: str) -> List[str]:
    """
    Filter (text, href) pairs down to unique country page URLs.

    Keeps links whose path contains "countries/" on the source's own
    host, with short non-empty text that does not mention "tour".
    Relative hrefs resolve against ``base_url``; fragments are dropped.

    Examples:
        ("Germany", "/countries/germany/#tour") -> https://lordsofthesound.com/countries/germany/
        ("All tour dates", "/countries/") -> skipped
    """
    host = urlparse(base_url).netloc
    seen = set()
    urls = []
    for text, href in links:
        if not href or 'countries/' not in href:
            continue

        url = urljoin(base_url.rstrip('/') + '/', href.strip()).split('#')[0]
        parsed = urlparse(url)
        same_host = parsed.netloc == host or parsed.netloc.endswith('.' + host)
        if not same_host or 'countries/' not in parsed.path:
            continue

        text = (text or '').strip()
        if not text or len(text) >= MAX_LINK_TEXT or 'tour' in text.lower():
            continue

        if url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def soup_links(soup: BeautifulSoup) -> List[Tuple[str, str]]:
    return [(a.get_text(' ', strip=True), a['href']) for a in soup.find_all('a', href=True)]


class LordsScraper(BaseScraper):
    """
    Scraper for Lords of the Sound.

    Flow:
    1. Discover country page URLs on the landing page
    2. Scrape country pages in sequential batches, concurrently within a batch
    3. Each country page runs table strategies, then card strategies
    """

    def __init__(self, config: Optional[SourceConfig] = None, crawler_factory=None):
        super().__init__(config or get_source_config('lords'), crawler_factory)

    async def scrape_country_list(self, token: Optional[CancellationToken] = None) -> List[str]:
        """
        Find all country page URLs.

        Reads links through the live browser first and falls back to the
        rendered markup when that yields nothing.
        """
        if token is not None:
            token.raise_if_cancelled()

        try:
            async with self.new_crawler() as crawler:
                await crawler.fetch(self.config.start_url)

                try:
                    links = collect_country_links(await crawler.find_links('a'), self.config.base_url)
                    self.logger.info(f"Found {len(links)} country links using browser locators")
                except Exception as e:
                    self.logger.warning(f"Browser link lookup failed, trying markup: {e}")
                    links = []

                if not links:
                    soup = BeautifulSoup(await crawler.content(), 'html.parser')
                    links = collect_country_links(soup_links(soup), self.config.base_url)
                    self.logger.info(f"Found {len(links)} country links using markup")
        except ScrapeCancelledException:
            raise
        except Exception as e:
            self.logger.error(f"Error scraping {self.config.name} countries list: {e}")
            return []

        preview = ', '.join(links[:5])
        self.logger.info(f"Found {len(links)} unique country links: {preview}")
        return links

    def country_name(self, soup: BeautifulSoup, url: str) -> str:
        """
        Country for a page: heading, then page-title elements, then the
        URL slug, then <title>. Falls back to "Unknown".
        """
        candidates = []
        for selector in COUNTRY_NAME_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                candidates.append(element.get_text(' ', strip=True))
        candidates.append(country_from_url(url))
        if soup.title is not None:
            candidates.append(soup.title.get_text(strip=True))

        for candidate in candidates:
            name = clean_country(candidate)
            if name and name != 'Unknown':
                return name
        return 'Unknown'

    async def scrape_country(self, url: str, token: Optional[CancellationToken] = None) -> List[ShowRecord]:
        """
        Scrape one country page.

        Any failure is logged and yields an empty list so the rest of the
        batch is unaffected.
        """
        if token is not None:
            token.raise_if_cancelled()

        try:
            async with self.new_crawler() as crawler:
                self.logger.info(f"Navigating to {url}")
                html = await crawler.fetch(url)
        except ScrapeCancelledException:
            raise
        except Exception as e:
            self.logger.error(f"Error scraping country {url}: {e}")
            return []

        soup = BeautifulSoup(html, 'html.parser')
        country = self.country_name(soup, url)
        self.logger.info(f"Extracting shows for country: {country}")
        records = self.extract(soup, country)
        self.logger.info(f"{country}: Extracted {len(records)} shows total")
        return records

    def extract(self, soup: BeautifulSoup, country: str) -> List[ShowRecord]:
        return extract_shows(
            soup,
            self.config.table_selectors,
            country=country,
            orchestra=self.config.orchestra,
            day_first=self.config.day_first,
            log=self.logger,
        )

    async def scrape(self, token: Optional[CancellationToken] = None) -> List[ShowRecord]:
        links = await self.scrape_country_list(token)
        self.logger.info(f"Processing {len(links)} country pages")

        shows = await gather_in_batches(
            links,
            lambda url: self.scrape_country(url, token),
            self.config.batch_size,
            token=token,
            log=self.logger,
        )

        self.logger.info(f"{Colors.green('[OK]')} Total shows collected: {len(shows)}")
        return shows
