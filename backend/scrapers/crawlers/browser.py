"""
Headless browser crawler for JavaScript-rendered schedule pages.

Uses Playwright's async API. One crawler owns one browser, one context
and one page for its whole lifetime; it is never shared between scrapers.
"""

import asyncio
from typing import Callable, List, Optional, Tuple
from bs4 import BeautifulSoup
from playwright.async_api import async_playwright, Browser, BrowserContext, Page
import logging

logger = logging.getLogger(__name__)

VIEWPORT = {'width': 1920, 'height': 1080}
USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class BrowserCrawler:
    """
    Playwright wrapper exposing the operations the scrapers need.

    Features:
    - Navigation with a DOM-content-loaded wait and explicit timeout
    - Fixed settle delay after each navigation
    - Rendered markup and link enumeration on the current page
    - Bounded cleanup so closing never hangs a request
    """

    def __init__(
        self,
        timeout: float = 20.0,
        settle_seconds: float = 2.0,
        headless: bool = True,
    ):
        """
        Initialize the browser crawler.

        Args:
            timeout: Navigation timeout in seconds
            settle_seconds: Time to wait after page load (for JS execution)
            headless: Run browser in headless mode
        """
        self.timeout = timeout
        self.settle_seconds = settle_seconds
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def _init_browser(self):
        """Launch browser, context and page if not already done."""
        if self._page is not None:
            return

        try:
            self._playwright = await async_playwright().start()
            logger.debug("Launching Chromium browser...")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-blink-features=AutomationControlled',
                    '--disable-dev-shm-usage',
                    '--no-sandbox',
                    '--disable-gpu',
                ],
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )
            self._context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
                locale='en-US',
                ignore_https_errors=True,
            )
            self._page = await self._context.new_page()
        except Exception as e:
            logger.error(f"Failed to initialize browser: {e}")
            await self._cleanup()
            raise

    async def _cleanup(self):
        """Clean up browser resources with timeouts to prevent hanging."""
        cleanup_timeout = 2.0  # seconds per close step

        for label, closer in (
            ('page', self._page.close if self._page else None),
            ('context', self._context.close if self._context else None),
            ('browser', self._browser.close if self._browser else None),
            ('playwright', self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await asyncio.wait_for(closer(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Closing {label} timed out, forcing cleanup")
            except Exception as e:
                logger.debug(f"Error closing {label}: {e}")

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        settle_seconds: Optional[float] = None,
    ) -> str:
        """
        Navigate to a URL and return the rendered HTML.

        The page stays on ``url`` afterwards so ``find_links`` reads it.

        Args:
            url: URL to fetch
            timeout: Navigation timeout override in seconds
            settle_seconds: Settle delay override in seconds

        Returns:
            HTML content as string

        Raises:
            Exception: On navigation failure or HTTP error status
        """
        await self._init_browser()
        nav_timeout = self.timeout if timeout is None else timeout
        settle = self.settle_seconds if settle_seconds is None else settle_seconds

        logger.debug(f"BrowserCrawler navigating to: {url}")
        response = await self._page.goto(
            url,
            wait_until='domcontentloaded',
            timeout=int(nav_timeout * 1000),
        )
        if response and response.status >= 400:
            raise Exception(f"HTTP {response.status} for {url}")

        await asyncio.sleep(settle)
        return await self._page.content()

    async def fetch_soup(
        self,
        url: str,
        timeout: Optional[float] = None,
        settle_seconds: Optional[float] = None,
    ) -> BeautifulSoup:
        """Fetch a URL and return parsed BeautifulSoup."""
        html = await self.fetch(url, timeout, settle_seconds)
        return BeautifulSoup(html, 'html.parser')

    async def content(self) -> str:
        """Rendered markup of the current page."""
        await self._init_browser()
        return await self._page.content()

    async def find_links(self, selector: str = 'a') -> List[Tuple[str, str]]:
        """
        Enumerate elements matching ``selector`` on the current page.

        Returns:
            List of (visible text, href) pairs; elements without href are skipped
        """
        await self._init_browser()
        links = []
        for locator in await self._page.locator(selector).all():
            try:
                href = await locator.get_attribute('href')
                text = await locator.text_content()
            except Exception as e:
                logger.debug(f"Skipping unreadable element for {selector}: {e}")
                continue
            if href:
                links.append(((text or '').strip(), href))
        return links

    async def close(self):
        """Close the browser and cleanup resources."""
        await self._cleanup()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self._cleanup()


def make_browser_factory(headless: bool = True) -> Callable:
    """Build a crawler factory for ``BaseScraper`` using source settings."""
    def factory(config):
        return BrowserCrawler(
            timeout=config.navigation_timeout,
            settle_seconds=config.settle_seconds,
            headless=headless,
        )
    return factory
