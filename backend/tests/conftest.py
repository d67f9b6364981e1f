"""
Pytest configuration and fixtures for tour schedule tests.
"""

import asyncio

import pytest
from bs4 import BeautifulSoup
from fastapi.testclient import TestClient

from api.config import settings
from api.main import app, clear_caches, get_manager
from scrapers.manager import ScraperManager


SAMURAI_URL = "https://38samurai.com/"
LORDS_URL = "https://lordsofthesound.com/"


class FakeSite:
    """
    Canned pages shared by every crawler its factory builds.

    Pages are keyed by absolute URL. A URL listed in ``errors`` raises,
    one listed in ``hang`` never finishes loading.
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.errors = {}
        self.hang = set()
        self.locator_error = False
        self.delay = 0.0
        self.visited = []
        self.fetch_timeouts = {}
        self.opened = 0
        self.closed = 0
        self.active = 0
        self.max_active = 0

    def factory(self, config):
        return FakeCrawler(self)


class FakeCrawler:
    """Stands in for BrowserCrawler without launching a browser."""

    def __init__(self, site):
        self.site = site
        self.current = None
        site.opened += 1

    async def fetch(self, url, timeout=None, settle_seconds=None):
        site = self.site
        site.visited.append(url)
        site.fetch_timeouts[url] = timeout
        site.active += 1
        site.max_active = max(site.max_active, site.active)
        try:
            if url in site.hang:
                await asyncio.sleep(3600)
            await asyncio.sleep(site.delay)
        finally:
            site.active -= 1

        if url in site.errors:
            raise site.errors[url]
        if url not in site.pages:
            raise Exception(f"HTTP 404 for {url}")
        self.current = url
        return site.pages[url]

    async def content(self):
        return self.site.pages.get(self.current, "")

    async def find_links(self, selector="a"):
        if self.site.locator_error:
            raise RuntimeError("locator failed")
        soup = BeautifulSoup(await self.content(), "html.parser")
        return [(el.get_text(strip=True), el["href"]) for el in soup.select(selector) if el.get("href")]

    async def close(self):
        self.site.closed += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def table_page(rows, headers=("Date", "City", "Show"), title="Tour", heading=None, wrapper="div"):
    """Build a page with one schedule table."""
    head = "".join(f"<th>{h}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    h1 = f"<h1>{heading}</h1>" if heading else ""
    return (
        f"<html><head><title>{title}</title></head><body>{h1}"
        f"<{wrapper} class=\"shedule\"><table><thead><tr>{head}</tr></thead>"
        f"<tbody>{body}</tbody></table></{wrapper}></body></html>"
    )


SAMURAI_TABLE_HTML = table_page(
    [
        ("15.03.2025", "Berlin", "Philharmonie", "Germany"),
        ("05.04.2025", "Paris", "Olympia", "France"),
        ("TBA", "Rome", "Arena", "Italy"),
    ],
    headers=("Date", "City", "Venue", "Country"),
    title="38 SAMURAI",
)

LORDS_HOME_HTML = """
<html><head><title>Lords of the Sound</title></head><body>
<nav>
  <a href="/">Home</a>
  <a href="/countries/">All tour dates</a>
  <a href="/about/">About</a>
</nav>
<ul class="countries">
  <li><a href="/countries/germany/#tour">Germany</a></li>
  <li><a href="https://lordsofthesound.com/countries/france/">France</a></li>
  <li><a href="countries/czech-republic/#tour">Czech Republic</a></li>
  <li><a href="/countries/germany/">Germany</a></li>
  <li><a href="https://example.com/countries/spain/">Spain</a></li>
</ul>
</body></html>
"""

LORDS_COUNTRY_PAGES = {
    "https://lordsofthesound.com/countries/germany/": table_page(
        [("12.04.2025", "Hamburg", "Elbphilharmonie"), ("20.03.2025", "Munich", "Isarphilharmonie")],
        headers=("Date", "City", "Scene"),
        title="Germany - Lords of the Sound",
        heading="Germany",
    ),
    "https://lordsofthesound.com/countries/france/": table_page(
        [("15.03.2025", "Lyon", "Auditorium")],
        headers=("Date", "City", "Scene"),
        title="France - Lords of the Sound",
        heading="France",
    ),
    "https://lordsofthesound.com/countries/czech-republic/": table_page(
        [("01.05.2025", "Prague", "Rudolfinum")],
        headers=("Date", "City", "Scene"),
        title="Lords of the Sound",
    ),
}


@pytest.fixture
def fake_site():
    """A site with both sources' pages loaded."""
    pages = {SAMURAI_URL: SAMURAI_TABLE_HTML, LORDS_URL: LORDS_HOME_HTML}
    pages.update(LORDS_COUNTRY_PAGES)
    return FakeSite(pages)


@pytest.fixture
def empty_site():
    """A site with no pages; tests add what they need."""
    return FakeSite()


@pytest.fixture
def page_with_table():
    """Builder for a page holding one schedule table."""
    return table_page


@pytest.fixture
def manager(fake_site):
    """Manager wired to the fake site."""
    return ScraperManager(crawler_factory=fake_site.factory)


@pytest.fixture
def session_log_dir(tmp_path, monkeypatch):
    """Session log files go to a temporary directory."""
    monkeypatch.setattr(settings, "session_log_dir", tmp_path)
    return tmp_path


@pytest.fixture(scope="function")
def client(fake_site, session_log_dir):
    """Create a test client whose manager uses the fake site."""
    clear_caches()
    app.dependency_overrides[get_manager] = lambda: ScraperManager(crawler_factory=fake_site.factory)

    # Use TestClient directly without context manager for compatibility
    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    clear_caches()
