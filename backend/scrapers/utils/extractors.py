"""
Data extraction utilities for scrapers.

These functions locate schedule data in parsed pages: header-driven
table extraction first, repeated card/list elements as a fallback.
Every extraction strategy is a pure function of the parsed document.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from ..base import ColumnMap, RawExtraction, ShowRecord
from .dates import DATE_IN_TEXT_RE, looks_like_date
from .normalizers import normalize_show

logger = logging.getLogger(__name__)

# Header aliases for the "show" column, tried in order
SHOW_ALIASES = ('show', 'venue', 'scene', 'program')

# Repeated elements that may hold one show each, tried in order
CARD_SELECTORS = (
    '[data-qa="tour-item"]',
    '[data-qa*="tour"]',
    '.tour-item',
    '.tour-list-item',
    '.schedule-item',
    '.event-item',
    '.tour-card',
    '.event-card',
    'article.tour',
    '.tour-schedule-item',
    'tr[class*="tour"]',
    'div[class*="event"]',
)

# Field hooks inside a card: data attributes, then classes, then tags
CARD_FIELD_SELECTORS: Dict[str, Tuple[str, ...]] = {
    'date': ('[data-qa="tour-date"]', '[data-qa*="date"]', '.tour-date', '.date', '.event-date', 'time'),
    'city': ('[data-qa="tour-city"]', '[data-qa*="city"]', '.tour-city', '.city', '.event-city'),
    'country': ('[data-qa="tour-country"]', '[data-qa*="country"]', '.tour-country', '.country', '.event-country'),
    'show': ('[data-qa="tour-name"]', '[data-qa*="name"]', '.tour-name', '.show-name', '.event-name', 'h2', 'h3'),
}


def _text(element: Tag) -> str:
    return element.get_text(' ', strip=True)


def _cells(row: Tag) -> List[Tag]:
    return row.find_all(['th', 'td'], recursive=False)


# ============================================================
# COLUMN MAPPING
# ============================================================

def header_row(table: Tag) -> Optional[Tag]:
    """First row of <thead>, or the first row of the table without one."""
    thead = table.find('thead')
    if thead is not None:
        row = thead.find('tr')
        if row is not None:
            return row
    return table.find('tr')


def header_texts(table: Tag) -> List[str]:
    row = header_row(table)
    return [_text(cell) for cell in _cells(row)] if row is not None else []


def find_column_index(table: Tag, header_name: str) -> Optional[int]:
    """
    Find the column whose header equals or contains ``header_name``.

    Matching is case-insensitive on trimmed header text, left to right.

    Returns:
        Zero-based column index, or None when no header matches
    """
    wanted = header_name.lower().strip()
    for index, text in enumerate(header_texts(table)):
        text = text.lower().strip()
        if text == wanted or wanted in text:
            return index
    return None


def find_first_column(table: Tag, aliases: Sequence[str]) -> Optional[int]:
    """Index of the first alias that resolves, or None."""
    for alias in aliases:
        index = find_column_index(table, alias)
        if index is not None:
            return index
    return None


def resolve_columns(table: Tag) -> ColumnMap:
    return ColumnMap(
        date=find_column_index(table, 'date'),
        city=find_column_index(table, 'city'),
        show=find_first_column(table, SHOW_ALIASES),
        country=find_column_index(table, 'country'),
    )


def is_repeated_header(row: Tag) -> bool:
    """A body row that repeats the header ("Date ... City/Venue")."""
    text = _text(row).lower()
    return 'date' in text and ('city' in text or 'venue' in text)


# ============================================================
# TABLE EXTRACTION
# ============================================================

def extract_table_data_by_headers(
    table: Tag,
    default_country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """
    Extract shows from one table using its header row.

    Args:
        table: <table> element (or any element containing rows)
        default_country: Country used when the row has no country cell
        orchestra: Orchestra name stamped on each record
        day_first: Policy for ambiguous D/M dates

    Returns:
        List of ShowRecord; empty when no date column resolves
    """
    log = log or logger
    columns = resolve_columns(table)

    if not columns.usable:
        log.debug(f"Could not find date column in table. Available headers: {', '.join(header_texts(table))}")
        return []

    log.debug(
        f"Found columns - Date: {columns.date}, City: {columns.city}, "
        f"Show: {columns.show}, Country: {columns.country}"
    )

    head = header_row(table)
    results = []
    for row in table.find_all('tr'):
        if row is head or is_repeated_header(row):
            continue

        cells = _cells(row)
        if len(cells) <= columns.date:
            continue

        date_text = columns.cell(cells, 'date')
        city = columns.cell(cells, 'city')
        show = columns.cell(cells, 'show')
        country = columns.cell(cells, 'country') or default_country

        if not looks_like_date(date_text):
            log.debug(f"Date doesn't match pattern: \"{date_text}\"")
            continue

        record = normalize_show(
            RawExtraction(date_text=date_text, country=country, city=city, show=show, orchestra=orchestra),
            day_first=day_first,
        )
        if record is None:
            log.debug(f"Failed to normalize: date=\"{date_text}\", city=\"{city}\", show=\"{show}\", country=\"{country}\"")
            continue

        log.debug(f"Added: {record.date_label} - {record.city}, {record.country} ({orchestra})")
        results.append(record)

    log.info(f"Extracted {len(results)} shows from table")
    return results


def extract_from_tables(
    soup: BeautifulSoup,
    selector: str,
    country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """Extract from every table matching ``selector`` and concatenate."""
    log = log or logger
    tables = soup.select(selector)
    if not tables:
        return []
    log.info(f"Found {len(tables)} table(s) with selector: {selector}")
    results = []
    for table in tables:
        results.extend(extract_table_data_by_headers(table, country, orchestra, day_first, log))
    return results


# ============================================================
# CARD EXTRACTION
# ============================================================

def card_field(card: Tag, field_name: str) -> str:
    """Text of the first non-empty hook for a field inside a card."""
    for selector in CARD_FIELD_SELECTORS[field_name]:
        element = card.select_one(selector)
        if element is not None:
            text = _text(element)
            if text:
                return text
    if field_name == 'date':
        match = DATE_IN_TEXT_RE.search(_text(card))
        if match:
            return match.group(0)
    return ''


def extract_cards_with_selector(
    soup: BeautifulSoup,
    selector: str,
    known_country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """Extract one show per element matching ``selector``."""
    log = log or logger
    cards = soup.select(selector)
    if not cards:
        return []
    log.info(f"Found {len(cards)} items with selector: {selector}")

    results = []
    for card in cards:
        date_text = card_field(card, 'date')
        if not date_text:
            continue
        record = normalize_show(
            RawExtraction(
                date_text=date_text,
                country=card_field(card, 'country') or known_country,
                city=card_field(card, 'city'),
                show=card_field(card, 'show'),
                orchestra=orchestra,
            ),
            day_first=day_first,
        )
        if record is not None:
            results.append(record)
    return results


# ============================================================
# STRATEGIES
# ============================================================

@dataclass(frozen=True)
class ExtractionStrategy:
    """A named pure function from a parsed page to shows."""
    name: str
    extract: Callable[[BeautifulSoup], List[ShowRecord]]

    def __call__(self, soup: BeautifulSoup) -> List[ShowRecord]:
        return self.extract(soup)


def table_strategies(
    selectors: Sequence[str],
    country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ExtractionStrategy]:
    return [
        ExtractionStrategy(
            name=f"table:{selector}",
            extract=partial(extract_from_tables, selector=selector, country=country,
                            orchestra=orchestra, day_first=day_first, log=log),
        )
        for selector in selectors
    ]


def card_strategies(
    known_country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
    selectors: Sequence[str] = CARD_SELECTORS,
) -> List[ExtractionStrategy]:
    return [
        ExtractionStrategy(
            name=f"card:{selector}",
            extract=partial(extract_cards_with_selector, selector=selector, known_country=known_country,
                            orchestra=orchestra, day_first=day_first, log=log),
        )
        for selector in selectors
    ]


def run_strategies(
    soup: BeautifulSoup,
    strategies: Sequence[ExtractionStrategy],
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """
    Try strategies in order; the first non-empty result wins.

    A strategy that raises (e.g. an unsupported selector) is skipped.
    """
    log = log or logger
    for strategy in strategies:
        try:
            records = strategy(soup)
        except Exception as e:
            log.warning(f"Error with strategy {strategy.name}: {e}")
            continue
        if records:
            log.info(f"Strategy {strategy.name} produced {len(records)} shows")
            return records
    return []


def extract_from_cards(
    soup: BeautifulSoup,
    known_country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """
    Card/list fallback for pages without a usable table.

    Greedy: the first selector pattern producing any normalized record
    wins; later patterns are not merged in.
    """
    return run_strategies(soup, card_strategies(known_country, orchestra, day_first, log), log)


def extract_shows(
    soup: BeautifulSoup,
    table_selectors: Sequence[str],
    country: str,
    orchestra: str,
    day_first: bool = True,
    log: Optional[logging.Logger] = None,
) -> List[ShowRecord]:
    """Tables first, then cards."""
    strategies = (
        table_strategies(table_selectors, country, orchestra, day_first, log)
        + card_strategies(country, orchestra, day_first, log)
    )
    return run_strategies(soup, strategies, log)
