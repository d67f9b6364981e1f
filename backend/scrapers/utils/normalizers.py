"""
Data normalization utilities for scrapers.

These functions standardize scraped data into consistent formats and
build the derived views (ordering, per-country month summary).
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

from ..base import RawExtraction, ShowRecord
from .dates import MONTH_NAMES, parse_date_label, parse_flexible_date


def _clean(value: Optional[str]) -> str:
    if not value:
        return ''
    return ' '.join(value.split())


def normalize_show(raw: RawExtraction, day_first: bool = True) -> Optional[ShowRecord]:
    """
    Convert a raw extraction into a ShowRecord.

    Returns None when the date text does not parse; such rows are
    dropped rather than stored with an empty date.
    """
    parsed = parse_flexible_date(raw.date_text, day_first=day_first)
    if parsed is None:
        return None
    return ShowRecord(
        date=parsed,
        date_label=parse_date_label(parsed),
        country=_clean(raw.country),
        city=_clean(raw.city),
        show=_clean(raw.show),
        orchestra=raw.orchestra,
    )


def clean_country(name: Optional[str]) -> str:
    """
    Clean a page-derived country name.

    Examples:
        "Germany - Lords of the Sound" -> "Germany"
        "  Czech   Republic " -> "Czech Republic"
    """
    if not name:
        return ''
    name = re.sub(r'\s+-\s+.*$', '', name)
    return _clean(name)


def country_from_url(url: str) -> str:
    """
    Derive a country name from a /countries/<slug>/ URL.

    Examples:
        https://example.com/countries/czech-republic/ -> Czech Republic
        https://example.com/countries/germany/#tour -> Germany
        https://example.com/about/ -> ""
    """
    path = unquote(urlparse(url).path)
    match = re.search(r'countries/([^/]+)', path)
    if not match:
        return ''
    slug = match.group(1).replace('-', ' ')
    return ' '.join(word[:1].upper() + word[1:] for word in slug.split())


def sort_shows(shows: Iterable[ShowRecord]) -> List[ShowRecord]:
    """
    Return a new list ordered by date, then country (case-sensitive).

    The input is never mutated; the sort is stable.
    """
    return sorted(shows, key=lambda s: (s.date, s.country))


def summarize_by_country_month(shows: Iterable[ShowRecord]) -> Dict[str, Dict]:
    """
    Count shows per country and per "YYYY-MM" month.

    Returns:
        {country: {"total": int, "months": {"YYYY-MM": int}}}
    """
    summary: Dict[str, Dict] = {}
    for show in shows:
        entry = summary.setdefault(show.country, {'total': 0, 'months': {}})
        entry['total'] += 1
        months = entry['months']
        months[show.month_key] = months.get(show.month_key, 0) + 1
    return summary


def month_label(month_key: str) -> str:
    """
    Examples:
        2025-03 -> March 2025
    """
    year, month = month_key.split('-')
    return f"{MONTH_NAMES[int(month) - 1]} {year}"


def summary_rows(summary: Dict[str, Dict]) -> List[Tuple[str, str, int]]:
    """
    Flatten a summary into (country, month label, count) rows.

    Months are listed in ascending order and each country ends with a
    "Total" row. Countries keep the summary's order.
    """
    rows: List[Tuple[str, str, int]] = []
    for country, data in summary.items():
        months: Sequence = sorted(data['months'].items())
        if not months:
            rows.append((country, '-', 0))
            continue
        for key, count in months:
            rows.append((country, month_label(key), count))
        rows.append((country, 'Total', data['total']))
    return rows
