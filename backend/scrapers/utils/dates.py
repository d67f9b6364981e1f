"""
Date parsing utilities for scrapers.

Schedule sites publish free-text dates; these functions turn them into
naive midnight datetimes used for ordering and month bucketing.
"""

import re
from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]

# D.M.Y with '.', '/', '-' or space separators; 2 or 4 digit year.
# Unanchored on the left, so "115.03.2025" still yields 15.03.2025.
NUMERIC_DATE_RE = re.compile(
    r'(\d{1,2})[./\- ](\d{1,2})[./\- ](\d{4}|\d{2})(?!\d)'
)

# ISO year-month-day prefix; would otherwise match as "25-03-15"
ISO_DATE_RE = re.compile(r'^\d{4}-\d{1,2}-\d{1,2}(?!\d)')

# Two distinct defaults for the generic parser; fields the text leaves
# out come back different
FALLBACK_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))

# Loose shape check used before normalization
DATE_SHAPE_RE = re.compile(r'\d{1,2}[./\- ]\d{1,2}')

# Full date inside arbitrary card text
DATE_IN_TEXT_RE = re.compile(r'\d{1,2}[./\- ]\d{1,2}[./\- ]\d{2,4}')


def looks_like_date(text: Optional[str]) -> bool:
    """
    Cheap check that text has a day/month shape.

    Examples:
        15.03.2025 -> True
        15 03 -> True
        2025 -> False
    """
    return bool(text) and DATE_SHAPE_RE.search(text) is not None


def _midnight(value: datetime) -> datetime:
    return datetime(value.year, value.month, value.day)


def resolve_day_month(first: int, second: int, day_first: bool = True):
    """
    Decide which of two numeric components is the day.

    A component above 12 can only be a day. When both are 12 or less the
    ``day_first`` policy decides.

    Returns:
        Tuple of (day, month)
    """
    if first > 12:
        return first, second
    if second > 12:
        return second, first
    if day_first:
        return first, second
    return second, first


def parse_flexible_date(value: Optional[str], day_first: bool = True) -> Optional[datetime]:
    """
    Parse a free-text date into a naive midnight datetime.

    Examples:
        25.03.2025 -> 2025-03-25
        05.03.2025 -> 2025-03-05 (day-first)
        03/25/2025 -> 2025-03-25
        15.03.25 -> 2025-03-15
        15 March 2025 -> 2025-03-15
        15.03 -> None (no year)
        invalid date -> None

    Args:
        value: Text to parse; None or empty yields None
        day_first: Policy for ambiguous D/M components

    Returns:
        datetime or None
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    match = None if ISO_DATE_RE.match(text) else NUMERIC_DATE_RE.search(text)
    if match:
        first, second = int(match.group(1)), int(match.group(2))
        year_text = match.group(3)
        year = 2000 + int(year_text) if len(year_text) == 2 else int(year_text)
        day, month = resolve_day_month(first, second, day_first)
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    # Generic calendar string ("15 March 2025", "2025-03-15T00:00:00.000")
    if not any(ch.isdigit() for ch in text):
        return None
    try:
        # no dayfirst here: ISO strings must stay year-month-day
        parsed = date_parser.parse(text, default=FALLBACK_DEFAULTS[0])
        check = date_parser.parse(text, default=FALLBACK_DEFAULTS[1])
    except (ValueError, OverflowError):
        return None
    # Year or month filled in from the default means the text never said it
    if (parsed.year, parsed.month) != (check.year, check.month):
        return None
    return _midnight(parsed)


def parse_date_label(value: Union[datetime, date, str, None]) -> Optional[str]:
    """
    Render a date as "<day> <Month> <year>".

    Examples:
        2025-03-15 -> 15 March 2025
        2025-01-01T00:00:00.000 -> 1 January 2025
        invalid -> None
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    return f"{value.day} {MONTH_NAMES[value.month - 1]} {value.year}"
