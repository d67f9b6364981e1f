"""Shared utilities for scrapers."""

from .dates import (
    looks_like_date,
    parse_flexible_date,
    parse_date_label,
)
from .normalizers import (
    normalize_show,
    clean_country,
    country_from_url,
    sort_shows,
    summarize_by_country_month,
    summary_rows,
)
from .extractors import (
    find_column_index,
    resolve_columns,
    extract_table_data_by_headers,
    extract_from_cards,
    extract_shows,
    run_strategies,
)

__all__ = [
    'looks_like_date',
    'parse_flexible_date',
    'parse_date_label',
    'normalize_show',
    'clean_country',
    'country_from_url',
    'sort_shows',
    'summarize_by_country_month',
    'summary_rows',
    'find_column_index',
    'resolve_columns',
    'extract_table_data_by_headers',
    'extract_from_cards',
    'extract_shows',
    'run_strategies',
]
