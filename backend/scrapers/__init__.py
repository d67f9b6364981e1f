"""
Tour schedule scraper system.

This module provides the extraction and aggregation core:
- Header-driven table extraction with a card/list fallback
- Flexible date normalization with day-first ambiguity resolution
- Concurrent per-source scraping with deadlines and batched sub-pages
"""

from .base import BaseScraper, SourceConfig, ShowRecord, AggregationResult
from .config import SOURCES, get_source_config, get_enabled_sources
from .manager import ScraperManager

__all__ = [
    'BaseScraper',
    'SourceConfig',
    'ShowRecord',
    'AggregationResult',
    'SOURCES',
    'get_source_config',
    'get_enabled_sources',
    'ScraperManager',
]
