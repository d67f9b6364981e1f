"""Per-source scraper implementations."""

from .samurai import SamuraiScraper
from .lords import LordsScraper

__all__ = ['SamuraiScraper', 'LordsScraper']
