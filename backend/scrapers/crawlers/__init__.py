"""Crawler implementations for rendered schedule pages."""

from .browser import BrowserCrawler, make_browser_factory

__all__ = ['BrowserCrawler', 'make_browser_factory']
