#!/usr/bin/env python3
"""
Run scrapers from the command line.

Usage:
    cd backend
    python -m scrapers.run_scraper [source_key]

Examples:
    python -m scrapers.run_scraper                 # Aggregate all sources
    python -m scrapers.run_scraper samurai         # Run one source
    python -m scrapers.run_scraper --list          # List all sources
    python -m scrapers.run_scraper lords --country-url https://lordsofthesound.com/countries/germany/
    python -m scrapers.run_scraper samurai --json  # Print records as JSON
"""

import asyncio
import argparse
import logging
import json

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from scrapers.manager import ScraperManager
from scrapers.config import get_source_config, get_source_summary
from scrapers.sites.lords import LordsScraper
from scrapers.utils.normalizers import summarize_by_country_month, summary_rows


def print_shows(shows, as_json: bool = False, limit: int = 20):
    """Print shows as a table (first ``limit``) or as full JSON."""
    if as_json:
        print(json.dumps([s.to_dict() for s in shows], indent=2, ensure_ascii=False))
        return

    print(f"Found {len(shows)} shows\n")
    for i, show in enumerate(shows[:limit]):
        print(f"{i+1:3}. {show.date_label:20} {show.country:20} {show.city:20} {show.show}")
        print(f"     Orchestra: {show.orchestra}")
    if len(shows) > limit:
        print(f"... and {len(shows) - limit} more shows")

    print("\nSummary:")
    for country, month, count in summary_rows(summarize_by_country_month(shows)):
        print(f"  {country:20} {month:16} {count}")


async def run_source(source_key: str, as_json: bool = False):
    """Run a single source under its deadline."""
    config = get_source_config(source_key)
    if not as_json:
        print(f"\n{'='*60}")
        print(f"Scraping: {config.name} ({source_key})")
        print(f"URL: {config.start_url}")
        print(f"Deadline: {config.timeout_seconds:.0f}s")
        print(f"{'='*60}\n")

    result = await ScraperManager().scrape_source(source_key)
    if result.timed_out:
        print(f"Timed out after {result.duration_seconds:.1f}s")
    elif result.error:
        print(f"Failed: {result.error}")
    print_shows(result.records, as_json)


async def run_country(url: str, as_json: bool = False):
    """Scrape a single Lords of the Sound country page."""
    if not as_json:
        print(f"\n{'='*60}")
        print(f"Scraping country page: {url}")
        print(f"{'='*60}\n")

    shows = await LordsScraper().scrape_country(url)
    print_shows(shows, as_json)


async def run_all(as_json: bool = False):
    """Aggregate every enabled source."""
    result = await ScraperManager().aggregate()
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    for source in result.sources:
        status = "TIMEOUT" if source.timed_out else ("FAIL" if source.error else "OK")
        print(f"[{status:7}] {source.source:10} {len(source.records)} shows in {source.duration_seconds:.1f}s")
    print(f"\nLoad time: {result.load_time}s\n")
    print_shows(result.shows)


def list_scrapers():
    """List all configured sources."""
    print(f"\n{'='*60}")
    print("Available Sources")
    print(f"{'='*60}\n")

    for source in get_source_summary():
        status = "✅" if source['enabled'] else "⏳"
        print(f"{status} {source['key']:10} - {source['name']}")
        print(f"              URL: {source['url']}")
        print(f"              Deadline: {source['timeout_seconds']:.0f}s")
        print()


async def main():
    parser = argparse.ArgumentParser(description='Run the tour schedule scrapers')
    parser.add_argument('source_key', nargs='?', help='Source key to run (e.g., samurai)')
    parser.add_argument('--list', action='store_true', help='List all sources')
    parser.add_argument('--country-url', type=str, help='Scrape one Lords of the Sound country page')
    parser.add_argument('--json', action='store_true', help='Print records as JSON')

    args = parser.parse_args()

    if args.list:
        list_scrapers()
        return

    if args.country_url:
        await run_country(args.country_url, args.json)
    elif args.source_key:
        await run_source(args.source_key.lower(), args.json)
    else:
        await run_all(args.json)


if __name__ == '__main__':
    asyncio.run(main())
