"""
Source configurations for the two tour schedule publishers.

Each source has a SourceConfig that defines:
- Landing URL and the origin used to resolve relative links
- Orchestra name stamped on every record
- Deadline, settle delay and navigation timeout
- Ordered table selectors (and tour-link selectors where a hop is needed)
"""

from .base import SourceConfig


ORCHESTRA_SAMURAI = '38 SAMURAI'
ORCHESTRA_LORDS = 'Lords of the Sound'


# ============================================================
# SOURCE CONFIGURATIONS
# ============================================================

SOURCES = {
    # Single schedule table, sometimes one click away on a tour page
    'samurai': SourceConfig(
        key='samurai',
        name='38 SAMURAI',
        orchestra=ORCHESTRA_SAMURAI,
        base_url='https://38samurai.com',
        start_url='https://38samurai.com/',
        timeout_seconds=60.0,
        settle_seconds=3.0,
        navigation_timeout=20.0,
        table_selectors=('table', '.table', '.schedule-table', '.tour-table'),
        tour_link_selectors=(
            'a[href*="/tour"]',
            'a[href*="tour"]',
            'nav a',
            '.menu a',
            '.navigation a',
        ),
    ),

    # Country list on the landing page, one schedule page per country
    'lords': SourceConfig(
        key='lords',
        name='Lords of the Sound',
        orchestra=ORCHESTRA_LORDS,
        base_url='https://lordsofthesound.com',
        start_url='https://lordsofthesound.com/',
        timeout_seconds=240.0,  # many country pages
        settle_seconds=2.0,
        navigation_timeout=20.0,
        table_selectors=(
            '.shedule table',  # sic, the site's own class name
            '.schedule table',
            '.shedule .table',
            '.schedule .table',
            '.table',
            'table',
            '.tour-table',
            '.schedule-table',
        ),
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_source_config(source_key: str) -> SourceConfig:
    """
    Get configuration for a source by its key.

    Args:
        source_key: Source identifier (e.g., 'samurai', 'lords')

    Returns:
        SourceConfig for the source

    Raises:
        ValueError: If source_key is not found
    """
    if source_key not in SOURCES:
        valid_keys = ', '.join(sorted(SOURCES.keys()))
        raise ValueError(f"Unknown source: '{source_key}'. Valid sources: {valid_keys}")
    return SOURCES[source_key]


def get_enabled_sources() -> dict:
    """Get all enabled sources."""
    return {k: v for k, v in SOURCES.items() if v.enabled}


def list_sources() -> list:
    """List all source keys."""
    return list(SOURCES.keys())


def get_source_summary() -> list:
    """Get a summary of all sources for display."""
    summary = []
    for key, config in SOURCES.items():
        summary.append({
            'key': key,
            'name': config.name,
            'orchestra': config.orchestra,
            'url': config.start_url,
            'timeout_seconds': config.timeout_seconds,
            'enabled': config.enabled,
        })
    return summary
