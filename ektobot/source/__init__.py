"""
Album sources for ektobot.

This module turns an album page URL into a downloaded, tag-read Album:
    - base: Source interface and the ordered SourceRegistry
    - ektoplazm: Ektoplazm album source and free-music listing scraper
    - page: Minimal HTML tree used by the scrapers

Usage:
    from ektobot.source import default_registry

    sources = default_registry()
    album = sources.fetch(url, config.paths.audio_dir)
    text = sources.description(album, album.tracks[0])
"""

from ektobot.source.base import Source, SourceRegistry
from ektobot.source.ektoplazm import Ektoplazm, EktoplazmScraper


def default_registry() -> SourceRegistry:
    """Registry of every source ektobot knows, in lookup order."""
    return SourceRegistry([Ektoplazm()])


__all__ = [
    "Source",
    "SourceRegistry",
    "Ektoplazm",
    "EktoplazmScraper",
    "default_registry",
]
