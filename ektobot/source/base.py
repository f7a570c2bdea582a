"""
Source interface and registry.

A Source knows one music site: whether a URL belongs to it, how to
download and tag-read an album from it, and how to phrase the video
description for one of its tracks.

The registry is ordered and the first Source whose belongs() accepts a
URL handles it.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable

from ektobot.core.exceptions import NoSourceError
from ektobot.core.models import Album, Track


class Source(ABC):
    """
    Abstract base class for album sources.

    Subclasses must implement:
    - belongs(): Whether the source handles a URL
    - fetch(): Download an album into a directory and return its model
    - description(): Video description for a track of an album
    """

    name: str = "source"

    @abstractmethod
    def belongs(self, url: str) -> bool:
        pass

    @abstractmethod
    def fetch(self, url: str, download_dir: Path) -> Album:
        """
        Download, unpack and tag-read an album.

        Args:
            url: Album page URL.
            download_dir: Audio root. The album ends up in
                          album.dirname(download_dir).

        Returns:
            Album with every track's audio_file set, and no provider ids.
        """
        pass

    @abstractmethod
    def description(self, album: Album, track: Track) -> str:
        pass


class SourceRegistry:
    """
    Ordered collection of Sources.

    Example:
        sources = SourceRegistry([Ektoplazm()])
        album = sources.fetch(url, config.paths.audio_dir)
    """

    def __init__(self, sources: Iterable[Source]) -> None:
        self.sources = list(sources)

    def for_url(self, url: str) -> Source:
        """
        Find the Source that handles a URL.

        Raises:
            NoSourceError: If no registered Source accepts the URL.
        """
        for source in self.sources:
            if source.belongs(url):
                return source
        raise NoSourceError(
            f"No source known for {url}",
            details={"url": url, "sources": [s.name for s in self.sources]}
        )

    def belongs(self, url: str) -> bool:
        return any(source.belongs(url) for source in self.sources)

    def fetch(self, url: str, download_dir: Path) -> Album:
        return self.for_url(url).fetch(url, download_dir)

    def description(self, album: Album, track: Track) -> str:
        return self.for_url(album.url).description(album, track)
