"""
Artist/label exclusion filter.

Operators curate denylists of artists and labels whose releases must not
be republished. Patterns are regular expressions matched case-insensitively
against the WHOLE string: "sony" matches the label "Sony" but not
"Sony Music Group"; "sonic tantra .*" matches "Sonic Tantra Records".

Usage:
    blacklist = ExclusionFilter(artists=["agh[0o]ri tantrik"], labels=["sony"])
    if blacklist.matches(album):
        ...
"""

import re
from typing import Iterable

from ektobot.core.exceptions import ConfigurationError
from ektobot.core.models import Album


KIND_ARTIST = "artist"
KIND_LABEL = "label"
KINDS = (KIND_ARTIST, KIND_LABEL)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile an exclusion pattern into a case-insensitive regex.

    The result must be applied with fullmatch() so the pattern covers the
    whole name.

    Raises:
        ConfigurationError: If the pattern is not a valid regular expression.
    """
    try:
        return re.compile(rf"(?:{pattern})", re.IGNORECASE)
    except re.error as e:
        raise ConfigurationError(
            f"Invalid exclusion pattern {pattern!r}: {e}",
            details={"pattern": pattern, "original_error": str(e)}
        ) from e


class ExclusionFilter:
    """
    Decides whether an Album must be refused.

    All patterns are compiled in the constructor, so a malformed pattern
    fails when the filter is built, never in the middle of matching.

    Attributes:
        artists: Compiled artist patterns, checked against every track artist.
        labels: Compiled label patterns, checked against every album label.
    """

    def __init__(self, artists: Iterable[str] = (), labels: Iterable[str] = ()) -> None:
        self.artists = [compile_pattern(p) for p in artists]
        self.labels = [compile_pattern(p) for p in labels]

    def __len__(self) -> int:
        return len(self.artists) + len(self.labels)

    def reason(self, album: Album) -> str | None:
        """
        Describe the first rule that matches the album.

        Labels are checked before track artists.

        Returns:
            Text like "label 'Sony' matches pattern 'sony'", or None if
            the album is not excluded.
        """
        for regex in self.labels:
            for label in album.labels:
                if regex.fullmatch(label):
                    return f"label {label!r} matches pattern {_source(regex)!r}"

        for regex in self.artists:
            for track in album.tracks:
                if regex.fullmatch(track.artist):
                    return f"artist {track.artist!r} matches pattern {_source(regex)!r}"

        return None

    def matches(self, album: Album) -> bool:
        """True if any label or any track artist is excluded."""
        return self.reason(album) is not None


def _source(regex: re.Pattern[str]) -> str:
    # Strip the (?: ... ) group added by compile_pattern
    return regex.pattern[3:-1]
