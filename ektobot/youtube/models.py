"""
Request models for the video provider.

VideoSpec and PlaylistSpec describe what to publish; the provider client
turns them into API calls. Keeping them separate from the client lets the
pipeline and its tests work without any Google library in the loop.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ektobot.core.models import Album, PlaylistId, VideoId
from ektobot.utils import VARIOUS_ARTISTS


# YouTube rejects longer playlist titles
MAX_PLAYLIST_TITLE_LENGTH = 150


@dataclass(frozen=True)
class VideoSpec:
    """
    A video to upload.

    Attributes:
        title: Video title, "<artist> - <title>" for album tracks.
        description: Free-form description text.
        tags: Keyword tags.
        filename: Local video file to upload.
    """
    title: str
    description: str
    tags: list[str] = field(default_factory=list)
    filename: Path = Path()


@dataclass(frozen=True)
class PlaylistSpec:
    """
    A playlist to create.

    Attributes:
        title: Playlist title.
        description: Playlist description (may be empty).
        video_ids: Videos to add, in playlist order.
    """
    title: str
    description: str = ""
    video_ids: list[VideoId] = field(default_factory=list)


class Provider(Protocol):
    """What the pipeline needs from a video hosting provider."""

    def upload_video(self, spec: VideoSpec) -> VideoId: ...

    def create_playlist(self, spec: PlaylistSpec) -> PlaylistId: ...


def playlist_title(album: Album) -> str:
    """
    Playlist title for an album.

    Format: "<artist or VA> - <title> (<year>) [<tag>, <tag>]". The year
    and tag parts are left out when empty; the result is cut to
    MAX_PLAYLIST_TITLE_LENGTH characters.

    Examples:
        "Globular - Entangled Everything (2018) [Downtempo, Psy Dub]"
        "VA - Dividing 2 Worlds (2018) [Techno, Techtrance, Zenonesque]"
    """
    title = f"{album.artist or VARIOUS_ARTISTS} - {album.title}"
    if album.year is not None:
        title += f" ({album.year})"
    if album.tags:
        title += f" [{', '.join(album.tags)}]"
    return title[:MAX_PLAYLIST_TITLE_LENGTH]
