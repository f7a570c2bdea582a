"""
Data models for ektobot.

This module defines the Album/Track graph that the pipeline persists,
plus dedicated value types for provider identifiers.

Design:
    Album and Track are mutable: the pipeline fills in per-stage artifacts
    (video filenames, video ids, playlist id) in place and persists after
    each step. VideoId and PlaylistId are frozen wrappers so a playlist id
    can never be stored in a track's video id column by accident; they
    convert to and from their database form explicitly.

Stage Predicates:
    has_audio / has_video are all-or-nothing: they are True only when
    every track has the relevant filename recorded AND the file exists.
"""

from dataclasses import dataclass, field
from pathlib import Path

from ektobot.utils import VARIOUS_ARTISTS, album_dirname


YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="
YOUTUBE_PLAYLIST_URL = "https://www.youtube.com/playlist?list="


@dataclass(frozen=True)
class VideoId:
    """
    Identifier of an uploaded video on the hosting provider.

    Attributes:
        value: Provider video id (11 characters on YouTube).
    """
    value: str

    @property
    def url(self) -> str:
        """Public watch URL for the video."""
        return f"{YOUTUBE_WATCH_URL}{self.value}"

    def to_db(self) -> str:
        return self.value

    @classmethod
    def from_db(cls, value: str | None) -> "VideoId | None":
        """Convert a nullable database column into a VideoId."""
        return cls(value) if value else None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PlaylistId:
    """
    Identifier of a created playlist on the hosting provider.

    Attributes:
        value: Provider playlist id (starts with "PL" on YouTube).
    """
    value: str

    @property
    def url(self) -> str:
        """Public URL for the playlist."""
        return f"{YOUTUBE_PLAYLIST_URL}{self.value}"

    def to_db(self) -> str:
        return self.value

    @classmethod
    def from_db(cls, value: str | None) -> "PlaylistId | None":
        """Convert a nullable database column into a PlaylistId."""
        return cls(value) if value else None

    def __str__(self) -> str:
        return self.value


@dataclass
class Track:
    """
    One audio item within an Album.

    Attributes:
        artist: Track artist (from the ID3 tag).
        title: Track title (from the ID3 tag).
        bpm: Tempo, if tagged. Releases occasionally tag several tempos;
             only a single integer is kept.
        audio_file: Audio filename relative to the album's audio directory.
        video_file: Video filename relative to the album's video directory.
        video_id: Provider id once the video has been uploaded.
    """
    artist: str
    title: str
    bpm: int | None = None
    audio_file: Path | None = None
    video_file: Path | None = None
    video_id: VideoId | None = None


@dataclass
class Album:
    """
    A release, keyed by its source URL, owning an ordered list of Tracks.

    Attributes:
        url: Source page URL. Unique key in the store.
        title: Album title (required).
        artist: Album artist, or None for various-artists releases.
        license: License URL (Creative Commons deed) if the page has one.
        year: Release year.
        labels: Releasing labels. Some releases name several.
        tags: Genre tags from the source page.
        tracks: Tracks in release order. Order drives description
                numbering and playlist order.
        playlist_id: Provider playlist id, set once every track is published.
    """
    url: str
    title: str
    artist: str | None = None
    license: str | None = None
    year: int | None = None
    labels: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    playlist_id: PlaylistId | None = None

    def dirname(self, base_dir: Path) -> Path:
        """Per-album directory under base_dir (audio or video root)."""
        return base_dir / album_dirname(self.artist, self.title)

    def _has_files(self, base_dir: Path, basenames: list[Path | None]) -> bool:
        if any(name is None for name in basenames):
            return False
        album_dir = self.dirname(base_dir)
        return all((album_dir / name).is_file() for name in basenames)

    def has_audio(self, audio_dir: Path) -> bool:
        """True if every track's audio file exists on disk."""
        return self._has_files(audio_dir, [t.audio_file for t in self.tracks])

    def has_video(self, video_dir: Path) -> bool:
        """True if every track's rendered video exists on disk."""
        return self._has_files(video_dir, [t.video_file for t in self.tracks])

    @property
    def all_uploaded(self) -> bool:
        """True if every track has a video id."""
        return all(t.video_id is not None for t in self.tracks)

    @property
    def is_published(self) -> bool:
        """True once the playlist exists and every track is uploaded."""
        return self.playlist_id is not None and self.all_uploaded

    def track_number(self, track: Track) -> int:
        """
        1-based position of a track within the album.

        Returns 99 if the track is not part of the album.
        """
        for n, t in enumerate(self.tracks, start=1):
            if t == track:
                return n
        return 99

    def adopt_identifiers(self, previous: "Album") -> int:
        """
        Carry provider identifiers over from a previously stored version.

        Used when an album is re-fetched because its audio files went missing:
        the fresh copy has no identifiers, but the videos and playlist already
        exist remotely and must not be published twice.

        Matching rule for each track without a video id: same audio filename
        first, then same (artist, title). The matching video filename is
        copied along with the id. The playlist id is copied if unset.

        Args:
            previous: Album as it was stored before the re-fetch.

        Returns:
            Number of track identifiers adopted.
        """
        by_file = {t.audio_file: t for t in previous.tracks if t.audio_file is not None}
        by_name = {(t.artist, t.title): t for t in previous.tracks}

        adopted = 0
        for track in self.tracks:
            if track.video_id is not None:
                continue
            old = by_file.get(track.audio_file) if track.audio_file is not None else None
            if old is None:
                old = by_name.get((track.artist, track.title))
            if old is None or old.video_id is None:
                continue
            track.video_id = old.video_id
            if track.video_file is None:
                track.video_file = old.video_file
            adopted += 1

        if self.playlist_id is None:
            self.playlist_id = previous.playlist_id

        return adopted

    def summary(self, audio_dir: Path | None = None, video_dir: Path | None = None) -> str:
        """
        Multi-line human readable description of the album and its progress.

        Args:
            audio_dir: Audio root, used to show full audio paths.
            video_dir: Video root, used to show full video paths.
        """
        nf = "(none found)"
        lines = [
            f"Artist:  {self.artist or VARIOUS_ARTISTS}",
            f"Title:   {self.title}",
            f"Year:    {self.year if self.year is not None else nf}",
            f"License: {self.license or nf}",
            f"Label:   {', '.join(self.labels) if self.labels else nf}",
            f"Tags:    {', '.join(self.tags) if self.tags else nf}",
            f"YT:      {self.playlist_id.url if self.playlist_id else nf}",
            "Tracks:",
        ]
        for n, t in enumerate(self.tracks, start=1):
            lines.append(f"  {n:02} - {t.artist} - {t.title}")
            if t.bpm is not None:
                lines.append(f"       BPM:   {t.bpm}")
            if t.audio_file is not None:
                base = self.dirname(audio_dir) if audio_dir else Path(".")
                lines.append(f"       Audio: {base / t.audio_file}")
            if t.video_file is not None:
                base = self.dirname(video_dir) if video_dir else Path(".")
                lines.append(f"       Video: {base / t.video_file}")
            lines.append(f"       YT:    {t.video_id.url if t.video_id else nf}")
        return "\n".join(lines)
