"""Test configuration and fixtures"""

import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

from ektobot.core.config import Config, PathsConfig, PipelineConfig, YouTubeConfig
from ektobot.core.exceptions import ProviderError
from ektobot.core.models import Album, PlaylistId, Track, VideoId
from ektobot.core.store import Store


ALBUM_URL = "https://ektoplazm.com/free-music/globular-entangled-everything"
LICENSE_URL = "https://creativecommons.org/licenses/by-nc-sa/4.0/"


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def config(temp_dir):
    """Configuration rooted in the temporary directory, with no waiting"""
    return Config(
        paths=PathsConfig(
            state_dir=temp_dir,
            audio_dir=temp_dir / "mp3",
            video_dir=temp_dir / "video",
        ),
        youtube=YouTubeConfig(
            client_secret=temp_dir / "client_secret.json",
            token_file=temp_dir / "youtube_token.json",
            privacy_status="private",
        ),
        pipeline=PipelineConfig(
            retry_attempts=2,
            retry_delay=timedelta(hours=4),
            daemon_sleep=1.0,
        ),
    )


@pytest.fixture
def store(temp_dir):
    """Open store in the temporary directory"""
    with Store(temp_dir / "state.db") as store:
        yield store


def make_album(url=ALBUM_URL, track_count=3, **overrides):
    """Album with numbered tracks and audio filenames, nothing published"""
    fields = dict(
        url=url,
        title="Entangled Everything",
        artist="Globular",
        license=LICENSE_URL,
        year=2018,
        labels=[],
        tags=["Downtempo", "Psy Dub"],
        tracks=[
            Track(
                artist="Globular",
                title=f"Track {n}",
                bpm=90 + n,
                audio_file=Path(f"{n:02} - Globular - Track {n}.mp3"),
            )
            for n in range(1, track_count + 1)
        ],
    )
    fields.update(overrides)
    return Album(**fields)


@pytest.fixture
def sample_album():
    """Fresh unpublished album with three tracks"""
    return make_album()


@pytest.fixture
def published_album():
    """Album with every stage completed"""
    album = make_album()
    for n, track in enumerate(album.tracks, start=1):
        track.video_file = track.audio_file.with_suffix(".avi")
        track.video_id = VideoId(f"video{n}")
    album.playlist_id = PlaylistId("PL0123")
    return album


def write_files(album, audio_dir=None, video_dir=None):
    """Create the album's audio (plus cover) and video files on disk"""
    if audio_dir is not None:
        album_dir = album.dirname(audio_dir)
        album_dir.mkdir(parents=True, exist_ok=True)
        (album_dir / "folder.jpg").write_bytes(b"jpg")
        for track in album.tracks:
            if track.audio_file is not None:
                (album_dir / track.audio_file).write_bytes(b"mp3")
    if video_dir is not None:
        album_dir = album.dirname(video_dir)
        album_dir.mkdir(parents=True, exist_ok=True)
        for track in album.tracks:
            if track.video_file is not None:
                (album_dir / track.video_file).write_bytes(b"avi")


# =============================================================================
# Fake collaborators
# =============================================================================

class FakeSource:
    """Source returning prepared albums and writing their audio files"""

    name = "fake"

    def __init__(self, albums=None):
        self.albums = {a.url: a for a in (albums or [])}
        self.fetched = []

    def belongs(self, url):
        return url.startswith("https://ektoplazm.com/free-music/")

    def fetch(self, url, download_dir):
        self.fetched.append(url)
        template = self.albums.get(url) or make_album(url)
        album = Album(
            url=template.url,
            title=template.title,
            artist=template.artist,
            license=template.license,
            year=template.year,
            labels=list(template.labels),
            tags=list(template.tags),
            tracks=[Track(t.artist, t.title, t.bpm, t.audio_file) for t in template.tracks],
        )
        write_files(album, audio_dir=download_dir)
        return album

    def description(self, album, track):
        return f"{track.artist} - {track.title} from {album.url}"


class FakeRenderer:
    """Renderer that writes placeholder videos"""

    def __init__(self):
        self.converted = []

    def find_cover(self, directory):
        return directory / "folder.jpg"

    def convert(self, audio_file, image_file, out_file):
        self.converted.append((audio_file, image_file, out_file))
        out_file.write_bytes(b"avi")


class FakeProvider:
    """Provider handing out sequential ids, optionally failing first"""

    def __init__(self, failures=None):
        self.failures = list(failures or [])
        self.uploads = []
        self.playlists = []
        self.calls = 0

    def _maybe_fail(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)

    def upload_video(self, spec):
        self._maybe_fail()
        self.uploads.append(spec)
        return VideoId(f"video{len(self.uploads)}")

    def create_playlist(self, spec):
        self._maybe_fail()
        self.playlists.append(spec)
        return PlaylistId(f"PL{len(self.playlists)}")


def quota_error():
    return ProviderError("quotaExceeded", retryable=True)


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def sleeps():
    """Recorded sleep durations; pass sleeps.append as the sleep function"""
    return []
