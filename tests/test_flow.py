"""Tests for the album pipeline and queue daemon"""

import pytest

from conftest import (
    ALBUM_URL,
    FakeProvider,
    FakeRenderer,
    FakeSource,
    make_album,
    quota_error,
    write_files,
)
from ektobot.core.exceptions import (
    ConfigurationError,
    EncodingError,
    ExclusionError,
    LicenseError,
    ProviderError,
)
from ektobot.core.models import PlaylistId, VideoId
from ektobot.core.store import QUEUE_RESULT_OK
from ektobot.pipeline import Pipeline
from ektobot.source import SourceRegistry


class FailingRenderer(FakeRenderer):
    """Renderer whose n-th conversion fails"""

    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = fail_on
        self.attempts = 0

    def convert(self, audio_file, image_file, out_file):
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise EncodingError(f"ffmpeg failed on {audio_file.name}")
        super().convert(audio_file, image_file, out_file)


@pytest.fixture
def pipeline(config, store, fake_source, fake_renderer, fake_provider, sleeps):
    return Pipeline(
        config,
        store,
        fake_provider,
        sources=SourceRegistry([fake_source]),
        renderer=fake_renderer,
        sleep=sleeps.append,
    )


class TestRunUrl:
    """Test processing a single album"""

    def test_new_album(self, pipeline, store, config, fake_source, fake_renderer, fake_provider):
        """A new URL is fetched, rendered, uploaded and grouped in a playlist"""
        album = pipeline.run_url(ALBUM_URL)

        assert fake_source.fetched == [ALBUM_URL]
        assert len(fake_renderer.converted) == 3
        assert len(fake_provider.uploads) == 3
        assert len(fake_provider.playlists) == 1

        assert album.is_published
        assert album.playlist_id == PlaylistId("PL1")
        assert store.get_album(ALBUM_URL) == album
        assert album.has_video(config.paths.video_dir)

    def test_video_specs(self, pipeline, config, fake_provider):
        """Uploads carry title, description, tags and the rendered file"""
        album = pipeline.run_url(ALBUM_URL)

        spec = fake_provider.uploads[0]
        assert spec.title == "Globular - Track 1"
        assert spec.description == f"Globular - Track 1 from {ALBUM_URL}"
        assert spec.tags == ["Downtempo", "Psy Dub"]
        assert spec.filename == album.dirname(config.paths.video_dir) / "01 - Globular - Track 1.avi"

        playlist = fake_provider.playlists[0]
        assert playlist.title == "Globular - Entangled Everything (2018) [Downtempo, Psy Dub]"
        assert playlist.video_ids == [VideoId("video1"), VideoId("video2"), VideoId("video3")]

    def test_published_album_is_noop(
        self, pipeline, store, config, published_album, fake_source, fake_renderer, fake_provider
    ):
        """An album already published causes no work at all"""
        write_files(published_album, config.paths.audio_dir, config.paths.video_dir)
        store.save(published_album)

        album = pipeline.run_url(ALBUM_URL)

        assert album == published_album
        assert fake_source.fetched == []
        assert fake_renderer.converted == []
        assert fake_provider.calls == 0

    def test_excluded_label(self, pipeline, store, config, fake_renderer, fake_provider):
        """Blacklisted albums are fetched but never rendered or uploaded"""
        source = FakeSource([make_album(labels=["Sonic Tantra Records"])])
        pipeline.sources = SourceRegistry([source])
        store.add_exclusion("label", "sonic tantra .*")

        with pytest.raises(ExclusionError, match="Blacklisted"):
            pipeline.run_url(ALBUM_URL)

        assert fake_renderer.converted == []
        assert fake_provider.calls == 0
        assert store.get_album(ALBUM_URL) is not None

    def test_no_license(self, pipeline, fake_renderer, fake_provider):
        """Albums without a license are refused"""
        pipeline.sources = SourceRegistry([FakeSource([make_album(license=None)])])

        with pytest.raises(LicenseError, match="No license"):
            pipeline.run_url(ALBUM_URL)

        assert fake_renderer.converted == []
        assert fake_provider.calls == 0

    def test_retryable_upload_failure(self, pipeline, sleeps, fake_provider):
        """Quota errors are retried with the configured delay"""
        fake_provider.failures = [quota_error()]

        album = pipeline.run_url(ALBUM_URL)

        assert album.is_published
        assert sleeps == [4 * 3600.0]
        assert len(fake_provider.uploads) == 3

    def test_upload_gives_up_and_resumes(self, pipeline, store):
        """Uploads done before a fatal error are kept and not repeated"""
        provider = FakeProvider()
        pipeline.provider = provider

        original_upload = provider.upload_video

        def upload_twice_then_fail(spec):
            if len(provider.uploads) == 2:
                raise ProviderError("forbidden")
            return original_upload(spec)

        provider.upload_video = upload_twice_then_fail

        with pytest.raises(ProviderError):
            pipeline.run_url(ALBUM_URL)

        stored = store.get_album(ALBUM_URL)
        assert [t.video_id for t in stored.tracks] == [VideoId("video1"), VideoId("video2"), None]
        assert stored.playlist_id is None

        provider.upload_video = original_upload
        album = pipeline.run_url(ALBUM_URL)

        assert len(provider.uploads) == 3
        assert album.tracks[2].video_id == VideoId("video3")
        assert album.is_published

    def test_refetch_keeps_video_ids(self, pipeline, store, config, published_album, fake_source, fake_provider):
        """Missing audio triggers a re-fetch that keeps published ids"""
        published_album.playlist_id = None
        published_album.tracks[2].video_id = None
        write_files(published_album, video_dir=config.paths.video_dir)
        store.save(published_album)

        album = pipeline.run_url(ALBUM_URL)

        assert fake_source.fetched == [ALBUM_URL]
        assert len(fake_provider.uploads) == 1
        assert [t.video_id for t in album.tracks] == [
            VideoId("video1"), VideoId("video2"), VideoId("video1")
        ]
        assert fake_provider.uploads[0].title == "Globular - Track 3"
        assert album.is_published

    def test_render_failure_persists_nothing(self, pipeline, store, fake_provider):
        """A failed render batch is redone in full on the next run"""
        renderer = FailingRenderer(fail_on=2)
        pipeline.renderer = renderer

        with pytest.raises(EncodingError):
            pipeline.run_url(ALBUM_URL)

        stored = store.get_album(ALBUM_URL)
        assert [t.video_file for t in stored.tracks] == [None, None, None]
        assert fake_provider.calls == 0

        album = pipeline.run_url(ALBUM_URL)

        assert len(renderer.converted) == 1 + 3
        assert len(fake_provider.uploads) == 3
        assert album.is_published

    def test_resume_creates_playlist_only(self, pipeline, store, config, published_album, fake_renderer, fake_provider):
        """An album with every video uploaded only needs its playlist"""
        published_album.playlist_id = None
        write_files(published_album, config.paths.audio_dir, config.paths.video_dir)
        store.save(published_album)

        album = pipeline.run_url(ALBUM_URL)

        assert fake_renderer.converted == []
        assert fake_provider.uploads == []
        assert len(fake_provider.playlists) == 1
        assert fake_provider.playlists[0].video_ids == [VideoId("video1"), VideoId("video2"), VideoId("video3")]
        assert store.get_album(ALBUM_URL).playlist_id == album.playlist_id == PlaylistId("PL1")

    def test_missing_provider(self, config, store, fake_source, fake_renderer):
        """Publishing without a provider is a configuration error"""
        pipeline = Pipeline(
            config, store, None,
            sources=SourceRegistry([fake_source]),
            renderer=fake_renderer,
        )
        with pytest.raises(ConfigurationError):
            pipeline.run_url(ALBUM_URL)

    def test_fetch_only(self, pipeline, store, fake_renderer, fake_provider):
        """fetch_only stops after the album is stored"""
        album = pipeline.fetch_only(ALBUM_URL)

        assert store.get_album(ALBUM_URL) == album
        assert fake_renderer.converted == []
        assert fake_provider.calls == 0


class TestDaemon:
    """Test the queue daemon"""

    def test_empty_queue(self, pipeline, sleeps):
        """An empty queue ends the run immediately"""
        stats = pipeline.daemon()
        assert stats.processed == 0
        assert sleeps == []

    def test_processes_queue(self, pipeline, store):
        """Queued URLs are processed and marked OK"""
        store.queue_insert(ALBUM_URL)

        stats = pipeline.daemon()

        assert stats.processed == 1
        assert stats.succeeded == 1
        assert store.queue_status(ALBUM_URL)[0].result == QUEUE_RESULT_OK
        assert store.queue_get() is None

    def test_failure_does_not_stop_loop(self, pipeline, store):
        """A failing item is recorded and the next one still runs"""
        bad_url = "https://ektoplazm.com/free-music/unlicensed"
        pipeline.sources = SourceRegistry([FakeSource([make_album(url=bad_url, license=None)])])
        store.queue_insert(bad_url)
        store.queue_insert(ALBUM_URL)

        stats = pipeline.daemon()

        assert stats.processed == 2
        assert stats.failed == 1
        assert stats.succeeded == 1
        assert store.queue_status(bad_url)[0].result == "No license"
        assert store.queue_status(ALBUM_URL)[0].result == QUEUE_RESULT_OK

    def test_unknown_action(self, pipeline, store, fake_source):
        """Unknown action tags are recorded as errors"""
        store.queue_insert(ALBUM_URL, action="mp3")

        stats = pipeline.daemon()

        assert stats.failed == 1
        assert store.queue_status(ALBUM_URL)[0].result == "Unknown action mp3"
        assert fake_source.fetched == []

    def test_unknown_site(self, pipeline, store):
        """URLs without a source fail with a readable message"""
        url = "https://example.com/album"
        store.queue_insert(url)

        pipeline.daemon()

        assert store.queue_status(url)[0].result == f"No source known for {url}"

    def test_max_items(self, pipeline, store, sleeps):
        """max_items bounds the number of processed entries"""
        store.queue_insert(ALBUM_URL)
        store.queue_insert("https://ektoplazm.com/free-music/second")

        stats = pipeline.daemon(max_items=1)

        assert stats.processed == 1
        assert sleeps == [1.0]
        assert store.queue_get() == ("url", "https://ektoplazm.com/free-music/second")
