"""
Album pipeline and queue daemon.

An album moves through five stages. Each stage is skipped when its
artifacts already exist, and state is persisted after every step with an
external effect, so a crashed or interrupted run resumes where it stopped
instead of publishing anything twice.

Stages:
    1. Fetch:    Download and tag-read the album (or re-fetch it when its
                 audio files went missing), then persist
    2. Eligible: Refuse albums without a license or matched by the
                 exclusion filter
    3. Render:   One still-image video per track, persisted once the whole
                 album is rendered
    4. Upload:   One video per track through the retry policy, persisted
                 after every track
    5. Playlist: Once every track is uploaded, create the album playlist

Daemon:
    Pulls queue entries one at a time, runs the pipeline and records the
    outcome ("OK" or the error text) back into the queue. A failing item
    never stops the loop.

Usage:
    pipeline = Pipeline(config, store, provider)
    album = pipeline.run_url("https://ektoplazm.com/free-music/some-album")
    stats = pipeline.daemon()
"""

import time
from dataclasses import dataclass
from typing import Callable

from ektobot.core.config import Config
from ektobot.core.exceptions import (
    ConfigurationError,
    ExclusionError,
    FileSystemError,
    LicenseError,
)
from ektobot.core.logger import get_logger, log_queue_failure
from ektobot.core.models import Album
from ektobot.core.retry import retry
from ektobot.core.store import ACTION_URL, QUEUE_RESULT_OK, Store
from ektobot.source import SourceRegistry, default_registry
from ektobot.utils import ensure_directory
from ektobot.video import Renderer, video_filename
from ektobot.youtube.models import PlaylistSpec, Provider, VideoSpec, playlist_title

logger = get_logger(__name__)


@dataclass
class DaemonStats:
    """
    Statistics from one daemon run.

    Attributes:
        processed: Queue entries taken from the queue.
        succeeded: Entries recorded as "OK".
        failed: Entries recorded with an error.
    """

    processed: int = 0
    succeeded: int = 0
    failed: int = 0


class Pipeline:
    """
    Drives albums from source URL to published playlist.

    Args:
        config: Application configuration.
        store: Open state store.
        provider: Authenticated video provider (a YouTubeClient).
        sources: Album sources. Defaults to every known source.
        renderer: Video renderer. Defaults to ffmpeg.
        sleep: Blocking sleep used by the retry policy and the daemon.
    """

    def __init__(
        self,
        config: Config,
        store: Store,
        provider: Provider | None,
        sources: SourceRegistry | None = None,
        renderer: Renderer | None = None,
        sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self.config = config
        self.store = store
        self.provider = provider
        self.sources = sources if sources is not None else default_registry()
        self.renderer = renderer if renderer is not None else Renderer()
        self.sleep = sleep

    # =========================================================================
    # Single Album
    # =========================================================================

    def run_url(self, url: str) -> Album:
        """
        Run every pending stage for one album.

        Returns:
            The album as persisted after the last completed stage.

        Raises:
            LicenseError: If the album has no license.
            ExclusionError: If the album matches the exclusion filter.
            Any collaborator error, unmodified. Retryable provider errors
            only after the retry policy gave up.
        """
        logger.info(f"Processing {url}")

        album = self._fetch(url)
        self._check_eligible(album)

        if not album.has_video(self.config.paths.video_dir):
            self._render(album)

        self._upload(album)

        if album.playlist_id is None and album.all_uploaded:
            self._create_playlist(album)

        logger.info(
            f"Success - {url} - "
            f"{album.playlist_id.url if album.playlist_id else '(no playlist id)'}"
        )
        return album

    def fetch_only(self, url: str) -> Album:
        """Fetch and persist an album without rendering or publishing it."""
        return self._fetch(url)

    def _fetch(self, url: str) -> Album:
        audio_dir = self.config.paths.audio_dir
        previous = self.store.get_album(url)

        if previous is not None and previous.has_audio(audio_dir):
            logger.debug(f"Album {url} already fetched")
            return previous

        if previous is not None:
            logger.warning(f"Album {url} has missing audio files, re-fetching")

        ensure_directory(audio_dir)
        album = self.sources.fetch(url, audio_dir)
        if previous is not None:
            adopted = album.adopt_identifiers(previous)
            logger.info(f"Kept {adopted} published video ids from the previous fetch")

        self.store.save(album)
        return album

    def _check_eligible(self, album: Album) -> None:
        if album.license is None:
            raise LicenseError(
                "No license",
                details={"url": album.url}
            )

        reason = self.store.blacklist().reason(album)
        if reason is not None:
            raise ExclusionError(
                f"Blacklisted: {reason}",
                details={"url": album.url, "reason": reason}
            )

    def _render(self, album: Album) -> None:
        album_audio_dir = album.dirname(self.config.paths.audio_dir)
        album_video_dir = album.dirname(self.config.paths.video_dir)

        cover = self.renderer.find_cover(album_audio_dir)
        ensure_directory(album_video_dir)

        for track in album.tracks:
            if track.audio_file is None:
                raise FileSystemError(
                    f"Audio file missing for {track.artist} - {track.title}",
                    details={"url": album.url, "track": track.title}
                )
            video_file = video_filename(track.audio_file)
            self.renderer.convert(
                album_audio_dir / track.audio_file,
                cover,
                album_video_dir / video_file
            )
            track.video_file = video_file

        self.store.save(album)
        logger.info(f"Rendered {len(album.tracks)} videos for {album.url}")

    def _upload(self, album: Album) -> None:
        album_video_dir = album.dirname(self.config.paths.video_dir)

        for track in album.tracks:
            if track.video_id is not None:
                logger.debug(f"Track {track.title} already has video id {track.video_id.url}")
                continue
            if track.video_file is None:
                raise FileSystemError(
                    f"Video file missing for {track.artist} - {track.title}",
                    details={"url": album.url, "track": track.title}
                )

            spec = VideoSpec(
                title=f"{track.artist} - {track.title}",
                description=self.sources.description(album, track),
                tags=list(album.tags),
                filename=album_video_dir / track.video_file,
            )
            track.video_id = self._retry(lambda: self._require_provider().upload_video(spec))
            self.store.save(album)

    def _create_playlist(self, album: Album) -> None:
        spec = PlaylistSpec(
            title=playlist_title(album),
            description="",
            video_ids=[track.video_id for track in album.tracks],
        )
        album.playlist_id = self._retry(lambda: self._require_provider().create_playlist(spec))
        self.store.save(album)

    def _retry(self, operation):
        pipeline = self.config.pipeline
        return retry(pipeline.retry_attempts, pipeline.retry_delay, operation, self.sleep)

    def _require_provider(self) -> Provider:
        if self.provider is None:
            raise ConfigurationError("No video provider configured")
        return self.provider

    # =========================================================================
    # Queue Daemon
    # =========================================================================

    def daemon(self, max_items: int | None = None) -> DaemonStats:
        """
        Process queued work until the queue is empty.

        Args:
            max_items: Stop after this many entries (None for no limit).

        Returns:
            DaemonStats with counters for this run.
        """
        stats = DaemonStats()

        while max_items is None or stats.processed < max_items:
            entry = self.store.queue_get()
            if entry is None:
                logger.info("No more work")
                break

            action, url = entry
            stats.processed += 1
            result = self._process_entry(action, url)

            if result == QUEUE_RESULT_OK:
                stats.succeeded += 1
            else:
                stats.failed += 1
                log_queue_failure(logger, url, result)

            self.store.queue_result(action, url, result)
            self.sleep(self.config.pipeline.daemon_sleep)

        logger.info(
            f"Daemon processed {stats.processed} items: "
            f"{stats.succeeded} succeeded, {stats.failed} failed"
        )
        return stats

    def _process_entry(self, action: str, url: str) -> str:
        try:
            if action != ACTION_URL:
                raise ConfigurationError(
                    f"Unknown action {action}",
                    details={"action": action, "url": url}
                )
            self.run_url(url)
        except Exception as e:
            logger.debug(f"Processing {url} raised {type(e).__name__}", exc_info=True)
            return str(e) or type(e).__name__
        return QUEUE_RESULT_OK
