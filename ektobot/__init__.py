"""
ektobot: Republish Creative Commons albums as YouTube videos.

ektobot takes album pages from free music portals (currently Ektoplazm),
downloads the MP3 archive, renders one still-image video per track with
ffmpeg, uploads the videos to YouTube and groups them into one playlist
per album.

Architecture:
    Every album goes through the same stages, each one skipped when its
    results already exist in the state store:

    FETCH (source/): Download the album
        - Parse the album page (download link, license, labels, tags)
        - Download and unpack the MP3 ZIP archive
        - Read track metadata from ID3 tags

    CHECK (core/blacklist.py): Refuse ineligible albums
        - Albums without a Creative Commons license
        - Albums by excluded artists or labels

    RENDER (video/): Create the videos
        - Pick the cover image among the archive's files
        - One video per track: cover image + untouched audio

    PUBLISH (youtube/): Upload to YouTube
        - Upload each video with a generated description
        - Create the album playlist once every track is online
        - Quota errors are retried for hours, not minutes

Modules:
    core/       - Configuration, store, logging, exceptions, models
    source/     - Album sources (Ektoplazm) and listing scraper
    video/      - Cover detection and ffmpeg rendering
    youtube/    - YouTube Data API client
    pipeline/   - Stage orchestration and queue daemon
    utils/      - Filename helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        ektobot url https://ektoplazm.com/free-music/...
        ektobot enqueue https://ektoplazm.com/free-music/...
        ektobot daemon

    Python API:
        from ektobot.core import load_config
        from ektobot.core.store import Store
        from ektobot.pipeline import Pipeline
        from ektobot.youtube import YouTubeClient

        config = load_config()
        with Store(config.paths.database) as store:
            client = YouTubeClient.from_files(config.youtube.client_secret,
                                              config.youtube.token_file)
            Pipeline(config, store, client).run_url(url)

Dependencies:
    - requests: HTTP downloads
    - mutagen: ID3 tag reading
    - yt-dlp: Filename sanitization
    - google-api-python-client, google-auth, google-auth-oauthlib: YouTube API
    - click, rich-click: CLI framework and colors
    - tqdm: Progress bars
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "ektobot"
__license__ = "MIT"

# Convenience imports for common usage
from ektobot.core import (
    Config,
    ConfigurationError,
    EktobotError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "EktobotError",
    "ConfigurationError",
]
