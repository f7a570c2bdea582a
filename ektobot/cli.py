"""
Command-line interface for ektobot.

This module implements the CLI using Click, with rich-click for the
output colors.

Commands:
    ektobot enqueue <url>...                   Queue album URLs
    ektobot scrape-ektoplazm --really          Queue every free-music album
    ektobot url <url>                          Fetch, render and publish one album
    ektobot fetch <url>                        Only download and tag-read an album
    ektobot status <url>                       Show album and queue state
    ektobot daemon                             Process the queue until empty
    ektobot blacklist add|remove|list          Manage artist/label exclusions
    ektobot video <audio> <image> [--out f]    Render a single still-image video
    ektobot yt-upload <file> --title T         Upload a single video
    ektobot yt-playlist <id>... --title T      Create a playlist from video ids

Global Options:
    -d/--state-dir <dir>    State directory (default ~/.ektobot)
    -c/--config <file>      Configuration file (default {state_dir}/config.yaml)
    -v/--verbose            More console output (repeatable)
    -q/--quiet              Only warnings and errors on the console

Exit Codes:
    0    Success
    1    Configuration error (or unexpected error)
    2    State store error
    3    YouTube error
    4    Any other ektobot error
    130  Interrupted by user
"""

import itertools
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Queue",
            "commands": ["enqueue", "scrape-ektoplazm", "daemon", "status"],
        },
        {
            "name": "Single Album",
            "commands": ["url", "fetch"],
        },
        {
            "name": "Administration",
            "commands": ["blacklist"],
        },
        {
            "name": "Low-level Tools",
            "commands": ["video", "yt-upload", "yt-playlist"],
        },
    ],
}

from ektobot import __version__
from ektobot.core import (
    Config,
    ConfigurationError,
    ConsistencyError,
    EktobotError,
    ProviderError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from ektobot.core.blacklist import KINDS
from ektobot.core.models import VideoId
from ektobot.core.store import Store
from ektobot.pipeline import Pipeline
from ektobot.source import EktoplazmScraper, default_registry
from ektobot.utils import ensure_directory
from ektobot.video import convert, video_filename
from ektobot.youtube import PlaylistSpec, VideoSpec, YouTubeClient

logger = get_logger(__name__)


@click.group()
@click.option(
    "-d", "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    metavar="<dir>",
    help="State directory (database, token, logs)"
)
@click.option(
    "-c", "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file"
)
@click.option(
    "-v", "--verbose",
    count=True,
    help="Increase console verbosity"
)
@click.option(
    "-q", "--quiet",
    is_flag=True,
    help="Only show warnings and errors"
)
@click.version_option(__version__, prog_name="ektobot")
@click.pass_context
def cli(
    ctx: click.Context,
    state_dir: Optional[Path],
    config_path: Optional[Path],
    verbose: int,
    quiet: bool
) -> None:
    """
    ektobot: Republish Creative Commons albums as YouTube videos.

    Downloads albums from Ektoplazm, renders one still-image video per
    track, uploads them to YouTube and groups them into a playlist per
    album. Progress is kept in a local database so interrupted work
    resumes where it stopped.

    \b
    BASIC USAGE:
        ektobot url https://ektoplazm.com/free-music/...   # One album
        ektobot enqueue https://ektoplazm.com/free-music/...
        ektobot daemon                                     # Work the queue
    """
    ctx.ensure_object(dict)
    ctx.obj["state_dir"] = state_dir
    ctx.obj["config_path"] = config_path
    ctx.obj["verbosity"] = 0 if quiet else 1 + verbose


# =============================================================================
# Session Handling
# =============================================================================

@contextmanager
def _session(ctx: click.Context) -> Generator[Config, None, None]:
    """
    Load configuration, set up logging and map errors to exit codes.

    Every command body runs inside this context manager.
    """
    try:
        config = load_config(ctx.obj["config_path"], ctx.obj["state_dir"])
        ensure_directory(config.paths.state_dir)
        setup_logging(config.paths.state_dir, ctx.obj["verbosity"])
        logger.debug(f"ektobot {__version__}, state in {config.paths.state_dir}")
        yield config

    except ConfigurationError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except ConsistencyError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except ProviderError as e:
        click.echo(f"YouTube error: {e.message}", err=True)
        if e.retryable:
            click.echo("The error is temporary (quota or rate limit), try again later", err=True)
        logger.error(f"YouTube error: {e.message}", exc_info=True)
        sys.exit(3)

    except EktobotError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _open_store(config: Config) -> Store:
    return Store(config.paths.database)


def _connect_youtube(config: Config) -> YouTubeClient:
    return YouTubeClient.from_files(
        config.youtube.client_secret,
        config.youtube.token_file,
        config.youtube.privacy_status
    )


def _with_pipeline(config: Config, action: Callable[[Pipeline], None], needs_provider: bool = True) -> None:
    with _open_store(config) as store:
        provider = _connect_youtube(config) if needs_provider else None
        action(Pipeline(config, store, provider))


def _read_description(path: Optional[Path]) -> str:
    if path is None:
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read description file {path}: {e}",
            details={"path": str(path)}
        ) from e


# =============================================================================
# Queue Commands
# =============================================================================

@cli.command()
@click.argument("urls", nargs=-1, required=True, metavar="<url>...")
@click.pass_context
def enqueue(ctx: click.Context, urls: tuple[str, ...]) -> None:
    """Add album URLs to the work queue (re-adding resets them to pending)."""
    with _session(ctx) as config:
        sources = default_registry()
        with _open_store(config) as store:
            for url in urls:
                if not sources.belongs(url):
                    logger.warning(f"No source known for {url}, skipping")
                    continue
                store.queue_insert(url)
                logger.info(f"Queued {url}")


@cli.command("scrape-ektoplazm")
@click.option(
    "--offset",
    type=click.IntRange(min=0),
    default=0,
    metavar="N",
    help="Skip N newest albums (rounded down to whole pages)"
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    metavar="N",
    help="Queue at most N albums"
)
@click.option(
    "--really",
    is_flag=True,
    help="Confirm making a lot of HTTP requests"
)
@click.pass_context
def scrape_ektoplazm(ctx: click.Context, offset: int, limit: Optional[int], really: bool) -> None:
    """Queue albums from the Ektoplazm free-music listing."""
    if not really:
        raise click.UsageError("This walks the whole site, pass --really to confirm")

    with _session(ctx) as config:
        with _open_store(config) as store:
            count = 0
            for url in itertools.islice(EktoplazmScraper(offset), limit):
                store.queue_insert(url)
                count += 1
                logger.info(f"{offset + count}: {url}")
            logger.info(f"Queued {count} albums")


@cli.command()
@click.option(
    "--max-items",
    type=click.IntRange(min=1),
    default=None,
    metavar="N",
    help="Stop after N queue entries"
)
@click.pass_context
def daemon(ctx: click.Context, max_items: Optional[int]) -> None:
    """Process queued albums until the queue is empty."""
    with _session(ctx) as config:
        def run(pipeline: Pipeline) -> None:
            stats = pipeline.daemon(max_items)
            queue = pipeline.store.queue_stats()
            logger.info("=" * 60)
            logger.info("QUEUE STATISTICS")
            logger.info("=" * 60)
            logger.info(f"This run:          {stats.processed}")
            logger.info(f"Succeeded:         {stats.succeeded}")
            logger.info(f"Failed:            {stats.failed}")
            logger.info(f"Pending in queue:  {queue['pending']}")
            logger.info(f"Done in total:     {queue['done']}")
            logger.info(f"Failed in total:   {queue['failed']}")
            logger.info("=" * 60)

        _with_pipeline(config, run)


@cli.command()
@click.argument("url", metavar="<url>")
@click.pass_context
def status(ctx: click.Context, url: str) -> None:
    """Show what is known about an album URL."""
    with _session(ctx) as config:
        with _open_store(config) as store:
            album = store.get_album(url)
            entries = store.queue_status(url)

        if album is None:
            click.echo(f"{url}: not fetched")
        else:
            click.echo(album.summary(config.paths.audio_dir, config.paths.video_dir))

        for entry in entries:
            state = "pending" if entry.pending else f"{entry.result} ({entry.result_at})"
            click.echo(f"Queue [{entry.action}]: {state}")


# =============================================================================
# Single Album Commands
# =============================================================================

@cli.command()
@click.argument("url", metavar="<url>")
@click.pass_context
def url(ctx: click.Context, url: str) -> None:
    """Process one album: download, render videos, upload to YouTube."""
    with _session(ctx) as config:
        _with_pipeline(config, lambda pipeline: pipeline.run_url(url))


@cli.command()
@click.argument("url", metavar="<url>")
@click.pass_context
def fetch(ctx: click.Context, url: str) -> None:
    """Download an album's MP3 archive and metadata."""
    with _session(ctx) as config:
        def run(pipeline: Pipeline) -> None:
            album = pipeline.fetch_only(url)
            click.echo(album.summary(config.paths.audio_dir, config.paths.video_dir))

        _with_pipeline(config, run, needs_provider=False)


# =============================================================================
# Blacklist Commands
# =============================================================================

@cli.group()
def blacklist() -> None:
    """Manage artist and label exclusion patterns."""


@blacklist.command("add")
@click.argument("kind", type=click.Choice(KINDS))
@click.argument("pattern", metavar="<regex>")
@click.pass_context
def blacklist_add(ctx: click.Context, kind: str, pattern: str) -> None:
    """Exclude artists or labels matching a regex (whole name, any case)."""
    with _session(ctx) as config:
        with _open_store(config) as store:
            if not store.add_exclusion(kind, pattern):
                click.echo(f"{kind} pattern {pattern!r} already present")


@blacklist.command("remove")
@click.argument("kind", type=click.Choice(KINDS))
@click.argument("pattern", metavar="<regex>")
@click.pass_context
def blacklist_remove(ctx: click.Context, kind: str, pattern: str) -> None:
    """Remove an exclusion pattern."""
    with _session(ctx) as config:
        with _open_store(config) as store:
            if not store.remove_exclusion(kind, pattern):
                click.echo(f"No {kind} pattern {pattern!r}")


@blacklist.command("list")
@click.pass_context
def blacklist_list(ctx: click.Context) -> None:
    """List exclusion patterns."""
    with _session(ctx) as config:
        with _open_store(config) as store:
            for kind, pattern in store.list_exclusions():
                click.echo(f"{kind}\t{pattern}")


# =============================================================================
# Low-level Tools
# =============================================================================

@cli.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("image_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<file>",
    help="Output file (default: audio file name with .avi)"
)
@click.pass_context
def video(ctx: click.Context, audio_file: Path, image_file: Path, out: Optional[Path]) -> None:
    """Convert an audio file to a video with a still image."""
    with _session(ctx):
        convert(audio_file, image_file, out or video_filename(audio_file))


@cli.command("yt-upload")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", required=True, help="Title of the video")
@click.option(
    "--description", "description_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<file>",
    help="File containing the video description"
)
@click.pass_context
def yt_upload(ctx: click.Context, input_file: Path, title: str, description_file: Optional[Path]) -> None:
    """Upload a single video to YouTube."""
    with _session(ctx) as config:
        spec = VideoSpec(title=title, description=_read_description(description_file), filename=input_file)
        video_id = _connect_youtube(config).upload_video(spec)
        click.echo(video_id.url)


@cli.command("yt-playlist")
@click.argument("video_ids", nargs=-1, required=True, metavar="<video-id>...")
@click.option("--title", required=True, help="Title of the playlist")
@click.option(
    "--description", "description_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<file>",
    help="File containing the playlist description"
)
@click.pass_context
def yt_playlist(
    ctx: click.Context,
    video_ids: tuple[str, ...],
    title: str,
    description_file: Optional[Path]
) -> None:
    """Create a YouTube playlist from existing video ids."""
    with _session(ctx) as config:
        spec = PlaylistSpec(
            title=title,
            description=_read_description(description_file),
            video_ids=[VideoId(v) for v in video_ids],
        )
        playlist_id = _connect_youtube(config).create_playlist(spec)
        click.echo(playlist_id.url)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `ektobot` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
