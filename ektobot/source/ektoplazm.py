"""
Ektoplazm source.

Ektoplazm (https://ektoplazm.com) publishes free psytrance, downtempo and
techno releases under Creative Commons licenses. Every album page links
a ZIP of MP3s; the archive's ID3 tags carry the track metadata, while the
page itself carries what the tags lack: license, labels and genre tags.

Fetch Process:
    1. GET the album page, parse the MP3 download link, license link,
       labels and tags
    2. Stream the ZIP into a temporary file
    3. Unpack it, flattened, into a 0-ektobot-tmp-* directory inside the
       audio root
    4. Read ID3 tags from every .mp3 (track number, artist and title are
       required)
    5. Rename the temporary directory to the album directory

Listing:
    EktoplazmScraper walks the free-music section page by page, yielding
    album URLs. The site shows five albums per page.

Dependencies:
    - requests: HTTP downloads
    - mutagen: ID3 tag reading
    - tqdm: download progress
"""

import shutil
import tempfile
import zipfile
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import IO, Iterator

import requests
from mutagen import MutagenError
from mutagen.easyid3 import EasyID3
from tqdm import tqdm

from ektobot.core.exceptions import FileSystemError, NetworkError, ParseError
from ektobot.core.logger import get_logger
from ektobot.core.models import Album, Track
from ektobot.source.base import Source
from ektobot.source.page import children, css_class, descendants, parse_html, tag
from ektobot.utils import VARIOUS_ARTISTS

logger = get_logger(__name__)


USER_AGENT = "ektobot/1"
ALBUM_URL_PREFIX = "https://ektoplazm.com/free-music/"
LISTING_URL = "https://ektoplazm.com/section/free-music/page/{page}"
ALBUMS_PER_PAGE = 5
TMP_DIR_PREFIX = "0-ektobot-tmp-"

REQUEST_TIMEOUT = 60
CHUNK_SIZE = 1024 * 1024


@dataclass
class AlbumPage:
    """
    Information scraped from an album page.

    Attributes:
        mp3_link: URL of the MP3 ZIP archive.
        license: Creative Commons license URL, if the page links one.
        labels: Releasing labels.
        tags: Genre tags.
        track_count: Number of tracks in the page's track list.
    """
    mp3_link: str
    license: str | None = None
    labels: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    track_count: int = 0


# =============================================================================
# HTTP
# =============================================================================

def create_session() -> requests.Session:
    """Create an HTTP session identifying itself as ektobot."""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def download(session: requests.Session, url: str, stream: bool = False) -> requests.Response:
    """
    GET a URL, requiring status 200.

    Raises:
        NetworkError: On connection failure or any status other than 200.
    """
    logger.debug(f"GET {url}")
    try:
        response = session.get(url, timeout=REQUEST_TIMEOUT, stream=stream)
    except requests.RequestException as e:
        raise NetworkError(
            f"Failed to fetch {url}: {e}",
            details={"url": url, "original_error": str(e)}
        ) from e

    if response.status_code != 200:
        response.close()
        raise NetworkError(
            f"Failed to fetch {url}: HTTP {response.status_code}",
            details={"url": url, "status": response.status_code}
        )
    logger.debug(f"Got status {response.status_code}")
    return response


def download_to_file(session: requests.Session, url: str, out: IO[bytes]) -> int:
    """
    Stream a URL into an open binary file.

    Returns:
        Number of bytes written.
    """
    response = download(session, url, stream=True)
    total = int(response.headers.get("Content-Length") or 0) or None
    written = 0
    try:
        with tqdm(
            total=total,
            desc="Downloading",
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            leave=False
        ) as progress:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                out.write(chunk)
                written += len(chunk)
                progress.update(len(chunk))
    except requests.RequestException as e:
        raise NetworkError(
            f"Download of {url} interrupted: {e}",
            details={"url": url, "bytes": written, "original_error": str(e)}
        ) from e
    finally:
        response.close()
    return written


# =============================================================================
# Page Parsing
# =============================================================================

def parse_album_page(markup: str) -> AlbumPage:
    """
    Extract download link, license, labels and tags from an album page.

    Raises:
        ParseError: If the page has no "MP3 Download" link.
    """
    root = parse_html(markup)
    entry_links = descendants(root, css_class("entry"), tag("a"))

    mp3_link = next(
        (a.get("href") for a in entry_links
         if a.text().strip() == "MP3 Download" and a.get("href")),
        None
    )
    if mp3_link is None:
        raise ParseError("Failed to find download link")

    license_link = next(
        (a.get("href") for a in entry_links
         if "creativecommons" in (a.get("href") or "") and _is_license_text(a.text())),
        None
    )

    tags = [a.text().strip() for a in descendants(root, tag("h3"), css_class("style"), tag("a"))]
    labels = [a.text().strip() for a in children(root, tag("h3"), tag("strong"), tag("a"))]
    track_count = len(descendants(root, css_class("tl"), css_class("t")))

    return AlbumPage(
        mp3_link=mp3_link,
        license=license_link,
        labels=labels,
        tags=tags,
        track_count=track_count,
    )


def _is_license_text(text: str) -> bool:
    lower = text.lower()
    return "license" in lower or "licence" in lower or "commons" in lower


def parse_listing_page(markup: str) -> list[str]:
    """Album URLs linked from a free-music listing page."""
    root = parse_html(markup)
    return [
        a.get("href")
        for a in children(root, css_class("post"), tag("h1"), tag("a"))
        if a.get("href")
    ]


# =============================================================================
# Archive Handling
# =============================================================================

def unpack(archive: IO[bytes], out_dir: Path) -> Path:
    """
    Extract a ZIP archive into a fresh temporary directory inside out_dir.

    Paths inside the archive are flattened: only each member's basename
    is kept, directories are skipped.

    Returns:
        Path of the temporary directory. The caller owns it.

    Raises:
        ParseError: If the archive is not a valid ZIP file.
        FileSystemError: If files cannot be written.
    """
    try:
        tmp_dir = Path(tempfile.mkdtemp(prefix=TMP_DIR_PREFIX, dir=out_dir))
    except OSError as e:
        raise FileSystemError(
            f"Cannot create temporary directory in {out_dir}: {e}",
            details={"path": str(out_dir), "original_error": str(e)}
        ) from e

    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                basename = PurePosixPath(info.filename.replace("\\", "/")).name
                if info.is_dir() or basename in ("", ".", ".."):
                    logger.debug(f"Unzip: skipping {info.filename!r}")
                    continue

                dest = tmp_dir / basename
                logger.debug(f"Unzip {info.filename!r} -> {dest}")
                with zf.open(info) as src, open(dest, "wb") as dst:
                    shutil.copyfileobj(src, dst)
    except zipfile.BadZipFile as e:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise ParseError(
            f"Invalid ZIP archive: {e}",
            details={"original_error": str(e)}
        ) from e
    except OSError as e:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise FileSystemError(
            f"Cannot unpack archive into {tmp_dir}: {e}",
            details={"path": str(tmp_dir), "original_error": str(e)}
        ) from e

    return tmp_dir


@dataclass
class TagSummary:
    """Album-level values collected while reading track tags."""
    title: str | None = None
    artist: str | None = None
    year: int | None = None
    tracks: list[Track] = field(default_factory=list)


def read_tags(album_dir: Path) -> TagSummary:
    """
    Read ID3 tags of every .mp3 file in a directory.

    Album title, album artist and year are taken from the first track that
    has them; differing values on later tracks are logged as warnings.
    Tracks are sorted by their track number.

    Raises:
        ParseError: If a file has no ID3 tag, lacks a track number, artist
                    or title, or no album title can be determined.
    """
    numbered: list[tuple[int, Track]] = []
    summary = TagSummary()

    for path in sorted(album_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".mp3":
            continue

        try:
            tags = EasyID3(path)
        except MutagenError as e:
            raise ParseError(
                f"Cannot read ID3 tags of {path}: {e}",
                details={"path": str(path), "original_error": str(e)}
            ) from e

        number = _parse_int(_required_tag(tags, "tracknumber", "Track number", path).split("/")[0])
        if number is None:
            raise ParseError(
                f"Track number tag invalid in {path}",
                details={"path": str(path), "value": tags.get("tracknumber")}
            )

        track = Track(
            artist=_required_tag(tags, "artist", "Artist", path),
            title=_required_tag(tags, "title", "Title", path),
            bpm=_parse_int(_first(tags, "bpm")),
            audio_file=Path(path.name),
        )
        numbered.append((number, track))

        summary.artist = _merge_album_value(summary.artist, _first(tags, "albumartist"), "artist")
        summary.title = _merge_album_value(summary.title, _first(tags, "album"), "title")
        year = _parse_int((_first(tags, "date") or "")[:4])
        summary.year = _merge_album_value(summary.year, year, "year")

    numbered.sort(key=lambda item: item[0])
    summary.tracks = [track for _, track in numbered]

    if summary.artist == VARIOUS_ARTISTS:
        summary.artist = None

    if summary.title is None:
        raise ParseError(
            f"Album title cannot be determined from tags in {album_dir}",
            details={"path": str(album_dir)}
        )
    return summary


def _first(tags: EasyID3, key: str) -> str | None:
    values = tags.get(key)
    return values[0] if values else None


def _required_tag(tags: EasyID3, key: str, what: str, path: Path) -> str:
    value = _first(tags, key)
    if not value:
        raise ParseError(
            f"{what} tag missing in {path}",
            details={"path": str(path), "tag": key}
        )
    return value


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _merge_album_value(current, candidate, what: str):
    if candidate is None:
        return current
    if current is None:
        return candidate
    if current != candidate:
        logger.warning(f"Album {what} has multiple different values {current!r}, {candidate!r}")
    return current


# =============================================================================
# Source
# =============================================================================

class Ektoplazm(Source):
    """
    Source for https://ektoplazm.com/free-music/ album pages.

    Example:
        source = Ektoplazm()
        album = source.fetch("https://ektoplazm.com/free-music/globular-entangled-everything",
                             Path("~/.ektobot/mp3").expanduser())
    """

    name = "ektoplazm"

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session or create_session()

    def belongs(self, url: str) -> bool:
        return url.startswith(ALBUM_URL_PREFIX)

    def fetch(self, url: str, download_dir: Path) -> Album:
        logger.info(f"Fetching {url}")
        page = parse_album_page(download(self.session, url).text)
        logger.debug(
            f"Page lists {page.track_count} tracks, license {page.license}, "
            f"labels {page.labels}, tags {page.tags}"
        )

        with tempfile.TemporaryFile() as archive:
            size = download_to_file(self.session, page.mp3_link, archive)
            logger.debug(f"Downloaded {size} bytes from {page.mp3_link}")
            archive.seek(0)
            tmp_dir = unpack(archive, download_dir)

        try:
            tags = read_tags(tmp_dir)
            album = Album(
                url=url,
                title=tags.title,
                artist=tags.artist,
                license=page.license,
                year=tags.year,
                labels=page.labels,
                tags=page.tags,
                tracks=tags.tracks,
            )
            if page.track_count and page.track_count != len(album.tracks):
                logger.warning(
                    f"{url}: page lists {page.track_count} tracks, archive has {len(album.tracks)}"
                )
            self._move_into_place(tmp_dir, album.dirname(download_dir))
        except Exception:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise

        logger.info(f"Fetched {album.artist or VARIOUS_ARTISTS} - {album.title} ({len(album.tracks)} tracks)")
        return album

    def _move_into_place(self, tmp_dir: Path, album_dir: Path) -> None:
        # A previous, incomplete copy of the album is replaced
        try:
            if album_dir.exists():
                logger.warning(f"Replacing existing directory {album_dir}")
                shutil.rmtree(album_dir)
            tmp_dir.rename(album_dir)
        except OSError as e:
            raise FileSystemError(
                f"Cannot move {tmp_dir} to {album_dir}: {e}",
                details={"source": str(tmp_dir), "destination": str(album_dir), "original_error": str(e)}
            ) from e

    def description(self, album: Album, track: Track) -> str:
        lines = [
            f"Download the full album from Ektoplazm: {album.url}",
            "",
            f"Artist: {track.artist}",
            f"Track: {track.title}",
            f"Album: {album.title} ({album.year})" if album.year is not None else f"Album: {album.title}",
            f"Track number: {album.track_number(track):02}",
        ]
        if track.bpm is not None:
            lines.append(f"BPM: {track.bpm}")
        lines.append("")
        if album.tags:
            lines.append(f"Tags: {', '.join(album.tags)}")
        if album.labels:
            lines.append(f"Released by: {' & '.join(album.labels)}")
        if album.license:
            lines.append(f"License: {album.license}")
        return "\n".join(lines)


# =============================================================================
# Listing Scraper
# =============================================================================

class EktoplazmScraper:
    """
    Iterator over album URLs of the free-music section, newest first.

    Pages are fetched lazily. Iteration stops at the first page that lists
    no albums.

    Args:
        offset: Number of newest albums to skip, rounded down to whole pages.
        session: HTTP session to use.

    Example:
        for url in itertools.islice(EktoplazmScraper(offset=20), 10):
            store.queue_insert(url)
    """

    def __init__(self, offset: int = 0, session: requests.Session | None = None) -> None:
        self.next_page = 1 + offset // ALBUMS_PER_PAGE
        self.session = session or create_session()
        self._urls: deque[str] = deque()
        self._exhausted = False

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        if not self._urls and not self._exhausted:
            url = LISTING_URL.format(page=self.next_page)
            self._urls.extend(parse_listing_page(download(self.session, url).text))
            self.next_page += 1
            if not self._urls:
                self._exhausted = True

        if not self._urls:
            raise StopIteration
        return self._urls.popleft()
