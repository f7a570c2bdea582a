"""
Utility functions for ektobot.

This module provides common helpers used across the application:
    - Filename sanitization (using yt-dlp's sanitize_filename)
    - Album directory naming
    - Directory creation

Usage:
    from ektobot.utils import sanitize_filename, album_dirname, ensure_directory
"""

from pathlib import Path

from yt_dlp.utils import sanitize_filename as yt_dlp_sanitize

from ektobot.core.exceptions import FileSystemError
from ektobot.core.logger import get_logger

logger = get_logger(__name__)


# Album directory name used when a release has no single artist
VARIOUS_ARTISTS = "VA"


def sanitize_filename(name: str, restricted: bool = False) -> str:
    """
    Sanitize a string for use as a filename.

    Wraps yt_dlp.utils.sanitize_filename: path separators and characters
    invalid on Windows are replaced, surrounding whitespace is trimmed.

    Args:
        name: The string to sanitize (e.g., album title, artist name).
        restricted: If True, use aggressive ASCII-only sanitization.

    Returns:
        Sanitized string safe for use as a single path component.

    Examples:
        sanitize_filename("AC/DC")  # "AC⧸DC"
    """
    return yt_dlp_sanitize(name, restricted=restricted)


def album_dirname(artist: str | None, title: str) -> str:
    """
    Build the per-album directory name.

    Format: {artist}_-_{title} with spaces replaced by underscores,
    "VA" standing in for compilations without an album artist.

    Examples:
        album_dirname("Globular", "Entangled Everything")
            # "Globular_-_Entangled_Everything"
        album_dirname(None, "Dividing 2 Worlds")
            # "VA_-_Dividing_2_Worlds"
    """
    artist_part = (artist or VARIOUS_ARTISTS).replace(" ", "_")
    title_part = title.replace(" ", "_")
    return sanitize_filename(f"{artist_part}_-_{title_part}")


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist.

    Args:
        path: Directory to create.

    Returns:
        The same path, for chaining.

    Raises:
        FileSystemError: If the directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            f"Cannot create directory {path}: {e}",
            details={"path": str(path), "original_error": str(e)}
        ) from e
    return path
