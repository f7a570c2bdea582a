"""
Still-image video rendering with ffmpeg.

Video hosts need video, so each track becomes a video showing the album
cover for the whole length of the audio. The audio stream is copied, not
re-encoded, and the image is scaled down to at most 800 pixels wide at
one frame per second, which keeps the files small.

Output is written to "TEMP <name>" next to the final file and renamed on
success, so a crash never leaves a truncated file under the final name.
The prefix keeps the original extension intact since ffmpeg picks the
container from it.
"""

import os
import re
import subprocess
from pathlib import Path

from ektobot.core.exceptions import EncodingError, FileSystemError
from ektobot.core.logger import get_logger

logger = get_logger(__name__)


FFMPEG = "ffmpeg"
VIDEO_SUFFIX = ".avi"
TEMP_PREFIX = "TEMP "
IMAGE_SUFFIXES = (".png", ".jpg")

# Tried in order; the first pattern matching any candidate wins
COVER_PATTERNS = [
    re.compile(r"^00.*Image[ ]?1", re.IGNORECASE),
    re.compile(r"^00", re.IGNORECASE),
    re.compile(r"^cover[.]...$", re.IGNORECASE),
    re.compile(r"front[.]...$", re.IGNORECASE),
    re.compile(r"image 1", re.IGNORECASE),
    re.compile(r"cover", re.IGNORECASE),
    re.compile(r"front", re.IGNORECASE),
    re.compile(r"^folder[.]jpg$", re.IGNORECASE),
    re.compile(r""),
]


def pick_cover(filenames: list[str]) -> str | None:
    """
    Choose the most likely cover image among filenames.

    Only .png and .jpg files are candidates. Candidates are sorted, then
    each of COVER_PATTERNS is tried in turn; the first candidate matching
    the earliest pattern is chosen.

    Returns:
        The chosen filename, or None if there are no image files.

    Examples:
        pick_cover(["00 - hi.mp3", "cover.pdf", "cover.jpg"])  # "cover.jpg"
    """
    candidates = sorted(f for f in filenames if f.lower().endswith(IMAGE_SUFFIXES))
    for pattern in COVER_PATTERNS:
        for name in candidates:
            if pattern.search(name):
                return name
    return None


def find_cover(directory: Path) -> Path:
    """
    Find the cover image of an album directory.

    Raises:
        FileSystemError: If the directory cannot be read or holds no image.
    """
    try:
        filenames = [p.name for p in directory.iterdir() if p.is_file()]
    except OSError as e:
        raise FileSystemError(
            f"Cannot list {directory}: {e}",
            details={"path": str(directory), "original_error": str(e)}
        ) from e

    name = pick_cover(filenames)
    if name is None:
        raise FileSystemError(
            f"No cover image found in {directory}",
            details={"path": str(directory)}
        )

    cover = directory / name
    logger.debug(f"Using {cover} as a cover")
    return cover


def video_filename(audio_file: Path) -> Path:
    """Video filename for an audio file: same stem, .avi extension."""
    return audio_file.with_suffix(VIDEO_SUFFIX)


def temp_video_file(final_file: Path) -> Path:
    """
    Temporary path ffmpeg writes to before the final rename.

    Examples:
        temp_video_file(Path("/videos/01 - foo - bar.avi"))
            # Path("/videos/TEMP 01 - foo - bar.avi")
    """
    if not final_file.name:
        raise FileSystemError(
            f"Bad video file name: {final_file}",
            details={"path": str(final_file)}
        )
    return final_file.with_name(TEMP_PREFIX + final_file.name)


def ffmpeg_command(audio_file: Path, image_file: Path, out_file: Path, ffmpeg: str = FFMPEG) -> list[str]:
    """Build the ffmpeg argument list for a still-image video."""
    return [
        ffmpeg,
        "-loglevel", "error",
        "-loop", "1",
        "-i", str(image_file),
        "-i", str(audio_file),
        "-vf", r"scale=min(800\,in_w):-1",
        "-r", "1",
        "-acodec", "copy",
        "-shortest",
        str(out_file),
    ]


def convert(audio_file: Path, image_file: Path, out_file: Path, ffmpeg: str = FFMPEG) -> None:
    """
    Render a still-image video for an audio file.

    Args:
        audio_file: Input audio (copied into the video as-is).
        image_file: Still image shown for the whole duration.
        out_file: Final video path.
        ffmpeg: ffmpeg executable.

    Raises:
        EncodingError: If ffmpeg is missing or exits with a nonzero status.
        FileSystemError: If the finished video cannot be moved into place.
    """
    logger.info(f"Converting {audio_file.name}")
    temp_file = temp_video_file(out_file)
    cmd = ffmpeg_command(audio_file, image_file, temp_file, ffmpeg)
    logger.debug(f"Running {' '.join(cmd)}")

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise EncodingError(
            f"{ffmpeg} not found, install FFmpeg to render videos",
            details={"command": cmd[0]}
        ) from e

    if result.returncode != 0:
        logger.error(f"ffmpeg failed with status {result.returncode}")
        logger.error(f"stderr: {result.stderr}")
        logger.error(f"stdout: {result.stdout}")
        if temp_file.exists():
            temp_file.unlink()
        raise EncodingError(
            f"ffmpeg failed on {audio_file.name}",
            details={"returncode": result.returncode, "stderr": result.stderr.strip()}
        )

    try:
        os.replace(temp_file, out_file)
    except OSError as e:
        raise FileSystemError(
            f"Cannot move {temp_file} to {out_file}: {e}",
            details={"source": str(temp_file), "destination": str(out_file), "original_error": str(e)}
        ) from e


class Renderer:
    """
    Video rendering collaborator used by the pipeline.

    Wraps the module functions so tests can substitute a fake renderer.
    """

    def __init__(self, ffmpeg: str = FFMPEG) -> None:
        self.ffmpeg = ffmpeg

    def find_cover(self, directory: Path) -> Path:
        return find_cover(directory)

    def convert(self, audio_file: Path, image_file: Path, out_file: Path) -> None:
        convert(audio_file, image_file, out_file, self.ffmpeg)
