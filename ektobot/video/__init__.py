"""
Video rendering for ektobot.

Usage:
    from ektobot.video import Renderer

    renderer = Renderer()
    cover = renderer.find_cover(album.dirname(audio_dir))
    renderer.convert(audio, cover, video_dir / "01 - Artist - Title.avi")
"""

from ektobot.video.renderer import (
    Renderer,
    convert,
    find_cover,
    pick_cover,
    temp_video_file,
    video_filename,
)

__all__ = [
    "Renderer",
    "convert",
    "find_cover",
    "pick_cover",
    "temp_video_file",
    "video_filename",
]
