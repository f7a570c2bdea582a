"""
YouTube publishing for ektobot.

This module provides:
    - models: VideoSpec, PlaylistSpec, the Provider protocol and playlist titles
    - client: YouTubeClient, the authenticated Data API v3 handle

Usage:
    from ektobot.youtube import YouTubeClient, VideoSpec

    client = YouTubeClient.from_files(config.youtube.client_secret, config.youtube.token_file)
    video_id = client.upload_video(VideoSpec(title, description, tags, path))
"""

from ektobot.youtube.client import YouTubeClient, provider_error
from ektobot.youtube.models import (
    PlaylistSpec,
    Provider,
    VideoSpec,
    playlist_title,
)

__all__ = [
    "YouTubeClient",
    "provider_error",
    "PlaylistSpec",
    "Provider",
    "VideoSpec",
    "playlist_title",
]
