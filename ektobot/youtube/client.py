"""
YouTube Data API client.

Authentication:
    OAuth 2.0 installed-app flow. The client secret JSON comes from the
    Google Cloud console (OAuth client ID, type "Desktop app"). The first
    run opens a local authorization page and stores the resulting token;
    later runs load the token and refresh it when expired.

Quota:
    The default API quota allows only a handful of uploads per day. Quota
    and rate-limit errors are raised as retryable ProviderErrors so the
    pipeline's retry policy can wait them out. A quota increase can be
    requested at https://support.google.com/youtube/contact/yt_api_form

Usage:
    client = YouTubeClient.from_files(secret_path, token_path)
    video_id = client.upload_video(VideoSpec(title, description, tags, path))
    playlist_id = client.create_playlist(PlaylistSpec(title, "", [video_id]))
"""

import json
from pathlib import Path
from typing import Any

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
from tqdm import tqdm

from ektobot.core.exceptions import ConfigurationError, FileSystemError, ProviderError
from ektobot.core.logger import get_logger
from ektobot.core.models import PlaylistId, VideoId
from ektobot.youtube.models import PlaylistSpec, VideoSpec

logger = get_logger(__name__)


OAUTH_SCOPES = [
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube",
]

UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024
MAX_VIDEO_TITLE_LENGTH = 100
MUSIC_CATEGORY_ID = "10"

# Error reasons that go away by waiting
RETRYABLE_REASONS = frozenset({
    "quotaExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "uploadLimitExceeded",
    "backendError",
})


def _error_reasons(error: HttpError) -> list[str]:
    """Extract the 'reason' fields from an API error response body."""
    try:
        payload = json.loads(error.content.decode("utf-8"))
    except (ValueError, AttributeError):
        return []
    errors = payload.get("error", {}).get("errors", []) if isinstance(payload, dict) else []
    return [e.get("reason", "") for e in errors if isinstance(e, dict)]


def provider_error(error: HttpError, action: str) -> ProviderError:
    """
    Convert an HttpError into a ProviderError.

    Retryable: HTTP 429, any 5xx, and quota or rate-limit reasons.
    """
    status = int(error.resp.status) if error.resp is not None else 0
    reasons = _error_reasons(error)
    retryable = (
        status == 429
        or status >= 500
        or any(reason in RETRYABLE_REASONS for reason in reasons)
    )
    return ProviderError(
        f"YouTube {action} failed: HTTP {status} {', '.join(reasons) or error.reason}",
        details={"status": status, "reasons": reasons},
        retryable=retryable
    )


def load_credentials(client_secret: Path, token_file: Path, interactive: bool = True) -> Credentials:
    """
    Load stored OAuth credentials, refreshing or re-authorizing as needed.

    Args:
        client_secret: Client secret JSON from the Google Cloud console.
        token_file: Where the authorized token is stored.
        interactive: Allow running the browser authorization flow.

    Raises:
        ConfigurationError: If authorization is needed but impossible
                            (no client secret, or interactive=False).
        ProviderError: If the token refresh is rejected.
    """
    creds = None
    if token_file.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_file), OAUTH_SCOPES)
        except (ValueError, OSError) as e:
            logger.warning(f"Ignoring unreadable token file {token_file}: {e}")

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            logger.info("OAuth token refreshed")
        except RefreshError as e:
            logger.error(f"OAuth refresh failed: {e}")
            creds = None

    if creds is None or not creds.valid:
        if not interactive:
            raise ConfigurationError(
                "YouTube authorization required, run an interactive command first",
                details={"token_file": str(token_file)}
            )
        if not client_secret.is_file():
            raise ConfigurationError(
                f"Client secret not found: {client_secret}. Go to "
                "https://console.developers.google.com/apis/credentials, create an "
                f"OAuth client ID and save the credentials to {client_secret}",
                details={"path": str(client_secret)}
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(client_secret), OAUTH_SCOPES)
        creds = flow.run_local_server(port=0, open_browser=False)

    try:
        token_file.parent.mkdir(parents=True, exist_ok=True)
        token_file.write_text(creds.to_json(), encoding="utf-8")
    except OSError as e:
        raise FileSystemError(
            f"Cannot store OAuth token in {token_file}: {e}",
            details={"path": str(token_file), "original_error": str(e)}
        ) from e

    return creds


class YouTubeClient:
    """
    Authenticated YouTube Data API v3 handle.

    Attributes:
        service: googleapiclient Resource for the youtube v3 API.
        privacy_status: Privacy of uploads and playlists
                        ("public", "unlisted" or "private").
    """

    def __init__(self, service: Any, privacy_status: str = "public") -> None:
        self.service = service
        self.privacy_status = privacy_status

    @classmethod
    def from_files(
        cls,
        client_secret: Path,
        token_file: Path,
        privacy_status: str = "public",
        interactive: bool = True
    ) -> "YouTubeClient":
        """Authenticate from a client secret and token file and build the service."""
        creds = load_credentials(client_secret, token_file, interactive)
        service = build("youtube", "v3", credentials=creds, cache_discovery=False)
        return cls(service, privacy_status)

    def upload_video(self, spec: VideoSpec) -> VideoId:
        """
        Upload a video file using a resumable upload.

        Raises:
            FileSystemError: If the video file does not exist.
            ProviderError: If the API rejects the upload (retryable on
                           quota, rate-limit and server errors).
        """
        if not spec.filename.is_file():
            raise FileSystemError(
                f"Video file not found: {spec.filename}",
                details={"path": str(spec.filename)}
            )

        body = {
            "snippet": {
                "title": spec.title[:MAX_VIDEO_TITLE_LENGTH],
                "description": spec.description,
                "tags": list(spec.tags),
                "categoryId": MUSIC_CATEGORY_ID,
            },
            "status": {"privacyStatus": self.privacy_status},
        }
        media = MediaFileUpload(
            str(spec.filename),
            mimetype="application/octet-stream",
            chunksize=UPLOAD_CHUNK_SIZE,
            resumable=True
        )

        logger.info(f"Uploading {spec.filename.name}")
        request = self.service.videos().insert(part="snippet,status", body=body, media_body=media)

        response = None
        try:
            with tqdm(total=100, desc="Uploading", unit="%", leave=False) as progress:
                while response is None:
                    status, response = request.next_chunk()
                    if status is not None:
                        progress.update(int(status.progress() * 100) - progress.n)
        except HttpError as e:
            raise provider_error(e, "upload") from e
        except OSError as e:
            raise ProviderError(
                f"YouTube upload interrupted: {e}",
                details={"path": str(spec.filename), "original_error": str(e)},
                retryable=True
            ) from e

        logger.debug(f"Upload response: {response}")
        video_id = response.get("id") if isinstance(response, dict) else None
        if not video_id:
            raise ProviderError("API did not return video id", details={"response": response})

        logger.info(f"Uploaded {spec.title} as {video_id}")
        return VideoId(video_id)

    def create_playlist(self, spec: PlaylistSpec) -> PlaylistId:
        """
        Create a playlist and add the given videos in order.

        Raises:
            ProviderError: If the API rejects a request.
        """
        body = {
            "snippet": {"title": spec.title, "description": spec.description},
            "status": {"privacyStatus": self.privacy_status},
        }
        try:
            response = self.service.playlists().insert(part="snippet,status", body=body).execute()
        except HttpError as e:
            raise provider_error(e, "playlist creation") from e

        playlist_id = response.get("id") if isinstance(response, dict) else None
        if not playlist_id:
            raise ProviderError("API did not return playlist id", details={"response": response})
        logger.info(f"Created playlist {spec.title!r} as {playlist_id}")

        for position, video_id in enumerate(spec.video_ids):
            item = {
                "snippet": {
                    "playlistId": playlist_id,
                    "position": position,
                    "resourceId": {"kind": "youtube#video", "videoId": video_id.value},
                }
            }
            try:
                self.service.playlistItems().insert(part="snippet", body=item).execute()
            except HttpError as e:
                raise provider_error(e, "playlist item insertion") from e
            logger.debug(f"Added {video_id} to playlist {playlist_id} at {position}")

        return PlaylistId(playlist_id)
