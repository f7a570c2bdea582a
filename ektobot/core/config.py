"""
Configuration management for ektobot.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - State directory (database, OAuth token, logs)
    - Audio and video working directories
    - YouTube OAuth client secret and token locations
    - Retry policy and daemon throttle settings

Configuration File Location:
    The config.yaml file is looked up at the path given with --config,
    otherwise in the state directory. A missing file is not an error:
    every setting has a default.

Example config.yaml:
    paths:
      state_dir: "~/.ektobot"
      audio_dir: null        # defaults to {state_dir}/mp3
      video_dir: null        # defaults to {state_dir}/video

    youtube:
      client_secret: null    # defaults to {state_dir}/client_secret.json
      token_file: null       # defaults to {state_dir}/youtube_token.json
      privacy_status: public

    pipeline:
      retry_attempts: 8
      retry_delay_hours: 4
      daemon_sleep_seconds: 1
"""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from ektobot.core.exceptions import ConfigurationError


CONFIG_FILENAME = "config.yaml"
DATABASE_FILENAME = "state.db"
DEFAULT_STATE_DIR = "~/.ektobot"

PRIVACY_STATUSES = ("public", "unlisted", "private")


@dataclass(frozen=True)
class PathsConfig:
    """
    Filesystem layout configuration.

    Attributes:
        state_dir: Directory holding the database, OAuth token and logs.
        audio_dir: Directory where album archives are unpacked, one
                   subdirectory per album.
        video_dir: Directory where rendered videos are written, one
                   subdirectory per album.
    """
    state_dir: Path
    audio_dir: Path
    video_dir: Path

    @property
    def database(self) -> Path:
        """Path of the SQLite state database."""
        return self.state_dir / DATABASE_FILENAME


@dataclass(frozen=True)
class YouTubeConfig:
    """
    YouTube Data API configuration.

    Attributes:
        client_secret: OAuth client secret JSON downloaded from the
                       Google Cloud console (OAuth Client ID, desktop app).
        token_file: Where the authorized user token is cached.
        privacy_status: Privacy status for uploaded videos and playlists.
    """
    client_secret: Path
    token_file: Path
    privacy_status: str


@dataclass(frozen=True)
class PipelineConfig:
    """
    Pipeline behaviour configuration.

    Attributes:
        retry_attempts: How many times a retryable provider failure is
                        re-attempted (the call runs at most retry_attempts + 1 times).
        retry_delay: Fixed pause between attempts. YouTube quota resets daily,
                     so the default is long.
        daemon_sleep: Pause between queue items in daemon mode.
    """
    retry_attempts: int
    retry_delay: timedelta
    daemon_sleep: float


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config(state_dir=Path("~/.ektobot"))
        print(f"Database: {config.paths.database}")
    """
    paths: PathsConfig
    youtube: YouTubeConfig
    pipeline: PipelineConfig


def load_config(
    config_path: Path | None = None,
    state_dir: Path | None = None
) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Optional explicit path to config file. It must exist.
        state_dir: Optional state directory override (the -d CLI flag).
                   Takes precedence over paths.state_dir from the file.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigurationError: If an explicit config file is missing, the YAML
                            is invalid, or a value has the wrong type.
    """
    raw_config: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_yaml(config_path)
    else:
        base = (state_dir or Path(DEFAULT_STATE_DIR)).expanduser()
        candidate = base / CONFIG_FILENAME
        if candidate.exists():
            raw_config = _read_yaml(candidate)

    _validate_sections(raw_config)

    paths_config = _parse_paths_config(raw_config.get("paths"), state_dir)
    youtube_config = _parse_youtube_config(raw_config.get("youtube"), paths_config.state_dir)
    pipeline_config = _parse_pipeline_config(raw_config.get("pipeline"))

    return Config(
        paths=paths_config,
        youtube=youtube_config,
        pipeline=pipeline_config
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file parses to None
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _validate_sections(raw_config: dict[str, Any]) -> None:
    for section in ("paths", "youtube", "pipeline"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigurationError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _optional_path(section: dict[str, Any], field: str, qualified: str) -> Path | None:
    raw = section.get(field)
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigurationError(
            f"'{qualified}' must be a non-empty string path or null",
            details={"field": qualified}
        )
    return Path(raw.strip()).expanduser().resolve()


def _parse_paths_config(
    paths_section: dict[str, Any] | None,
    state_dir_override: Path | None
) -> PathsConfig:
    """
    Parse the paths section, applying defaults relative to the state directory.

    The state directory is resolved in this order: CLI override,
    paths.state_dir, ~/.ektobot.
    """
    section = paths_section or {}

    if state_dir_override is not None:
        state_dir = state_dir_override.expanduser().resolve()
    else:
        state_dir = (
            _optional_path(section, "state_dir", "paths.state_dir")
            or Path(DEFAULT_STATE_DIR).expanduser().resolve()
        )

    audio_dir = _optional_path(section, "audio_dir", "paths.audio_dir") or state_dir / "mp3"
    video_dir = _optional_path(section, "video_dir", "paths.video_dir") or state_dir / "video"

    return PathsConfig(state_dir=state_dir, audio_dir=audio_dir, video_dir=video_dir)


def _parse_youtube_config(youtube_section: dict[str, Any] | None, state_dir: Path) -> YouTubeConfig:
    section = youtube_section or {}

    client_secret = (
        _optional_path(section, "client_secret", "youtube.client_secret")
        or state_dir / "client_secret.json"
    )
    token_file = (
        _optional_path(section, "token_file", "youtube.token_file")
        or state_dir / "youtube_token.json"
    )

    privacy_status = section.get("privacy_status", "public")
    if privacy_status not in PRIVACY_STATUSES:
        raise ConfigurationError(
            f"'youtube.privacy_status' must be one of {', '.join(PRIVACY_STATUSES)}",
            details={"field": "youtube.privacy_status", "value": privacy_status}
        )

    return YouTubeConfig(
        client_secret=client_secret,
        token_file=token_file,
        privacy_status=privacy_status
    )


def _parse_pipeline_config(pipeline_section: dict[str, Any] | None) -> PipelineConfig:
    """
    Parse the pipeline section.

    Defaults: 8 retries, 4 hours between retries, 1 second between
    daemon queue items.

    Raises:
        ConfigurationError: If a value is negative or not a number.
    """
    retry_attempts = 8
    retry_delay_hours: float = 4
    daemon_sleep: float = 1

    if pipeline_section is not None:
        raw_attempts = pipeline_section.get("retry_attempts")
        if raw_attempts is not None:
            # bool is an int subclass, reject it explicitly
            if isinstance(raw_attempts, bool) or not isinstance(raw_attempts, int) or raw_attempts < 0:
                raise ConfigurationError(
                    "'pipeline.retry_attempts' must be a non-negative integer",
                    details={"field": "pipeline.retry_attempts", "value": raw_attempts}
                )
            retry_attempts = raw_attempts

        retry_delay_hours = _non_negative_number(
            pipeline_section, "retry_delay_hours", retry_delay_hours
        )
        daemon_sleep = _non_negative_number(
            pipeline_section, "daemon_sleep_seconds", daemon_sleep
        )

    return PipelineConfig(
        retry_attempts=retry_attempts,
        retry_delay=timedelta(hours=retry_delay_hours),
        daemon_sleep=float(daemon_sleep)
    )


def _non_negative_number(section: dict[str, Any], field: str, default: float) -> float:
    raw = section.get(field)
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw < 0:
        raise ConfigurationError(
            f"'pipeline.{field}' must be a non-negative number",
            details={"field": f"pipeline.{field}", "value": raw}
        )
    return raw
