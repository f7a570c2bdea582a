"""
Core module for ektobot.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - models: Album/Track graph and provider identifier types
    - store: SQLite persistent state (albums, queue, exclusion patterns)
    - blacklist: Artist/label exclusion filter
    - retry: Bounded fixed-delay retry policy

models, store, blacklist and retry depend on ektobot.utils and are imported
from their submodules directly.

Usage:
    from ektobot.core import Config, load_config, setup_logging, get_logger
    from ektobot.core.store import Store
"""

from ektobot.core.exceptions import (
    ConfigurationError,
    ConsistencyError,
    EktobotError,
    EligibilityError,
    EncodingError,
    ExclusionError,
    FileSystemError,
    LicenseError,
    NetworkError,
    NoSourceError,
    ParseError,
    ProviderError,
)
from ektobot.core.logger import (
    get_logger,
    log_queue_failure,
    setup_logging,
    shutdown_logging,
)
from ektobot.core.config import (
    Config,
    PathsConfig,
    PipelineConfig,
    YouTubeConfig,
    load_config,
)

__all__ = [
    # Config
    "Config",
    "PathsConfig",
    "PipelineConfig",
    "YouTubeConfig",
    "load_config",
    # Exceptions
    "EktobotError",
    "ConfigurationError",
    "NoSourceError",
    "NetworkError",
    "ParseError",
    "FileSystemError",
    "EncodingError",
    "ProviderError",
    "ConsistencyError",
    "EligibilityError",
    "ExclusionError",
    "LicenseError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_queue_failure",
    "shutdown_logging",
]
