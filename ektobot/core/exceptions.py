"""
Exception classes for ektobot.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, so callers can log context without parsing strings.

Exception Hierarchy:
    EktobotError (base)
        ConfigurationError - config.yaml issues, unknown queue actions, bad patterns
            NoSourceError - no registered source handles a URL
        NetworkError - HTTP download failures
        ParseError - unexpected page markup or missing audio tags
        FileSystemError - missing files, unwritable directories
        EncodingError - external renderer (ffmpeg) failed
        ProviderError - video hosting API failures (may be retryable)
        ConsistencyError - store invariant violated or store corrupt
        EligibilityError - album refused by policy (terminal)
            ExclusionError - album matches the blacklist
            LicenseError - album carries no license

Retry Semantics:
    Only ProviderError instances constructed with retryable=True are
    re-attempted by ektobot.core.retry. Every other error surfaces
    immediately to the caller.
"""


class EktobotError(Exception):
    """
    Base exception for all ektobot errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every ektobot error with a single
    except clause (the queue daemon does exactly that).

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., url, path).
        retryable: Always False here; ProviderError may override it.

    Example:
        try:
            pipeline.run_url(url)
        except EktobotError as e:
            logger.error(f"Processing failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    retryable: bool = False

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user
                     and stored as the queue entry result.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'url': album URL involved in the error
                     - 'path': filesystem path involved in the error
                     - 'original_error': the underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigurationError(EktobotError):
    """
    Raised when configuration is invalid.

    This covers the config.yaml file, an unrecognized queue action tag,
    an unknown exclusion pattern kind, or a malformed exclusion pattern.

    Example:
        raise ConfigurationError(
            "Unknown queue action 'mp3'",
            details={'action': 'mp3', 'url': url}
        )
    """
    pass


class NoSourceError(ConfigurationError):
    """
    Raised when no registered source recognizes a URL.

    This is a terminal error for the queue item: retrying will not
    help until a source for that site is added.
    """
    pass


class NetworkError(EktobotError):
    """
    Raised when an HTTP request fails or returns a non-200 status.

    Example:
        raise NetworkError(
            "Failed to fetch URL",
            details={'url': url, 'status_code': 404}
        )
    """
    pass


class ParseError(EktobotError):
    """
    Raised when fetched data does not have the expected shape.

    Common causes:
        - Album page layout changed (download link not found)
        - Downloaded archive is not a valid ZIP file
        - A required ID3 tag (track number, artist, title) is missing
    """
    pass


class FileSystemError(EktobotError):
    """
    Raised for filesystem problems.

    Common causes:
        - State directory or database file is not writable
        - No cover image among the unpacked files
        - A track has no audio file recorded
    """
    pass


class EncodingError(EktobotError):
    """
    Raised when the external renderer (ffmpeg) exits with a nonzero status.

    The details dictionary contains the captured stderr output.
    """
    pass


class ProviderError(EktobotError):
    """
    Raised when the video hosting provider rejects a request.

    Attributes:
        retryable: True if the failure is transient (quota exhausted,
                   rate limited, backend error) and the request may succeed
                   when re-attempted later.

    Example:
        raise ProviderError(
            "YouTube quota exceeded",
            details={'status_code': 403, 'reason': 'quotaExceeded'},
            retryable=True
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        retryable: bool = False
    ) -> None:
        """
        Initialize provider error with retry classification.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            retryable: Set to True if the error is transient. Only retryable
                       errors are re-attempted by the retry policy.
        """
        super().__init__(message, details)
        self.retryable = retryable


class ConsistencyError(EktobotError):
    """
    Raised when the store is corrupt or one of its invariants is violated.

    This is a CRITICAL error: e.g. two album rows for one URL means the
    database cannot be trusted to tell what has been published.
    """
    pass


class EligibilityError(EktobotError):
    """
    Raised when an album is refused by policy.

    This is a terminal, non-retryable failure for the album. It is
    recorded as the queue result and the daemon moves on.
    """
    pass


class ExclusionError(EligibilityError):
    """Raised when an album matches an artist or label exclusion pattern."""
    pass


class LicenseError(EligibilityError):
    """Raised when an album has no license and therefore cannot be republished."""
    pass
