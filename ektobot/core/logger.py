"""
Logging configuration for ektobot.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible, coloured formatting
    - log_full_{timestamp}.log: Complete log of all events (DEBUG and above)
    - log_errors_{timestamp}.log: Only ERROR and CRITICAL level messages
    - queue_failures_{timestamp}.log: Album URLs whose processing failed

Log File Locations:
    All log files are created in {state_dir}/logs. Each run gets its own
    timestamped set of files.

Usage:
    from ektobot.core.logger import setup_logging, get_logger

    setup_logging(state_dir, verbosity=1)  # Call once at startup
    logger = get_logger(__name__)          # Get logger for each module

    logger.info("Processing album")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Console levels indexed by the number of -v flags
CONSOLE_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colours the level name on console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes through tqdm.write().

    Upload progress bars write to stderr and redraw in place; plain
    stream handlers would tear them. tqdm.write() prints the message
    above any active bar.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class QueueFailureHandler(logging.Handler):
    """
    Handler that collects failed queue items into a report file.

    Only records carrying a 'queue_failed_url' extra field are written,
    in a simple human-readable format:

        https://ektoplazm.com/free-music/some-album
        Blacklisted: label 'Sony' matches pattern 'sony'

    Usage:
        log_queue_failure(logger, url, "ffmpeg failed")
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "queue_failed_url"):
            return

        if self.report_file is None:
            return

        try:
            url = getattr(record, "queue_failed_url", "")
            reason = getattr(record, "queue_failed_reason", "")
            self.report_file.write(f"{url}\n")
            self.report_file.write(f"{reason}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(state_dir: Path, verbosity: int = 1) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        state_dir: Directory where log files will be created.
                   Logs are stored in a 'logs' subdirectory.
        verbosity: Console verbosity. 0 shows warnings and errors,
                   1 adds info messages, 2 or more adds debug output.

    Returns:
        Path of the logs directory.

    Behavior:
        1. Create state_dir/logs if it doesn't exist
        2. Configure root logger level to DEBUG and drop old handlers
        3. Console handler (TqdmLoggingHandler) at the requested level
        4. Full log file handler at DEBUG
        5. Error log file handler filtered to ERROR+
        6. Queue failure report handler
        7. Quieten chatty third-party loggers
    """
    logs_dir = state_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(CONSOLE_LEVELS[min(max(verbosity, 0), len(CONSOLE_LEVELS) - 1)])
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(logs_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(logs_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_handler = QueueFailureHandler(logs_dir / f"queue_failures_{timestamp}.log")
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    for noisy in ("googleapiclient.discovery_cache", "urllib3", "google_auth_oauthlib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logs_dir


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().
    """
    return logging.getLogger(name)


def log_queue_failure(logger: logging.Logger, url: str, reason: str) -> None:
    """
    Log a queue item whose processing failed.

    Logs an ERROR with the extra fields QueueFailureHandler picks up
    for queue_failures.log.

    Args:
        logger: The logger to use for the message.
        url: The album URL that failed.
        reason: Description of why processing failed.
    """
    logger.error(
        f"Processing {url} failed: {reason}",
        extra={
            "queue_failed_url": url,
            "queue_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush and close all handlers on the root logger.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
