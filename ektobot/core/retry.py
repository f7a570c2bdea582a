"""
Bounded fixed-delay retry policy.

Wraps a fallible, side-effecting operation (a video upload, a playlist
creation) and re-invokes it when it fails with an error flagged as
retryable. Whether a failure is retryable is decided by the error type
(ProviderError.retryable), not here.

Retry Strategy:
    - max_attempts counts RE-attempts: the operation runs at most
      max_attempts + 1 times.
    - Fixed delay between attempts, no jitter. YouTube quota resets once
      a day, so the pipeline uses hours-long delays.
    - The sleep blocks the calling thread. ektobot runs a single worker,
      so nothing else progresses while waiting.
"""

import time
from datetime import timedelta
from typing import Callable, TypeVar

from ektobot.core.logger import get_logger

logger = get_logger(__name__)


T = TypeVar("T")


def retry(
    max_attempts: int,
    delay: float | timedelta,
    operation: Callable[[], T],
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Invoke operation, re-trying retryable failures.

    Args:
        max_attempts: Maximum number of re-attempts after the first call.
        delay: Pause between attempts, in seconds or as a timedelta.
        operation: Zero-argument callable to invoke.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Whatever operation returns on its first successful call.

    Raises:
        The operation's exception, unchanged, if it is not retryable or
        if all re-attempts are exhausted.

    Example:
        video_id = retry(8, timedelta(hours=4), lambda: provider.upload_video(spec))
    """
    seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
    attempt = 0

    while True:
        try:
            return operation()
        except Exception as e:
            if not getattr(e, "retryable", False):
                raise
            if attempt >= max_attempts:
                logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                raise
            attempt += 1
            logger.warning(
                f"Attempt {attempt}/{max_attempts + 1} failed: {e}. "
                f"Retrying in {timedelta(seconds=seconds)}"
            )
            sleep(seconds)
