"""Retry policy for transient cluster errors with exponential back-off."""

import logging

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from indexvault.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_MAX_WAIT_SECONDS,
    DEFAULT_RETRY_MIN_WAIT_SECONDS,
)
from indexvault.exceptions import ClusterUnavailableError

logger = logging.getLogger(__name__)


def build_retrying(
    max_attempts: int = DEFAULT_MAX_RETRIES,
    min_wait: float = DEFAULT_RETRY_MIN_WAIT_SECONDS,
    max_wait: float = DEFAULT_RETRY_MAX_WAIT_SECONDS,
    multiplier: float = 2,
) -> Retrying:
    """Build a tenacity controller that retries only ClusterUnavailableError.

    The last error is re-raised unchanged once attempts are exhausted, so
    callers always see a ClusterQueryError subclass.

    Args:
        max_attempts: Maximum number of attempts (including the first)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        multiplier: Exponential multiplier for back-off

    Returns:
        Configured Retrying instance
    """
    return Retrying(
        retry=retry_if_exception_type(ClusterUnavailableError),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        stop=stop_after_attempt(max_attempts),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
