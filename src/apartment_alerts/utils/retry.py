"""Retry decorator with exponential backoff."""

import logging
import time
from functools import wraps
from typing import Tuple, Type

logger = logging.getLogger(__name__)


def retry_with_backoff(
    max_retries: int = 3,
    backoff_factor: float = 2,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    max_delay: float = 30,
):
    """
    Decorator for retrying functions with exponential backoff.

    Only used for connection setup. Routing lookups are never retried here:
    a failed commute estimate is reported as unavailable instead.

    Args:
        max_retries: Maximum number of retry attempts
        backoff_factor: Multiplier for delay between retries (delay = backoff_factor ** attempt)
        exceptions: Tuple of exception types to catch and retry
        max_delay: Upper bound on a single delay in seconds

    Example:
        @retry_with_backoff(max_retries=3, exceptions=(psycopg2.OperationalError,))
        def connect():
            ...
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempts = max_retries + 1

            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(f"{func.__name__} failed after {attempts} attempts: {e}")
                        raise

                    delay = min(backoff_factor**attempt, max_delay)
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt + 1}/{attempts}): {e}. "
                        f"Retrying in {delay}s..."
                    )
                    time.sleep(delay)

        return wrapper

    return decorator
