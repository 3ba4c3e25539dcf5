"""
Retry with exponential backoff for LMS session setup.

Only the one-off calls that establish a session (login page, dashboard and
sesskey fetch) are retried. Per-record lookups are never retried; their
failures are reported by the reconciliation runner instead.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Multiplier applied to the delay after each attempt
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=2, exceptions=(requests.ConnectionError,))
        def fetch_dashboard(session, url):
            return session.get(url, timeout=15)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {e}"
                        ) from e

                    current_delay = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt + 1, e, current_delay)
                    time.sleep(current_delay)
                    delay *= exponential_base

        return wrapper
    return decorator


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if an HTTP status code indicates a transient failure.

    Args:
        status_code: HTTP status code

    Returns:
        True for timeouts, rate limiting and gateway/server errors
    """
    retryable_codes = {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }
    return status_code in retryable_codes
