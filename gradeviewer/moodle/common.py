"""Shared HTTP helpers for talking to Moodle."""

import requests

from ..errors import ExternalLookupError
from ..logger import get_logger
from ..retry import RetryError, exponential_backoff, should_retry_http_status

logger = get_logger()

REQUEST_TIMEOUT = 15
SETUP_RETRIES = 2


class TransientStatus(Exception):
    """Retryable HTTP status (408/429/5xx) seen during session setup."""
    pass


def _log_retry(attempt: int, error: Exception, delay: float) -> None:
    logger.warning(f"Moodle setup request failed, retrying in {delay:.1f}s", attempt=attempt, error=str(error))


@exponential_backoff(
    max_retries=SETUP_RETRIES,
    base_delay=1.0,
    exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, TransientStatus),
    on_retry=_log_retry,
)
def _get_with_retry(session: requests.Session, url: str, **kwargs) -> requests.Response:
    """GET with automatic retry on transient errors. Session setup only."""
    resp = session.get(url, **kwargs)
    if should_retry_http_status(resp.status_code):
        raise TransientStatus(f"HTTP {resp.status_code} from {url}")
    return resp


def send(
    session: requests.Session,
    method: str,
    url: str,
    retry: bool = False,
    check_status: bool = True,
    **kwargs,
) -> requests.Response:
    """Send a request and translate transport failures into ExternalLookupError.

    Args:
        session: Shared Moodle session
        method: HTTP method
        url: Absolute URL
        retry: Retry transient failures (GET only, session setup only)
        check_status: Raise on 4xx/5xx responses

    Raises:
        ExternalLookupError: On HTTP errors, timeouts, or exhausted retries
    """
    kwargs.setdefault("timeout", REQUEST_TIMEOUT)
    try:
        if retry and method.upper() == "GET":
            resp = _get_with_retry(session, url, **kwargs)
        else:
            resp = session.request(method, url, **kwargs)
        if check_status:
            resp.raise_for_status()
        return resp
    except RetryError as e:
        logger.error("Moodle request failed after retries", url=url, error=str(e))
        raise ExternalLookupError(f"Moodle unreachable after retries: {url}") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "HTTPError"
        logger.error("Moodle request failed", url=url, status=status)
        raise ExternalLookupError(f"Moodle request failed ({status}): {url}") from e
    except requests.exceptions.Timeout as e:
        logger.warning("Moodle request timed out", url=url)
        raise ExternalLookupError("Moodle request timed out. Try again later.") from e
    except requests.exceptions.RequestException as e:
        logger.error("Moodle request error", url=url, error=str(e))
        raise ExternalLookupError(f"Moodle request error: {e}") from e
