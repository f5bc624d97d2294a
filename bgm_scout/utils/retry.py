import time
import logging
import functools

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _status_code(exc) -> int:
    """Pull an HTTP status off HttpError-like or requests-like exceptions."""
    status = getattr(exc, "status_code", None)
    if status is None:
        resp = getattr(exc, "resp", None)
        status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_retryable(exc: Exception) -> bool:
    error_name = type(exc).__name__
    status_code = _status_code(exc)
    if status_code in RETRYABLE_STATUS:
        return True
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    return "Timeout" in error_name or "Connection" in error_name


def retry_with_backoff(max_retries: int = 2, base_delay: float = 2.0,
                       max_delay: float = 60.0, sleep=time.sleep):
    """Decorator for retrying API calls with exponential backoff.

    Retries on rate limits (429), transient server errors (5xx) and
    connection/timeout failures. Everything else is raised immediately.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e) or attempt == max_retries:
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    logger.warning(
                        f"{type(e).__name__}: retry {attempt + 1}/{max_retries} in {delay:.1f}s"
                    )
                    sleep(delay)

        return wrapper

    return decorator
