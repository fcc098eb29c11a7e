"""Retry decorator with exponential backoff."""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] | None = None,
) -> Callable:
    """Decorator that retries a function on failure with exponential backoff.

    The last exception is re-raised once attempts run out, so callers still
    decide how a persistent failure is handled.

    Args:
        max_attempts: Maximum number of attempts before raising.
        base_delay: Initial delay between retries in seconds.
        backoff_factor: Multiplier applied to delay after each attempt.
        exceptions: Tuple of exception types that trigger a retry.
        sleep: Function used to wait between attempts (time.sleep if None).
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = max(1, max_attempts)
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts:
                        raise
                    delay = base_delay * (backoff_factor ** (attempt - 1))
                    logger.warning(
                        "%s attempt %d/%d failed: %s. Retrying in %.1fs",
                        func.__name__, attempt, attempts, e, delay,
                    )
                    (sleep or time.sleep)(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
