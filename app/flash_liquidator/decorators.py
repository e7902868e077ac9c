"""
Retry wrapper for node reads.
"""

import functools
import logging
import time
from typing import Any, Callable, Tuple, Type

import requests

TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (requests.RequestException,)


def retry_request(logger: logging.Logger, max_retries: int = 3, delay: float = 2) -> Callable:
    """
    Repeat a side-effect-free node read when the transport fails.

    The wait doubles after every failed attempt. Once ``max_retries``
    attempts have failed, the last error propagates to the caller.

    Args:
        logger: Logger receiving one line per failed attempt.
        max_retries: Attempts before giving up.
        delay: Seconds to wait after the first failure.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            wait = delay
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except TRANSPORT_ERRORS as e:
                    logger.warning("%s failed (%s/%s): %s", func.__qualname__, attempt, max_retries, e)
                    if attempt >= max_retries:
                        logger.error("%s gave up after %s attempts", func.__qualname__, max_retries)
                        raise
                time.sleep(wait)
                wait *= 2
                attempt += 1

        return wrapper

    return decorator
