"""Fixed-interval retry bounded by an overall deadline."""
from __future__ import annotations
import logging
import time
from typing import Callable, Tuple, Type, TypeVar, Union

from .exceptions import DeadlineExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Union[
    Type[BaseException],
    Tuple[Type[BaseException], ...],
    Callable[[BaseException], bool],
]


def _should_retry(retry_on: RetryPredicate, exc: BaseException) -> bool:
    if isinstance(retry_on, type) or isinstance(retry_on, tuple):
        return isinstance(exc, retry_on)
    return bool(retry_on(exc))


def retry_until_deadline(
    operation: Callable[[], T],
    *,
    retry_on: RetryPredicate,
    interval: float,
    timeout: float,
) -> T:
    """Call operation until it returns, retrying selected failures.

    Attempts run every ``interval`` seconds. Another attempt is made only if it
    would start within ``timeout`` seconds of the first one.

    Args:
        operation: Zero-argument callable
        retry_on: Exception type(s), or a predicate over the raised exception
        interval: Fixed delay between attempts
        timeout: Overall deadline measured from the first attempt

    Returns:
        The first successful result

    Raises:
        DeadlineExceededError: When retryable failures outlast the deadline
        Exception: Any non-retryable exception, unchanged
    """
    deadline = time.monotonic() + timeout
    attempts = 0
    while True:
        attempts += 1
        try:
            return operation()
        except Exception as exc:
            if not _should_retry(retry_on, exc):
                raise
            if time.monotonic() + interval > deadline:
                raise DeadlineExceededError(exc, attempts) from exc
            logger.debug("Attempt %d failed (%s); retrying in %ss", attempts, exc, interval)
            time.sleep(interval)
