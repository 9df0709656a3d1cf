"""Bounded retry with exponential backoff.

Shared by the AI providers and the source-control client so both follow the
same policy: at most `attempts` calls, sleeping base_delay, 2*base_delay, ...
between them. The wrapped call owns its own timeout; this helper never
retries forever.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 2.0


def _always(exc: BaseException) -> bool:
    return True


def call_with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    retry_on: Callable[[BaseException], bool] = _always,
    label: str = "call",
) -> T:
    """Call fn until it succeeds or the attempt budget is spent.

    The last exception is re-raised on exhaustion. An exception for which
    retry_on returns False is re-raised immediately.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:
            if not retry_on(e):
                logger.error("%s failed with a non-retryable error: %s", label, e)
                raise
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", label, attempts, e)
                raise
            delay = base_delay * 2 ** (attempt - 1)
            logger.warning(
                "%s error (attempt %d/%d): %s. Retrying in %.0fs...",
                label,
                attempt,
                attempts,
                e,
                delay,
            )
            time.sleep(delay)
    raise AssertionError("unreachable")
