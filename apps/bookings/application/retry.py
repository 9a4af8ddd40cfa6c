"""Bounded retries for operations that hit a transient store failure."""

import logging
import time
from typing import Callable, TypeVar

from shared.domain.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retries(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    backoff: float = 0.2,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it stops raising TransientStoreError.

    Waits ``backoff``, ``2 * backoff``, ``4 * backoff``... between
    attempts and re-raises the last error once ``attempts`` are used up.
    The operation must be safe to re-run as a whole; coordinator
    operations are, because a failed attempt commits nothing.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransientStoreError as exc:
            if attempt == attempts:
                logger.warning(f"Giving up after {attempts} attempts: {exc}")
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.info(f"Transient store error on attempt {attempt}/{attempts}, retrying in {delay:.2f}s: {exc}")
            sleep(delay)
    raise AssertionError("unreachable")
