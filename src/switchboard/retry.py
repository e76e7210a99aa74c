"""Bounded exponential-backoff retry for provider calls."""

import logging
import time
from typing import Callable, Optional, TypeVar

from .exceptions import LLMProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Call ``operation`` until it succeeds or ``max_attempts`` is reached.

    After a failed attempt ``n`` (zero-indexed) waits ``base_delay * 2 ** n``
    seconds before trying again. Provider errors flagged as not retryable
    (a missing API key, for instance) are raised straight away.

    Args:
        operation: Zero-argument callable to invoke.
        max_attempts: Total number of attempts.
        base_delay: Delay in seconds before the first retry.
        sleep: Sleep function. Defaults to time.sleep.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        Exception: The last error raised by ``operation``.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    sleep = sleep or time.sleep

    for attempt in range(max_attempts):
        try:
            return operation()
        except Exception as e:
            if isinstance(e, LLMProviderError) and not e.is_retryable:
                raise
            if attempt == max_attempts - 1:
                logger.warning(f"Attempt {attempt + 1}/{max_attempts} failed: {e}. Giving up.")
                raise

            delay = base_delay * (2**attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{max_attempts} failed: {e}. Retrying in {delay:.1f}s..."
            )
            sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
