"""
Retry Module
Generic exponential backoff with jitter, shared by both source clients.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ternity_sync.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


@dataclass
class RetryOptions:
    """Backoff configuration. Delays are in seconds."""
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 300.0
    jitter_factor: float = 0.5
    # Maps an error to a server-suggested wait (seconds), or None
    delay_hint: Optional[Callable[[BaseException], Optional[float]]] = None
    # Called with (attempt, error, delay) before each sleep
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None

    @classmethod
    def from_config(cls, config: dict, **overrides) -> 'RetryOptions':
        """Build options from the `retry` config section."""
        options = cls(
            max_retries=int(config.get('max_retries', cls.max_retries)),
            base_delay=float(config.get('base_delay', cls.base_delay)),
            max_delay=float(config.get('max_delay', cls.max_delay)),
            jitter_factor=float(config.get('jitter_factor', cls.jitter_factor)),
        )
        for key, value in overrides.items():
            setattr(options, key, value)
        return options


def compute_delay(attempt: int, options: RetryOptions, jitter: bool = True) -> float:
    """
    Delay before retry number `attempt` (0-based).

    min(base * 2^attempt, max) plus up to jitter_factor of that again.
    """
    delay = min(options.base_delay * (2 ** attempt), options.max_delay)
    if jitter and options.jitter_factor > 0:
        delay += delay * random.random() * options.jitter_factor
    return delay


def with_retry(
    fn: Callable[[], T],
    is_retryable: Callable[[BaseException], bool],
    options: RetryOptions = None
) -> T:
    """
    Call fn, retrying retryable failures with exponential backoff.

    Args:
        fn: Zero-argument callable to execute
        is_retryable: Predicate deciding whether an error is worth retrying
        options: Backoff configuration

    Returns:
        The result of fn()

    Raises:
        The last error once retries are exhausted, or any non-retryable error immediately
    """
    options = options or RetryOptions()
    attempt = 0

    while True:
        try:
            return fn()
        except Exception as e:
            if attempt >= options.max_retries or not is_retryable(e):
                raise

            delay = compute_delay(attempt, options)
            if options.delay_hint:
                hint = options.delay_hint(e)
                if hint:
                    delay = max(delay, hint)

            logger.warning(
                f"Retryable error (attempt {attempt + 1}/{options.max_retries}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            if options.on_retry:
                options.on_retry(attempt, e, delay)

            time.sleep(delay)
            attempt += 1
