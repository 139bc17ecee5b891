"""Retry logic with exponential backoff for RPC calls."""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    """
    Configuration for retry behavior.

    Parameters
    ----------
    max_retries : int
        Maximum number of retry attempts
    base_delay : float
        Initial delay in seconds before first retry
    max_delay : float
        Maximum delay between retries
    exponential_base : float
        Base for exponential backoff calculation

    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt using exponential backoff.

        Parameters
        ----------
        attempt : int
            Current attempt number (0-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)


def with_retry(
    config: RetryConfig | None = None,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    give_up_on: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to add retry logic with exponential backoff to a function.

    Parameters
    ----------
    config : RetryConfig | None
        Retry configuration. Uses default config if None.
    retry_on : tuple[type[BaseException], ...]
        Exception types that trigger another attempt
    give_up_on : tuple[type[BaseException], ...]
        Exception types re-raised immediately, even if they match ``retry_on``
    sleep : Callable[[float], None]
        Sleep function (replaced in tests)

    Returns
    -------
    Callable
        Decorated function with retry logic

    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(config.max_attempts):
                try:
                    return func(*args, **kwargs)
                except give_up_on:
                    raise
                except retry_on as e:
                    # Don't retry on last attempt
                    if attempt == config.max_retries:
                        logger.debug("%s failed after %d attempts", func.__name__, config.max_attempts)
                        raise

                    delay = config.get_delay(attempt)
                    logger.debug(
                        "%s failed (attempt %d/%d): %s, retrying in %.1fs...",
                        func.__name__,
                        attempt + 1,
                        config.max_attempts,
                        e,
                        delay,
                    )
                    sleep(delay)

            msg = "max_retries must be non-negative"
            raise ValueError(msg)

        return wrapper

    return decorator
