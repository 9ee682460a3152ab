"""
Retry logic for calls to external services with exponential backoff.
"""

import logging
import random
import time
from typing import Callable, Optional, TypeVar
from functools import wraps

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        backoff_multiplier: float = 2.0,
        max_backoff: float = 32.0,
        jitter: bool = True
    ):
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.backoff_multiplier = backoff_multiplier
        self.max_backoff = max_backoff
        self.jitter = jitter

    def get_backoff_time(self, attempt: int) -> float:
        """Calculate backoff time for attempt number."""
        backoff = min(
            self.initial_backoff * (self.backoff_multiplier ** attempt),
            self.max_backoff
        )

        if self.jitter:
            backoff = backoff * (0.5 + random.random())

        return backoff


class ServiceError(Exception):
    """Base exception for external service errors."""

    def __init__(self, message: str, service: str, retry_possible: bool = True):
        self.message = message
        self.service = service
        self.retry_possible = retry_possible
        super().__init__(self.message)


class TransientError(ServiceError):
    """Error that might be transient (temporary)."""
    pass


class PermanentError(ServiceError):
    """Error that won't be resolved by retrying."""

    def __init__(self, message: str, service: str):
        super().__init__(message, service, retry_possible=False)


def retry_with_backoff(
    func: Callable[..., T] = None,
    config: RetryConfig = None,
    error_handler: Optional[Callable[[Exception, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator to retry a function with exponential backoff.

    Usable bare (@retry_with_backoff) or with arguments
    (@retry_with_backoff(config=RetryConfig(max_retries=1))).

    Args:
        func: Function to retry
        config: Retry configuration
        error_handler: Callback on errors
        sleep: Sleep function between attempts

    Returns:
        Wrapped function with retry logic
    """
    if func is None:
        def decorator(f):
            return retry_with_backoff(f, config=config, error_handler=error_handler, sleep=sleep)
        return decorator

    if config is None:
        config = RetryConfig()

    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        last_exception = None

        for attempt in range(config.max_retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"Retry succeeded on attempt {attempt + 1}")
                return result

            except PermanentError as e:
                logger.error(f"Permanent error from {func.__name__}: {e.message}")
                raise

            except (TransientError, ConnectionError, TimeoutError) as e:
                last_exception = e

                if attempt < config.max_retries:
                    backoff = config.get_backoff_time(attempt)
                    logger.warning(
                        f"Attempt {attempt + 1} failed: {str(e)}. "
                        f"Retrying in {backoff:.2f} seconds..."
                    )

                    if error_handler:
                        error_handler(e, attempt)

                    sleep(backoff)
                else:
                    logger.error(f"All {config.max_retries + 1} attempts failed")

        if last_exception:
            raise last_exception

        raise RuntimeError(f"Failed to execute {func.__name__}")

    return wrapper
