import asyncio
import random
import logging
import functools
import time
from typing import Callable, Any, TypeVar, Coroutine
from playwright.async_api import Error as PlaywrightError
from ficqueue.config.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestThrottle:
    """
    Spaces outgoing requests at least ``min_interval`` seconds apart.
    Callers are served one at a time in arrival order.
    """

    def __init__(self, min_interval: float):
        self.min_interval = min_interval
        self._lock = asyncio.Lock()
        self._last_request = 0.0

    async def wait(self):
        async with self._lock:
            elapsed = time.monotonic() - self._last_request
            delay = self.min_interval - elapsed
            if delay > 0:
                logger.debug(f"Throttling request for {delay:.2f}s")
                await asyncio.sleep(delay)
            self._last_request = time.monotonic()


# Global throttle for requests to the archive
request_throttle = RequestThrottle(settings.MIN_REQUEST_INTERVAL)


def with_retry(
    max_retries: int = settings.MAX_RETRIES,
    base_delay: float = settings.RETRY_BASE_DELAY,
    max_delay: float = settings.RETRY_MAX_DELAY,
):
    """
    Decorator for async functions to retry on failure with exponential backoff and jitter.
    Only browser and timeout errors are retried.
    """

    def decorator(
        func: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            retries = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (PlaywrightError, asyncio.TimeoutError) as e:
                    if retries >= max_retries:
                        logger.error(
                            f"Max retries reached for {func.__name__}. Error: {e}"
                        )
                        raise

                    delay = min(base_delay * (2**retries), max_delay)
                    jitter = random.uniform(0, 0.5 * delay)
                    sleep_time = delay + jitter

                    logger.warning(
                        f"Attempt {retries + 1}/{max_retries} failed for {func.__name__}. "
                        f"Retrying in {sleep_time:.2f}s. Error: {e}"
                    )

                    await asyncio.sleep(sleep_time)
                    retries += 1
                except Exception as e:
                    # Non-retryable exceptions
                    logger.warning(f"{func.__name__} failed without retry: {e}")
                    raise

        return wrapper

    return decorator
