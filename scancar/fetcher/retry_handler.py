"""Retry handler with exponential backoff and jitter."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

# Transport failures worth another attempt; protocol/URL errors are not.
RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    jitter_max: float = 0.5
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: min(max_delay, (base_delay * (2 ** attempt)) + random_jitter)

    Args:
        attempt: Retry attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter_max: Maximum jitter to add in seconds

    Returns:
        Delay in seconds
    """
    exponential_delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, jitter_max)
    return min(max_delay, exponential_delay + jitter)


class RetryHandler:
    """
    Retries async HTTP calls on transient failures.

    Retries on timeouts, network errors and the configured status codes
    (429, 502, 503, 504 by default). Anything else is raised immediately.
    """

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 4.0,
        jitter_max: float = 0.5,
        retryable_status_codes: Optional[Iterable[int]] = None,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger=None,
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Retries after the first attempt
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay cap
            jitter_max: Maximum jitter to add
            retryable_status_codes: HTTP status codes that trigger a retry
            sleeper: Async sleep function, replaceable in tests
            logger: Optional structured logger
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_max = jitter_max
        self.retryable_status_codes = frozenset(
            retryable_status_codes if retryable_status_codes is not None
            else DEFAULT_RETRYABLE_STATUS_CODES
        )
        self._sleep = sleeper
        self.logger = logger

    def is_retryable(self, error: BaseException) -> bool:
        """Check whether an exception represents a transient failure."""
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code in self.retryable_status_codes
        return isinstance(error, RETRYABLE_EXCEPTIONS)

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        description: str = "",
        **kwargs
    ) -> Any:
        """
        Await ``func(*args, **kwargs)`` with retry logic.

        Raises:
            Exception: The last error once retries are exhausted, or the
                first non-retryable error
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise

                delay = calculate_backoff_delay(
                    attempt,
                    self.base_delay,
                    self.max_delay,
                    self.jitter_max
                )
                if self.logger:
                    self.logger.http_retry(
                        url=description,
                        attempt=attempt,
                        error=str(e) or type(e).__name__,
                        delay=round(delay, 3),
                    )
                await self._sleep(delay)
                attempt += 1
