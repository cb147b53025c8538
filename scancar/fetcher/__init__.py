"""Async HTTP fetching with rate limiting, retries and bounded pools."""

from .http_client import AsyncHTTPClient
from .rate_limiter import RateLimiter
from .retry_handler import RetryHandler
from .worker_pool import BoundedFetchPool

__all__ = ["AsyncHTTPClient", "BoundedFetchPool", "RateLimiter", "RetryHandler"]
