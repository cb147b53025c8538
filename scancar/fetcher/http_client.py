"""Async HTTP client wrapper with timeouts, rate limiting and retries."""

from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from scancar.fetcher.rate_limiter import RateLimiter
from scancar.fetcher.retry_handler import RetryHandler

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0 Safari/537.36"
    ),
    "Accept-Language": "vi,en;q=0.9",
}


class RedirectNotAllowed(httpx.RequestError):
    """A redirect pointed at a host the caller does not allow."""


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Configurable connect and read timeouts
    - Browser-like default headers and redirect following
    - Per-host rate limiting and retry of transient failures
    - Context manager for proper lifecycle management

    Every non-2xx response raises ``httpx.HTTPStatusError``.
    """

    def __init__(
        self,
        connect_timeout: float = 5.0,
        read_timeout: float = 20.0,
        write_timeout: float = 5.0,
        pool_timeout: float = 5.0,
        headers: Optional[Mapping[str, str]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_handler: Optional[RetryHandler] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            write_timeout: Write timeout in seconds
            pool_timeout: Pool timeout in seconds
            headers: Default headers, merged over DEFAULT_HEADERS
            rate_limiter: Optional per-host rate limiter
            retry_handler: Optional retry policy
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.pool_timeout = pool_timeout
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.rate_limiter = rate_limiter
        self.retry_handler = retry_handler
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.aclose()

    async def open(self) -> None:
        if self._client is not None:
            return
        timeout = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout
        )
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=self.headers,
            follow_redirects=True,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        redirect_guard: Optional[Callable[[str], bool]] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Perform a request with rate limiting and retries.

        Args:
            method: HTTP method
            url: Absolute URL to request
            redirect_guard: Predicate on the target host of each redirect;
                when given, redirects are followed hop by hop and a rejected
                host raises ``RedirectNotAllowed`` without being requested
            **kwargs: Additional arguments for httpx

        Returns:
            Successful (2xx) HTTP response

        Raises:
            RuntimeError: If the client is not open
            RedirectNotAllowed: If ``redirect_guard`` rejects a redirect target
            httpx.HTTPStatusError: On non-2xx responses
            httpx.TransportError: On network failures
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        host = httpx.URL(url).host

        async def attempt() -> httpx.Response:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire(host)
            if redirect_guard is None:
                response = await self._client.request(method, url, **kwargs)
            else:
                response = await self._request_guarded(method, url, redirect_guard, **kwargs)
            response.raise_for_status()
            return response

        if self.retry_handler is None:
            return await attempt()
        return await self.retry_handler.execute(attempt, description=f"{method} {url}")

    async def _request_guarded(
        self, method: str, url: str, redirect_guard: Callable[[str], bool], **kwargs
    ) -> httpx.Response:
        response = await self._client.request(method, url, follow_redirects=False, **kwargs)
        hops = 0
        while response.next_request is not None:
            target = response.next_request
            if not redirect_guard(target.url.host):
                raise RedirectNotAllowed(
                    f"Redirect to '{target.url.host}' is not allowed", request=response.request
                )
            hops += 1
            if hops > self._client.max_redirects:
                raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=target)
            response = await self._client.send(target, follow_redirects=False)
        return response

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> httpx.Response:
        """Perform GET request."""
        return await self.request("GET", url, params=params, **kwargs)

    async def get_text(self, url: str, **kwargs) -> str:
        response = await self.get(url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs) -> Any:
        response = await self.get(url, **kwargs)
        return response.json()

    async def post_form(self, url: str, data: Mapping[str, str], **kwargs) -> httpx.Response:
        """POST an urlencoded form."""
        return await self.request("POST", url, data=dict(data), **kwargs)
