"""Bounded worker pool for secondary page fetches."""

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar, Union

T = TypeVar("T")

_SENTINEL = object()


class BoundedFetchPool(Generic[T]):
    """
    Fixed-size pool of workers fetching URLs from a shared queue.

    Used by adapters that enrich many items with one extra request each.

    - At most ``workers`` fetches run at a time
    - Each fetch is bounded by ``timeout`` seconds
    - Concurrent requests for the same URL share one in-flight fetch
    - Successful results are reused; failures are not cached
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[T]],
        workers: int = 4,
        timeout: float = 15.0,
        logger=None,
    ):
        if workers <= 0:
            raise ValueError(f"workers must be positive, got: {workers}")
        self._fetch = fetch
        self.workers = workers
        self.timeout = timeout
        self.logger = logger
        self.fetch_count = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: List[asyncio.Task] = []
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._results: Dict[str, T] = {}
        self._closed = False

    async def __aenter__(self) -> "BoundedFetchPool[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(self, url: str) -> T:
        """Fetch ``url`` through the pool, joining an in-flight fetch if any."""
        if url in self._results:
            return self._results[url]
        if self._closed:
            raise RuntimeError("Pool is closed")

        future = self._in_flight.get(url)
        if future is None:
            self._start_workers()
            future = asyncio.get_running_loop().create_future()
            self._in_flight[url] = future
            self._queue.put_nowait((url, future))
        return await asyncio.shield(future)

    async def fetch_many(self, urls: Iterable[str]) -> Dict[str, Union[T, BaseException]]:
        """
        Fetch several URLs, capturing failures per URL.

        Returns:
            Mapping of URL to its result or the exception it raised, in
            first-seen order
        """
        unique = list(dict.fromkeys(urls))
        results = await asyncio.gather(*(self.fetch(url) for url in unique), return_exceptions=True)
        return dict(zip(unique, results))

    def cached(self, url: str) -> Optional[T]:
        return self._results.get(url)

    async def close(self) -> None:
        """Let queued fetches finish, then stop the workers."""
        if self._closed:
            return
        self._closed = True
        for _ in self._tasks:
            self._queue.put_nowait(_SENTINEL)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    def _start_workers(self) -> None:
        if self._tasks:
            return
        self._tasks = [asyncio.create_task(self._worker()) for _ in range(self.workers)]

    async def _worker(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _SENTINEL:
                    return
                url, future = item
                await self._run(url, future)
            finally:
                self._queue.task_done()

    async def _run(self, url: str, future: asyncio.Future) -> None:
        self.fetch_count += 1
        try:
            result = await asyncio.wait_for(self._fetch(url), timeout=self.timeout)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except asyncio.TimeoutError:
            self._fail(url, future, TimeoutError(f"Timed out after {self.timeout}s fetching {url}"))
        except Exception as e:
            self._fail(url, future, e)
        else:
            self._results[url] = result
            if not future.done():
                future.set_result(result)
        finally:
            self._in_flight.pop(url, None)

    def _fail(self, url: str, future: asyncio.Future, error: BaseException) -> None:
        if self.logger:
            self.logger.warning("pool_fetch_failed", url=url, error=str(error) or type(error).__name__)
        if not future.done():
            future.set_exception(error)
