"""Base class for provider adapters.

A provider turns one upstream site into the unified schema. The core only
sees two callables per provider: a source task returning listings, and
optionally a detail fetcher for a validated URL. Everything else here is
adapter plumbing.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, List, Optional, Set

import httpx

from scancar.fetcher.http_client import AsyncHTTPClient
from scancar.models.data_models import DetailRecord, Listing
from scancar.models.errors import SourceFetchError
from scancar.pipeline.collector import SourceTask
from scancar.pipeline.detail_cache import DetailProvider, host_allowed
from scancar.processor.normalizer import absolute_url


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def add_unique(collection: List[Listing], seen: Set[str], listings: Iterable[Optional[Listing]]) -> None:
    """Append listings whose id has not been seen yet."""
    for listing in listings:
        if listing is None or not listing.id or listing.id in seen:
            continue
        seen.add(listing.id)
        collection.append(listing)


class Provider:
    """Adapter for one listing site."""

    id: str = ""
    name: str = ""
    base_url: str = ""
    allowed_hosts: FrozenSet[str] = frozenset()
    supports_detail: bool = False

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        logger=None,
        base_url: Optional[str] = None,
        allowed_hosts: Optional[Iterable[str]] = None,
        pool_workers: int = 4,
        pool_timeout: float = 15.0,
    ):
        """
        Initialize provider.

        Args:
            http_client: Shared HTTP client
            logger: Optional structured logger
            base_url: Override of the site root
            allowed_hosts: Override of the detail host allow-list
            pool_workers: Worker count for secondary page fetches
            pool_timeout: Per-request timeout for secondary page fetches
        """
        self.http_client = http_client
        self.logger = logger
        if base_url:
            self.base_url = base_url
        if allowed_hosts:
            self.allowed_hosts = frozenset(host.lower() for host in allowed_hosts)
        self.pool_workers = pool_workers
        self.pool_timeout = pool_timeout

    async def fetch_listings(self) -> List[Listing]:
        raise NotImplementedError

    async def fetch_detail(self, url: str) -> DetailRecord:
        raise NotImplementedError(f"{self.name} has no detail pages")

    def as_task(self) -> SourceTask:
        return SourceTask(id=self.id, name=self.name, fetch=self.fetch_listings)

    def as_detail_provider(self) -> DetailProvider:
        return DetailProvider(
            id=self.id,
            base_url=self.base_url,
            allowed_hosts=frozenset(self.allowed_hosts),
            fetch_detail=self.fetch_detail,
        )

    def allows_host(self, host: str) -> bool:
        """True if detail fetches may reach ``host``."""
        return host_allowed(host, self.allowed_hosts)

    def url(self, value: Optional[str]) -> str:
        """Absolute URL on this provider's site."""
        return absolute_url(value, self.base_url)

    async def get_text(self, url: str, **kwargs) -> str:
        response = await self._request(self.http_client.get, url, **kwargs)
        return response.text

    async def get_json(self, url: str, **kwargs) -> Any:
        response = await self._request(self.http_client.get, url, **kwargs)
        return self._decode(response)

    async def post_form_json(self, url: str, data, **kwargs) -> Any:
        response = await self._request(self.http_client.post_form, url, data, **kwargs)
        return self._decode(response)

    async def _request(self, method: Callable[..., Awaitable[httpx.Response]], url: str, *args, **kwargs) -> httpx.Response:
        try:
            return await method(url, *args, **kwargs)
        except httpx.HTTPStatusError as e:
            raise SourceFetchError(
                f"{self.name} returned status {e.response.status_code}", source=self.id
            ) from e
        except httpx.TimeoutException as e:
            raise SourceFetchError(f"{self.name} timed out", source=self.id) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(f"{self.name} request failed: {e}", source=self.id) from e

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SourceFetchError(f"{self.name} returned invalid JSON", source=self.id) from e

    def warn(self, event: str, **kwargs) -> None:
        if self.logger:
            self.logger.warning(event, source=self.id, **kwargs)
