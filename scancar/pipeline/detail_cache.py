"""On-demand detail cache guarded by per-provider host allow-lists."""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

from scancar.models.data_models import DetailLookup, DetailRecord
from scancar.models.errors import UpstreamDetailError, ValidationError

DEFAULT_DETAIL_ERROR = "Could not fetch listing details"


def host_allowed(host: str, allowed_hosts: Iterable[str]) -> bool:
    """
    Check ``host`` against an allow-list.

    Entries are exact host names, or ``*.example.com`` which matches
    any subdomain of example.com (but not example.com itself).
    """
    host = host.lower().rstrip(".")
    for entry in allowed_hosts:
        if entry.startswith("*."):
            if host.endswith(entry[1:]):
                return True
        elif host == entry:
            return True
    return False


@dataclass(frozen=True)
class DetailProvider:
    """Origin rules plus detail collaborator for one provider."""
    id: str
    base_url: str
    allowed_hosts: FrozenSet[str]
    fetch_detail: Callable[[str], Awaitable[DetailRecord]]

    def allows(self, host: str) -> bool:
        return host_allowed(host, self.allowed_hosts)


class SourceValidator:
    """Resolves the provider of a detail request and normalizes its URL.

    This is the boundary that keeps the public ``url`` parameter from
    reaching hosts outside a provider's allow-list.
    """

    def __init__(self, providers: Iterable[DetailProvider]):
        self.providers: Dict[str, DetailProvider] = {p.id: p for p in providers}

    def resolve(self, raw_url: Optional[str], source_hint: Optional[str] = None) -> Tuple[DetailProvider, str]:
        """
        Validate a detail request.

        Args:
            raw_url: Caller-supplied URL, absolute or relative to the provider
            source_hint: Optional provider id supplied by the caller

        Returns:
            (provider, normalized absolute URL)

        Raises:
            ValidationError: On a missing URL, unknown or mismatched source,
                malformed URL, or a host outside the allow-list
        """
        url = (raw_url or "").strip()
        if not url:
            raise ValidationError("Missing url parameter")

        hint = (source_hint or "").strip().lower()
        if hint:
            provider = self.providers.get(hint)
            if provider is None:
                raise ValidationError(f"Unsupported source: {source_hint}")
        else:
            provider = self._infer_provider(url)

        normalized = normalize_url(url, provider.base_url)
        host = urlsplit(normalized).hostname or ""
        if not provider.allows(host):
            raise ValidationError(f"Host '{host}' is not allowed for source '{provider.id}'")
        return provider, normalized

    def _infer_provider(self, url: str) -> DetailProvider:
        host = _hostname(url)
        if not host:
            raise ValidationError("Cannot determine source for a relative url; pass the source parameter")
        for provider in self.providers.values():
            if provider.allows(host):
                return provider
        raise ValidationError(f"Unsupported source for host '{host}'")


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        raise ValidationError(f"Malformed url: {url}") from None


def normalize_url(raw_url: str, base_url: str) -> str:
    """
    Resolve ``raw_url`` against ``base_url`` into a canonical absolute URL.

    Lowercases scheme and host, drops the fragment and any credentials.

    Raises:
        ValidationError: If the result is not an http(s) URL with a host
    """
    try:
        parts = urlsplit(urljoin(base_url, raw_url.strip()))
        host = parts.hostname
        port = parts.port
    except ValueError:
        raise ValidationError(f"Malformed url: {raw_url}") from None

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not host:
        raise ValidationError(f"Malformed url: {raw_url}")

    netloc = host.lower()
    if port is not None:
        netloc = f"{netloc}:{port}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


class DetailCache:
    """
    Per-(provider, URL) cache of detail records.

    - Entries expire ``ttl`` seconds after they were stored and are evicted
      lazily on access
    - Concurrent misses on one key share a single upstream call
    - Failed fetches are never cached
    - At most ``max_entries`` records are kept; the oldest stored go first
    """

    def __init__(
        self,
        validator: SourceValidator,
        ttl: float = 1800.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
        logger=None,
    ):
        self.validator = validator
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self.logger = logger
        self._entries: "OrderedDict[str, Tuple[DetailRecord, float]]" = OrderedDict()
        self._in_flight: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def cache_key(provider_id: str, url: str) -> str:
        return f"{provider_id}|{url}"

    async def get(self, raw_url: Optional[str], source_hint: Optional[str] = None) -> DetailLookup:
        """
        Return the detail record for a caller-supplied URL.

        Raises:
            ValidationError: Before any I/O, if the request is rejected
            UpstreamDetailError: If the provider fetch failed
        """
        provider, url = self.validator.resolve(raw_url, source_hint)
        key = self.cache_key(provider.id, url)

        cached = self._lookup(key)
        if cached is not None:
            if self.logger:
                self.logger.detail_fetch(source=provider.id, url=url, cached=True)
            return DetailLookup(record=cached, cached=True)

        future = self._in_flight.get(key)
        if future is None:
            if self.logger:
                self.logger.detail_fetch(source=provider.id, url=url, cached=False)
            future = asyncio.ensure_future(self._fetch(provider, url, key))
            self._in_flight[key] = future
            future.add_done_callback(lambda f: self._in_flight.pop(key, None))

        record = await asyncio.shield(future)
        return DetailLookup(record=record, cached=False)

    def _lookup(self, key: str) -> Optional[DetailRecord]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        record, stored_at = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return record

    def _store(self, key: str, record: DetailRecord) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (record, self.clock())
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def _fetch(self, provider: DetailProvider, url: str, key: str) -> DetailRecord:
        try:
            record = await provider.fetch_detail(url)
        except Exception as e:
            message = str(e) or DEFAULT_DETAIL_ERROR
            if self.logger:
                self.logger.warning("detail_fetch_failed", source=provider.id, url=url, error=message)
            raise UpstreamDetailError(message, source=provider.id, url=url) from e
        self._store(key, record)
        return record
