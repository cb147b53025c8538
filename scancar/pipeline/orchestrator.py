"""Service container wiring config, HTTP client, providers and catalogs."""

import time
from typing import Callable, Dict, List, Optional

import httpx

from scancar.fetcher.http_client import AsyncHTTPClient
from scancar.fetcher.rate_limiter import RateLimiter
from scancar.fetcher.retry_handler import RetryHandler
from scancar.models.config import AppConfig
from scancar.monitoring.logger import StructuredLogger
from scancar.pipeline.catalog import Catalog
from scancar.pipeline.collector import ConcurrentCollector
from scancar.pipeline.coordinator import RefreshCoordinator
from scancar.pipeline.detail_cache import DetailCache, SourceValidator
from scancar.pipeline.scheduler import RefreshScheduler
from scancar.pipeline.snapshot_store import SnapshotStore
from scancar.providers import Provider, build_providers

USED_CARS = "cars"
NEW_CARS = "new-cars"


class ScanCarService:
    """
    Owns every long-lived component of the service.

    Lifecycle: ``start`` opens the HTTP client, loads durable snapshots and
    starts the scheduler; ``stop`` reverses it. The web app and the CLI
    both drive the service through this class.
    """

    def __init__(
        self,
        config: AppConfig,
        logger: Optional[StructuredLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Build the component graph.

        Args:
            config: Validated service configuration
            logger: Structured logger; one is created from ``log_level`` if omitted
            transport: Optional httpx transport for the shared client
            clock: Wall clock for snapshot timestamps and freshness

        Raises:
            ValueError: If a configured source is not a known provider, or
                the refresh schedule is invalid
        """
        self.config = config
        self.logger = logger or StructuredLogger(level=config.log_level)
        self.clock = clock

        self.http_client = AsyncHTTPClient(
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            rate_limiter=RateLimiter(
                max_tokens=config.rate_limit_tokens,
                refill_rate=config.requests_per_second,
            ),
            retry_handler=RetryHandler(
                max_retries=config.max_retries,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
                jitter_max=config.retry_jitter_max,
                retryable_status_codes=config.retryable_status_codes,
                logger=self.logger,
            ),
            transport=transport,
        )

        used_car_providers = build_providers(config.sources, self.http_client, config, self.logger)
        new_car_providers = build_providers(config.new_car_sources, self.http_client, config, self.logger)
        self.providers: Dict[str, Provider] = {p.id: p for p in used_car_providers + new_car_providers}

        self.catalogs: Dict[str, Catalog] = {
            USED_CARS: self._build_catalog(USED_CARS, used_car_providers, config.snapshot_path),
            NEW_CARS: self._build_catalog(NEW_CARS, new_car_providers, config.new_car_snapshot_path),
        }

        self.detail_cache = DetailCache(
            SourceValidator(p.as_detail_provider() for p in used_car_providers if p.supports_detail),
            ttl=config.detail_ttl,
            max_entries=config.detail_cache_size,
            logger=self.logger,
        )

        self.scheduler: Optional[RefreshScheduler] = None
        if config.scheduler_enabled:
            self.scheduler = RefreshScheduler(
                self.catalogs.values(),
                schedule=config.refresh_schedule,
                timezone=config.refresh_timezone,
                logger=self.logger,
            )

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs) -> "ScanCarService":
        return cls(config, **kwargs)

    def _build_catalog(self, name: str, providers: List[Provider], path: Optional[str]) -> Catalog:
        store = SnapshotStore(path=path, clock=self.clock, logger=self.logger, name=name)
        collector = ConcurrentCollector([p.as_task() for p in providers], clock=self.clock, logger=self.logger)
        coordinator = RefreshCoordinator(collector, store, logger=self.logger, name=name, clock=self.clock)
        return Catalog(
            name,
            store,
            coordinator,
            ttl=self.config.snapshot_ttl,
            stale_retry_interval=self.config.stale_retry_interval,
            clock=self.clock,
            logger=self.logger,
        )

    @property
    def cars(self) -> Catalog:
        return self.catalogs[USED_CARS]

    @property
    def new_cars(self) -> Catalog:
        return self.catalogs[NEW_CARS]

    async def start(self, with_scheduler: bool = True) -> None:
        await self.http_client.open()
        for catalog in self.catalogs.values():
            catalog.load()
        if with_scheduler and self.scheduler is not None:
            self.scheduler.start()
        self.logger.log(
            "service_started",
            sources=list(self.config.sources),
            new_car_sources=list(self.config.new_car_sources),
        )

    async def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
        await self.http_client.aclose()
        self.logger.log("service_stopped")

    def health(self) -> Dict[str, object]:
        return {
            "status": "ok",
            "snapshots": {name: catalog.status() for name, catalog in self.catalogs.items()},
        }
