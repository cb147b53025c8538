"""Stale-while-revalidate read path over one snapshot store."""

import time
from typing import Any, Callable, Dict

from scancar.models.data_models import CatalogRead
from scancar.models.errors import TotalRefreshFailure
from scancar.pipeline.coordinator import RefreshCoordinator
from scancar.pipeline.output import to_iso
from scancar.pipeline.snapshot_store import SnapshotStore


class Catalog:
    """
    One aggregated listing set: store, coordinator and freshness policy.

    Read rules:
    - Fresh snapshot: served as is
    - Stale snapshot: served immediately, refresh started in the background
      (or joined if one is running)
    - No snapshot yet: the read waits for a refresh, since there is nothing
      to serve
    - Explicit refresh: the read waits for a started or joined refresh
    - Every source failed: the previous snapshot is served as stale; with no
      previous snapshot the failure propagates
    """

    def __init__(
        self,
        name: str,
        store: SnapshotStore,
        coordinator: RefreshCoordinator,
        ttl: float,
        stale_retry_interval: float = 60.0,
        clock: Callable[[], float] = time.time,
        logger=None,
    ):
        self.name = name
        self.store = store
        self.coordinator = coordinator
        self.ttl = ttl
        self.stale_retry_interval = stale_retry_interval
        self.clock = clock
        self.logger = logger

    def load(self) -> None:
        self.store.load()

    async def read(self, refresh: bool = False) -> CatalogRead:
        """
        Return the snapshot to serve.

        Raises:
            TotalRefreshFailure: If a blocking refresh failed and there is no
                previous snapshot to fall back on
        """
        if refresh:
            return await self._refresh_and_wait()

        current = self.store.current()
        if self.store.is_fresh(self.ttl):
            return CatalogRead(snapshot=current, stale=False)

        if current.is_empty:
            return await self._refresh_and_wait()

        self._revalidate()
        return CatalogRead(snapshot=current, stale=True)

    async def _refresh_and_wait(self) -> CatalogRead:
        try:
            snapshot = await self.coordinator.trigger_refresh()
        except TotalRefreshFailure as e:
            previous = self.store.current()
            if previous.is_empty:
                raise
            return CatalogRead(snapshot=previous, stale=True, refresh_error=str(e))
        return CatalogRead(snapshot=snapshot, stale=False)

    def _revalidate(self) -> None:
        if self.coordinator.in_flight:
            return
        last_failure = self.coordinator.last_failure_at
        if last_failure is not None and self.clock() - last_failure < self.stale_retry_interval:
            return
        if self.logger:
            self.logger.log("background_refresh", catalog=self.name, age=self.store.age())
        self.coordinator.refresh_in_background()

    def status(self) -> Dict[str, Any]:
        """Health summary of this catalog."""
        snapshot = self.store.current()
        error = self.coordinator.last_error
        return {
            "updatedAt": None if snapshot.is_empty else to_iso(snapshot.fetched_at),
            "count": len(snapshot.listings),
            "stale": not self.store.is_fresh(self.ttl),
            "refreshing": self.coordinator.in_flight,
            "lastError": (str(error) or type(error).__name__) if error is not None else None,
        }
