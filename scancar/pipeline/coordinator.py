"""Single-flight refresh coordination."""

import asyncio
import time
from typing import Callable, Optional

from scancar.models.data_models import Snapshot
from scancar.models.errors import TotalRefreshFailure
from scancar.pipeline.collector import ConcurrentCollector
from scancar.pipeline.snapshot_store import SnapshotStore


class RefreshCoordinator:
    """
    Guarantees at most one collector run is in flight.

    ``trigger_refresh`` either starts a run or joins the one already
    running; every caller of the same run sees the same snapshot or the
    same error. The in-flight reference is cleared when the run settles,
    so the next call after a failure starts fresh.

    There is no await between checking and setting the in-flight future,
    so the two happen as one step on a single event loop.
    """

    def __init__(
        self,
        collector: ConcurrentCollector,
        store: SnapshotStore,
        logger=None,
        name: str = "cars",
        clock: Callable[[], float] = time.time,
    ):
        self.collector = collector
        self.store = store
        self.logger = logger
        self.name = name
        self.clock = clock
        self.runs_started = 0
        self.last_error: Optional[BaseException] = None
        self.last_failure_at: Optional[float] = None
        self._in_flight: Optional[asyncio.Future] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    async def trigger_refresh(self) -> Snapshot:
        """
        Start or join a refresh and wait for its snapshot.

        Raises:
            TotalRefreshFailure: If every registered source failed
            Exception: Anything the collect/replace sequence raised
        """
        # Shielded so a cancelled caller does not cancel the shared run
        return await asyncio.shield(self._ensure_started())

    def refresh_in_background(self) -> asyncio.Future:
        """Start or join a refresh without waiting for it."""
        return self._ensure_started()

    def _ensure_started(self) -> asyncio.Future:
        if self._in_flight is None:
            self.runs_started += 1
            future = asyncio.ensure_future(self._run())
            future.add_done_callback(self._settle)
            self._in_flight = future
        return self._in_flight

    def _settle(self, future: asyncio.Future) -> None:
        if self._in_flight is future:
            self._in_flight = None
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.last_error = error
            self.last_failure_at = self.clock()
            if self.logger:
                self.logger.refresh_failed(catalog=self.name, error=str(error) or type(error).__name__)
        else:
            self.last_error = None
            self.last_failure_at = None

    async def _run(self) -> Snapshot:
        start = time.monotonic()
        if self.logger:
            self.logger.refresh_start(catalog=self.name, sources=len(self.collector.tasks))

        snapshot = await self.collector.collect()

        if self.collector.tasks and not snapshot.succeeded:
            # The stored snapshot stays in place
            raise TotalRefreshFailure(
                f"All {len(snapshot.sources)} sources failed for '{self.name}'",
                snapshot=snapshot,
            )

        self.store.replace(snapshot)

        if self.logger:
            self.logger.refresh_complete(
                catalog=self.name,
                count=len(snapshot.listings),
                failed=len(snapshot.errors),
                elapsed_ms=round((time.monotonic() - start) * 1000, 1),
            )
        return snapshot
