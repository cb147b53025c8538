"""Concurrent collector running every source task at once."""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from scancar.models.data_models import (
    Listing,
    Snapshot,
    SourceError,
    SourceState,
    SourceStatus,
)
from scancar.processor.normalizer import collation_key

DEFAULT_ERROR_MESSAGE = "Could not fetch listings"


@dataclass(frozen=True)
class SourceTask:
    """Registered provider fetch: ``fetch()`` returns listings or raises."""
    id: str
    name: str
    fetch: Callable[[], Awaitable[Optional[Iterable[Listing]]]]


@dataclass
class TaskOutcome:
    """Tagged result of one task: listings on success, error otherwise."""
    task: SourceTask
    listings: List[Listing]
    error: Optional[BaseException] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


def listing_sort_key(listing: Listing):
    return collation_key(listing.title, listing.id)


class ConcurrentCollector:
    """
    Runs a fixed registry of source tasks concurrently.

    Responsibilities:
    - Start every task without waiting on the others
    - Capture each outcome independently; one failure never affects another
    - Merge successful listings (first id wins) into a deterministic order
    - Report one SourceStatus per task and one SourceError per failure

    ``collect`` never raises; a run where every task failed is a valid
    snapshot with empty listings.
    """

    def __init__(
        self,
        tasks: Sequence[SourceTask],
        clock: Callable[[], float] = time.time,
        logger=None,
    ):
        """
        Initialize collector.

        Args:
            tasks: Ordered source registry
            clock: Wall clock used for ``fetched_at``
            logger: Optional structured logger
        """
        self.tasks = tuple(tasks)
        self.clock = clock
        self.logger = logger

    async def collect(self, tasks: Optional[Sequence[SourceTask]] = None) -> Snapshot:
        """
        Run all tasks and build a snapshot.

        Args:
            tasks: Registry to run instead of the configured one

        Returns:
            Snapshot stamped with the time the run finished
        """
        registry = tuple(tasks) if tasks is not None else self.tasks

        results = await asyncio.gather(
            *(self._run_task(task) for task in registry),
            return_exceptions=True
        )

        outcomes = []
        for task, result in zip(registry, results):
            if isinstance(result, BaseException):
                # _run_task only lets cancellation escape
                outcomes.append(TaskOutcome(task=task, listings=[], error=result))
            else:
                outcomes.append(result)

        return self.build_snapshot(outcomes)

    async def _run_task(self, task: SourceTask) -> TaskOutcome:
        start = time.monotonic()
        try:
            items = await task.fetch()
        except Exception as e:
            elapsed = time.monotonic() - start
            if self.logger:
                self.logger.source_error(
                    source=task.id,
                    error=str(e) or type(e).__name__,
                    elapsed_ms=round(elapsed * 1000, 1),
                )
            return TaskOutcome(task=task, listings=[], error=e, elapsed=elapsed)

        elapsed = time.monotonic() - start
        listings = list(items) if items is not None else []
        if self.logger:
            self.logger.log(
                "source_complete",
                source=task.id,
                count=len(listings),
                elapsed_ms=round(elapsed * 1000, 1),
            )
        return TaskOutcome(task=task, listings=listings, elapsed=elapsed)

    def build_snapshot(self, outcomes: Sequence[TaskOutcome]) -> Snapshot:
        """Merge task outcomes into one snapshot."""
        listings: List[Listing] = []
        seen_ids = set()
        sources: List[SourceStatus] = []
        errors: List[SourceError] = []

        for outcome in outcomes:
            task = outcome.task
            if not outcome.ok:
                message = str(outcome.error) or DEFAULT_ERROR_MESSAGE
                errors.append(SourceError(id=task.id, message=message))
                sources.append(SourceStatus(id=task.id, name=task.name, count=0, status=SourceState.ERROR))
                continue

            contributed = 0
            for listing in outcome.listings:
                if listing.id in seen_ids:
                    continue
                seen_ids.add(listing.id)
                listings.append(listing)
                contributed += 1
            sources.append(
                SourceStatus(id=task.id, name=task.name, count=contributed, status=SourceState.OK)
            )

        listings.sort(key=listing_sort_key)

        return Snapshot(
            listings=tuple(listings),
            fetched_at=self.clock(),
            sources=tuple(sources),
            errors=tuple(errors),
        )
