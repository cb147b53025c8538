"""In-memory snapshot holder mirrored to a JSON file."""

import time
from pathlib import Path
from typing import Callable, Optional, Union

from scancar.models.data_models import Snapshot
from scancar.models.errors import PersistenceError
from scancar.pipeline.output import SnapshotFormatter

# Seconds a loaded snapshot may be ahead of the local clock
MAX_CLOCK_SKEW = 300.0


class SnapshotStore:
    """
    Holds the current snapshot and its durable mirror.

    The store is the single writer of the snapshot: ``replace`` swaps the
    whole value, so readers never observe a partial update. Durability is a
    freshness optimization only. Load failures fall back to an empty
    snapshot and write failures are logged and swallowed.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        formatter: Optional[SnapshotFormatter] = None,
        clock: Callable[[], float] = time.time,
        logger=None,
        name: str = "cars",
    ):
        """
        Initialize store.

        Args:
            path: JSON file mirroring the snapshot; ``None`` keeps it in memory
            formatter: Snapshot codec
            clock: Wall clock used by ``is_fresh``
            logger: Optional structured logger
            name: Catalog name used in log events
        """
        self.path = Path(path) if path else None
        self.formatter = formatter or SnapshotFormatter()
        self.clock = clock
        self.logger = logger
        self.name = name
        self._snapshot = Snapshot.empty()

    def current(self) -> Snapshot:
        return self._snapshot

    def age(self) -> Optional[float]:
        """Seconds since the current snapshot was fetched, or None if never."""
        if self._snapshot.is_empty:
            return None
        return self.clock() - self._snapshot.fetched_at

    def is_fresh(self, ttl: float) -> bool:
        """True when the snapshot was fetched less than ``ttl`` seconds ago."""
        age = self.age()
        return age is not None and age < ttl

    def replace(self, snapshot: Snapshot) -> None:
        """Swap in ``snapshot`` and mirror it to durable storage."""
        self._snapshot = snapshot
        try:
            self._persist(snapshot)
        except PersistenceError as e:
            if self.logger:
                self.logger.error("snapshot_persist_failed", catalog=self.name, path=str(self.path), error=str(e))

    def load(self) -> Snapshot:
        """
        Load the durable snapshot into memory.

        Returns:
            The loaded snapshot, or an empty one if none could be read
        """
        if self.path is None:
            return self._snapshot

        try:
            snapshot = self._read()
        except PersistenceError as e:
            if self.logger:
                self.logger.warning("snapshot_load_failed", catalog=self.name, path=str(self.path), error=str(e))
            snapshot = Snapshot.empty()
        else:
            if self.logger:
                self.logger.log(
                    "snapshot_loaded",
                    catalog=self.name,
                    count=len(snapshot.listings),
                    fetched_at=snapshot.fetched_at,
                )

        self._snapshot = snapshot
        return snapshot

    def _read(self) -> Snapshot:
        if not self.path.exists():
            return Snapshot.empty()
        try:
            snapshot = self.formatter.load(self.path)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise PersistenceError(f"Cannot read snapshot {self.path}: {e}") from e
        if snapshot.fetched_at > self.clock() + MAX_CLOCK_SKEW:
            raise PersistenceError(
                f"Cannot read snapshot {self.path}: fetchedAt {snapshot.fetched_at} is in the future"
            )
        return snapshot

    def _persist(self, snapshot: Snapshot) -> None:
        if self.path is None:
            return
        try:
            self.formatter.save(snapshot, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write snapshot {self.path}: {e}") from e
