"""Error taxonomy for the aggregator.

Failures are recovered at the lowest layer that can: a ``SourceFetchError``
ends up in a snapshot's ``errors`` list, a ``PersistenceError`` is only
logged. Only ``ValidationError``, ``UpstreamDetailError`` and
``TotalRefreshFailure`` reach API callers.
"""

from typing import Optional


class ScanCarError(Exception):
    """Base class for all aggregator errors."""


class SourceFetchError(ScanCarError):
    """One provider failed to return listings."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class ValidationError(ScanCarError):
    """Detail request is malformed or targets a disallowed host."""


class UpstreamDetailError(ScanCarError):
    """A validated detail fetch failed upstream."""

    def __init__(self, message: str, source: Optional[str] = None, url: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.url = url


class PersistenceError(ScanCarError):
    """Durable snapshot storage could not be read or written."""


class TotalRefreshFailure(ScanCarError):
    """Every registered source failed during one refresh."""

    def __init__(self, message: str, snapshot=None):
        super().__init__(message)
        self.snapshot = snapshot
