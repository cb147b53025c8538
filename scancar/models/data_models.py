"""Core data models for the listing aggregator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class SourceState(Enum):
    """Outcome of one source during a refresh."""
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class Attribute:
    """Free-form label/value fact attached to a listing or detail record."""
    label: str
    value: str


@dataclass(frozen=True)
class Listing:
    """Unified listing model shared by every provider."""
    id: str  # Format: "{source}-{upstream id}", unique per snapshot only
    source: str
    source_name: str
    title: str
    price_text: str = ""
    thumbnail: str = ""
    url: str = ""
    attributes: Tuple[Attribute, ...] = ()
    brand: str = ""
    brand_slug: str = ""


@dataclass(frozen=True)
class SourceStatus:
    """Per-source summary of one refresh."""
    id: str
    name: str
    count: int
    status: SourceState


@dataclass(frozen=True)
class SourceError:
    """Failure reason for a source that produced no listings."""
    id: str
    message: str


@dataclass(frozen=True)
class Snapshot:
    """Aggregated result of one refresh cycle.

    Replaced as a whole, never mutated. ``fetched_at`` is epoch seconds;
    ``0`` marks a snapshot that was never fetched.
    """
    listings: Tuple[Listing, ...] = ()
    fetched_at: float = 0.0
    sources: Tuple[SourceStatus, ...] = ()
    errors: Tuple[SourceError, ...] = ()

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.fetched_at <= 0

    @property
    def succeeded(self) -> Tuple[str, ...]:
        """Ids of sources that contributed to this snapshot."""
        return tuple(s.id for s in self.sources if s.status is SourceState.OK)


@dataclass(frozen=True)
class DetailSection:
    """Titled group of facts on a detail page."""
    title: str
    items: Tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class DetailRecord:
    """Richer single-item data fetched on demand."""
    source: str
    url: str
    title: str = ""
    source_name: str = ""
    price_text: str = ""
    summary: Tuple[Attribute, ...] = ()
    sections: Tuple[DetailSection, ...] = ()
    description: str = ""
    gallery: Tuple[str, ...] = ()
    contact: Dict[str, str] = field(default_factory=dict)
    scraped_at: str = ""  # ISO-8601 UTC


@dataclass(frozen=True)
class DetailLookup:
    """Detail record plus whether it was served from cache."""
    record: DetailRecord
    cached: bool


@dataclass
class CatalogRead:
    """Snapshot returned by a catalog read, flagged when served stale."""
    snapshot: Snapshot
    stale: bool
    refresh_error: Optional[str] = None
