"""JSON formatting for snapshots and detail records.

One formatter produces both the API payloads and the durable snapshot file,
so the persisted form is always the same camelCase shape clients consume:

    {
        "listings": [{"id": ..., "sourceName": ..., "priceText": ...}],
        "fetchedAt": 1718000000000,
        "sources": [{"id": "chotot", "name": ..., "count": 12, "status": "ok"}],
        "errors": [{"id": "bonbanh", "message": "timeout"}]
    }

``fetchedAt`` is epoch milliseconds on the wire and epoch seconds in memory.
"""

import json
import math
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from scancar.models.data_models import (
    Attribute,
    DetailRecord,
    Listing,
    Snapshot,
    SourceError,
    SourceState,
    SourceStatus,
)


def to_iso(epoch_seconds: float) -> str:
    """Format epoch seconds as ISO-8601 UTC with millisecond precision."""
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_epoch_ms(value: Any) -> float:
    """
    Convert a wire ``fetchedAt`` (epoch milliseconds) to epoch seconds.

    Raises:
        ValueError: If the value is not a finite, non-negative timestamp
            that ``datetime`` can represent
    """
    if isinstance(value, bool):
        raise ValueError(f"fetchedAt must be a number, got: {value!r}")
    seconds = float(value) / 1000.0
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"fetchedAt out of range: {value!r}")
    try:
        datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise ValueError(f"fetchedAt out of range: {value!r}") from e
    return seconds


class SnapshotFormatter:
    """
    Converts snapshot and detail models to and from JSON-ready dicts.

    - ``format_payload``: the ``/cars`` response body
    - ``format_snapshot`` / ``parse_snapshot``: the durable record
    - ``format_detail``: the ``/cars/detail`` ``data`` field
    """

    def format_payload(self, snapshot: Snapshot, now: Optional[float] = None) -> Dict[str, Any]:
        """
        Build the API response body.

        A never-fetched snapshot reports ``now`` as its update time.
        """
        fetched_at = snapshot.fetched_at if not snapshot.is_empty else (now or time.time())
        return {
            "updatedAt": to_iso(fetched_at),
            "count": len(snapshot.listings),
            "sources": [self._format_source(s) for s in snapshot.sources],
            "errors": [self._format_error(e) for e in snapshot.errors],
            "data": [self.format_listing(listing) for listing in snapshot.listings],
        }

    def format_snapshot(self, snapshot: Snapshot) -> Dict[str, Any]:
        """Durable form of a snapshot."""
        return {
            "listings": [self.format_listing(listing) for listing in snapshot.listings],
            "fetchedAt": int(round(snapshot.fetched_at * 1000)),
            "sources": [self._format_source(s) for s in snapshot.sources],
            "errors": [self._format_error(e) for e in snapshot.errors],
        }

    def format_listing(self, listing: Listing) -> Dict[str, Any]:
        return {
            "id": listing.id,
            "source": listing.source,
            "sourceName": listing.source_name,
            "title": listing.title,
            "priceText": listing.price_text,
            "thumbnail": listing.thumbnail,
            "url": listing.url,
            "attributes": self._format_attributes(listing.attributes),
            "brand": listing.brand,
            "brandSlug": listing.brand_slug,
        }

    def format_detail(self, record: DetailRecord) -> Dict[str, Any]:
        return {
            "source": record.source,
            "sourceName": record.source_name,
            "url": record.url,
            "title": record.title,
            "priceText": record.price_text,
            "summary": self._format_attributes(record.summary),
            "sections": [
                {"title": section.title, "items": self._format_attributes(section.items)}
                for section in record.sections
            ],
            "description": record.description,
            "gallery": list(record.gallery),
            "contact": dict(record.contact),
            "scrapedAt": record.scraped_at,
        }

    def parse_snapshot(self, data: Mapping[str, Any]) -> Snapshot:
        """
        Rebuild a snapshot from its durable form.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"snapshot record must be an object, got {type(data).__name__}")
        return Snapshot(
            listings=tuple(self.parse_listing(item) for item in data.get("listings", [])),
            fetched_at=parse_epoch_ms(data["fetchedAt"]),
            sources=tuple(
                SourceStatus(
                    id=str(item["id"]),
                    name=str(item.get("name", item["id"])),
                    count=int(item.get("count", 0)),
                    status=SourceState(item["status"]),
                )
                for item in data.get("sources", [])
            ),
            errors=tuple(
                SourceError(id=str(item["id"]), message=str(item.get("message", "")))
                for item in data.get("errors", [])
            ),
        )

    def parse_listing(self, item: Mapping[str, Any]) -> Listing:
        return Listing(
            id=str(item["id"]),
            source=str(item["source"]),
            source_name=str(item.get("sourceName", "")),
            title=str(item.get("title", "")),
            price_text=str(item.get("priceText", "")),
            thumbnail=str(item.get("thumbnail") or ""),
            url=str(item.get("url") or ""),
            attributes=tuple(
                Attribute(label=str(a["label"]), value=str(a["value"]))
                for a in item.get("attributes", [])
            ),
            brand=str(item.get("brand") or ""),
            brand_slug=str(item.get("brandSlug") or ""),
        )

    def save(self, snapshot: Snapshot, path: Union[str, Path]) -> None:
        """
        Write the durable form to ``path``, replacing it atomically.

        Creates parent directories if they don't exist. The data is written
        to a temporary file in the same directory and then renamed, so a
        crash mid-write never leaves a truncated snapshot behind.

        Raises:
            OSError: If the file cannot be written
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        formatted_data = self.format_snapshot(snapshot)

        fd, tmp_name = tempfile.mkstemp(
            dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(formatted_data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, output_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def load(self, path: Union[str, Path]) -> Snapshot:
        """
        Read a snapshot written by ``save``.

        Raises:
            OSError: If the file cannot be read
            ValueError, KeyError, TypeError: If it is not a valid snapshot
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return self.parse_snapshot(data)

    def _format_attributes(self, attributes) -> List[Dict[str, str]]:
        return [{"label": a.label, "value": a.value} for a in attributes]

    def _format_source(self, source: SourceStatus) -> Dict[str, Any]:
        return {
            "id": source.id,
            "name": source.name,
            "count": source.count,
            "status": source.status.value,
        }

    def _format_error(self, error: SourceError) -> Dict[str, str]:
        return {"id": error.id, "message": error.message}
