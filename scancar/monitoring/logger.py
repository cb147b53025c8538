"""Structured logging for refresh and cache monitoring."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger emitting one JSON object per line."""

    def __init__(self, name: str = "scancar", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def _emit(self, level: int, event: str, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, ensure_ascii=False, default=str))

    def log(self, event: str, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, catalog, source, count, elapsed_ms, url,
                      error, attempt, status
        """
        self._emit(logging.INFO, event, **kwargs)

    def debug(self, event: str, **kwargs) -> None:
        self._emit(logging.DEBUG, event, **kwargs)

    def warning(self, event: str, **kwargs) -> None:
        self._emit(logging.WARNING, event, **kwargs)

    def error(self, event: str, **kwargs) -> None:
        self._emit(logging.ERROR, event, **kwargs)

    def refresh_start(self, catalog: str, sources: int) -> None:
        self.log("refresh_start", catalog=catalog, sources=sources)

    def refresh_complete(self, catalog: str, count: int, failed: int, elapsed_ms: float) -> None:
        self.log("refresh_complete", catalog=catalog, count=count, failed=failed, elapsed_ms=elapsed_ms)

    def refresh_failed(self, catalog: str, error: str) -> None:
        self.error("refresh_failed", catalog=catalog, error=error)

    def source_error(self, source: str, error: str, elapsed_ms: Optional[float] = None) -> None:
        self.warning("source_error", source=source, error=error, elapsed_ms=elapsed_ms)

    def http_retry(self, url: str, attempt: int, error: str, delay: float) -> None:
        self.warning("http_retry", url=url, attempt=attempt, error=error, delay=delay)

    def detail_fetch(self, source: str, url: str, cached: bool) -> None:
        self.log("detail_cache_hit" if cached else "detail_fetch", source=source, url=url)
