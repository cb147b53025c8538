"""Pytest configuration and shared fixtures."""

import json
import random
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from scancar.fetcher.http_client import AsyncHTTPClient
from scancar.models.config import AppConfig
from scancar.monitoring.logger import StructuredLogger


class FakeClock:
    """Manually advanced clock for TTL and backoff tests."""

    def __init__(self, initial_time: float = 1_700_000_000.0):
        self.t = initial_time

    def __call__(self) -> float:
        return self.t

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float) -> None:
        self.t += seconds


Handler = Callable[[httpx.Request], httpx.Response]


class RouteTable:
    """
    URL-keyed responder for ``httpx.MockTransport``.

    Routes match the full URL first, then the URL without its query.
    Unrouted requests get a 404. Every request is recorded.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[Handler, Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        url: str,
        *,
        method: str = "GET",
        status: int = 200,
        text: Optional[str] = None,
        json: Any = None,
        handler: Optional[Handler] = None,
    ) -> None:
        route = handler if handler is not None else {"status": status, "text": text, "json": json}
        self.routes[(method, url)] = route

    def calls(self, url: str, method: str = "GET") -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and (str(r.url) == url or str(r.url).split("?")[0] == url)
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        full = str(request.url)
        route = self.routes.get((request.method, full)) or self.routes.get((request.method, full.split("?")[0]))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        if route["json"] is not None:
            return httpx.Response(route["status"], content=json.dumps(route["json"], ensure_ascii=False).encode("utf-8"),
                                  headers={"Content-Type": "application/json; charset=utf-8"})
        return httpx.Response(route["status"], text=route["text"] or "")


@pytest.fixture(scope="session")
def deterministic_seed():
    """Set a fixed random seed for deterministic test results."""
    random.seed(42)
    return 42


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def logger():
    return StructuredLogger(name="scancar.test", level="DEBUG")


@pytest.fixture
def routes():
    return RouteTable()


@pytest_asyncio.fixture
async def http_client(routes):
    """Plain client over the route table: no retries, no rate limiting."""
    async with AsyncHTTPClient(transport=httpx.MockTransport(routes)) as client:
        yield client


@pytest.fixture
def app_config(tmp_path):
    """Configuration for wiring the full service in tests."""
    return AppConfig(
        scheduler_enabled=False,
        snapshot_path=str(tmp_path / "snapshot.json"),
        new_car_snapshot_path=str(tmp_path / "new-cars.json"),
        max_retries=0,
        requests_per_second=1000,
        rate_limit_tokens=1000,
        log_level="DEBUG",
    )
