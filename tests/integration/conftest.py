"""Fixtures wiring the full service over mocked upstream sites."""

import httpx
import pytest
from fastapi.testclient import TestClient

from scancar.pipeline.orchestrator import ScanCarService
from scancar.providers.chotot import API_URL
from scancar.web.app import create_app
from tests.fixtures.sample_data import (
    BONBANH_DETAIL,
    BONBANH_DETAIL_URL,
    BONBANH_SALON_LIST,
    BONBANH_SALON_PAGE,
    CHOTOT_ADS,
    CHOTOT_DETAIL,
    OTOANHLUONG_HOME,
    OTOANHLUONG_LOAD_MORE,
    VCAR_PAGE_WITH_ROWS,
    XELUOT_PAGE_1,
    XELUOT_PAGE_2,
)



@pytest.fixture
def upstreams(routes):
    """Route table serving every provider; the second Bonbanh salon is down."""
    routes.add("https://xeluottoantrung.com/san-pham", text=XELUOT_PAGE_1)
    routes.add("https://xeluottoantrung.com/san-pham?p=2", text=XELUOT_PAGE_2)
    routes.add("https://otoanhluong.vn/", text=OTOANHLUONG_HOME)
    routes.add("https://otoanhluong.vn/ajax/ajaxLoadMoreCars.php", method="POST", json=OTOANHLUONG_LOAD_MORE)
    routes.add("https://bonbanh.com/salon-oto-xe-cu-dak-lak", text=BONBANH_SALON_LIST)
    routes.add("https://autothanhdat.bonbanh.com/", text=BONBANH_SALON_PAGE)
    routes.add("https://salonbmt.bonbanh.com/", status=503)
    routes.add(BONBANH_DETAIL_URL, text=BONBANH_DETAIL)
    routes.add(API_URL, json=CHOTOT_ADS)
    routes.add(f"{API_URL}/111", json=CHOTOT_DETAIL)
    routes.add("https://vnexpress.net/oto-xe-may/v-car", text=VCAR_PAGE_WITH_ROWS)
    return routes


@pytest.fixture
def service(app_config, upstreams, clock, logger):
    return ScanCarService(app_config, logger=logger, transport=httpx.MockTransport(upstreams), clock=clock)


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as test_client:
        yield test_client
