"""Unit tests for the async HTTP client wrapper."""

import httpx
import pytest

from scancar.fetcher.http_client import DEFAULT_HEADERS, AsyncHTTPClient, RedirectNotAllowed
from scancar.fetcher.rate_limiter import RateLimiter
from scancar.fetcher.retry_handler import RetryHandler


async def no_sleep(delay):
    return None


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_request_before_open_raises(self):
        client = AsyncHTTPClient()

        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get("https://bonbanh.com/")

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, routes):
        client = AsyncHTTPClient(transport=httpx.MockTransport(routes))

        async with client:
            assert client._client is not None
        assert client._client is None

    def test_default_configuration(self):
        client = AsyncHTTPClient()

        assert client.connect_timeout == 5.0
        assert client.read_timeout == 20.0
        assert client.headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]

    def test_headers_merge_over_defaults(self):
        client = AsyncHTTPClient(headers={"Accept-Language": "en"})

        assert client.headers["Accept-Language"] == "en"
        assert "User-Agent" in client.headers


class TestRequests:

    @pytest.mark.asyncio
    async def test_get_text_and_json(self, routes, http_client):
        routes.add("https://vnexpress.net/page", text="<p>xin chào</p>")
        routes.add("https://gateway.chotot.com/v1/public/ad-listing", json={"ads": []})

        assert await http_client.get_text("https://vnexpress.net/page") == "<p>xin chào</p>"
        assert await http_client.get_json("https://gateway.chotot.com/v1/public/ad-listing", params={"limit": 1}) == {"ads": []}

    @pytest.mark.asyncio
    async def test_sends_default_headers(self, routes, http_client):
        routes.add("https://bonbanh.com/", text="ok")

        await http_client.get("https://bonbanh.com/")

        assert routes.requests[0].headers["Accept-Language"] == "vi,en;q=0.9"

    @pytest.mark.asyncio
    async def test_post_form_encodes_body(self, routes, http_client):
        routes.add("https://otoanhluong.vn/ajax/more.php", method="POST", json={"errorCode": 0})

        response = await http_client.post_form("https://otoanhluong.vn/ajax/more.php", {"page": "2"})

        assert response.json() == {"errorCode": 0}
        sent = routes.requests[0]
        assert sent.method == "POST"
        assert sent.content == b"page=2"

    @pytest.mark.asyncio
    async def test_non_2xx_raises_status_error(self, routes, http_client):
        routes.add("https://bonbanh.com/", status=503, text="down")

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await http_client.get("https://bonbanh.com/")
        assert exc_info.value.response.status_code == 503

    @pytest.mark.asyncio
    async def test_retries_transient_status(self, routes):
        responses = iter([503, 200])
        routes.add("https://bonbanh.com/", handler=lambda request: httpx.Response(next(responses), text="ok"))
        client = AsyncHTTPClient(
            transport=httpx.MockTransport(routes),
            retry_handler=RetryHandler(max_retries=2, sleeper=no_sleep),
        )

        async with client:
            response = await client.get("https://bonbanh.com/")

        assert response.status_code == 200
        assert routes.calls("https://bonbanh.com/") == 2

    @pytest.mark.asyncio
    async def test_rate_limits_per_host(self, routes, clock):
        routes.add("https://bonbanh.com/", text="ok")
        limiter = RateLimiter(max_tokens=1, refill_rate=2.0, now=clock, sleeper=clock.sleep)
        client = AsyncHTTPClient(transport=httpx.MockTransport(routes), rate_limiter=limiter)

        async with client:
            await client.get("https://bonbanh.com/")
            await client.get("https://bonbanh.com/")

        assert clock.t - 1_700_000_000.0 == pytest.approx(0.5)


def redirect_to(location):
    return lambda request: httpx.Response(302, headers={"Location": location})


def only_bonbanh(host):
    return host == "bonbanh.com" or host.endswith(".bonbanh.com")


class TestRedirects:

    @pytest.mark.asyncio
    async def test_unguarded_request_follows_redirects(self, routes, http_client):
        routes.add("https://bonbanh.com/old", handler=redirect_to("https://bonbanh.com/new"))
        routes.add("https://bonbanh.com/new", text="moved")

        assert await http_client.get_text("https://bonbanh.com/old") == "moved"

    @pytest.mark.asyncio
    async def test_guard_follows_allowed_hops(self, routes, http_client):
        routes.add("https://bonbanh.com/xe-1", handler=redirect_to("https://salon.bonbanh.com/xe-1"))
        routes.add("https://salon.bonbanh.com/xe-1", handler=redirect_to("/xe-1-moi"))
        routes.add("https://salon.bonbanh.com/xe-1-moi", text="final")

        response = await http_client.get("https://bonbanh.com/xe-1", redirect_guard=only_bonbanh)

        assert response.text == "final"
        assert str(response.url) == "https://salon.bonbanh.com/xe-1-moi"

    @pytest.mark.asyncio
    async def test_guard_blocks_off_list_host(self, routes, http_client):
        routes.add("https://bonbanh.com/xe-redirect-id,1", handler=redirect_to("http://evil.example/steal"))
        routes.add("http://evil.example/steal", text="<h1>pwned</h1>")

        with pytest.raises(RedirectNotAllowed, match="evil.example"):
            await http_client.get("https://bonbanh.com/xe-redirect-id,1", redirect_guard=only_bonbanh)

        assert [r.url.host for r in routes.requests] == ["bonbanh.com"]

    @pytest.mark.asyncio
    async def test_guard_blocks_late_hop(self, routes, http_client):
        routes.add("https://bonbanh.com/a", handler=redirect_to("https://bonbanh.com/b"))
        routes.add("https://bonbanh.com/b", handler=redirect_to("https://evil.example/c"))

        with pytest.raises(RedirectNotAllowed):
            await http_client.get("https://bonbanh.com/a", redirect_guard=only_bonbanh)

        assert routes.calls("https://evil.example/c") == 0

    @pytest.mark.asyncio
    async def test_guard_bounds_redirect_loops(self, routes, http_client):
        routes.add("https://bonbanh.com/loop", handler=redirect_to("https://bonbanh.com/loop"))

        with pytest.raises(httpx.TooManyRedirects):
            await http_client.get("https://bonbanh.com/loop", redirect_guard=only_bonbanh)

    @pytest.mark.asyncio
    async def test_blocked_redirect_is_not_retried(self, routes):
        routes.add("https://bonbanh.com/x", handler=redirect_to("https://evil.example/"))
        retry = RetryHandler(max_retries=3, sleeper=no_sleep)
        client = AsyncHTTPClient(transport=httpx.MockTransport(routes), retry_handler=retry)

        async with client:
            with pytest.raises(RedirectNotAllowed):
                await client.get("https://bonbanh.com/x", redirect_guard=only_bonbanh)

        assert routes.calls("https://bonbanh.com/x") == 1
