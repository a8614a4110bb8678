import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from newsdash.services.errors import NetworkError
from newsdash.services.fetcher import TimeBoundedFetcher

FEED_BODY = "<rss><channel><item><title>t</title></item></channel></rss>"


def _app():
    async def feed(request):
        return web.Response(text=FEED_BODY, content_type="text/xml")

    async def missing(request):
        return web.Response(status=404, text="not here")

    async def slow(request):
        await asyncio.sleep(1.0)
        return web.Response(text=FEED_BODY)

    async def proxy(request):
        return web.Response(text=f"proxied:{request.query.get('url', '')}")

    async def agent(request):
        return web.Response(text=request.headers.get("User-Agent", ""))

    app = web.Application()
    app.router.add_get("/feed", feed)
    app.router.add_get("/missing", missing)
    app.router.add_get("/slow", slow)
    app.router.add_get("/proxy", proxy)
    app.router.add_get("/agent", agent)
    return app


def _run(scenario, **fetcher_kwargs):
    async def main():
        server = test_utils.TestServer(_app())
        await server.start_server()
        fetcher = TimeBoundedFetcher(**fetcher_kwargs)
        try:
            return await scenario(server, fetcher)
        finally:
            await fetcher.close()
            await server.close()

    return asyncio.run(main())


def test_fetch_returns_body_and_status():
    async def scenario(server, fetcher):
        return await fetcher.fetch(str(server.make_url("/feed")))

    body, status = _run(scenario, timeout=5, proxy_url="")
    assert body == FEED_BODY
    assert status == 200


def test_non_2xx_is_network_error():
    async def scenario(server, fetcher):
        with pytest.raises(NetworkError) as excinfo:
            await fetcher.fetch(str(server.make_url("/missing")))
        return excinfo.value

    error = _run(scenario, timeout=5, proxy_url="")
    assert error.status == 404
    assert error.reason == "HTTP 404"


def test_timeout_is_network_error():
    async def scenario(server, fetcher):
        with pytest.raises(NetworkError) as excinfo:
            await fetcher.fetch(str(server.make_url("/slow")))
        return excinfo.value

    error = _run(scenario, timeout=0.2, proxy_url="")
    assert "timed out" in error.reason


def test_connection_refused_is_network_error():
    async def scenario(server, fetcher):
        url = str(server.make_url("/feed"))
        await server.close()
        with pytest.raises(NetworkError):
            await fetcher.fetch(url)
        return True

    assert _run(scenario, timeout=2, proxy_url="")


def test_proxy_boundary_passes_target_as_query_param():
    async def scenario(server, fetcher):
        fetcher.proxy_url = str(server.make_url("/proxy"))
        return await fetcher.fetch("https://feeds.example/world.xml")

    body, _ = _run(scenario, timeout=5)
    assert body == "proxied:https://feeds.example/world.xml"


def test_default_user_agent_is_sent():
    async def scenario(server, fetcher):
        return await fetcher.fetch(str(server.make_url("/agent")))

    body, _ = _run(scenario, timeout=5, proxy_url="", user_agent="Mozilla/5.0 (NewsDash-test)")
    assert body == "Mozilla/5.0 (NewsDash-test)"
