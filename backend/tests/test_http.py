import asyncio

import pytest
from aiohttp import test_utils, web

from cryptosage.schemas.providers import BinanceTickerPrice
from cryptosage.services.base import (
    DecodeError,
    NetworkError,
    RateLimitError,
    RegionRestrictedError,
    ServerError,
    UnsupportedParameterError,
)
from cryptosage.services.http import HttpClient


async def _slow(request):
    await asyncio.sleep(1)
    return web.json_response({})


def respond(status=200, text=None, payload=None, body=None):
    async def handler(request):
        if payload is not None:
            return web.json_response(payload, status=status)
        if body is not None:
            return web.Response(status=status, body=body)
        return web.Response(status=status, text=text)
    return handler


def _app() -> web.Application:
    app = web.Application()
    app.router.add_get("/ok", respond(payload={"symbol": "BTCUSDT", "price": "27000.5"}))
    app.router.add_get("/region", respond(451, text="restricted location"))
    app.router.add_get("/interval", respond(400, payload={"code": -1120, "msg": "Invalid interval."}))
    app.router.add_get("/bad-request", respond(400, payload={"msg": "Illegal characters"}))
    app.router.add_get("/limited", respond(429, text="slow down"))
    app.router.add_get("/boom", respond(502, text="bad gateway"))
    app.router.add_get("/html", respond(text="<html>maintenance</html>"))
    app.router.add_get("/wrong-shape", respond(payload={"symbol": "BTCUSDT"}))
    app.router.add_get("/not-utf8", respond(body=b'{"symbol":"\xff\xfe"}'))
    app.router.add_get("/not-utf8-region", respond(451, body=b"restricted \xff location"))
    app.router.add_get("/feed", respond(text="<rss>" + "x" * 50_000 + "</rss>"))
    app.router.add_get("/slow", _slow)
    return app


@pytest.fixture
async def server():
    test_server = test_utils.TestServer(_app())
    await test_server.start_server()
    yield test_server
    await test_server.close()


@pytest.fixture
async def http():
    client = HttpClient(timeout=5.0)
    yield client
    await client.close()


async def test_get_model_decodes_payload(server, http):
    ticker = await http.get_model(str(server.make_url("/ok")), BinanceTickerPrice, provider="binance")
    assert ticker.price == 27000.5


@pytest.mark.parametrize(
    "path, error_type",
    [
        ("/region", RegionRestrictedError),
        ("/interval", UnsupportedParameterError),
        ("/bad-request", ServerError),
        ("/limited", RateLimitError),
        ("/boom", ServerError),
    ],
)
async def test_status_mapping(server, http, path, error_type):
    with pytest.raises(error_type) as exc_info:
        await http.get_json(str(server.make_url(path)), provider="binance")

    error = exc_info.value
    assert error.provider == "binance"
    assert error.status is not None
    assert error.details["url"].endswith(path)


async def test_plain_400_is_not_an_unsupported_parameter(server, http):
    with pytest.raises(ServerError) as exc_info:
        await http.get_json(str(server.make_url("/bad-request")))
    assert not isinstance(exc_info.value, UnsupportedParameterError)


async def test_invalid_json_is_decode_error(server, http):
    with pytest.raises(DecodeError):
        await http.get_json(str(server.make_url("/html")))


async def test_schema_mismatch_is_decode_error(server, http):
    with pytest.raises(DecodeError):
        await http.get_model(str(server.make_url("/wrong-shape")), BinanceTickerPrice)


async def test_timeout_is_network_error(server, http):
    with pytest.raises(NetworkError):
        await http.get_json(str(server.make_url("/slow")), timeout=0.1)


async def test_connection_refused_is_network_error(server, http):
    url = str(server.make_url("/ok"))
    await server.close()
    with pytest.raises(NetworkError):
        await http.get_json(url)


async def test_iter_chunks_streams_body(server, http):
    chunks = [chunk async for chunk in http.iter_chunks(str(server.make_url("/feed")), chunk_size=4096)]
    body = b"".join(chunks)
    assert body.startswith(b"<rss>") and body.endswith(b"</rss>")
    assert len(chunks) > 1


async def test_iter_chunks_maps_status(server, http):
    with pytest.raises(RegionRestrictedError):
        async for _ in http.iter_chunks(str(server.make_url("/region"))):
            pass


async def test_invalid_utf8_body_is_decode_error(server, http):
    with pytest.raises(DecodeError):
        await http.get_json(str(server.make_url("/not-utf8")), provider="binance")


async def test_invalid_utf8_error_body_still_maps_status(server, http):
    with pytest.raises(RegionRestrictedError):
        await http.get_json(str(server.make_url("/not-utf8-region")))

    with pytest.raises(RegionRestrictedError):
        async for _ in http.iter_chunks(str(server.make_url("/not-utf8-region"))):
            pass
