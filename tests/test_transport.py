"""Tests for transport.py — single exchange, body encoding, error mapping."""
import json

import httpx
import pytest

from api_session.models.request import RequestOptions
from api_session.transport import HttpTransport
from api_session.utils.errors import NetworkError


def _transport(handler):
    return HttpTransport(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_send_json_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, json={"id": 7})

    response = await _transport(handler).send(
        "https://api.example.test/posts/",
        RequestOptions(method="post", body={"title": "hi"}, headers={"X-A": "1"}),
    )

    assert response.status_code == 201
    assert seen[0].method == "POST"
    assert json.loads(seen[0].read()) == {"title": "hi"}
    assert seen[0].headers["X-A"] == "1"


@pytest.mark.asyncio
async def test_send_bytes_body_verbatim():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    await _transport(handler).send("https://api.example.test/raw/", RequestOptions(method="PUT", body=b"\x00\x01"))

    assert seen[0].read() == b"\x00\x01"


@pytest.mark.asyncio
async def test_send_does_not_retry_errors():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    response = await _transport(handler).send("https://api.example.test/", RequestOptions())

    assert response.status_code == 503
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_send_wraps_httpx_errors():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(NetworkError, match="GET https://api.example.test/ failed: read timed out") as exc_info:
        await _transport(handler).send("https://api.example.test/", RequestOptions())

    assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)
