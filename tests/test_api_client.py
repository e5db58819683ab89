"""
Tests for research_core.services.api_client (HttpResearchApi).

Runs the real httpx client against httpx.MockTransport; no sockets.
"""

import json

import httpx
import pytest

from research_core.services.api_client import ApiError, HttpResearchApi, auth_headers
from research_core.services.stream_decoder import decode_stream

BASE_URL = "http://research.test/api/v1"


def make_api(handler):
    return HttpResearchApi(BASE_URL, transport=httpx.MockTransport(handler))


class Recorder:
    """MockTransport handler that records requests and replies with one response."""

    def __init__(self, response: httpx.Response):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def test_auth_headers():
    assert auth_headers("tok") == {"Authorization": "Bearer tok"}
    assert auth_headers("") == {}


def test_missing_base_url_is_rejected():
    with pytest.raises(RuntimeError):
        HttpResearchApi("")


class TestJsonEndpoints:

    @pytest.mark.asyncio
    async def test_fetch_summaries_sends_bearer_token(self):
        rec = Recorder(httpx.Response(200, json=[{"chatId": "c1", "displayQuestion": "x"}]))

        result = await make_api(rec).fetch_summaries("tok-a")

        assert result == [{"chatId": "c1", "displayQuestion": "x"}]
        req = rec.requests[0]
        assert req.method == "GET"
        assert req.url.path == "/api/v1/history"
        assert req.headers["Authorization"] == "Bearer tok-a"

    @pytest.mark.asyncio
    async def test_guest_request_has_no_authorization(self):
        rec = Recorder(httpx.Response(200, json=[]))
        await make_api(rec).fetch_summaries("")
        assert "Authorization" not in rec.requests[0].headers

    @pytest.mark.asyncio
    async def test_fetch_thread_path_and_non_dict_items_dropped(self):
        rec = Recorder(httpx.Response(200, json=[{"question": "q"}, "junk", 3]))

        result = await make_api(rec).fetch_thread("tok", "chat_42")

        assert rec.requests[0].url.path == "/api/v1/history/chat_42"
        assert result == [{"question": "q"}]

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self):
        rec = Recorder(httpx.Response(401, json={"detail": "nope"}))

        with pytest.raises(ApiError) as exc:
            await make_api(rec).fetch_summaries("bad")

        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_list_body_raises(self):
        rec = Recorder(httpx.Response(200, json={"items": []}))
        with pytest.raises(ApiError):
            await make_api(rec).fetch_summaries("tok")

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        rec = Recorder(httpx.Response(200, content=b"<html>"))
        with pytest.raises(ApiError):
            await make_api(rec).fetch_summaries("tok")

    @pytest.mark.asyncio
    async def test_transport_error_is_normalized(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiError) as exc:
            await make_api(handler).fetch_summaries("tok")

        assert exc.value.status_code is None
        assert isinstance(exc.value.__cause__, httpx.ConnectError)


class TestMutations:

    @pytest.mark.asyncio
    async def test_rename_body(self):
        rec = Recorder(httpx.Response(200, json={}))

        await make_api(rec).rename_thread("tok", "c1", "New title")

        req = rec.requests[0]
        assert req.method == "PUT"
        assert req.url.path == "/api/v1/history/rename"
        assert json.loads(req.content) == {"chatId": "c1", "newTitle": "New title"}

    @pytest.mark.asyncio
    async def test_delete_thread(self):
        rec = Recorder(httpx.Response(204))
        await make_api(rec).delete_thread("tok", "c1")
        req = rec.requests[0]
        assert (req.method, req.url.path) == ("DELETE", "/api/v1/history/c1")

    @pytest.mark.asyncio
    async def test_clear_history(self):
        rec = Recorder(httpx.Response(200))
        await make_api(rec).clear_history("tok")
        req = rec.requests[0]
        assert (req.method, req.url.path) == ("DELETE", "/api/v1/history")

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self):
        rec = Recorder(httpx.Response(500))
        with pytest.raises(ApiError) as exc:
            await make_api(rec).delete_thread("tok", "c1")
        assert exc.value.status_code == 500


class TestStreamAnswer:

    @pytest.mark.asyncio
    async def test_chunks_flow_through_decoder(self):
        async def body():
            yield b'data: {"content":"Hel'
            yield b'lo"}\ndata: {"content":" wor'
            yield b'ld"}\n'

        rec = Recorder(httpx.Response(200, content=body()))
        api = make_api(rec)

        deltas = [d async for d in decode_stream(api.stream_answer("tok", {"question": "q"}))]

        assert "".join(deltas) == "Hello world"
        req = rec.requests[0]
        assert (req.method, req.url.path) == ("POST", "/api/v1/ask")
        assert req.headers["Content-Type"] == "application/json"
        assert req.headers["Authorization"] == "Bearer tok"
        assert json.loads(req.content) == {"question": "q"}

    @pytest.mark.asyncio
    async def test_error_status_raises_before_any_chunk(self):
        rec = Recorder(httpx.Response(502, content=b"bad gateway"))
        received = []

        with pytest.raises(ApiError) as exc:
            async for chunk in make_api(rec).stream_answer("tok", {}):
                received.append(chunk)

        assert received == []
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(ApiError):
            async for _ in make_api(handler).stream_answer("tok", {}):
                pass
