import asyncio
import json
import typing

import httpx
import pytest
from pytest_httpx import HTTPXMock

from c2zig.client import ChatStreamClient
from c2zig.config import ChatConfig
from c2zig.errors import RequestFailed, StreamReadError

URL = "https://mock.upstream/chat/completions"


class GeneratorStream(httpx.AsyncByteStream):
    def __init__(self, gen: typing.AsyncIterator[bytes]) -> None:
        self._gen = gen

    async def __aiter__(self) -> typing.AsyncIterator[bytes]:
        async for chunk in self._gen:
            yield chunk

    async def aclose(self) -> None:
        if hasattr(self._gen, "aclose"):
            await self._gen.aclose()


def _config(api_key: str | None = "secret-token") -> ChatConfig:
    return ChatConfig(endpoint=URL, model="remote-model", prompt="hi", api_key=api_key)  # type: ignore[arg-type]


def _complete(config: ChatConfig, updates: list[str] | None = None) -> str:
    async def run() -> str:
        client = ChatStreamClient()
        try:
            return await client.complete(config, updates.append if updates is not None else None)
        finally:
            await client.aclose()

    return asyncio.run(run())


def test_complete_streams_updates(httpx_mock: HTTPXMock) -> None:
    async def gen() -> typing.AsyncIterator[bytes]:
        yield b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n'
        yield b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\ndata: [DONE]\n\n'

    httpx_mock.add_response(url=URL, method="POST", headers={"content-type": "text/event-stream"}, stream=GeneratorStream(gen()))

    updates: list[str] = []
    assert _complete(_config(), updates) == "Hello"
    assert updates == ["Hel", "Hello"]

    req = httpx_mock.get_requests()[0]
    assert req.headers["Authorization"] == "Bearer secret-token"
    assert req.headers["Content-Type"] == "application/json"
    body = json.loads(req.content.decode("utf-8"))
    assert body["stream"] is True
    assert body["model"] == "remote-model"
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


def test_complete_without_key_sends_no_auth(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=URL, content=b"data: [DONE]\n")

    assert _complete(_config(api_key=None)) == ""
    assert "Authorization" not in httpx_mock.get_requests()[0].headers


def test_non_success_status_raises_request_failed(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=URL, status_code=401, text='{"error": "bad key"}')

    updates: list[str] = []
    with pytest.raises(RequestFailed) as excinfo:
        _complete(_config(), updates)

    assert excinfo.value.status == 401
    assert excinfo.value.body == '{"error": "bad key"}'
    assert str(excinfo.value) == 'API Error: 401 - {"error": "bad key"}'
    assert updates == []


def test_error_status_with_event_body_is_not_decoded(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=URL, status_code=500, text='data: {"choices":[{"delta":{"content":"x"}}]}\n')

    updates: list[str] = []
    with pytest.raises(RequestFailed) as excinfo:
        _complete(_config(), updates)
    assert excinfo.value.status == 500
    assert updates == []


def test_transport_error_raises_request_failed(httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_exception(httpx.ConnectError("boom"))

    with pytest.raises(RequestFailed) as excinfo:
        _complete(_config())

    assert excinfo.value.status is None
    assert "boom" in excinfo.value.body


def test_mid_stream_failure_raises_stream_read_error(httpx_mock: HTTPXMock) -> None:
    async def gen() -> typing.AsyncIterator[bytes]:
        yield b'data: {"choices":[{"delta":{"content":"part"}}]}\n'
        raise httpx.ReadError("connection reset")

    httpx_mock.add_response(url=URL, stream=GeneratorStream(gen()))

    updates: list[str] = []
    with pytest.raises(StreamReadError) as excinfo:
        _complete(_config(), updates)

    assert updates == ["part"]
    assert excinfo.value.partial == "part"
