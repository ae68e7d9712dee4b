"""Unit tests for the OpenAI-compatible streaming completion adapter."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import httpx
import pytest

from groundwork.models.knowledge import ChatMessage, ChatRole
from groundwork.providers.completion import OpenAICompatibleCompletionProvider
from groundwork.utils.errors import ConfigurationError, StreamInterrupted, UpstreamCompletionError

_MESSAGES = [ChatMessage(role=ChatRole.USER, content="hello")]


class _BreakingStream(httpx.AsyncByteStream):
    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b'data: {"choices":[{"delta":{"content":"partial"}}]}\n\n'
        raise httpx.ReadError("connection reset by peer")


def _provider(handler, api_key: str = "sk-or-test") -> OpenAICompatibleCompletionProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleCompletionProvider(
        http_client=client,
        api_key=api_key,
        model="openai/gpt-5-chat",
        base_url="https://openrouter.test/api/v1/",
        referer="http://localhost:8000",
        title="groundwork",
    )


class TestOpenStream:
    async def test_request_shape(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"data: [DONE]\n\n")

        stream = await _provider(handler).open_stream(_MESSAGES)
        await stream.aclose()

        assert seen["url"] == "https://openrouter.test/api/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer sk-or-test"
        assert seen["headers"]["http-referer"] == "http://localhost:8000"
        assert seen["headers"]["x-title"] == "groundwork"
        assert seen["body"] == {
            "model": "openai/gpt-5-chat",
            "messages": [{"role": "user", "content": "hello"}],
            "stream": True,
        }

    async def test_bytes_relayed_verbatim(self) -> None:
        body = b'data: {"x":1}\n\ndata: [DONE]\n\n'

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        stream = await _provider(handler).open_stream(_MESSAGES)
        received = b"".join([chunk async for chunk in stream.iter_bytes()])
        await stream.aclose()

        assert stream.status_code == 200
        assert received == body

    async def test_non_2xx_raises_with_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402, json={"error": {"message": "Insufficient credits"}})

        with pytest.raises(UpstreamCompletionError) as exc_info:
            await _provider(handler).open_stream(_MESSAGES)

        assert exc_info.value.upstream_status == 402
        assert "Insufficient credits" in exc_info.value.detail

    async def test_error_body_truncated(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="e" * 5000)

        with pytest.raises(UpstreamCompletionError) as exc_info:
            await _provider(handler).open_stream(_MESSAGES)

        assert len(exc_info.value.detail) == 500

    async def test_connect_failure_has_no_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        with pytest.raises(UpstreamCompletionError) as exc_info:
            await _provider(handler).open_stream(_MESSAGES)

        assert exc_info.value.upstream_status is None

    async def test_missing_api_key(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        provider = _provider(handler, api_key="")

        assert not provider.is_available()
        with pytest.raises(ConfigurationError):
            await provider.open_stream(_MESSAGES)


class TestStream:
    async def test_mid_stream_break_raises_stream_interrupted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=_BreakingStream())

        stream = await _provider(handler).open_stream(_MESSAGES)
        received: list[bytes] = []

        with pytest.raises(StreamInterrupted):
            async for chunk in stream.iter_bytes():
                received.append(chunk)
        await stream.aclose()

        assert b"partial" in b"".join(received)

    async def test_aclose_is_idempotent(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"data: [DONE]\n\n")

        stream = await _provider(handler).open_stream(_MESSAGES)
        await stream.aclose()
        await stream.aclose()
