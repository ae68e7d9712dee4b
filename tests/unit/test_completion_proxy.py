"""Unit tests for grounded streaming completion."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

from groundwork.interfaces.completion_provider import CompletionStream, ICompletionProvider
from groundwork.models.knowledge import AssembledContext, ChatMessage, ChatRole
from groundwork.services.completion_proxy import (
    CompletionProxy,
    latest_user_query,
    sse_error_event,
)
from groundwork.services.context_assembler import ContextAssembler
from groundwork.services.retrieval_service import RetrievalService
from groundwork.utils.errors import (
    EmptyQuery,
    StoreUnavailable,
    StreamInterrupted,
    UpstreamCompletionError,
)
from tests.conftest import make_chunk, make_scored

_FRAMES = [
    b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
    b"data: [DONE]\n\n",
]


class FakeStream(CompletionStream):
    def __init__(self, frames: list[bytes], fail_after: int | None = None) -> None:
        self._frames = frames
        self._fail_after = fail_after
        self.closed = False
        self.pulled = 0

    @property
    def status_code(self) -> int:
        return 200

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        for i, frame in enumerate(self._frames):
            if self._fail_after is not None and i == self._fail_after:
                raise StreamInterrupted(message="connection reset", provider_name="fake")
            self.pulled += 1
            yield frame

    async def aclose(self) -> None:
        self.closed = True


def _conversation(*turns: tuple[ChatRole, str]) -> list[ChatMessage]:
    return [ChatMessage(role=role, content=content) for role, content in turns]


def _provider(stream: CompletionStream | None = None, error: Exception | None = None) -> MagicMock:
    provider = MagicMock(spec=ICompletionProvider)
    provider.open_stream = AsyncMock(return_value=stream, side_effect=error)
    return provider


def _retrieval(results=None, error: Exception | None = None) -> MagicMock:
    retrieval = MagicMock(spec=RetrievalService)
    retrieval.retrieve = AsyncMock(return_value=results or [], side_effect=error)
    return retrieval


async def _collect(iterator: AsyncIterator[bytes]) -> list[bytes]:
    return [chunk async for chunk in iterator]


class TestHelpers:
    def test_latest_user_query(self) -> None:
        conversation = _conversation(
            (ChatRole.USER, "first"),
            (ChatRole.ASSISTANT, "answer"),
            (ChatRole.USER, "  second question "),
            (ChatRole.ASSISTANT, "pending"),
        )
        assert latest_user_query(conversation) == "second question"

    def test_latest_user_query_without_user_turn(self) -> None:
        assert latest_user_query(_conversation((ChatRole.SYSTEM, "be brief"))) == ""

    def test_sse_error_event(self) -> None:
        frame = sse_error_event(StreamInterrupted(message="reset"))

        assert frame.startswith(b"event: error\ndata: ")
        assert frame.endswith(b"\n\n")
        payload = json.loads(frame.split(b"data: ", 1)[1])
        assert payload == {"error": "StreamInterrupted", "detail": "reset"}


class TestContextInjection:
    async def test_use_context_false_never_retrieves(self, context_assembler: ContextAssembler) -> None:
        stream = FakeStream(_FRAMES)
        provider = _provider(stream)
        retrieval = _retrieval()
        proxy = CompletionProxy(provider, retrieval, context_assembler)
        conversation = _conversation((ChatRole.USER, "What is the hand hygiene policy?"))

        chunks = await _collect(await proxy.stream_completion(conversation, use_context=False))

        assert retrieval.retrieve.await_count == 0
        assert provider.open_stream.await_args.args[0] == conversation
        assert chunks == _FRAMES

    async def test_empty_context_adds_no_preamble(self, context_assembler: ContextAssembler) -> None:
        provider = _provider(FakeStream(_FRAMES))
        retrieval = _retrieval(results=[])
        proxy = CompletionProxy(provider, retrieval, context_assembler)
        conversation = _conversation((ChatRole.USER, "anything"))

        await _collect(await proxy.stream_completion(conversation, use_context=True))

        retrieval.retrieve.assert_awaited_once()
        sent = provider.open_stream.await_args.args[0]
        assert sent == conversation
        assert all(m.role is not ChatRole.SYSTEM for m in sent)

    async def test_context_prepended_as_system_turn(self, context_assembler: ContextAssembler) -> None:
        scored = make_scored([make_chunk("Wash hands for 20 seconds.", title="Hygiene")])
        provider = _provider(FakeStream(_FRAMES))
        retrieval = _retrieval(results=scored)
        proxy = CompletionProxy(
            provider, retrieval, context_assembler, grounding_instructions="Use the context.", top_k=4
        )
        conversation = _conversation((ChatRole.USER, "How long do I wash?"))

        await _collect(
            await proxy.stream_completion(conversation, use_context=True, tenant_id="t1", category="policy")
        )

        retrieval.retrieve.assert_awaited_once_with(
            "How long do I wash?", tenant_id="t1", category="policy", top_k=4
        )
        sent = provider.open_stream.await_args.args[0]
        assert len(sent) == 2
        assert sent[0].role is ChatRole.SYSTEM
        assert sent[0].content.startswith("Use the context.\n\n### Context")
        assert "(1) [general] Hygiene" in sent[0].content
        assert sent[1:] == conversation

    async def test_unreachable_store_proceeds_without_context(
        self, context_assembler: ContextAssembler
    ) -> None:
        provider = _provider(FakeStream(_FRAMES))
        proxy = CompletionProxy(provider, _retrieval(error=StoreUnavailable(message="down")), context_assembler)
        conversation = _conversation((ChatRole.USER, "question"))

        chunks = await _collect(await proxy.stream_completion(conversation, use_context=True))

        assert provider.open_stream.await_args.args[0] == conversation
        assert chunks == _FRAMES

    async def test_no_user_turn_skips_retrieval(self, context_assembler: ContextAssembler) -> None:
        retrieval = _retrieval(error=EmptyQuery())
        proxy = CompletionProxy(_provider(FakeStream(_FRAMES)), retrieval, context_assembler)

        context = await proxy.build_context(_conversation((ChatRole.ASSISTANT, "hello")))

        assert context == AssembledContext()
        assert retrieval.retrieve.await_count == 0


class TestRelay:
    async def test_pre_stream_failure_raises_synchronously(
        self, context_assembler: ContextAssembler
    ) -> None:
        error = UpstreamCompletionError(message="HTTP 401", upstream_status=401)
        proxy = CompletionProxy(_provider(error=error), _retrieval(), context_assembler)

        with pytest.raises(UpstreamCompletionError) as exc_info:
            await proxy.stream_completion(_conversation((ChatRole.USER, "hi")), use_context=False)

        assert exc_info.value.upstream_status == 401

    async def test_frames_relayed_verbatim_and_stream_closed(
        self, context_assembler: ContextAssembler
    ) -> None:
        stream = FakeStream(_FRAMES)
        proxy = CompletionProxy(_provider(stream), _retrieval(), context_assembler)

        chunks = await _collect(
            await proxy.stream_completion(_conversation((ChatRole.USER, "hi")), use_context=False)
        )

        assert b"".join(chunks) == b"".join(_FRAMES)
        assert stream.closed

    async def test_mid_stream_failure_emits_terminal_error_event(
        self, context_assembler: ContextAssembler
    ) -> None:
        stream = FakeStream(_FRAMES, fail_after=1)
        proxy = CompletionProxy(_provider(stream), _retrieval(), context_assembler)

        chunks = await _collect(
            await proxy.stream_completion(_conversation((ChatRole.USER, "hi")), use_context=False)
        )

        assert chunks[0] == _FRAMES[0]
        assert len(chunks) == 2
        assert chunks[-1].startswith(b"event: error\n")
        assert b'"StreamInterrupted"' in chunks[-1]
        assert stream.closed

    async def test_client_disconnect_closes_upstream(
        self, context_assembler: ContextAssembler
    ) -> None:
        stream = FakeStream(_FRAMES)
        proxy = CompletionProxy(_provider(stream), _retrieval(), context_assembler)
        checks = iter([False, True, True])

        async def is_disconnected() -> bool:
            return next(checks)

        chunks = await _collect(
            await proxy.stream_completion(
                _conversation((ChatRole.USER, "hi")),
                use_context=False,
                is_disconnected=is_disconnected,
            )
        )

        assert chunks == [_FRAMES[0]]
        assert stream.closed
        assert stream.pulled == 2
