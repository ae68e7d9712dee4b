"""Grounded streaming completion.

:meth:`CompletionProxy.stream_completion` works in two phases so that
callers can tell "no answer was attempted" from "an answer was interrupted":

1. **Before the stream opens** (awaited): optionally retrieve and assemble
   context, prepend it as a system turn, and open the upstream stream.  Any
   failure here raises :class:`~groundwork.utils.errors.UpstreamCompletionError`
   synchronously.
2. **Relay** (the returned async iterator): upstream bytes are passed through
   verbatim as they arrive.  Client disconnection is checked before every
   frame; a mid-stream upstream failure is turned into one terminal
   ``event: error`` frame.  The upstream connection is always closed.

There is no retry: partial assistant output cannot be safely resumed.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Awaitable, Callable

import structlog

from groundwork.interfaces.completion_provider import CompletionStream, ICompletionProvider
from groundwork.models.knowledge import (
    AssembledContext,
    CallerProfile,
    ChatMessage,
    ChatRole,
)
from groundwork.services.context_assembler import ContextAssembler
from groundwork.services.retrieval_service import RetrievalService
from groundwork.utils.errors import GroundworkError, StreamInterrupted

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_GROUNDING_INSTRUCTIONS = (
    "You are a knowledgeable assistant. Answer using the numbered context below "
    "when it is relevant. If you use the context below, cite sources by number, "
    "e.g. (1). If the context does not cover the question, say so and answer "
    "from general knowledge."
)

DisconnectCheck = Callable[[], Awaitable[bool]]


def sse_error_event(error: GroundworkError) -> bytes:
    """Encode *error* as a terminal server-sent event."""
    payload = json.dumps({"error": error.code, "detail": error.message})
    return f"event: error\ndata: {payload}\n\n".encode()


def latest_user_query(conversation: list[ChatMessage]) -> str:
    """Content of the most recent user turn, or ``""`` when there is none."""
    for message in reversed(conversation):
        if message.role is ChatRole.USER:
            return message.content.strip()
    return ""


class CompletionProxy:
    """Injects retrieved context and relays the upstream completion stream.

    Parameters
    ----------
    completion_provider:
        Opens the upstream streaming connection.
    retrieval_service:
        Hybrid retrieval; only called when ``use_context`` is true.
    context_assembler:
        Renders retrieved chunks into the context block.
    grounding_instructions:
        Text placed before the context block in the injected system turn.
    top_k:
        Number of chunks retrieved per chat turn.
    """

    def __init__(
        self,
        completion_provider: ICompletionProvider,
        retrieval_service: RetrievalService,
        context_assembler: ContextAssembler,
        grounding_instructions: str = DEFAULT_GROUNDING_INSTRUCTIONS,
        top_k: int = 6,
    ) -> None:
        self._provider = completion_provider
        self._retrieval = retrieval_service
        self._assembler = context_assembler
        self._instructions = grounding_instructions
        self._top_k = top_k

    async def build_context(
        self,
        conversation: list[ChatMessage],
        tenant_id: str | None = None,
        category: str | None = None,
        profile: CallerProfile | None = None,
    ) -> AssembledContext:
        """Retrieve and assemble context for the latest user turn.

        Retrieval problems never fail the chat turn; they yield an empty
        context and a log line.
        """
        query = latest_user_query(conversation)
        if not query:
            return AssembledContext()
        try:
            scored = await self._retrieval.retrieve(
                query, tenant_id=tenant_id, category=category, top_k=self._top_k
            )
        except GroundworkError as exc:
            logger.warning("context_retrieval_failed", code=exc.code, error=str(exc))
            return AssembledContext()
        return self._assembler.assemble(scored, profile)

    def inject_context(
        self,
        conversation: list[ChatMessage],
        context: AssembledContext,
    ) -> list[ChatMessage]:
        """Prepend a grounding system turn, or return *conversation* unchanged."""
        if context.is_empty:
            return list(conversation)
        preamble = ChatMessage(
            role=ChatRole.SYSTEM,
            content=f"{self._instructions}\n\n{context.text}",
        )
        return [preamble, *conversation]

    async def stream_completion(
        self,
        conversation: list[ChatMessage],
        use_context: bool,
        tenant_id: str | None = None,
        category: str | None = None,
        profile: CallerProfile | None = None,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[bytes]:
        """Open the upstream stream and return the relay iterator.

        Raises:
            UpstreamCompletionError: The upstream could not be reached or
                answered with a non-2xx status.  Nothing has been relayed.
        """
        context = AssembledContext()
        if use_context:
            context = await self.build_context(conversation, tenant_id, category, profile)
        messages = self.inject_context(conversation, context)

        stream = await self._provider.open_stream(messages)
        logger.info(
            "completion_stream_started",
            use_context=use_context,
            context_entries=len(context.used_chunks),
            messages=len(messages),
        )
        return self._relay(stream, is_disconnected)

    async def _relay(
        self,
        stream: CompletionStream,
        is_disconnected: DisconnectCheck | None,
    ) -> AsyncIterator[bytes]:
        relayed = 0
        try:
            async for chunk in stream.iter_bytes():
                if is_disconnected is not None and await is_disconnected():
                    logger.info("client_disconnected", relayed_bytes=relayed)
                    return
                relayed += len(chunk)
                yield chunk
        except StreamInterrupted as exc:
            logger.warning("upstream_stream_interrupted", relayed_bytes=relayed, error=str(exc))
            yield sse_error_event(exc)
        finally:
            await stream.aclose()
        logger.info("completion_stream_finished", relayed_bytes=relayed)
