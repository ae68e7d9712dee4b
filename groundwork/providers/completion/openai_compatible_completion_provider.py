"""OpenAI-compatible streaming chat-completion adapter over httpx.

Posts ``{model, messages, stream: true}`` to ``{base_url}/chat/completions``
and hands back the open response as a :class:`CompletionStream`.  The
upstream SSE frames are never parsed here; the completion proxy relays them
byte-for-byte.

OpenRouter is the default upstream, so the ``HTTP-Referer`` and ``X-Title``
attribution headers are always sent.  Other OpenAI-compatible servers ignore
them.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import structlog

from groundwork.interfaces.completion_provider import CompletionStream, ICompletionProvider
from groundwork.models.knowledge import ChatMessage
from groundwork.utils.errors import ConfigurationError, StreamInterrupted, UpstreamCompletionError

logger = structlog.get_logger(logger_name=__name__)

_ERROR_BODY_CHARS = 500


class HttpxCompletionStream(CompletionStream):
    """An upstream streaming response held open by httpx."""

    def __init__(self, response: httpx.Response, provider_name: str) -> None:
        self._response = response
        self._provider_name = provider_name
        self._closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.HTTPError as exc:
            raise StreamInterrupted(
                message=f"Upstream stream broke: {exc.__class__.__name__}: {exc}",
                provider_name=self._provider_name,
            ) from exc

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class OpenAICompatibleCompletionProvider(ICompletionProvider):
    """Streaming chat completions from any OpenAI-compatible endpoint.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient`` owned by the process entry point.
    api_key:
        Bearer token for the upstream.
    model:
        Model identifier sent with every request.
    base_url:
        API root, e.g. ``https://openrouter.ai/api/v1``.
    referer, title:
        OpenRouter attribution headers.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        referer: str | None = None,
        title: str | None = None,
        provider_name: str = "openrouter",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._model = model
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._referer = referer
        self._title = title
        self._provider_name = provider_name

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        if self._title:
            headers["X-Title"] = self._title
        return headers

    async def open_stream(self, messages: list[ChatMessage]) -> CompletionStream:
        if not self._api_key:
            raise ConfigurationError(
                message="Completion API key is not configured",
                provider_name=self._provider_name,
            )

        payload = {
            "model": self._model,
            "messages": [m.to_payload() for m in messages],
            "stream": True,
        }
        request = self._http.build_request("POST", self._url, json=payload, headers=self._headers())

        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning(
                "upstream_connect_failed",
                provider=self._provider_name,
                error=f"{exc.__class__.__name__}: {exc}",
            )
            raise UpstreamCompletionError(
                message=f"Could not reach completion provider: {exc.__class__.__name__}",
                provider_name=self._provider_name,
                upstream_status=None,
                detail=str(exc) or None,
            ) from exc

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await response.aclose()
            logger.warning(
                "upstream_error_status",
                provider=self._provider_name,
                status=response.status_code,
                body=body[:_ERROR_BODY_CHARS],
            )
            raise UpstreamCompletionError(
                message=f"Completion provider returned HTTP {response.status_code}",
                provider_name=self._provider_name,
                upstream_status=response.status_code,
                detail=body[:_ERROR_BODY_CHARS] or None,
            )

        logger.info(
            "upstream_stream_opened",
            provider=self._provider_name,
            model=self._model,
            messages=len(messages),
        )
        return HttpxCompletionStream(response, self._provider_name)

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_name

    def is_available(self) -> bool:
        return bool(self._api_key)
