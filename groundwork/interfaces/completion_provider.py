"""Abstract base classes for streaming chat-completion providers.

A provider accepts an OpenAI-style message list and returns an open
:class:`CompletionStream` whose bytes are the upstream server-sent-event
frames, unparsed.  Opening the stream and reading it are separate steps so
that failures *before* any byte is relayed can be reported synchronously
while failures *after* are reported in-band by the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from groundwork.models.knowledge import ChatMessage


class CompletionStream(ABC):
    """An open upstream event stream."""

    @property
    @abstractmethod
    def status_code(self) -> int:
        """HTTP status of the upstream response (always 2xx once opened)."""

    @abstractmethod
    def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield raw upstream bytes as they arrive, without buffering.

        Raises
        ------
        groundwork.utils.errors.StreamInterrupted
            If the connection breaks after the stream was opened.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release the upstream connection.  Safe to call more than once."""


class ICompletionProvider(ABC):
    """Contract for chat-completion services."""

    @abstractmethod
    async def open_stream(self, messages: list[ChatMessage]) -> CompletionStream:
        """Send *messages* with ``stream: true`` and return the open stream.

        Parameters
        ----------
        messages:
            Conversation to forward, system preamble included.

        Returns
        -------
        CompletionStream
            A stream whose upstream status is 2xx.

        Raises
        ------
        groundwork.utils.errors.UpstreamCompletionError
            If the connection cannot be established (``upstream_status`` is
            ``None``) or the upstream answers with a non-2xx status.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the upstream model identifier."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"openrouter"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""
