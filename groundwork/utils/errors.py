"""Custom exception hierarchy for groundwork.

All application exceptions inherit from :class:`GroundworkError`, which
carries an optional ``provider_name`` so error handlers can identify which
external collaborator (e.g. "openai_embedding", "sqlite", "openrouter")
caused the failure.  Every class also exposes a stable ``code`` string that
is surfaced verbatim in API error bodies.

The hierarchy is organized by pipeline stage:

    GroundworkError  (base -- catch-all for any groundwork error)
    +-- UnsupportedFormat        (extraction: unknown file type)
    +-- ExtractionFailed         (extraction: corrupt file / parser failure)
    +-- NoExtractableText        (ingestion: extracted text is blank)
    +-- InvalidChunkConfig       (chunking: overlap >= chunk_size, etc.)
    +-- EmbeddingProviderError   (embedding backend failure)
    +-- IngestionError           (batch abort, names the offending file)
    +-- EmptyQuery               (retrieval: blank query text)
    +-- StoreUnavailable         (document store unreachable)
    +-- UpstreamCompletionError  (completion provider failed before streaming)
    +-- StreamInterrupted        (completion stream broke mid-flight)
    +-- ConfigurationError       (startup / missing config)

Ingestion errors abort the whole batch; retrieval errors are absorbed by the
fallback chain where possible; completion errors are either synchronous
(before the stream opens) or in-band (after).
"""

from __future__ import annotations


class GroundworkError(Exception):
    """Base exception for all groundwork errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[sqlite] database is locked``.
    """

    code = "GroundworkError"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion: extraction and chunking
# ---------------------------------------------------------------------------

class UnsupportedFormat(GroundworkError):
    """Raised when no extraction handler exists for a file's extension or MIME type."""

    code = "UnsupportedFormat"

    def __init__(
        self,
        extension: str,
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._extension = extension
        super().__init__(
            message=message or f"Unsupported file type: {extension or '(none)'}",
            provider_name=provider_name,
        )

    @property
    def extension(self) -> str:
        return self._extension


class ExtractionFailed(GroundworkError):
    """Raised when a supported file cannot be parsed (corrupt file, missing parser)."""

    code = "ExtractionFailed"

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NoExtractableText(GroundworkError):
    """Raised when extraction succeeds but yields only whitespace."""

    code = "NoExtractableText"

    def __init__(
        self,
        message: str = "No extractable text",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidChunkConfig(GroundworkError):
    """Raised when chunk parameters are inconsistent (e.g. overlap >= chunk_size)."""

    code = "InvalidChunkConfig"

    def __init__(
        self,
        message: str = "Invalid chunk configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(GroundworkError):
    """Raised when an ingestion batch is aborted.

    Wraps the underlying taxonomy error and records the offending filename
    so the caller can report exactly which upload broke the batch.
    """

    def __init__(
        self,
        cause: GroundworkError,
        filename: str | None = None,
    ) -> None:
        self._cause = cause
        self._filename = filename
        prefix = f"{filename}: " if filename else ""
        super().__init__(message=f"{prefix}{cause.message}", provider_name=cause.provider_name)

    @property
    def code(self) -> str:  # type: ignore[override]
        return self._cause.code

    @property
    def cause(self) -> GroundworkError:
        return self._cause

    @property
    def filename(self) -> str | None:
        return self._filename


# ---------------------------------------------------------------------------
# Embedding / retrieval
# ---------------------------------------------------------------------------

class EmbeddingProviderError(GroundworkError):
    """Raised when an embedding backend fails.

    For the remote backend ``status_code`` holds the upstream HTTP status
    and ``body`` the (truncated) response body.
    """

    code = "EmbeddingProviderError"

    def __init__(
        self,
        message: str = "Embedding provider failed",
        provider_name: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self._status_code = status_code
        self._body = body
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status_code(self) -> int | None:
        return self._status_code

    @property
    def body(self) -> str | None:
        return self._body


class EmptyQuery(GroundworkError):
    """Raised when a retrieval query is empty or whitespace-only."""

    code = "EmptyQuery"

    def __init__(
        self,
        message: str = "Query text must not be empty",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreUnavailable(GroundworkError):
    """Raised when the document store cannot be reached or refuses a query."""

    code = "StoreUnavailable"

    def __init__(
        self,
        message: str = "Document store is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

class UpstreamCompletionError(GroundworkError):
    """Raised when the completion provider fails before any bytes are relayed.

    ``upstream_status`` is ``None`` when the connection could not be
    established at all.
    """

    code = "UpstreamCompletionError"

    def __init__(
        self,
        message: str = "Completion provider request failed",
        provider_name: str | None = None,
        upstream_status: int | None = None,
        detail: str | None = None,
    ) -> None:
        self._upstream_status = upstream_status
        self._detail = detail
        super().__init__(message=message, provider_name=provider_name)

    @property
    def upstream_status(self) -> int | None:
        return self._upstream_status

    @property
    def detail(self) -> str | None:
        return self._detail


class StreamInterrupted(GroundworkError):
    """Raised (or rendered in-band) when an open completion stream breaks."""

    code = "StreamInterrupted"

    def __init__(
        self,
        message: str = "Completion stream was interrupted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(GroundworkError):
    """Raised when configuration is invalid or missing at startup."""

    code = "ConfigurationError"

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
