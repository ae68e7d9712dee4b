"""Completion provider adapters."""

from groundwork.providers.completion.openai_compatible_completion_provider import (
    HttpxCompletionStream,
    OpenAICompatibleCompletionProvider,
)

__all__ = ["HttpxCompletionStream", "OpenAICompatibleCompletionProvider"]
