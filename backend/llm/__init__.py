"""
Adapters for the external chat completion and embedding providers.
"""

from .completion import (
    CompletionOptions,
    CompletionResult,
    CompletionService,
    LiteLLMCompletionService,
    parse_completion_response,
    to_provider_messages,
)
from .embeddings import EmbeddingService, LiteLLMEmbeddingService

__all__ = [
    "CompletionOptions",
    "CompletionResult",
    "CompletionService",
    "EmbeddingService",
    "LiteLLMCompletionService",
    "LiteLLMEmbeddingService",
    "parse_completion_response",
    "to_provider_messages",
]
