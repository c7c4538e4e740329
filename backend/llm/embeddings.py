"""
Text embedding service.
"""

import asyncio
import logging
from typing import List, Protocol

import litellm

logger = logging.getLogger("EmbeddingService")


class EmbeddingService(Protocol):
    model: str
    dimension: int

    async def embed(self, text: str) -> List[float]: ...


class LiteLLMEmbeddingService:
    """
    EmbeddingService backed by litellm.aembedding.

    Input is truncated to max_chars before submission. Raises on provider
    failure; callers decide whether that is fatal.
    """

    def __init__(self, model: str, dimension: int, max_chars: int = 8000, timeout: float = 30.0):
        self.model = model
        self.dimension = dimension
        self.max_chars = max_chars
        self.timeout = timeout

    async def embed(self, text: str) -> List[float]:
        response = await asyncio.wait_for(
            litellm.aembedding(model=self.model, input=[text[: self.max_chars]]),
            timeout=self.timeout,
        )
        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        return [float(v) for v in vector]
