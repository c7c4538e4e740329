"""
Memory domain models using Pydantic.

Contains the memory item, search options and the assembled AgentMemory
handed to agents.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .enums import AgentRole, MemoryType


def clamp_relevance(value: float) -> float:
    """Clamp a relevance score to [0, 1]."""
    return max(0.0, min(1.0, value))


class MemoryCreate(BaseModel):
    """A memory item before it has been persisted."""

    type: MemoryType
    content: str = Field(..., min_length=1)
    source: AgentRole = AgentRole.GENERAL
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None


class MemoryItem(BaseModel):
    """A persisted unit of learned information belonging to one user."""

    id: str
    type: MemoryType
    content: str
    source: AgentRole
    relevance: float = Field(..., ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = Field(default=None, exclude=True, repr=False)
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class ScoredMemory(MemoryItem):
    """A memory item with its cosine similarity to a query. Never persisted."""

    similarity: float = Field(..., ge=-1.0, le=1.0)


class AgentMemory(BaseModel):
    """Memory context handed to agents for one request."""

    short_term: List[MemoryItem] = Field(default_factory=list)
    long_term: List[MemoryItem] = Field(default_factory=list)
    working_memory: Dict[str, Any] = Field(default_factory=dict)


class MemorySearchOptions(BaseModel):
    """Structured filters for keyword retrieval."""

    types: Optional[List[MemoryType]] = None
    sources: Optional[List[AgentRole]] = None
    min_relevance: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    query: Optional[str] = None  # Case-insensitive substring match on content
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    order_by: Literal["relevance", "recent"] = "relevance"

    def cache_key(self) -> str:
        """Stable serialization used to key the read-through cache."""
        return self.model_dump_json()


class ConsolidationResult(BaseModel):
    """Outcome of one consolidation pass."""

    merged: int = 0
    removed: int = 0


class MemoryTypeStats(BaseModel):
    """Count and mean relevance for one memory type."""

    type: MemoryType
    count: int
    avg_relevance: float
