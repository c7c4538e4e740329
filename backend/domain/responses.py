"""
Agent output models.

AgentResponse and RoutingDecision are frozen; adjustments produce copies via
model_copy(update=...).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import AgentRole


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class ResponseMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: Optional[TokenUsage] = None
    model: Optional[str] = None
    latency: Optional[float] = None  # Milliseconds spent in process()
    reasoning: Optional[str] = None
    confidence: Optional[float] = None
    sources: List[str] = Field(default_factory=list)


class AgentResponse(BaseModel):
    """One agent invocation's answer."""

    model_config = ConfigDict(frozen=True)

    content: str
    agent_id: str
    agent_role: AgentRole
    tools_used: List[str] = Field(default_factory=list)
    delegated_to: List[AgentRole] = Field(default_factory=list)
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    def with_metadata(self, **updates) -> "AgentResponse":
        """Copy of this response with metadata fields replaced."""
        return self.model_copy(update={"metadata": self.metadata.model_copy(update=updates)})


class RoutingDecision(BaseModel):
    """Router output. Transient, never persisted."""

    model_config = ConfigDict(frozen=True)

    target_agent: AgentRole
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    requires_multi_agent: bool = False
    agent_sequence: Optional[List[AgentRole]] = None
    suggested_tools: Optional[List[str]] = None
