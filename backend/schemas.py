from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from domain.crew import CrewExecution
from domain.enums import AgentRole, CrewWorkflow, ExecutionStatus, MemoryType, MessageRole, TaskStatus
from domain.memory import MemoryItem, MemoryTypeStats, ScoredMemory
from domain.responses import AgentResponse, ResponseMetadata
from pydantic import BaseModel, ConfigDict, Field, field_serializer


def _serialize_utc_datetime(dt: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; emit them timezone-aware."""
    if dt is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ============================================================================
# Chat and routing
# ============================================================================


class ChatMessage(BaseModel):
    role: MessageRole
    content: str
    agent_id: Optional[str] = None


class ChatRequest(BaseModel):
    query: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    history: List[ChatMessage] = Field(default_factory=list)
    crew: Optional[str] = None
    use_memory: bool = True
    learn: bool = True


class TaskSummary(BaseModel):
    id: str
    assigned_agent: AgentRole
    status: TaskStatus
    error: Optional[str] = None


class ExecutionSummary(BaseModel):
    id: str
    crew_name: str
    workflow: CrewWorkflow
    status: ExecutionStatus
    duration_ms: Optional[float] = None
    tasks: List[TaskSummary] = Field(default_factory=list)

    @classmethod
    def from_execution(cls, execution: CrewExecution) -> "ExecutionSummary":
        return cls(
            id=execution.id,
            crew_name=execution.crew_name,
            workflow=execution.workflow,
            status=execution.status,
            duration_ms=execution.duration_ms,
            tasks=[
                TaskSummary(id=t.id, assigned_agent=t.assigned_agent, status=t.status, error=t.error)
                for t in execution.tasks
            ],
        )


class ChatResponse(BaseModel):
    content: str
    agent_id: str
    agent_role: AgentRole
    tools_used: List[str] = Field(default_factory=list)
    delegated_to: List[AgentRole] = Field(default_factory=list)
    metadata: ResponseMetadata
    conversation_id: str
    execution: ExecutionSummary

    @classmethod
    def build(cls, response: AgentResponse, conversation_id: str, execution: CrewExecution) -> "ChatResponse":
        return cls(
            **response.model_dump(exclude={"metadata"}),
            metadata=response.metadata,
            conversation_id=conversation_id,
            execution=ExecutionSummary.from_execution(execution),
        )


class RouteRequest(BaseModel):
    query: str = Field(..., min_length=1)
    toolkits: List[str] = Field(default_factory=list)
    history: List[ChatMessage] = Field(default_factory=list)


class RouteResponse(BaseModel):
    target_agent: AgentRole
    confidence: float
    reasoning: str
    requires_multi_agent: bool = False
    agent_sequence: Optional[List[AgentRole]] = None
    suggested_tools: Optional[List[str]] = None


# ============================================================================
# Agents and crews
# ============================================================================


class AgentInfo(BaseModel):
    id: str
    role: AgentRole
    name: str
    avatar: str
    color: str
    description: str


class CrewInfo(BaseModel):
    name: str
    description: str
    workflow: CrewWorkflow
    agents: List[AgentRole]


# ============================================================================
# Memories
# ============================================================================


class Memory(BaseModel):
    id: str
    type: MemoryType
    content: str
    source: AgentRole
    relevance: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    has_embedding: bool = False
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    @classmethod
    def from_item(cls, item: MemoryItem) -> "Memory":
        return cls(**item.model_dump(), has_embedding=item.has_embedding)

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime, _info):
        return _serialize_utc_datetime(dt)

    @field_serializer("updated_at")
    def serialize_updated_at(self, dt: datetime, _info):
        return _serialize_utc_datetime(dt)

    @field_serializer("expires_at")
    def serialize_expires_at(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt) if dt else None


class ScoredMemoryOut(Memory):
    similarity: float

    @classmethod
    def from_scored(cls, item: ScoredMemory) -> "ScoredMemoryOut":
        return cls(**item.model_dump(), has_embedding=True)


class MemoryCreateRequest(BaseModel):
    type: MemoryType
    content: str = Field(..., min_length=1)
    source: AgentRole = AgentRole.GENERAL
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None
    generate_embedding: bool = True


class MemoryList(BaseModel):
    items: List[Memory]
    total: int
    limit: int
    offset: int
    stats: Optional[List[MemoryTypeStats]] = None


class MemorySearchResults(BaseModel):
    query: str
    items: List[ScoredMemoryOut]


class ConsolidationResponse(BaseModel):
    merged: int
    removed: int


class DecayRequest(BaseModel):
    days_threshold: int = Field(default=30, ge=0)
    decay_factor: Optional[float] = Field(default=None, gt=0.0, le=1.0)


class DecayResponse(BaseModel):
    decayed: int


class RelevanceUpdate(BaseModel):
    delta: float = Field(..., ge=-1.0, le=1.0)


class RelevanceResponse(BaseModel):
    id: str
    relevance: float


class DeleteResponse(BaseModel):
    deleted: int


# ============================================================================
# Execution records
# ============================================================================


class CrewTaskRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    position: int
    description: str
    assigned_agent: str
    status: str
    result: Optional[str] = None
    error: Optional[str] = None


class CrewExecutionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: Optional[str] = None
    crew_name: str
    workflow: str
    status: str
    final_agent_role: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    tasks: List[CrewTaskRecord] = Field(default_factory=list)

    @field_serializer("started_at")
    def serialize_started_at(self, dt: datetime, _info):
        return _serialize_utc_datetime(dt)

    @field_serializer("ended_at")
    def serialize_ended_at(self, dt: Optional[datetime], _info):
        return _serialize_utc_datetime(dt) if dt else None
