"""
Domain enums for type-safe constants.
"""

from enum import Enum


class AgentRole(str, Enum):
    """Role of an agent in the crew."""

    ROUTER = "router"
    SALES = "sales"
    MARKETING = "marketing"
    RESEARCH = "research"
    CODE = "code"
    DATA = "data"
    GENERAL = "general"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value) -> "AgentRole | None":
        """Return the role for a string value, or None if it names no role."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


SPECIALIST_ROLES = (
    AgentRole.SALES,
    AgentRole.MARKETING,
    AgentRole.RESEARCH,
    AgentRole.CODE,
    AgentRole.DATA,
    AgentRole.GENERAL,
)


class MessageRole(str, Enum):
    """Author of a conversation message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    def __str__(self) -> str:
        return self.value


class MemoryType(str, Enum):
    """Kind of information a memory item holds."""

    FACT = "fact"
    PREFERENCE = "preference"
    CONTEXT = "context"
    DECISION = "decision"
    OUTCOME = "outcome"

    def __str__(self) -> str:
        return self.value


class CrewWorkflow(str, Enum):
    """Multi-agent combination policy."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    HIERARCHICAL = "hierarchical"
    CONSENSUS = "consensus"

    def __str__(self) -> str:
        return self.value


class TaskStatus(str, Enum):
    """Lifecycle of a crew task. Transitions only move forward."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class ExecutionStatus(str, Enum):
    """Lifecycle of one crew process() call."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class AgentEventType(str, Enum):
    """Events emitted while agents run."""

    AGENT_STARTED = "agent_started"
    TOOL_CALLED = "tool_called"
    TOOL_RESULT = "tool_result"
    DELEGATION = "delegation"
    AGENT_COMPLETED = "agent_completed"
    AGENT_ERROR = "agent_error"

    def __str__(self) -> str:
        return self.value
