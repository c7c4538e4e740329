"""
Domain layer for internal business logic data structures.

This package contains the dataclasses and Pydantic models passed between the
router, the agents, the crew and the memory subsystem.
"""

from .agent_config import AgentConfigData
from .contexts import AgentContext, AgentMessage, LoadedTool, RoutingContext, ToolCall
from .crew import CrewConfig, CrewExecution, CrewTask
from .enums import (
    SPECIALIST_ROLES,
    AgentEventType,
    AgentRole,
    CrewWorkflow,
    ExecutionStatus,
    MemoryType,
    MessageRole,
    TaskStatus,
)
from .events import AgentEvent, AgentEventHandler
from .memory import (
    AgentMemory,
    ConsolidationResult,
    MemoryCreate,
    MemoryItem,
    MemorySearchOptions,
    MemoryTypeStats,
    ScoredMemory,
    clamp_relevance,
)
from .responses import AgentResponse, ResponseMetadata, RoutingDecision, TokenUsage

__all__ = [
    "AgentConfigData",
    "AgentContext",
    "AgentEvent",
    "AgentEventHandler",
    "AgentEventType",
    "AgentMemory",
    "AgentMessage",
    "AgentResponse",
    "AgentRole",
    "ConsolidationResult",
    "CrewConfig",
    "CrewExecution",
    "CrewTask",
    "CrewWorkflow",
    "ExecutionStatus",
    "LoadedTool",
    "MemoryCreate",
    "MemoryItem",
    "MemorySearchOptions",
    "MemoryType",
    "MemoryTypeStats",
    "MessageRole",
    "ResponseMetadata",
    "RoutingContext",
    "RoutingDecision",
    "SPECIALIST_ROLES",
    "ScoredMemory",
    "TaskStatus",
    "TokenUsage",
    "ToolCall",
    "clamp_relevance",
]
