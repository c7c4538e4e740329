"""
Agent lifecycle events.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Protocol

from .enums import AgentEventType


@dataclass
class AgentEvent:
    """
    Something that happened while an agent ran.

    Attributes:
        type: Event kind
        agent_id: Agent that emitted it
        data: Event payload (query, tool name, error message, ...)
        timestamp: Emission time
    """

    type: AgentEventType
    agent_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)


class AgentEventHandler(Protocol):
    """Receives agent events. Handlers must not raise."""

    def __call__(self, event: AgentEvent) -> None: ...
