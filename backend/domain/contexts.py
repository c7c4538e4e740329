"""
Consolidated context data structures.

Contains the message, tool and context dataclasses passed between the crew,
the router and the agents.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .enums import AgentRole, MessageRole

if TYPE_CHECKING:
    from .memory import AgentMemory


@dataclass
class ToolCall:
    """
    A tool invocation requested by the completion service.

    Attributes:
        id: Provider-assigned call id
        name: Tool name as advertised in the tool schema
        arguments: Decoded JSON arguments
    """

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentMessage:
    """
    One message of a conversation. Lists of these are chronological.

    Attributes:
        role: system, user, assistant or tool
        content: Message text
        agent_id: Id of the agent that wrote an assistant message
        tool_calls: Tool calls requested by an assistant message
    """

    role: MessageRole
    content: str
    agent_id: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None

    @classmethod
    def system(cls, content: str) -> "AgentMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "AgentMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, agent_id: Optional[str] = None) -> "AgentMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, agent_id=agent_id)


ToolExecutor = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class LoadedTool:
    """
    A tool made available to agents for one request.

    Tool failures should come back as {"error": "..."} rather than raise,
    although raised exceptions are caught as well.

    Attributes:
        name: Unique tool name
        description: Shown to the model and listed in the system prompt
        toolkit: Toolkit slug the tool belongs to (e.g. HUBSPOT, GITHUB)
        execute: Async callable taking decoded arguments
        parameters: JSON schema of the arguments
    """

    name: str
    description: str
    toolkit: str
    execute: ToolExecutor
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_schema(self) -> Dict[str, Any]:
        """Function-calling schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class AgentContext:
    """
    Per-request bundle handed by reference to every agent invocation.

    Attributes:
        user_id: Owner of the request
        conversation_id: Conversation the request belongs to
        tools: Tools loaded for the user
        memory: Memory assembled before the crew runs, if any
        execution_id: Crew execution the agents run under
    """

    user_id: str
    conversation_id: str
    tools: Sequence[LoadedTool] = ()
    memory: Optional["AgentMemory"] = None
    execution_id: Optional[str] = None

    @property
    def toolkits(self) -> List[str]:
        """Distinct toolkit slugs of the loaded tools, in load order."""
        seen: List[str] = []
        for tool in self.tools:
            if tool.toolkit not in seen:
                seen.append(tool.toolkit)
        return seen


@dataclass
class RoutingContext:
    """
    Input to the router.

    Attributes:
        query: The user query
        conversation_history: Prior messages, oldest first
        available_agents: Roles the caller can dispatch to
        user_toolkits: Toolkit slugs the user has connected
    """

    query: str
    conversation_history: List[AgentMessage] = field(default_factory=list)
    available_agents: List[AgentRole] = field(default_factory=list)
    user_toolkits: List[str] = field(default_factory=list)
