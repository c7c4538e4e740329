"""
Role -> agent constructor registry.

The default specialists are registered at import. Additional roles (or
replacement implementations) can be registered before crews are built.
"""

import logging
from typing import Callable, Dict, List, Optional

from config.agents import get_agent_config
from domain.agent_config import AgentConfigData
from domain.enums import AgentRole
from domain.events import AgentEventHandler
from exceptions import AgentNotRegisteredError
from llm.completion import CompletionService

from .base import BaseAgent
from .specialists import CodeAgent, DataAgent, GeneralAgent, MarketingAgent, ResearchAgent, SalesAgent

logger = logging.getLogger("AgentRegistry")

AgentConstructor = Callable[..., BaseAgent]

_registry: Dict[AgentRole, AgentConstructor] = {}


def register_agent(role: AgentRole, constructor: AgentConstructor) -> None:
    if role in _registry:
        logger.debug(f"Replacing agent constructor for role {role}")
    _registry[role] = constructor


def create_agent(
    role: AgentRole,
    completion_service: CompletionService,
    config: Optional[AgentConfigData] = None,
    event_handler: Optional[AgentEventHandler] = None,
    tool_timeout: float = 30.0,
) -> BaseAgent:
    """
    Construct the agent registered for a role.

    Args:
        role: Role to construct
        completion_service: Completion backend for the agent
        config: Explicit config; defaults to the agents.yaml entry

    Raises:
        AgentNotRegisteredError: No constructor is registered for the role
    """
    constructor = _registry.get(role)
    if constructor is None:
        raise AgentNotRegisteredError(str(role))
    return constructor(
        config or get_agent_config(role),
        completion_service,
        event_handler=event_handler,
        tool_timeout=tool_timeout,
    )


def get_registered_agents() -> List[AgentRole]:
    return list(_registry.keys())


def _register_defaults() -> None:
    register_agent(AgentRole.SALES, SalesAgent)
    register_agent(AgentRole.MARKETING, MarketingAgent)
    register_agent(AgentRole.RESEARCH, ResearchAgent)
    register_agent(AgentRole.CODE, CodeAgent)
    register_agent(AgentRole.DATA, DataAgent)
    register_agent(AgentRole.GENERAL, GeneralAgent)


_register_defaults()
