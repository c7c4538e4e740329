"""
Agents: the execution contract, the specialists and the router.
"""

from .base import BaseAgent, ToolResult
from .registry import create_agent, get_registered_agents, register_agent
from .router import RouterAgent, parse_routing_response, quick_route
from .specialists import CodeAgent, DataAgent, GeneralAgent, MarketingAgent, ResearchAgent, SalesAgent

__all__ = [
    "BaseAgent",
    "CodeAgent",
    "DataAgent",
    "GeneralAgent",
    "MarketingAgent",
    "ResearchAgent",
    "RouterAgent",
    "SalesAgent",
    "ToolResult",
    "create_agent",
    "get_registered_agents",
    "parse_routing_response",
    "quick_route",
    "register_agent",
]
