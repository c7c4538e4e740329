"""FastAPI routers for modular endpoint organization."""

from . import agents, chat, executions, health, memories

__all__ = [
    "agents",
    "chat",
    "executions",
    "health",
    "memories",
]
