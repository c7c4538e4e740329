"""
Tool loading for agent contexts.

Toolkit connection management lives outside this service; the crew only needs
the LoadedTool list for a user. ToolRegistry is the in-process provider the
app uses by default.
"""

import logging
from typing import Dict, Iterable, List, Protocol

from domain.contexts import LoadedTool

logger = logging.getLogger("ToolProvider")


class ToolProvider(Protocol):
    async def load_tools(self, user_id: str) -> List[LoadedTool]: ...


class ToolRegistry:
    """Tools available to every user plus tools connected for specific users."""

    def __init__(self, global_tools: Iterable[LoadedTool] = ()):
        self._global: Dict[str, LoadedTool] = {}
        self._per_user: Dict[str, Dict[str, LoadedTool]] = {}
        for tool in global_tools:
            self.register(tool)

    def register(self, tool: LoadedTool, user_id: str = None) -> None:
        """Register a tool globally, or for one user when user_id is given."""
        if user_id is None:
            self._global[tool.name] = tool
        else:
            self._per_user.setdefault(user_id, {})[tool.name] = tool
        logger.debug(f"🔧 Registered tool {tool.name} ({tool.toolkit}) for {user_id or 'all users'}")

    def unregister(self, name: str, user_id: str = None) -> bool:
        tools = self._global if user_id is None else self._per_user.get(user_id, {})
        return tools.pop(name, None) is not None

    async def load_tools(self, user_id: str) -> List[LoadedTool]:
        """Global tools followed by the user's own; a user tool shadows a global one of the same name."""
        merged = dict(self._global)
        merged.update(self._per_user.get(user_id, {}))
        return list(merged.values())
