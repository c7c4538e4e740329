"""
Service layer: memory management, tool loading and the crew entry point.
"""

from .crew_service import CrewRunResult, CrewService
from .extraction import MemoryExtractor
from .memory_manager import MemoryManager
from .memory_registry import MemoryManagerRegistry
from .tool_provider import ToolProvider, ToolRegistry

__all__ = [
    "CrewRunResult",
    "CrewService",
    "MemoryExtractor",
    "MemoryManager",
    "MemoryManagerRegistry",
    "ToolProvider",
    "ToolRegistry",
]
