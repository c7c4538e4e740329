"""
CRUD operations module.

This module provides database operations organized by domain aggregate.
All CRUD functions are exported at the package level.
"""

# Execution operations
from .executions import get_execution, list_executions, save_execution

# Helpers
from .helpers import record_to_memory_item

# Memory operations
from .memories import (
    count_memories,
    create_memory,
    decay_memories,
    delete_all_memories,
    delete_expired_memories,
    delete_memories,
    get_memory,
    get_memory_stats,
    get_recent_embedded_memories,
    list_memory_user_ids,
    query_memories,
    update_memory_relevance,
)

__all__ = [
    # Executions
    "get_execution",
    "list_executions",
    "save_execution",
    # Memories
    "count_memories",
    "create_memory",
    "decay_memories",
    "delete_all_memories",
    "delete_expired_memories",
    "delete_memories",
    "get_memory",
    "get_memory_stats",
    "get_recent_embedded_memories",
    "list_memory_user_ids",
    "query_memories",
    "update_memory_relevance",
    # Helpers
    "record_to_memory_item",
]
