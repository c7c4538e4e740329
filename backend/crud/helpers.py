"""
Helper functions shared across CRUD operations.
"""

import logging
from typing import Optional

import models
from domain.enums import AgentRole, MemoryType
from domain.memory import MemoryItem, clamp_relevance

logger = logging.getLogger("CRUD")


def record_to_memory_item(record: models.AgentMemoryRecord) -> MemoryItem:
    """
    Convert an AgentMemoryRecord row into the MemoryItem domain model.

    Unknown source roles (rows written by an older agent set) map to general.
    """
    return MemoryItem(
        id=record.id,
        type=MemoryType(record.type),
        content=record.content,
        source=AgentRole.parse(record.source) or AgentRole.GENERAL,
        relevance=clamp_relevance(record.relevance if record.relevance is not None else 0.5),
        metadata=dict(record.extra_metadata or {}),
        embedding=list(record.embedding) if record.embedding else None,
        created_at=record.created_at,
        updated_at=record.updated_at or record.created_at,
        expires_at=record.expires_at,
    )


def truncate_text(text: Optional[str], limit: int = 4000) -> Optional[str]:
    """Cap stored task results so one verbose agent cannot bloat the table."""
    if text is None or len(text) <= limit:
        return text
    return text[:limit] + "..."
