"""
CRUD operations for agent memory records.

Every query is scoped by user_id; no function reads or writes another user's rows.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

import models
from domain.memory import MemoryCreate, MemorySearchOptions, clamp_relevance
from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

logger = logging.getLogger("CRUD")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered(stmt, user_id: str, options: MemorySearchOptions, now: Optional[datetime] = None):
    """Apply user scope, expiry and option filters to a select."""
    now = now or datetime.utcnow()
    record = models.AgentMemoryRecord
    stmt = stmt.where(
        record.user_id == user_id,
        or_(record.expires_at.is_(None), record.expires_at > now),
    )
    if options.types:
        stmt = stmt.where(record.type.in_([t.value for t in options.types]))
    if options.sources:
        stmt = stmt.where(record.source.in_([s.value for s in options.sources]))
    if options.min_relevance is not None:
        stmt = stmt.where(record.relevance >= options.min_relevance)
    if options.query:
        stmt = stmt.where(record.content.ilike(f"%{_escape_like(options.query)}%", escape="\\"))
    return stmt


async def create_memory(
    db: AsyncSession,
    user_id: str,
    memory_id: str,
    item: MemoryCreate,
    embedding: Optional[List[float]] = None,
    embedding_model: Optional[str] = None,
) -> models.AgentMemoryRecord:
    """Insert one memory item."""
    now = datetime.utcnow()
    record = models.AgentMemoryRecord(
        id=memory_id,
        user_id=user_id,
        type=item.type.value,
        content=item.content,
        source=item.source.value,
        relevance=clamp_relevance(item.relevance),
        extra_metadata=dict(item.metadata),
        embedding=embedding,
        embedding_model=embedding_model if embedding else None,
        created_at=now,
        updated_at=now,
        expires_at=item.expires_at,
    )
    db.add(record)
    await db.commit()
    return record


async def get_memory(db: AsyncSession, user_id: str, memory_id: str) -> Optional[models.AgentMemoryRecord]:
    result = await db.execute(
        select(models.AgentMemoryRecord).where(
            models.AgentMemoryRecord.id == memory_id,
            models.AgentMemoryRecord.user_id == user_id,
        )
    )
    return result.scalars().first()


async def query_memories(
    db: AsyncSession, user_id: str, options: MemorySearchOptions
) -> List[models.AgentMemoryRecord]:
    """
    Structured retrieval.

    Ordered by relevance then recency, or by recency alone when
    options.order_by == "recent".
    """
    record = models.AgentMemoryRecord
    stmt = _filtered(select(record), user_id, options)
    if options.order_by == "recent":
        stmt = stmt.order_by(record.created_at.desc(), record.relevance.desc())
    else:
        stmt = stmt.order_by(record.relevance.desc(), record.created_at.desc())
    if options.offset:
        stmt = stmt.offset(options.offset)
    if options.limit:
        stmt = stmt.limit(options.limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_memories(db: AsyncSession, user_id: str, options: MemorySearchOptions) -> int:
    """Count rows matching the options, ignoring limit and offset."""
    stmt = _filtered(select(func.count(models.AgentMemoryRecord.id)), user_id, options)
    result = await db.execute(stmt)
    return result.scalar() or 0


async def get_recent_embedded_memories(
    db: AsyncSession, user_id: str, limit: int
) -> List[models.AgentMemoryRecord]:
    """Most recently created rows that carry an embedding."""
    record = models.AgentMemoryRecord
    stmt = (
        _filtered(select(record), user_id, MemorySearchOptions())
        .where(record.embedding.is_not(None))
        .order_by(record.created_at.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_memory_relevance(
    db: AsyncSession, user_id: str, memory_id: str, delta: float
) -> Optional[float]:
    """
    Add delta to a memory's relevance, clamped to [0, 1].

    Returns:
        New relevance, or None if the memory does not exist
    """
    record = await get_memory(db, user_id, memory_id)
    if record is None:
        return None
    record.relevance = clamp_relevance((record.relevance or 0.0) + delta)
    record.updated_at = datetime.utcnow()
    await db.commit()
    return record.relevance


async def delete_memories(db: AsyncSession, user_id: str, memory_ids: Iterable[str]) -> int:
    ids = list(memory_ids)
    if not ids:
        return 0
    result = await db.execute(
        delete(models.AgentMemoryRecord).where(
            models.AgentMemoryRecord.user_id == user_id,
            models.AgentMemoryRecord.id.in_(ids),
        )
    )
    await db.commit()
    return result.rowcount or 0


async def delete_all_memories(db: AsyncSession, user_id: str, memory_type: Optional[str] = None) -> int:
    stmt = delete(models.AgentMemoryRecord).where(models.AgentMemoryRecord.user_id == user_id)
    if memory_type:
        stmt = stmt.where(models.AgentMemoryRecord.type == memory_type)
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount or 0


async def decay_memories(
    db: AsyncSession, user_id: str, stale_before: datetime, factor: float, floor: float
) -> int:
    """
    Lower relevance of stale rows by factor, never below floor.

    Only rows with updated_at < stale_before and relevance > floor are touched;
    touched rows get a fresh updated_at.

    Returns:
        Number of rows decayed
    """
    record = models.AgentMemoryRecord
    decayed = record.relevance - factor
    stmt = (
        update(record)
        .where(
            record.user_id == user_id,
            record.updated_at < stale_before,
            record.relevance > floor,
        )
        .values(
            relevance=case((decayed < floor, floor), else_=decayed),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount or 0


async def get_memory_stats(db: AsyncSession, user_id: str) -> List[Tuple[str, int, float]]:
    """Per-type (type, count, average relevance) for a user."""
    record = models.AgentMemoryRecord
    result = await db.execute(
        select(record.type, func.count(record.id), func.avg(record.relevance))
        .where(record.user_id == user_id)
        .group_by(record.type)
        .order_by(record.type)
    )
    return [(row[0], int(row[1]), float(row[2] or 0.0)) for row in result.all()]


async def list_memory_user_ids(db: AsyncSession) -> List[str]:
    """Every user that currently owns at least one memory."""
    result = await db.execute(select(models.AgentMemoryRecord.user_id).distinct())
    return [row[0] for row in result.all()]


async def delete_expired_memories(db: AsyncSession, now: Optional[datetime] = None, user_id: Optional[str] = None) -> int:
    """Delete rows whose expires_at has passed."""
    record = models.AgentMemoryRecord
    stmt = delete(record).where(record.expires_at.is_not(None), record.expires_at <= (now or datetime.utcnow()))
    if user_id is not None:
        stmt = stmt.where(record.user_id == user_id)
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount or 0
