"""
CRUD operations for crew execution bookkeeping.
"""

import logging
from typing import List, Optional

import models
from domain.crew import CrewExecution
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from .helpers import truncate_text

logger = logging.getLogger("CRUD")


async def save_execution(
    db: AsyncSession,
    execution: CrewExecution,
    user_id: str,
    conversation_id: Optional[str] = None,
) -> models.CrewExecutionRecord:
    """Persist a finished execution with its tasks in creation order."""
    final_role = execution.final_response.agent_role.value if execution.final_response else None
    record = models.CrewExecutionRecord(
        id=execution.id,
        user_id=user_id,
        conversation_id=conversation_id,
        crew_name=execution.crew_name,
        workflow=execution.workflow.value,
        status=execution.status.value,
        final_agent_role=final_role,
        started_at=execution.start_time,
        ended_at=execution.end_time,
    )
    for position, task in enumerate(execution.tasks):
        record.tasks.append(
            models.CrewTaskRecord(
                id=task.id,
                position=position,
                description=task.description,
                assigned_agent=task.assigned_agent.value,
                status=task.status.value,
                result=truncate_text(task.result.content if task.result else None),
                error=task.error,
            )
        )
    db.add(record)
    await db.commit()
    return record


async def get_execution(db: AsyncSession, user_id: str, execution_id: str) -> Optional[models.CrewExecutionRecord]:
    result = await db.execute(
        select(models.CrewExecutionRecord)
        .options(selectinload(models.CrewExecutionRecord.tasks))
        .where(
            models.CrewExecutionRecord.id == execution_id,
            models.CrewExecutionRecord.user_id == user_id,
        )
    )
    return result.scalars().first()


async def list_executions(
    db: AsyncSession,
    user_id: str,
    conversation_id: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[models.CrewExecutionRecord]:
    """Most recent executions first."""
    stmt = (
        select(models.CrewExecutionRecord)
        .options(selectinload(models.CrewExecutionRecord.tasks))
        .where(models.CrewExecutionRecord.user_id == user_id)
        .order_by(models.CrewExecutionRecord.started_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if conversation_id:
        stmt = stmt.where(models.CrewExecutionRecord.conversation_id == conversation_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())
