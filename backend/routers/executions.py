"""Crew execution history endpoints."""

from typing import List, Optional

import crud
import schemas
from database import get_db
from dependencies import get_current_user_id
from exceptions import ExecutionNotFoundError
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter()


@router.get("", response_model=List[schemas.CrewExecutionRecord])
async def list_executions(
    conversation_id: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Most recent executions first, optionally for one conversation."""
    return await crud.list_executions(db, user_id, conversation_id=conversation_id, limit=limit, offset=offset)


@router.get("/{execution_id}", response_model=schemas.CrewExecutionRecord)
async def get_execution(
    execution_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    execution = await crud.get_execution(db, user_id, execution_id)
    if execution is None:
        raise ExecutionNotFoundError(execution_id)
    return execution
