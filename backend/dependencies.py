"""Shared dependencies for FastAPI endpoints."""

from agents.router import RouterAgent
from core import get_settings
from fastapi import Depends, HTTPException, Request
from services import CrewService, MemoryManager, MemoryManagerRegistry


def get_current_user_id(request: Request) -> str:
    """
    Return the calling user's id from the identity header.

    Authentication happens upstream; this service trusts the header.
    """
    header = get_settings().user_id_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return user_id


def get_crew_service(request: Request) -> CrewService:
    """
    Dependency to get the crew service instance from app state.

    The instance is created during application startup in the lifespan context.
    """
    return request.app.state.crew_service


def get_memory_registry(request: Request) -> MemoryManagerRegistry:
    """
    Dependency to get the per-user memory registry from app state.

    The instance is created during application startup in the lifespan context.
    """
    return request.app.state.memory_registry


def get_router_agent(request: Request) -> RouterAgent:
    return request.app.state.router_agent


def get_memory_manager(
    user_id: str = Depends(get_current_user_id),
    registry: MemoryManagerRegistry = Depends(get_memory_registry),
) -> MemoryManager:
    """The calling user's memory manager."""
    return registry.get(user_id)
