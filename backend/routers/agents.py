"""Agent and crew catalog endpoints."""

from typing import List

import schemas
from config import get_all_agent_configs, get_crew_presets
from fastapi import APIRouter

router = APIRouter()


@router.get("/agents", response_model=List[schemas.AgentInfo])
async def list_agents():
    """List configured agents, router included."""
    return [
        schemas.AgentInfo(
            id=config.id,
            role=config.role,
            name=config.name,
            avatar=config.avatar,
            color=config.color,
            description=config.description,
        )
        for config in get_all_agent_configs().values()
    ]


@router.get("/crews", response_model=List[schemas.CrewInfo])
async def list_crews():
    """List crew presets."""
    return [
        schemas.CrewInfo(name=crew.name, description=crew.description, workflow=crew.workflow, agents=crew.agents)
        for crew in get_crew_presets().values()
    ]
