"""Chat and routing endpoints."""

import uuid

import schemas
from agents.router import RouterAgent
from dependencies import get_crew_service, get_current_user_id, get_router_agent
from domain.contexts import AgentMessage
from fastapi import APIRouter, Depends
from services import CrewService

router = APIRouter()


def _to_agent_messages(history):
    return [AgentMessage(role=m.role, content=m.content, agent_id=m.agent_id) for m in history]


@router.post("/chat", response_model=schemas.ChatResponse)
async def chat(
    request: schemas.ChatRequest,
    user_id: str = Depends(get_current_user_id),
    crew_service: CrewService = Depends(get_crew_service),
):
    """Answer a query with a crew, using the caller's tools and memory."""
    conversation_id = request.conversation_id or f"conv-{uuid.uuid4().hex[:12]}"
    result = await crew_service.process(
        request.query,
        user_id=user_id,
        conversation_id=conversation_id,
        history=_to_agent_messages(request.history),
        crew_name=request.crew,
        use_memory=request.use_memory,
        learn=request.learn,
    )
    return schemas.ChatResponse.build(result.response, conversation_id, result.execution)


@router.post("/route", response_model=schemas.RouteResponse)
async def route(
    request: schemas.RouteRequest,
    user_id: str = Depends(get_current_user_id),
    router_agent: RouterAgent = Depends(get_router_agent),
):
    """Show where a query would be routed, without running any agent."""
    decision = await router_agent.route_query(
        request.query,
        history=_to_agent_messages(request.history),
        user_toolkits=request.toolkits,
    )
    return schemas.RouteResponse(**decision.model_dump())
