"""Memory management endpoints, scoped to the calling user."""

from typing import List, Literal, Optional

import schemas
from dependencies import get_memory_manager
from domain.enums import AgentRole, MemoryType
from domain.memory import MemoryCreate, MemorySearchOptions
from exceptions import MemoryNotFoundError
from fastapi import APIRouter, Depends, HTTPException, Query
from services import MemoryManager

router = APIRouter()


@router.get("", response_model=schemas.MemoryList)
async def list_memories(
    type: Optional[List[MemoryType]] = Query(None),
    source: Optional[List[AgentRole]] = Query(None),
    min_relevance: Optional[float] = Query(None, ge=0.0, le=1.0),
    q: Optional[str] = None,
    order_by: Literal["relevance", "recent"] = "relevance",
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    stats: bool = False,
    manager: MemoryManager = Depends(get_memory_manager),
):
    """Page through memories with structured filters; q is a substring match."""
    options = MemorySearchOptions(
        types=type,
        sources=source,
        min_relevance=min_relevance,
        query=q,
        order_by=order_by,
        limit=limit,
        offset=offset,
    )
    items, total = await manager.list_memories(options)
    return schemas.MemoryList(
        items=[schemas.Memory.from_item(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
        stats=await manager.stats() if stats else None,
    )


# Must stay above /{memory_id}
@router.get("/search", response_model=schemas.MemorySearchResults)
async def search_memories(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    min_similarity: Optional[float] = Query(None, ge=-1.0, le=1.0),
    manager: MemoryManager = Depends(get_memory_manager),
):
    """Semantic search over the caller's embedded memories."""
    results = await manager.semantic_search(q, limit=limit, min_similarity=min_similarity)
    return schemas.MemorySearchResults(query=q, items=[schemas.ScoredMemoryOut.from_scored(r) for r in results])


@router.post("/consolidate", response_model=schemas.ConsolidationResponse)
async def consolidate_memories(manager: MemoryManager = Depends(get_memory_manager)):
    result = await manager.consolidate()
    return schemas.ConsolidationResponse(merged=result.merged, removed=result.removed)


@router.post("/decay", response_model=schemas.DecayResponse)
async def decay_memories(
    request: Optional[schemas.DecayRequest] = None,
    manager: MemoryManager = Depends(get_memory_manager),
):
    """Decay relevance of items older than the threshold."""
    request = request or schemas.DecayRequest()
    decayed = await manager.apply_decay(request.days_threshold, request.decay_factor)
    return schemas.DecayResponse(decayed=decayed)


@router.get("/{memory_id}", response_model=schemas.Memory)
async def get_memory(memory_id: str, manager: MemoryManager = Depends(get_memory_manager)):
    item = await manager.get(memory_id)
    if item is None:
        raise MemoryNotFoundError(memory_id)
    return schemas.Memory.from_item(item)


@router.post("", response_model=schemas.Memory, status_code=201)
async def create_memory(request: schemas.MemoryCreateRequest, manager: MemoryManager = Depends(get_memory_manager)):
    """Store a memory item, embedding it unless generate_embedding is false."""
    item = await manager.store(
        MemoryCreate(**request.model_dump(exclude={"generate_embedding"})),
        generate_embedding=request.generate_embedding,
    )
    if item is None:
        raise HTTPException(status_code=500, detail="Failed to store memory")
    return schemas.Memory.from_item(item)


@router.post("/{memory_id}/relevance", response_model=schemas.RelevanceResponse)
async def update_relevance(
    memory_id: str,
    request: schemas.RelevanceUpdate,
    manager: MemoryManager = Depends(get_memory_manager),
):
    """Shift an item's relevance by delta; the result is clamped to [0, 1]."""
    relevance = await manager.update_relevance(memory_id, request.delta)
    if relevance is None:
        raise MemoryNotFoundError(memory_id)
    return schemas.RelevanceResponse(id=memory_id, relevance=relevance)


@router.delete("/{memory_id}", response_model=schemas.DeleteResponse)
async def delete_memory(memory_id: str, manager: MemoryManager = Depends(get_memory_manager)):
    if not await manager.delete(memory_id):
        raise MemoryNotFoundError(memory_id)
    return schemas.DeleteResponse(deleted=1)


@router.delete("", response_model=schemas.DeleteResponse)
async def clear_memories(
    type: Optional[MemoryType] = None,
    manager: MemoryManager = Depends(get_memory_manager),
):
    """Delete all of the caller's memories, or only those of one type."""
    return schemas.DeleteResponse(deleted=await manager.clear_all(type))
