"""Liveness endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Report liveness plus memory-registry and learning-queue state."""
    state = request.app.state
    registry = getattr(state, "memory_registry", None)
    queue = getattr(state, "learning_queue", None)
    return {
        "status": "healthy",
        "memory": registry.stats() if registry is not None else None,
        "learning_queue_running": queue.running if queue is not None else False,
    }
