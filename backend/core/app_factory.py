"""
Application factory for creating FastAPI app instances.

This module provides functions for creating and configuring the FastAPI application
with all necessary middleware, routers, and dependencies.
"""

import asyncio
from contextlib import asynccontextmanager

from agents.router import RouterAgent
from background_scheduler import BackgroundScheduler
from database import async_session_maker, get_db, init_db
from exceptions import AgentCrewError
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from llm import LiteLLMCompletionService, LiteLLMEmbeddingService
from orchestration import LearningQueue
from services import CrewService, MemoryManagerRegistry, ToolRegistry

from core import get_logger, get_settings, setup_logging

logger = get_logger("AppFactory")


def build_services(settings, session_factory=async_session_maker, completion_service=None, embedding_service=None):
    """
    Build the long-lived service graph.

    Returns:
        Dict of the singletons stored on app.state
    """
    completion_service = completion_service or LiteLLMCompletionService(timeout=settings.completion_timeout_seconds)
    embedding_service = embedding_service or LiteLLMEmbeddingService(
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        max_chars=settings.embedding_max_chars,
    )

    memory_registry = MemoryManagerRegistry(
        session_factory,
        embedder=embedding_service,
        max_users=settings.memory_registry_max_users,
        idle_seconds=settings.memory_registry_idle_seconds,
        cache_ttl_seconds=settings.memory_cache_ttl_seconds,
    )
    learning_queue = LearningQueue(
        memory_registry, maxsize=settings.learning_queue_size, workers=settings.learning_workers
    )
    router_agent = RouterAgent(completion_service)
    tool_registry = ToolRegistry()
    crew_service = CrewService(
        router_agent,
        completion_service,
        tool_registry,
        memory_registry,
        learning_queue=learning_queue,
        session_factory=session_factory,
        default_crew=settings.default_crew,
        tool_timeout=settings.tool_timeout_seconds,
    )
    return {
        "completion_service": completion_service,
        "memory_registry": memory_registry,
        "learning_queue": learning_queue,
        "router_agent": router_agent,
        "tool_registry": tool_registry,
        "crew_service": crew_service,
    }


async def agent_crew_error_handler(request: Request, exc: AgentCrewError) -> JSONResponse:
    """Map orchestration-fatal and request errors to their status codes."""
    if exc.status_code >= 500:
        logger.error(f"❌ {type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    from fastapi.middleware.cors import CORSMiddleware
    from routers import agents, chat, executions, health, memories

    settings = get_settings()

    # Create lifespan context manager
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for application startup and shutdown."""
        # Startup
        setup_logging(settings.log_level)
        logger.info("🚀 Application startup...")

        # Validate configuration files
        from config.validation import log_config_validation

        log_config_validation()

        # Initialize database
        await init_db()

        # Create singleton instances and store in app state for dependency injection
        services = build_services(settings)
        for name, service in services.items():
            setattr(app.state, name, service)

        learning_queue = services["learning_queue"]
        learning_queue.start()

        background_scheduler = None
        if settings.enable_scheduler:
            background_scheduler = BackgroundScheduler(
                memory_registry=services["memory_registry"],
                get_db_session=get_db,
                consolidation_interval_minutes=settings.consolidation_interval_minutes,
                decay_interval_hours=settings.decay_interval_hours,
                decay_days_threshold=settings.decay_days_threshold,
                expired_cleanup_interval_minutes=settings.expired_cleanup_interval_minutes,
            )
            background_scheduler.start()
        else:
            logger.info("⏸️ Background scheduler disabled (ENABLE_SCHEDULER=false)")
        app.state.background_scheduler = background_scheduler

        logger.info("✅ Application startup complete")

        yield

        # Shutdown
        logger.info("🛑 Application shutdown...")
        if background_scheduler is not None:
            background_scheduler.stop()

        # Give queued learning jobs a few seconds before workers are cancelled
        try:
            await asyncio.wait_for(learning_queue.join(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("⚠️ Learning queue did not drain in time, discarding remaining jobs")
        await learning_queue.stop()
        logger.info("✅ Application shutdown complete")

    # Create app with lifespan
    app = FastAPI(title="Agent Crew API", lifespan=lifespan)
    app.add_exception_handler(AgentCrewError, agent_crew_error_handler)

    # CORS middleware
    allowed_origins = settings.get_cors_origins()
    if allowed_origins:
        logger.info(f"🔒 CORS allowed origins: {allowed_origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Register routers
    # memories.router declares /search before /{memory_id}
    app.include_router(chat.router, prefix="/api", tags=["Chat"])
    app.include_router(agents.router, prefix="/api", tags=["Agents"])
    app.include_router(memories.router, prefix="/api/memories", tags=["Memories"])
    app.include_router(executions.router, prefix="/api/executions", tags=["Executions"])
    app.include_router(health.router, tags=["Health"])

    return app
