"""
Request-level crew entry point.

Assembles the AgentContext (tools + memory), runs a crew, records the
execution, and queues learning from the exchange. Only orchestration-fatal
errors reach the caller; tool loading, memory, bookkeeping and learning are
best-effort.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import crud
from agents.router import RouterAgent
from domain.contexts import AgentContext, AgentMessage, LoadedTool
from domain.crew import CrewExecution
from domain.memory import AgentMemory
from domain.responses import AgentResponse
from llm.completion import CompletionService
from orchestration.crew import DEFAULT_CREW, AgentCrew, create_crew
from orchestration.learning import LearningJob, LearningQueue
from sqlalchemy.ext.asyncio import AsyncSession

from .memory_registry import MemoryManagerRegistry
from .tool_provider import ToolProvider

logger = logging.getLogger("CrewService")


@dataclass
class CrewRunResult:
    response: AgentResponse
    execution: CrewExecution


class CrewService:
    """
    Owns the crews, the router and the collaborators they need per request.

    Args:
        router: Shared router
        completion_service: Completion backend for every agent
        tool_provider: Loads each user's tools
        memory_registry: Per-user memory managers
        learning_queue: Background queue for post-response learning
        session_factory: Session factory for execution bookkeeping (optional)
        default_crew: Preset used when a request names none
        tool_timeout: Per tool call timeout
    """

    def __init__(
        self,
        router: RouterAgent,
        completion_service: CompletionService,
        tool_provider: ToolProvider,
        memory_registry: MemoryManagerRegistry,
        learning_queue: Optional[LearningQueue] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        default_crew: str = DEFAULT_CREW,
        tool_timeout: float = 30.0,
    ):
        self.router = router
        self.completion_service = completion_service
        self.tool_provider = tool_provider
        self.memory_registry = memory_registry
        self.learning_queue = learning_queue
        self.session_factory = session_factory
        self.default_crew = default_crew
        self.tool_timeout = tool_timeout
        self._crews: Dict[str, AgentCrew] = {}

    def get_crew(self, name: Optional[str] = None) -> AgentCrew:
        """Crews are built once per preset name and reused across requests."""
        name = name or self.default_crew
        crew = self._crews.get(name)
        if crew is None:
            crew = create_crew(name, self.router, self.completion_service, tool_timeout=self.tool_timeout)
            self._crews[name] = crew
        return crew

    async def load_tools(self, user_id: str) -> List[LoadedTool]:
        try:
            return await self.tool_provider.load_tools(user_id)
        except Exception as e:
            logger.warning(f"⚠️ Could not load tools for user {user_id}, continuing without: {e}")
            return []

    async def build_memory(self, user_id: str, query: Optional[str] = None) -> Optional[AgentMemory]:
        try:
            return await self.memory_registry.build_agent_memory(user_id, query)
        except Exception as e:
            logger.warning(f"⚠️ Memory unavailable for user {user_id}: {e}")
            return None

    async def record_execution(self, execution: CrewExecution, user_id: str, conversation_id: str) -> None:
        if self.session_factory is None:
            return
        try:
            async with self.session_factory() as db:
                await crud.save_execution(db, execution, user_id, conversation_id)
        except Exception as e:
            logger.error(f"❌ Failed to record execution {execution.id}: {e}")

    def queue_learning(self, user_id: str, conversation_id: str, query: str, response: AgentResponse) -> bool:
        if self.learning_queue is None or not response.content:
            return False
        return self.learning_queue.submit(
            LearningJob(
                user_id=user_id,
                conversation_id=conversation_id,
                messages=[AgentMessage.user(query), AgentMessage.assistant(response.content, agent_id=response.agent_id)],
                agent_role=response.agent_role,
            )
        )

    async def process(
        self,
        query: str,
        user_id: str,
        conversation_id: str,
        history: Optional[Sequence[AgentMessage]] = None,
        crew_name: Optional[str] = None,
        use_memory: bool = True,
        learn: bool = True,
    ) -> CrewRunResult:
        """
        Answer a user query with a crew.

        Raises:
            AgentCrewError: Orchestration-fatal failures from the crew
        """
        crew = self.get_crew(crew_name)
        tools = await self.load_tools(user_id)
        memory = await self.build_memory(user_id, query) if use_memory else None

        context = AgentContext(
            user_id=user_id,
            conversation_id=conversation_id,
            tools=tuple(tools),
            memory=memory,
        )
        execution = crew.new_execution()
        try:
            response = await crew.process(query, context, history, execution=execution)
        finally:
            await self.record_execution(execution, user_id, conversation_id)

        if learn:
            self.queue_learning(user_id, conversation_id, query, response)
        return CrewRunResult(response=response, execution=execution)
