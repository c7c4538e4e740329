"""
Agent crew orchestration.

A crew routes a query, dispatches it to one agent or to a sequence of agents
under its configured workflow, and combines the results. Every process() call
owns its own CrewExecution record, so one crew can serve concurrent calls.
"""

import asyncio
import dataclasses
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from agents.base import BaseAgent
from agents.registry import create_agent
from agents.router import RouterAgent
from config.agents import get_all_agent_configs
from config.crews import get_crew_presets, get_crew_template, get_delegation_triggers
from domain.contexts import AgentContext, AgentMessage, RoutingContext
from domain.crew import CrewConfig, CrewExecution
from domain.enums import SPECIALIST_ROLES, AgentEventType, AgentRole, CrewWorkflow
from domain.events import AgentEvent, AgentEventHandler
from domain.responses import AgentResponse, RoutingDecision
from exceptions import AllAgentsFailedError, NoAgentsAvailableError
from llm.completion import CompletionService

from .combiner import CREW_AGENT_ID, combine_responses

logger = logging.getLogger("AgentCrew")

DEFAULT_CREW = "full"


def fill_template(template: str, **values: str) -> str:
    """Substitute {name} placeholders literally; agent output may contain braces."""
    for key, value in values.items():
        template = template.replace("{" + key + "}", value)
    return template


class AgentCrew:
    """
    Routes queries to its agents and runs the configured workflow.

    Args:
        config: Crew preset (name, agent roles, workflow)
        router: Router shared across crews
        completion_service: Backend for agents built from the registry
        agents: Prebuilt agents by role; built from the registry when omitted
        event_handler: Receives crew and agent events
        tool_timeout: Per tool call timeout handed to built agents
    """

    def __init__(
        self,
        config: CrewConfig,
        router: RouterAgent,
        completion_service: Optional[CompletionService] = None,
        agents: Optional[Dict[AgentRole, BaseAgent]] = None,
        event_handler: Optional[AgentEventHandler] = None,
        tool_timeout: float = 30.0,
    ):
        self.config = config
        self.router = router
        self.event_handler: Optional[AgentEventHandler] = None
        self.last_execution: Optional[CrewExecution] = None

        if agents is not None:
            self.agents: Dict[AgentRole, BaseAgent] = dict(agents)
        else:
            self.agents = {}
            for role in config.agents:
                if role == AgentRole.ROUTER:
                    continue
                self.agents[role] = create_agent(role, completion_service, tool_timeout=tool_timeout)

        if event_handler is not None:
            self.set_event_handler(event_handler)
        logger.info(f"👥 Crew '{config.name}' ready with {len(self.agents)} agents ({config.workflow})")

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def workflow(self) -> CrewWorkflow:
        return self.config.workflow

    @property
    def available_agents(self) -> List[AgentRole]:
        return list(self.agents.keys())

    def set_event_handler(self, handler: Optional[AgentEventHandler]) -> None:
        """Set the handler on the crew and every agent it owns; the shared router is left alone."""
        self.event_handler = handler
        for agent in self.agents.values():
            agent.set_event_handler(handler)

    def _emit(self, event_type: AgentEventType, **data) -> None:
        if self.event_handler is None:
            return
        try:
            self.event_handler(AgentEvent(type=event_type, agent_id=CREW_AGENT_ID, data=data))
        except Exception as e:
            logger.warning(f"⚠️ Event handler failed on crew {event_type}: {e}")

    def new_execution(self) -> CrewExecution:
        return CrewExecution(crew_name=self.config.name, workflow=self.config.workflow)

    # =========================================================================
    # Entry point
    # =========================================================================

    async def process(
        self,
        query: str,
        context: AgentContext,
        history: Optional[Sequence[AgentMessage]] = None,
        execution: Optional[CrewExecution] = None,
    ) -> AgentResponse:
        """
        Answer a query with the crew.

        Args:
            query: User query
            context: Per-request context shared by every agent call
            history: Prior conversation, oldest first
            execution: Record to fill in; a new one is created when omitted

        Raises:
            NoAgentsAvailableError: Neither the target nor the general agent exists
            AllAgentsFailedError: Every agent of a parallel set raised
            Exception: Any agent failure outside a parallel set
        """
        execution = execution or self.new_execution()
        context = dataclasses.replace(context, execution_id=execution.id)
        history = list(history or [])

        try:
            routing = await self.route(query, context, history)
            if routing.requires_multi_agent and routing.agent_sequence:
                response = await self.execute_multi_agent(query, routing.agent_sequence, context, history, execution)
            else:
                response = await self.execute_single_agent(query, routing.target_agent, context, history, execution)
            execution.complete(response)
            logger.info(
                f"🏁 Execution {execution.id} completed with {len(execution.tasks)} task(s) "
                f"in {execution.duration_ms:.0f}ms"
            )
            return response
        except Exception as e:
            execution.fail()
            logger.error(f"❌ Execution {execution.id} failed: {e}", exc_info=True)
            self._emit(AgentEventType.AGENT_ERROR, error=str(e), execution_id=execution.id)
            raise
        finally:
            self.last_execution = execution

    async def route(self, query: str, context: AgentContext, history: List[AgentMessage]) -> RoutingDecision:
        routing_context = RoutingContext(
            query=query,
            conversation_history=history,
            available_agents=self.available_agents,
            user_toolkits=context.toolkits,
        )
        routing = await self.router.route(query, routing_context)
        logger.info(f"🧭 Routed to {routing.target_agent} (confidence: {routing.confidence:.2f})")
        return routing

    # =========================================================================
    # Single agent
    # =========================================================================

    def _resolve(self, role: AgentRole) -> Tuple[AgentRole, BaseAgent]:
        """The agent for a role, else its configured fallback agent, else general."""
        agent = self.agents.get(role)
        if agent is not None:
            return role, agent
        config = get_all_agent_configs().get(role)
        for candidate in (config.fallback_agent if config else None, AgentRole.GENERAL):
            if candidate is not None and candidate in self.agents:
                logger.warning(f"⚠️ Agent {role} not in crew '{self.name}', falling back to {candidate}")
                return candidate, self.agents[candidate]
        raise NoAgentsAvailableError()

    async def _run_task(
        self,
        agent: BaseAgent,
        role: AgentRole,
        query: str,
        context: AgentContext,
        history: Sequence[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        """Run one agent as a tracked task; failures mark the task and propagate."""
        task = execution.add_task(query, role)
        task.start()
        try:
            response = await agent.process(query, context, history)
        except Exception as e:
            task.fail(str(e))
            raise
        task.complete(response)
        return response

    async def execute_single_agent(
        self,
        query: str,
        target: AgentRole,
        context: AgentContext,
        history: Sequence[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        role, agent = self._resolve(target)
        return await self._run_task(agent, role, query, context, history, execution)

    # =========================================================================
    # Multi agent
    # =========================================================================

    async def execute_multi_agent(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        workflow = self.config.workflow
        logger.info(f"👥 Running {workflow} workflow over {[r.value for r in sequence]}")
        if workflow == CrewWorkflow.PARALLEL:
            return await self.execute_parallel(query, sequence, context, history, execution)
        if workflow == CrewWorkflow.HIERARCHICAL:
            return await self.execute_hierarchical(query, sequence, context, history, execution)
        if workflow == CrewWorkflow.CONSENSUS:
            return await self.execute_consensus(query, sequence, context, history, execution)
        return await self.execute_sequential(query, sequence, context, history, execution)

    async def execute_sequential(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        """Each agent refines the previous agent's output; the last answer wins."""
        current_query = query
        current_history = list(history)
        responses: List[AgentResponse] = []
        template = get_crew_template("sequential_query")

        for role in sequence:
            agent = self.agents.get(role)
            if agent is None:
                logger.warning(f"⚠️ Skipping {role}: not in crew '{self.name}'")
                continue
            response = await self._run_task(agent, role, current_query, context, current_history, execution)
            responses.append(response)
            current_history.append(AgentMessage.assistant(response.content, agent_id=response.agent_id))
            current_query = fill_template(template, previous=response.content, query=query)

        return combine_responses(responses, CrewWorkflow.SEQUENTIAL)

    async def _gather_parallel(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> List[AgentResponse]:
        """
        Invoke every present agent concurrently on the same query and history.

        Returns successful responses in sequence order. Raises
        AllAgentsFailedError only when every invoked agent raised.
        """
        snapshot = list(history)
        invoked = []
        for role in sequence:
            agent = self.agents.get(role)
            if agent is None:
                logger.warning(f"⚠️ Skipping {role}: not in crew '{self.name}'")
                continue
            invoked.append((role, agent, execution.add_task(query, role)))

        async def run(agent: BaseAgent, task) -> Optional[AgentResponse]:
            task.start()
            try:
                response = await agent.process(query, context, snapshot)
            except Exception as e:
                task.fail(str(e))
                logger.warning(f"⚠️ Agent {agent.id} failed in parallel run: {e}")
                return None
            task.complete(response)
            return response

        results = await asyncio.gather(*(run(agent, task) for _, agent, task in invoked))
        responses = [r for r in results if r is not None]

        if invoked and not responses:
            raise AllAgentsFailedError(
                [role for role, _, _ in invoked],
                [task.error for _, _, task in invoked],
            )
        return responses

    async def execute_parallel(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        responses = await self._gather_parallel(query, sequence, context, history, execution)
        return combine_responses(responses, CrewWorkflow.PARALLEL)

    async def execute_consensus(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        """Surfaces every viewpoint; no voting or arbiter selects one."""
        responses = await self._gather_parallel(query, sequence, context, history, execution)
        return combine_responses(responses, CrewWorkflow.CONSENSUS)

    def should_delegate(self, response: AgentResponse) -> bool:
        content = response.content.lower()
        return any(trigger in content for trigger in get_delegation_triggers())

    async def execute_hierarchical(
        self,
        query: str,
        sequence: Sequence[AgentRole],
        context: AgentContext,
        history: List[AgentMessage],
        execution: CrewExecution,
    ) -> AgentResponse:
        """
        The first agent answers; the rest review it only when the answer asks
        for further expertise.
        """
        primary_role, primary_agent = self._resolve(sequence[0])
        primary = await self._run_task(primary_agent, primary_role, query, context, history, execution)

        if len(sequence) < 2 or not self.should_delegate(primary):
            return primary

        responses = [primary]
        enhancement_query = fill_template(get_crew_template("enhancement_query"), primary=primary.content, query=query)
        enhancement_history = [*history, AgentMessage.assistant(primary.content, agent_id=primary.agent_id)]

        for role in sequence[1:]:
            agent = self.agents.get(role)
            if agent is None or role == primary_role:
                continue
            primary_agent.delegate(role, reason="Primary response asked for further expertise")
            responses.append(
                await self._run_task(agent, role, enhancement_query, context, enhancement_history, execution)
            )

        return combine_responses(responses, CrewWorkflow.HIERARCHICAL)


def build_default_crew_config() -> CrewConfig:
    return CrewConfig(
        name=DEFAULT_CREW,
        description="All specialist agents available",
        agents=list(SPECIALIST_ROLES),
        workflow=CrewWorkflow.HIERARCHICAL,
    )


def create_crew(
    name: str,
    router: RouterAgent,
    completion_service: CompletionService,
    event_handler: Optional[AgentEventHandler] = None,
    tool_timeout: float = 30.0,
) -> AgentCrew:
    """Build a crew from a preset; unknown names fall back to the full crew."""
    presets = get_crew_presets()
    config = presets.get(name)
    if config is None:
        logger.warning(f"⚠️ Crew preset '{name}' not found, using '{DEFAULT_CREW}'")
        config = presets.get(DEFAULT_CREW) or build_default_crew_config()
    return AgentCrew(
        config,
        router,
        completion_service=completion_service,
        event_handler=event_handler,
        tool_timeout=tool_timeout,
    )
