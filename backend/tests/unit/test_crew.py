"""
Unit tests for AgentCrew.

Tests routing dispatch, the four multi-agent workflows, execution bookkeeping
and failure handling.
"""

import asyncio
import json
from unittest.mock import patch

import pytest
from agents.registry import create_agent
from agents.router import RouterAgent
from config.crews import get_crew_template
from conftest import FakeCompletionService, make_context, make_tool
from domain.agent_config import AgentConfigData
from domain.crew import CrewConfig
from domain.enums import AgentEventType, AgentRole, CrewWorkflow, ExecutionStatus, MessageRole, TaskStatus
from exceptions import AllAgentsFailedError, NoAgentsAvailableError
from orchestration.crew import DEFAULT_CREW, AgentCrew, create_crew, fill_template

QUERY = "hello there"


def scripted_router(*decisions):
    return RouterAgent(FakeCompletionService([json.dumps(d) for d in decisions]))


def multi(sequence, target=None):
    return {
        "targetAgent": target or sequence[0],
        "confidence": 0.9,
        "reasoning": "spans several specialties",
        "requiresMultiAgent": True,
        "agentSequence": sequence,
    }


def build_crew(workflow, router, scripts, event_handler=None):
    """Crew whose agents each replay their own script."""
    completions = {role: FakeCompletionService(script) for role, script in scripts.items()}
    agents = {role: create_agent(role, completion) for role, completion in completions.items()}
    config = CrewConfig(name="test", description="", agents=list(agents), workflow=workflow)
    return AgentCrew(config, router, agents=agents, event_handler=event_handler), completions


class TestSingleAgentPath:
    """Tests for single-agent dispatch."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sales_pipeline_uses_only_sales(self):
        """Keyword fast path to sales; no other agent is invoked."""
        router = scripted_router()
        completion = FakeCompletionService(["Your pipeline has 3 deals."])
        crew = create_crew(DEFAULT_CREW, router, completion)
        crm = make_tool("crm_list_deals", "CRM", result=[])

        response = await crew.process("show me our sales pipeline", make_context(tools=[crm]))

        assert response.agent_role == AgentRole.SALES
        assert response.content == "Your pipeline has 3 deals."
        assert router.completion_service.calls == []
        assert len(completion.calls) == 1
        assert completion.calls[0]["messages"][0].agent_id == "sales-agent"

        execution = crew.last_execution
        assert execution.status == ExecutionStatus.COMPLETED
        assert [(t.assigned_agent, t.status) for t in execution.tasks] == [(AgentRole.SALES, TaskStatus.COMPLETED)]
        assert execution.final_response == response

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unavailable_target_without_general(self):
        """If neither the target nor general is in the crew, the call fails."""
        router = scripted_router({"targetAgent": "code", "confidence": 0.9})
        crew, _ = build_crew(CrewWorkflow.SEQUENTIAL, router, {AgentRole.SALES: []})

        with pytest.raises(NoAgentsAvailableError):
            await crew.process(QUERY, make_context())

        assert crew.last_execution.status == ExecutionStatus.FAILED
        assert crew.last_execution.end_time is not None

    @pytest.mark.unit
    def test_resolve_falls_back_to_general(self):
        """Missing roles resolve to the general agent."""
        crew, _ = build_crew(CrewWorkflow.SEQUENTIAL, scripted_router(), {AgentRole.GENERAL: []})

        role, agent = crew._resolve(AgentRole.SALES)

        assert role == AgentRole.GENERAL
        assert agent.role == AgentRole.GENERAL

    @pytest.mark.unit
    def test_resolve_uses_configured_fallback(self):
        """A missing role resolves to its configured fallback agent first."""
        crew, _ = build_crew(
            CrewWorkflow.SEQUENTIAL, scripted_router(), {AgentRole.DATA: [], AgentRole.GENERAL: []}
        )
        configs = {AgentRole.CODE: AgentConfigData.from_dict(AgentRole.CODE, {"fallback_agent": "data"})}

        with patch("orchestration.crew.get_all_agent_configs", return_value=configs):
            role, agent = crew._resolve(AgentRole.CODE)
            fallback_missing = crew._resolve(AgentRole.SALES)

        assert role == AgentRole.DATA
        assert agent.role == AgentRole.DATA
        assert fallback_missing[0] == AgentRole.GENERAL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_agent_failure_marks_execution(self):
        """A failing single agent fails its task and the execution, then propagates."""
        events = []
        router = scripted_router({"targetAgent": "general", "confidence": 0.9})
        crew, _ = build_crew(
            CrewWorkflow.SEQUENTIAL, router, {AgentRole.GENERAL: [RuntimeError("model down")]}, events.append
        )

        with pytest.raises(RuntimeError):
            await crew.process(QUERY, make_context())

        execution = crew.last_execution
        assert execution.status == ExecutionStatus.FAILED
        assert execution.tasks[0].status == TaskStatus.FAILED
        assert execution.tasks[0].error == "model down"
        crew_errors = [e for e in events if e.agent_id == "crew" and e.type == AgentEventType.AGENT_ERROR]
        assert crew_errors[0].data["execution_id"] == execution.id

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_calls_have_separate_executions(self):
        """Each process() call owns its execution record."""
        router = scripted_router(
            {"targetAgent": "general", "confidence": 0.9}, {"targetAgent": "general", "confidence": 0.9}
        )
        crew, _ = build_crew(CrewWorkflow.SEQUENTIAL, router, {AgentRole.GENERAL: ["a", "b"]})
        first, second = crew.new_execution(), crew.new_execution()

        await asyncio.gather(
            crew.process(QUERY, make_context(), execution=first),
            crew.process(QUERY, make_context(), execution=second),
        )

        assert first.id != second.id
        assert len(first.tasks) == 1 and len(second.tasks) == 1
        assert {first.final_response.content, second.final_response.content} == {"a", "b"}


class TestSequentialWorkflow:
    """Tests for chained execution."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_each_step_builds_on_the_previous(self):
        """Step N+1 receives step N's output; only the last answer is returned."""
        router = scripted_router(multi(["sales", "data"]))
        crew, completions = build_crew(
            CrewWorkflow.SEQUENTIAL, router, {AgentRole.SALES: ["S-out"], AgentRole.DATA: ["D-out"]}
        )

        response = await crew.process(QUERY, make_context())

        data_messages = completions[AgentRole.DATA].calls[0]["messages"]
        assert data_messages[-1].content == fill_template(
            get_crew_template("sequential_query"), previous="S-out", query=QUERY
        )
        assert data_messages[-2].role == MessageRole.ASSISTANT
        assert data_messages[-2].content == "S-out"

        assert response.content == "D-out"
        assert response.agent_id == "crew"
        assert response.delegated_to == [AgentRole.SALES, AgentRole.DATA]
        assert response.metadata.reasoning == "Combined 2 agent responses using sequential workflow"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_absent_agents_are_skipped(self):
        """Roles missing from the crew are skipped without a task."""
        router = scripted_router(multi(["sales", "code", "data"]))
        crew, _ = build_crew(CrewWorkflow.SEQUENTIAL, router, {AgentRole.SALES: ["S"], AgentRole.DATA: ["D"]})

        await crew.process(QUERY, make_context())

        assert [t.assigned_agent for t in crew.last_execution.tasks] == [AgentRole.SALES, AgentRole.DATA]

    @pytest.mark.unit
    def test_fill_template_keeps_braces(self):
        """Placeholders are replaced literally, other braces survive."""
        assert fill_template("{previous} / {query}", previous="{x}", query="q") == "{x} / q"


class TestParallelWorkflow:
    """Tests for concurrent execution and labeled merging."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_the_others(self):
        """Two of three agents answer; the failure is recorded on its task."""
        router = scripted_router(multi(["sales", "marketing", "data"]))
        crew, _ = build_crew(
            CrewWorkflow.PARALLEL,
            router,
            {
                AgentRole.SALES: ["Sales view"],
                AgentRole.MARKETING: [RuntimeError("rate limited")],
                AgentRole.DATA: ["Data view"],
            },
        )

        response = await crew.process(QUERY, make_context())

        assert response.content == "**💼 Sales Agent:**\nSales view\n\n---\n\n**📊 Data Agent:**\nData view"
        assert response.delegated_to == [AgentRole.SALES, AgentRole.DATA]
        statuses = {t.assigned_agent: (t.status, t.error) for t in crew.last_execution.tasks}
        assert statuses[AgentRole.MARKETING] == (TaskStatus.FAILED, "rate limited")
        assert statuses[AgentRole.SALES][0] == TaskStatus.COMPLETED
        assert crew.last_execution.status == ExecutionStatus.COMPLETED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sales_survives_marketing_failure(self):
        """With marketing failing, sales' answer is returned as-is."""
        router = scripted_router(multi(["sales", "marketing"]))
        crew, _ = build_crew(
            CrewWorkflow.PARALLEL,
            router,
            {AgentRole.SALES: ["Q3 pipeline is healthy."], AgentRole.MARKETING: [RuntimeError("boom")]},
        )

        response = await crew.process(QUERY, make_context())

        assert response.content == "Q3 pipeline is healthy."
        assert response.agent_role == AgentRole.SALES
        assert response.agent_id == "sales-agent"
        assert "Marketing" not in response.content

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_query_and_history_for_all(self):
        """Every parallel agent sees the original query and the same history."""
        router = scripted_router(multi(["sales", "data"]))
        crew, completions = build_crew(CrewWorkflow.PARALLEL, router, {AgentRole.SALES: ["S"], AgentRole.DATA: ["D"]})

        await crew.process(QUERY, make_context())

        for completion in completions.values():
            messages = completion.calls[0]["messages"]
            assert len(messages) == 2
            assert messages[-1].content == QUERY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_agents_failing(self):
        """When every invoked agent fails, the crew raises."""
        router = scripted_router(multi(["sales", "data"]))
        crew, _ = build_crew(
            CrewWorkflow.PARALLEL,
            router,
            {AgentRole.SALES: [RuntimeError("a")], AgentRole.DATA: [RuntimeError("b")]},
        )

        with pytest.raises(AllAgentsFailedError) as exc_info:
            await crew.process(QUERY, make_context())

        assert exc_info.value.roles == [AgentRole.SALES, AgentRole.DATA]
        assert crew.last_execution.status == ExecutionStatus.FAILED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_agents_present(self):
        """A sequence naming only absent agents yields the neutral answer."""
        router = scripted_router(multi(["code", "research"], target="general"))
        crew, _ = build_crew(CrewWorkflow.PARALLEL, router, {AgentRole.GENERAL: []})

        response = await crew.process(QUERY, make_context())

        assert response.content == "No responses generated."
        assert crew.last_execution.tasks == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_consensus_surfaces_every_view(self):
        """Consensus merges like parallel; nothing is voted out."""
        router = scripted_router(multi(["sales", "data"]))
        crew, _ = build_crew(CrewWorkflow.CONSENSUS, router, {AgentRole.SALES: ["yes"], AgentRole.DATA: ["no"]})

        response = await crew.process(QUERY, make_context())

        assert "**💼 Sales Agent:**\nyes" in response.content
        assert "**📊 Data Agent:**\nno" in response.content
        assert response.metadata.reasoning == "Combined 2 agent responses using consensus workflow"


class TestHierarchicalWorkflow:
    """Tests for primary answers and trigger-based delegation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_primary_answer_without_trigger(self):
        """Without a trigger phrase only the primary runs."""
        router = scripted_router(multi(["code", "data"]))
        crew, completions = build_crew(
            CrewWorkflow.HIERARCHICAL, router, {AgentRole.CODE: ["Here is the fix."], AgentRole.DATA: ["unused"]}
        )

        response = await crew.process(QUERY, make_context())

        assert response.content == "Here is the fix."
        assert response.agent_role == AgentRole.CODE
        assert completions[AgentRole.DATA].calls == []
        assert len(crew.last_execution.tasks) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_trigger_phrase_delegates(self):
        """A trigger phrase asks the remaining agents to enhance the answer."""
        events = []
        router = scripted_router(multi(["code", "data", "research"]))
        primary = "Rewrite the loop. You might want to check the query plan too."
        crew, completions = build_crew(
            CrewWorkflow.HIERARCHICAL,
            router,
            {
                AgentRole.CODE: [primary],
                AgentRole.DATA: ["The table lacks an index."],
                AgentRole.RESEARCH: ["Docs recommend batching."],
            },
            events.append,
        )

        response = await crew.process(QUERY, make_context())

        assert response.content == (
            primary
            + "\n\n**Additional Insights:**\n"
            + "\n*From Data Agent:* The table lacks an index."
            + "\n*From Research Agent:* Docs recommend batching."
        )
        enhancement = completions[AgentRole.DATA].calls[0]["messages"][-1].content
        assert enhancement == fill_template(get_crew_template("enhancement_query"), primary=primary, query=QUERY)

        delegations = [e for e in events if e.type == AgentEventType.DELEGATION]
        assert [e.data["to_role"] for e in delegations] == ["data", "research"]
        assert len(crew.last_execution.tasks) == 3


class TestCreateCrew:
    """Tests for building crews from presets."""

    @pytest.mark.unit
    def test_preset(self):
        """Presets set agents and workflow."""
        crew = create_crew("sales_team", scripted_router(), FakeCompletionService())

        assert crew.workflow == CrewWorkflow.SEQUENTIAL
        assert crew.available_agents == [AgentRole.SALES, AgentRole.DATA, AgentRole.GENERAL]

    @pytest.mark.unit
    def test_unknown_preset_falls_back_to_full(self):
        """Unknown names build the full crew."""
        crew = create_crew("nope", scripted_router(), FakeCompletionService())

        assert crew.name == DEFAULT_CREW
        assert AgentRole.ROUTER not in crew.available_agents
        assert len(crew.available_agents) == 6

    @pytest.mark.unit
    def test_event_handlers_stay_per_crew(self):
        """Crews sharing a router keep their handlers to their own agents."""
        router = scripted_router()
        sales_events, tech_events = [], []
        sales = create_crew("sales_team", router, FakeCompletionService())
        tech = create_crew("tech_team", router, FakeCompletionService())

        sales.set_event_handler(sales_events.append)
        tech.set_event_handler(tech_events.append)

        assert router.event_handler is None
        sales.agents[AgentRole.DATA].emit(AgentEventType.AGENT_STARTED)
        assert len(sales_events) == 1
        assert tech_events == []
