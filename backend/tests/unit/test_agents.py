"""
Unit tests for the agent execution contract and the specialists.
"""

import asyncio
from datetime import datetime

import pytest
from agents.base import DEFAULT_TOOL_PREAMBLE, BaseAgent
from agents.registry import create_agent, get_registered_agents, register_agent
from agents.specialists import DataAgent, GeneralAgent, ResearchAgent, SalesAgent, format_rows
from config.agents import get_agent_config
from conftest import FakeCompletionService, make_context, make_tool
from domain.contexts import AgentMessage, ToolCall
from domain.enums import AgentEventType, AgentRole, MemoryType, MessageRole
from domain.memory import AgentMemory, MemoryItem
from domain.responses import TokenUsage
from exceptions import AgentNotRegisteredError
from llm.completion import CompletionResult


def memory_item(memory_id, content):
    now = datetime.utcnow()
    return MemoryItem(
        id=memory_id,
        type=MemoryType.FACT,
        content=content,
        source=AgentRole.GENERAL,
        relevance=0.5,
        created_at=now,
        updated_at=now,
    )


def tool_call(name, call_id="call-1", **arguments):
    return CompletionResult(content="", tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments)])


class TestSingleCall:
    """Tests for queries answered without tools."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_answer_without_tools(self):
        """One completion call; tool schemas are omitted when no tools apply."""
        completion = FakeCompletionService(
            [CompletionResult(content="Hi!", usage=TokenUsage(prompt_tokens=10, completion_tokens=3))]
        )
        agent = create_agent(AgentRole.GENERAL, completion)

        response = await agent.process("hello", make_context())

        assert response.content == "Hi!"
        assert response.agent_id == "general-agent"
        assert response.agent_role == AgentRole.GENERAL
        assert response.tools_used == []
        assert response.metadata.tokens.total_tokens == 13
        assert response.metadata.model == "gpt-4o-mini"
        assert response.metadata.latency is not None
        assert len(completion.calls) == 1
        assert completion.calls[0]["tools"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_messages_are_system_history_query(self):
        """The conversation is system prompt, then history, then the query."""
        completion = FakeCompletionService()
        agent = create_agent(AgentRole.GENERAL, completion)
        history = [AgentMessage.user("first"), AgentMessage.assistant("reply")]

        await agent.process("second", make_context(), history)

        messages = completion.calls[0]["messages"]
        assert [m.role for m in messages] == [
            MessageRole.SYSTEM,
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.USER,
        ]
        assert messages[-1].content == "second"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_completion_failure_propagates(self):
        """Completion errors are re-raised after an agent_error event."""
        events = []
        completion = FakeCompletionService([RuntimeError("provider down")])
        agent = create_agent(AgentRole.GENERAL, completion, event_handler=events.append)

        with pytest.raises(RuntimeError):
            await agent.process("hello", make_context())

        assert [e.type for e in events] == [AgentEventType.AGENT_STARTED, AgentEventType.AGENT_ERROR]
        assert events[-1].data["error"] == "provider down"


class TestToolRound:
    """Tests for the single tool round and follow-up call."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tool_results_fed_back_once(self):
        """Requested tools run, their summary is sent back, and the follow-up has no tools."""
        deals = make_tool("hubspot_list_deals", "HUBSPOT", result=[{"id": 1, "stage": "open"}])
        completion = FakeCompletionService(
            [
                CompletionResult(
                    content="",
                    tool_calls=[ToolCall(id="c1", name="hubspot_list_deals", arguments={"stage": "open"})],
                    usage=TokenUsage(prompt_tokens=20, completion_tokens=5),
                ),
                CompletionResult(content="You have 1 open deal.", usage=TokenUsage(prompt_tokens=30, completion_tokens=6)),
            ]
        )
        agent = create_agent(AgentRole.SALES, completion)

        response = await agent.process("list my deals", make_context(tools=[deals]))

        assert response.content == "You have 1 open deal."
        assert response.tools_used == ["hubspot_list_deals"]
        assert response.metadata.tokens == TokenUsage(prompt_tokens=50, completion_tokens=11)
        assert deals.calls == [{"stage": "open"}]

        first, second = completion.calls
        assert first["tools"][0]["function"]["name"] == "hubspot_list_deals"
        assert second["tools"] is None

        assistant, summary = second["messages"][-2:]
        assert assistant.role == MessageRole.ASSISTANT
        assert assistant.content == DEFAULT_TOOL_PREAMBLE
        assert assistant.tool_calls[0].name == "hubspot_list_deals"
        assert summary.role == MessageRole.TOOL
        assert summary.content == 'hubspot_list_deals: [{"id": 1, "stage": "open"}]'

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tool_failures_become_error_entries(self):
        """Raising tools, error dicts and unknown tools never abort the agent."""
        broken = make_tool("hubspot_broken", "HUBSPOT", result=ValueError("boom"))
        refused = make_tool("hubspot_refused", "HUBSPOT", result={"error": "quota exceeded"})
        completion = FakeCompletionService(
            [
                CompletionResult(
                    content="Checking.",
                    tool_calls=[
                        ToolCall(id="c1", name="hubspot_broken"),
                        ToolCall(id="c2", name="hubspot_refused"),
                        ToolCall(id="c3", name="made_up_tool"),
                    ],
                ),
                "Sorry, the CRM is unavailable.",
            ]
        )
        agent = create_agent(AgentRole.SALES, completion)

        response = await agent.process("list my deals", make_context(tools=[broken, refused]))

        assert response.content == "Sorry, the CRM is unavailable."
        assert response.tools_used == ["hubspot_broken", "hubspot_refused"]
        assistant, summary = completion.calls[1]["messages"][-2:]
        assert assistant.content == "Checking."
        assert summary.content == (
            "hubspot_broken: Error - boom\n\n"
            "hubspot_refused: Error - quota exceeded\n\n"
            "made_up_tool: Error - Tool not available"
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tool_timeout(self):
        """A tool exceeding the timeout is reported as timed out."""

        async def slow(arguments):
            await asyncio.sleep(1)

        tool = make_tool("hubspot_slow", "HUBSPOT")
        tool.execute = slow
        completion = FakeCompletionService([tool_call("hubspot_slow"), "done"])
        agent = create_agent(AgentRole.SALES, completion, tool_timeout=0.01)

        await agent.process("deals", make_context(tools=[tool]))

        summary = completion.calls[1]["messages"][-1]
        assert summary.content == "hubspot_slow: Error - Timed out after 0.01s"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tool_events(self):
        """Tool calls and results are announced between started and completed."""
        events = []
        tool = make_tool("hubspot_list_deals", "HUBSPOT", result=[])
        completion = FakeCompletionService([tool_call("hubspot_list_deals"), "none"])
        agent = create_agent(AgentRole.SALES, completion, event_handler=events.append)

        await agent.process("deals", make_context(tools=[tool]))

        assert [e.type for e in events] == [
            AgentEventType.AGENT_STARTED,
            AgentEventType.TOOL_CALLED,
            AgentEventType.TOOL_RESULT,
            AgentEventType.AGENT_COMPLETED,
        ]
        assert all(e.agent_id == "sales-agent" for e in events)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_event_handler_is_ignored(self):
        """A handler that raises does not affect the answer."""

        def handler(event):
            raise RuntimeError("listener bug")

        agent = create_agent(AgentRole.GENERAL, FakeCompletionService(["fine"]), event_handler=handler)

        response = await agent.process("hello", make_context())

        assert response.content == "fine"


class TestToolFiltering:
    """Tests for tool category filtering and eligibility."""

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Only tools whose toolkit matches a category are kept."""
        agent = create_agent(AgentRole.SALES, FakeCompletionService())
        crm = make_tool("hubspot_list_deals", "HUBSPOT")
        repo = make_tool("github_list_prs", "GITHUB")

        assert agent.filter_tools([crm, repo]) == [crm]

    @pytest.mark.unit
    def test_no_categories_keeps_all(self):
        """Agents without categories see every tool."""
        agent = create_agent(AgentRole.GENERAL, FakeCompletionService())
        tools = [make_tool("a", "HUBSPOT"), make_tool("b", "GITHUB")]

        assert agent.filter_tools(tools) == tools

    @pytest.mark.unit
    def test_can_handle(self):
        """Patterns or connected toolkits make a specialist eligible."""
        sales = create_agent(AgentRole.SALES, FakeCompletionService())

        assert sales.can_handle("update the deal", make_context()) is True
        assert sales.can_handle("write a poem", make_context()) is False
        assert sales.can_handle("write a poem", make_context(tools=[make_tool("x", "HUBSPOT")])) is True

    @pytest.mark.unit
    def test_general_handles_everything(self):
        """Agents without patterns or toolkits accept any query."""
        general = create_agent(AgentRole.GENERAL, FakeCompletionService())

        assert general.can_handle("anything at all", make_context()) is True

    @pytest.mark.unit
    def test_required_capabilities(self):
        """Every required capability must be connected."""
        config = get_agent_config(AgentRole.SALES)
        config.required_capabilities = ["HUBSPOT"]
        sales = SalesAgent(config, FakeCompletionService())

        assert sales.can_handle("update the deal", make_context()) is False
        assert sales.can_handle("update the deal", make_context(tools=[make_tool("x", "HUBSPOT")])) is True

    @pytest.mark.unit
    def test_research_ignores_tools(self):
        """Research eligibility depends on the query only."""
        research = create_agent(AgentRole.RESEARCH, FakeCompletionService())

        assert research.can_handle("research our competitors", make_context()) is True
        assert research.can_handle("write a poem", make_context(tools=[make_tool("x", "WEB_SEARCH")])) is False


class TestSystemPrompt:
    """Tests for system prompt assembly."""

    @pytest.mark.unit
    def test_section_order(self):
        """Base prompt, domain context, tools, recent context, then knowledge."""
        agent = create_agent(AgentRole.SALES, FakeCompletionService())
        tools = [make_tool("hubspot_list_deals", "HUBSPOT", description="List deals")]
        memory = AgentMemory(
            short_term=[memory_item("m1", "Prefers weekly reports")],
            long_term=[memory_item("m1", "Prefers weekly reports"), memory_item("m2", "Works at Acme")],
        )

        prompt = agent.build_system_prompt(tools, memory)

        assert prompt.startswith(agent.config.system_prompt)
        assert "You have access to 1 CRM tools:\n- hubspot_list_deals: List deals" in prompt
        assert "## Available Tools\n- **hubspot_list_deals**: List deals" in prompt
        assert "## Recent Context\n- Prefers weekly reports" in prompt
        assert "## Relevant Knowledge\n- Works at Acme" in prompt
        assert prompt.count("Prefers weekly reports") == 1
        positions = [
            prompt.index("## Sales Context"),
            prompt.index("## Available Tools"),
            prompt.index("## Recent Context"),
            prompt.index("## Relevant Knowledge"),
        ]
        assert positions == sorted(positions)

    @pytest.mark.unit
    def test_memory_excerpts_capped(self):
        """At most five recent items are shown."""
        agent = create_agent(AgentRole.GENERAL, FakeCompletionService())
        memory = AgentMemory(short_term=[memory_item(f"m{i}", f"note {i}") for i in range(8)])

        prompt = agent.build_system_prompt([], memory)

        assert "note 4" in prompt
        assert "note 5" not in prompt
        assert "## Relevant Knowledge" not in prompt

    @pytest.mark.unit
    def test_no_tools_no_memory(self):
        """Without tools or memory the base prompt is used as-is."""
        agent = create_agent(AgentRole.GENERAL, FakeCompletionService())

        assert agent.build_system_prompt([], None) == agent.config.system_prompt


class TestResearchAgent:
    """Tests for research-specific behavior."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sources_and_synthesis_instruction(self):
        """URLs and searches become sources; the follow-up asks for a synthesis."""
        search = make_tool("web_search", "WEB_SEARCH", result=[{"title": "A"}])
        fetch = make_tool("web_fetch", "WEB", result="page text")
        completion = FakeCompletionService(
            [
                CompletionResult(
                    content="",
                    tool_calls=[
                        ToolCall(id="c1", name="web_search", arguments={"query": "ai agents"}),
                        ToolCall(id="c2", name="web_fetch", arguments={"url": "https://example.com"}),
                    ],
                ),
                "Findings...",
            ]
        )
        agent = create_agent(AgentRole.RESEARCH, completion)
        assert isinstance(agent, ResearchAgent)

        response = await agent.process("research ai agents", make_context(tools=[search, fetch]))

        assert response.metadata.sources == ["Search: ai agents", "https://example.com"]
        last = completion.calls[1]["messages"][-1]
        assert last.role == MessageRole.USER
        assert last.content == ResearchAgent.follow_up_instruction

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_tools_add_no_sources(self):
        """Only successful calls contribute sources."""
        search = make_tool("web_search", "WEB_SEARCH", result={"error": "rate limited"})
        completion = FakeCompletionService([tool_call("web_search", query="x"), "nothing found"])
        agent = create_agent(AgentRole.RESEARCH, completion)

        response = await agent.process("research x", make_context(tools=[search]))

        assert response.metadata.sources == []


class TestDataAgent:
    """Tests for tabular tool result formatting."""

    @pytest.mark.unit
    def test_table_preview(self):
        """Object lists become a markdown table of the first ten rows."""
        rows = [{"name": f"r{i}", "value": i} for i in range(12)]

        table = format_rows(rows)

        lines = table.split("\n")
        assert lines[0] == "| name | value |"
        assert lines[1] == "| --- | --- |"
        assert lines[2] == "| r0 | 0 |"
        assert len(lines) == 2 + 10 + 1
        assert lines[-1] == "... and 2 more rows"

    @pytest.mark.unit
    def test_scalar_list(self):
        """Plain lists are joined, with a total when truncated."""
        assert format_rows([1, 2, 3]) == "1, 2, 3"
        assert format_rows(list(range(15))).endswith(" ... (15 total)")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_formatted_tool_summary(self):
        """The data agent labels each table with the tool name."""
        sheet = make_tool("airtable_list", "AIRTABLE", result=[{"city": "Oslo"}])
        completion = FakeCompletionService([tool_call("airtable_list"), "One row."])
        agent = create_agent(AgentRole.DATA, completion)
        assert isinstance(agent, DataAgent)

        await agent.process("show the data", make_context(tools=[sheet]))

        summary = completion.calls[1]["messages"][-1]
        assert summary.content == "airtable_list:\n| city |\n| --- |\n| Oslo |"


class TestAgentRegistry:
    """Tests for the role -> constructor registry."""

    @pytest.mark.unit
    def test_defaults_registered(self):
        """Every specialist is registered; the router is not."""
        registered = get_registered_agents()
        assert AgentRole.GENERAL in registered
        assert AgentRole.ROUTER not in registered

    @pytest.mark.unit
    def test_unregistered_role(self):
        """Creating an unregistered role raises."""
        with pytest.raises(AgentNotRegisteredError):
            create_agent(AgentRole.ROUTER, FakeCompletionService())

    @pytest.mark.unit
    def test_register_replacement(self):
        """A registered constructor replaces the default."""

        class QuietGeneral(GeneralAgent):
            pass

        register_agent(AgentRole.GENERAL, QuietGeneral)
        try:
            assert isinstance(create_agent(AgentRole.GENERAL, FakeCompletionService()), QuietGeneral)
        finally:
            register_agent(AgentRole.GENERAL, GeneralAgent)

    @pytest.mark.unit
    def test_delegate_event(self):
        """delegate() announces the hand-over."""
        events = []
        agent = create_agent(AgentRole.SALES, FakeCompletionService(), event_handler=events.append)

        agent.delegate(AgentRole.DATA, reason="needs numbers")

        assert events[0].type == AgentEventType.DELEGATION
        assert events[0].data == {"from_role": "sales", "to_role": "data", "reason": "needs numbers"}
        assert isinstance(agent, BaseAgent)
