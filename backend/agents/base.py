"""
Base agent implementing the execution contract every specialist follows.

process() is the only entry point callers use:
    1. Emit agent_started
    2. Filter the context's tools to the agent's categories
    3. Build messages (system prompt + history + query)
    4. execute(): one completion call, then at most one tool round and one
       follow-up completion without tools
    5. Stamp latency, emit agent_completed (or agent_error and re-raise)
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from domain.agent_config import AgentConfigData
from domain.contexts import AgentContext, AgentMessage, LoadedTool, ToolCall
from domain.enums import AgentEventType, AgentRole, MessageRole
from domain.events import AgentEvent, AgentEventHandler
from domain.memory import AgentMemory
from domain.responses import AgentResponse, ResponseMetadata, TokenUsage
from llm.completion import CompletionOptions, CompletionService

logger = logging.getLogger("Agent")

DEFAULT_TOOL_PREAMBLE = "I'll help you with that."
PROMPT_MEMORY_ITEMS = 5


@dataclass
class ToolResult:
    """Outcome of one tool call. Exactly one of result / error is meaningful."""

    call: ToolCall
    result: Any = None
    error: Optional[str] = None
    executed: bool = True

    @property
    def name(self) -> str:
        return self.call.name

    @property
    def ok(self) -> bool:
        return self.error is None


def _sum_usage(*usages: Optional[TokenUsage]) -> Optional[TokenUsage]:
    present = [u for u in usages if u is not None]
    if not present:
        return None
    total = present[0]
    for usage in present[1:]:
        total = total + usage
    return total


class BaseAgent:
    """
    Agent with the default execution contract.

    Specialists override the hooks (can_handle, format_tool_result,
    collect_sources, follow_up_instruction) rather than process().

    Args:
        config: Identity, prompt and model parameters
        completion_service: Chat completion backend
        event_handler: Optional receiver for lifecycle events
        tool_timeout: Seconds a single tool call may take
    """

    # Extra user turn appended before the follow-up completion, if any
    follow_up_instruction: Optional[str] = None

    def __init__(
        self,
        config: AgentConfigData,
        completion_service: CompletionService,
        event_handler: Optional[AgentEventHandler] = None,
        tool_timeout: float = 30.0,
    ):
        self.config = config
        self.completion_service = completion_service
        self.event_handler = event_handler
        self.tool_timeout = tool_timeout
        self._handle_patterns = [re.compile(p, re.IGNORECASE) for p in config.handle_patterns]

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def role(self) -> AgentRole:
        return self.config.role

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def display_label(self) -> str:
        return self.config.display_label

    def set_event_handler(self, handler: Optional[AgentEventHandler]) -> None:
        self.event_handler = handler

    def emit(self, event_type: AgentEventType, **data) -> None:
        event = AgentEvent(type=event_type, agent_id=self.id, data=data)
        logger.debug(f"[{self.id}] {event_type}")
        if self.event_handler is None:
            return
        try:
            self.event_handler(event)
        except Exception as e:
            logger.warning(f"⚠️ Event handler failed on {event_type} from {self.id}: {e}")

    # =========================================================================
    # Eligibility and tools
    # =========================================================================

    @staticmethod
    def _toolkit_matches(toolkit: str, keywords: Sequence[str]) -> bool:
        upper = toolkit.upper()
        return any(keyword.upper() in upper for keyword in keywords)

    def can_handle(self, query: str, context: AgentContext) -> bool:
        """
        Cheap eligibility check.

        Declared required capabilities must all be connected. Agents with
        handle patterns or toolkits accept a query when either matches; agents
        without them accept everything.
        """
        toolkits = [t.upper() for t in context.toolkits]
        if self.config.required_capabilities:
            if not all(cap.upper() in toolkits for cap in self.config.required_capabilities):
                return False

        if not self._handle_patterns and not self.config.handle_toolkits:
            return True

        has_tools = any(self._toolkit_matches(t, self.config.handle_toolkits) for t in toolkits)
        return has_tools or self.matches_query(query)

    def matches_query(self, query: str) -> bool:
        return any(p.search(query) for p in self._handle_patterns)

    def filter_tools(self, tools: Sequence[LoadedTool]) -> List[LoadedTool]:
        """Keep tools whose toolkit matches a declared category; no categories keeps all."""
        if not self.config.tool_categories:
            return list(tools)
        return [t for t in tools if self._toolkit_matches(t.toolkit, self.config.tool_categories)]

    # =========================================================================
    # Prompt building
    # =========================================================================

    def build_domain_context(self, tools: Sequence[LoadedTool]) -> str:
        template = self.config.domain_context
        if not template:
            return ""
        tool_list = "\n".join(f"- {t.name}: {t.description}" for t in tools)
        return template.replace("{tool_count}", str(len(tools))).replace("{tool_list}", tool_list)

    def build_system_prompt(self, tools: Sequence[LoadedTool], memory: Optional[AgentMemory] = None) -> str:
        """Base prompt, then domain context, then the tool catalog and memory excerpts."""
        prompt = self.config.system_prompt

        domain_context = self.build_domain_context(tools)
        if domain_context:
            prompt += "\n\n" + domain_context

        if tools:
            prompt += "\n\n## Available Tools\n"
            prompt += "\n".join(f"- **{t.name}**: {t.description}" for t in tools)

        if memory is not None and memory.short_term:
            recent = memory.short_term[:PROMPT_MEMORY_ITEMS]
            prompt += "\n\n## Recent Context\n"
            prompt += "\n".join(f"- {item.content}" for item in recent)

        if memory is not None and memory.long_term:
            shown = {item.id for item in memory.short_term[:PROMPT_MEMORY_ITEMS]}
            knowledge = [item for item in memory.long_term if item.id not in shown][:PROMPT_MEMORY_ITEMS]
            if knowledge:
                prompt += "\n\n## Relevant Knowledge\n"
                prompt += "\n".join(f"- {item.content}" for item in knowledge)

        return prompt

    def build_messages(
        self,
        query: str,
        context: AgentContext,
        history: Sequence[AgentMessage],
        tools: Sequence[LoadedTool],
    ) -> List[AgentMessage]:
        system = AgentMessage(
            role=MessageRole.SYSTEM,
            content=self.build_system_prompt(tools, context.memory),
            agent_id=self.id,
        )
        return [system, *history, AgentMessage.user(query)]

    # =========================================================================
    # Execution
    # =========================================================================

    async def process(
        self,
        query: str,
        context: AgentContext,
        history: Optional[Sequence[AgentMessage]] = None,
    ) -> AgentResponse:
        """
        Answer a query.

        Raises:
            Whatever execute() raised, after emitting agent_error
        """
        start = time.perf_counter()
        self.emit(AgentEventType.AGENT_STARTED, query=query)

        try:
            tools = self.filter_tools(context.tools)
            messages = self.build_messages(query, context, history or [], tools)
            response = await self.execute(messages, tools, context)
        except Exception as e:
            logger.error(f"❌ Agent {self.id} failed: {e}")
            self.emit(AgentEventType.AGENT_ERROR, error=str(e))
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        response = response.with_metadata(latency=latency_ms)
        self.emit(AgentEventType.AGENT_COMPLETED, content_length=len(response.content), tools_used=response.tools_used)
        logger.info(f"✅ {self.name} answered in {latency_ms:.0f}ms (tools: {len(response.tools_used)})")
        return response

    def completion_options(self) -> CompletionOptions:
        return CompletionOptions(
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def execute(
        self,
        messages: List[AgentMessage],
        tools: Sequence[LoadedTool],
        context: AgentContext,
    ) -> AgentResponse:
        """
        Call the model, run any requested tools, and re-call once with the results.

        Tool failures never abort the agent; they become error entries in the
        tool summary so the model can acknowledge them.
        """
        options = self.completion_options()
        schemas = [t.to_schema() for t in tools] or None
        first = await self.completion_service.complete(messages, options, schemas)

        if not first.tool_calls:
            return self.create_response(first.content, usage=first.usage)

        results = await self.run_tool_calls(first.tool_calls, tools)
        summary = "\n\n".join(self.format_tool_result(r) for r in results)

        follow_up = [
            *messages,
            AgentMessage(
                role=MessageRole.ASSISTANT,
                content=first.content or DEFAULT_TOOL_PREAMBLE,
                agent_id=self.id,
                tool_calls=first.tool_calls,
            ),
            AgentMessage(role=MessageRole.TOOL, content=summary),
        ]
        if self.follow_up_instruction:
            follow_up.append(AgentMessage.user(self.follow_up_instruction))

        final = await self.completion_service.complete(follow_up, options)

        sources: List[str] = []
        for result in results:
            if result.ok:
                for source in self.collect_sources(result):
                    if source not in sources:
                        sources.append(source)

        return self.create_response(
            final.content,
            tools_used=[r.name for r in results if r.executed],
            usage=_sum_usage(first.usage, final.usage),
            sources=sources,
        )

    async def run_tool_calls(self, calls: Sequence[ToolCall], tools: Sequence[LoadedTool]) -> List[ToolResult]:
        """Run requested tools one after another, each failure captured independently."""
        by_name: Dict[str, LoadedTool] = {t.name: t for t in tools}
        results = []
        for call in calls:
            tool = by_name.get(call.name)
            if tool is None:
                logger.warning(f"⚠️ {self.id} requested unknown tool {call.name}")
                results.append(ToolResult(call=call, error="Tool not available", executed=False))
                continue
            results.append(await self.execute_tool(tool, call))
        return results

    async def execute_tool(self, tool: LoadedTool, call: ToolCall) -> ToolResult:
        self.emit(AgentEventType.TOOL_CALLED, tool=tool.name, arguments=call.arguments)
        try:
            result = await asyncio.wait_for(tool.execute(call.arguments), timeout=self.tool_timeout)
        except asyncio.TimeoutError:
            error = f"Timed out after {self.tool_timeout:g}s"
            logger.warning(f"⚠️ Tool {tool.name} timed out for {self.id}")
            self.emit(AgentEventType.TOOL_RESULT, tool=tool.name, error=error)
            return ToolResult(call=call, error=error)
        except Exception as e:
            logger.warning(f"⚠️ Tool {tool.name} raised for {self.id}: {e}")
            self.emit(AgentEventType.TOOL_RESULT, tool=tool.name, error=str(e))
            return ToolResult(call=call, error=str(e))

        if isinstance(result, dict) and result.get("error"):
            self.emit(AgentEventType.TOOL_RESULT, tool=tool.name, error=str(result["error"]))
            return ToolResult(call=call, error=str(result["error"]))

        self.emit(AgentEventType.TOOL_RESULT, tool=tool.name, result=result)
        return ToolResult(call=call, result=result)

    # =========================================================================
    # Specialist hooks
    # =========================================================================

    def format_tool_result(self, result: ToolResult) -> str:
        if not result.ok:
            return f"{result.name}: Error - {result.error}"
        return f"{result.name}: {json.dumps(result.result, default=str)}"

    def collect_sources(self, result: ToolResult) -> List[str]:
        return []

    def delegate(self, target: AgentRole, reason: str) -> None:
        """Announce a hand-over; the crew performs the actual delegation."""
        self.emit(AgentEventType.DELEGATION, from_role=self.role.value, to_role=target.value, reason=reason)

    def create_response(
        self,
        content: str,
        tools_used: Optional[List[str]] = None,
        usage: Optional[TokenUsage] = None,
        sources: Optional[List[str]] = None,
    ) -> AgentResponse:
        return AgentResponse(
            content=content,
            agent_id=self.id,
            agent_role=self.role,
            tools_used=tools_used or [],
            metadata=ResponseMetadata(tokens=usage, model=self.config.model, sources=sources or []),
        )
