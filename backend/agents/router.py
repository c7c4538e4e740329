"""
Query router.

Routing is two-phase and cost-ordered: a keyword table first (no model call),
then LLM classification. Routing never raises; every failure degrades to the
general agent with low confidence.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from config.agents import get_agent_config, get_all_agent_configs
from config.routing import get_fast_path_settings, get_keyword_routes, get_llm_routing_settings, get_role_toolkits
from domain.agent_config import AgentConfigData
from domain.contexts import AgentContext, AgentMessage, LoadedTool, RoutingContext
from domain.enums import SPECIALIST_ROLES, AgentRole
from domain.responses import AgentResponse, RoutingDecision
from llm.completion import CompletionOptions, CompletionService

from .base import BaseAgent

logger = logging.getLogger("Router")

UNAVAILABLE_SUFFIX = " (original target unavailable, falling back to general)"


def keyword_match(query: str) -> AgentRole:
    """First role in the keyword table whose pattern matches, else general."""
    for route in get_keyword_routes():
        if route.pattern.search(query):
            return route.role
    return AgentRole.GENERAL


def quick_route(query: str) -> AgentRole:
    """Keyword-only routing; never calls a model."""
    return keyword_match(query)


def has_tools_for_role(role: AgentRole, user_toolkits: Sequence[str]) -> bool:
    relevant = get_role_toolkits().get(role, [])
    return any(keyword in toolkit.upper() for toolkit in user_toolkits for keyword in relevant)


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} block in text, or None.

    Braces inside JSON strings are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def _coerce_confidence(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value == 0:
        return default
    return max(0.0, min(1.0, float(value)))


def _parse_sequence(value: Any) -> Optional[List[AgentRole]]:
    if not isinstance(value, list):
        return None
    roles = []
    for item in value:
        role = AgentRole.parse(item)
        if role is not None and role != AgentRole.ROUTER and role not in roles:
            roles.append(role)
    return roles or None


def parse_routing_response(text: str) -> RoutingDecision:
    """
    Parse the model's routing JSON defensively.

    Missing or zero confidence reads as the default; an unknown target is
    replaced by general at half confidence. Unparseable output yields general
    with the parse-failure confidence.
    """
    settings = get_llm_routing_settings()
    raw = extract_json_object(text or "")
    parsed: Optional[Dict[str, Any]] = None
    if raw is not None:
        try:
            loaded = json.loads(raw)
            parsed = loaded if isinstance(loaded, dict) else None
        except json.JSONDecodeError:
            parsed = None

    if parsed is None:
        logger.warning(f"⚠️ Could not parse routing response: {(text or '')[:200]!r}")
        return RoutingDecision(
            target_agent=AgentRole.GENERAL,
            confidence=settings["parse_failure_confidence"],
            reasoning="parse failure",
        )

    confidence = _coerce_confidence(parsed.get("confidence"), settings["default_confidence"])
    reasoning = str(parsed.get("reasoning") or "No reasoning provided")

    target = AgentRole.parse(parsed.get("targetAgent") or "general")
    if target is None or target == AgentRole.ROUTER:
        target = AgentRole.GENERAL
        confidence *= settings["unavailable_penalty"]
        reasoning += UNAVAILABLE_SUFFIX

    suggested = parsed.get("suggestedTools")
    return RoutingDecision(
        target_agent=target,
        confidence=confidence,
        reasoning=reasoning,
        requires_multi_agent=bool(parsed.get("requiresMultiAgent", False)),
        agent_sequence=_parse_sequence(parsed.get("agentSequence")),
        suggested_tools=[str(t) for t in suggested] if isinstance(suggested, list) else None,
    )


class RouterAgent(BaseAgent):
    """
    Classifies queries into a target agent or an ordered agent sequence.

    Args:
        completion_service: Backend for the LLM classification phase
        config: Router identity; defaults to the agents.yaml router entry
    """

    def __init__(
        self,
        completion_service: CompletionService,
        config: Optional[AgentConfigData] = None,
        **kwargs,
    ):
        super().__init__(config or get_agent_config(AgentRole.ROUTER), completion_service, **kwargs)

    async def route(self, query: str, context: RoutingContext) -> RoutingDecision:
        """
        Route a query. Never raises.

        A keyword decision above the authoritative threshold is returned as-is
        without a model call.
        """
        keyword_decision = self.keyword_route(query, context)
        fast_path = get_fast_path_settings()
        if keyword_decision is not None and keyword_decision.confidence > fast_path["authoritative_above"]:
            logger.info(
                f"🧭 Fast path: {keyword_decision.target_agent} ({keyword_decision.confidence:.2f})"
            )
            return keyword_decision

        try:
            decision = await self.llm_route(query, context)
        except Exception as e:
            logger.warning(f"⚠️ LLM routing failed, degrading: {e}")
            decision = keyword_decision or RoutingDecision(
                target_agent=AgentRole.GENERAL,
                confidence=get_llm_routing_settings()["parse_failure_confidence"],
                reasoning="Routing model unavailable, defaulting to general",
            )

        validated = self.validate_decision(decision, context)
        logger.info(
            f"🧭 LLM path: {validated.target_agent} ({validated.confidence:.2f})"
            f"{' multi-agent ' + str([r.value for r in validated.agent_sequence or []]) if validated.requires_multi_agent else ''}"
        )
        return validated

    async def route_query(
        self,
        query: str,
        history: Optional[List[AgentMessage]] = None,
        user_toolkits: Optional[List[str]] = None,
    ) -> RoutingDecision:
        """Route with every specialist available."""
        context = RoutingContext(
            query=query,
            conversation_history=list(history or []),
            available_agents=list(SPECIALIST_ROLES),
            user_toolkits=list(user_toolkits or []),
        )
        return await self.route(query, context)

    def keyword_route(self, query: str, context: RoutingContext) -> Optional[RoutingDecision]:
        """Keyword-table decision, or None when only general matched."""
        role = keyword_match(query)
        if role == AgentRole.GENERAL:
            return None
        fast_path = get_fast_path_settings()
        has_tools = has_tools_for_role(role, context.user_toolkits)
        return RoutingDecision(
            target_agent=role,
            confidence=fast_path["confidence_with_toolkit"] if has_tools else fast_path["confidence_without_toolkit"],
            reasoning=f"Query matches {role} keywords{' and user has relevant tools' if has_tools else ''}",
        )

    def build_routing_prompt(self, query: str, context: RoutingContext) -> str:
        settings = get_llm_routing_settings()
        prompt = f"## User Query\n{query}\n\n"

        if context.conversation_history:
            prompt += "## Recent Conversation\n"
            for message in context.conversation_history[-settings["history_turns"] :]:
                prompt += f"{message.role}: {message.content[: settings['history_chars']]}...\n"
            prompt += "\n"

        if context.user_toolkits:
            prompt += "## User's Connected Tools\n"
            prompt += ", ".join(context.user_toolkits) + "\n\n"

        configs = get_all_agent_configs()
        prompt += "## Available Agents\n"
        for role in context.available_agents:
            if role == AgentRole.ROUTER:
                continue
            config = configs.get(role)
            prompt += f"- {role}: {config.description if config else ''}\n"

        prompt += f"\n## Task\n{settings['task'].strip()}"
        return prompt

    async def llm_route(self, query: str, context: RoutingContext) -> RoutingDecision:
        settings = get_llm_routing_settings()
        messages = [
            AgentMessage.system(self.config.system_prompt),
            AgentMessage.user(self.build_routing_prompt(query, context)),
        ]
        options = CompletionOptions(
            model=self.config.model,
            temperature=settings["temperature"],
            max_tokens=settings["max_tokens"],
        )
        result = await self.completion_service.complete(messages, options)
        return parse_routing_response(result.content)

    def validate_decision(self, decision: RoutingDecision, context: RoutingContext) -> RoutingDecision:
        """Force unavailable targets to general at reduced confidence; boost for relevant toolkits."""
        settings = get_llm_routing_settings()
        if decision.target_agent not in context.available_agents:
            decision = decision.model_copy(
                update={
                    "target_agent": AgentRole.GENERAL,
                    "confidence": decision.confidence * settings["unavailable_penalty"],
                    "reasoning": decision.reasoning + UNAVAILABLE_SUFFIX,
                }
            )

        if has_tools_for_role(decision.target_agent, context.user_toolkits):
            decision = decision.model_copy(
                update={"confidence": min(1.0, decision.confidence + settings["toolkit_boost"])}
            )
        return decision

    async def execute(
        self,
        messages: List[AgentMessage],
        tools: Sequence[LoadedTool],
        context: AgentContext,
    ) -> AgentResponse:
        # The router classifies; it does not answer queries itself
        response = self.create_response(
            "I am the router agent. I analyze queries and route them to specialist agents."
        )
        return response.with_metadata(reasoning="Router agent does not process queries directly")
