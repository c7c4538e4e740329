"""
Agent configuration data structure.

Built from agents.yaml entries and passed to agent constructors.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.settings import DEFAULT_FALLBACK_PROMPT

from .enums import AgentRole


@dataclass
class AgentConfigData:
    """
    Identity, model parameters and tool scope of one agent.

    Attributes:
        role: Agent role
        id: Stable agent id (e.g. "sales-agent")
        name: Display name used when labeling combined output
        avatar: Emoji shown next to the display name
        color: UI accent color
        description: One-line summary shown to the router
        system_prompt: Base system prompt
        model: Completion model name
        temperature: Sampling temperature
        max_tokens: Completion token cap
        tool_categories: Toolkit categories the agent may use (empty = all)
        required_capabilities: Toolkits that must all be connected for can_handle
        fallback_agent: Role to hand over to when this agent is unavailable
        domain_context: Domain block template ({tool_count}, {tool_list})
        handle_patterns: Regexes that make can_handle accept a query
        handle_toolkits: Toolkit keywords that make can_handle accept a query
    """

    role: AgentRole
    id: str
    name: str
    avatar: str = "🤖"
    color: str = "#6B7280"
    description: str = ""
    system_prompt: str = DEFAULT_FALLBACK_PROMPT
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 2000
    tool_categories: List[str] = field(default_factory=list)
    required_capabilities: List[str] = field(default_factory=list)
    fallback_agent: Optional[AgentRole] = None
    domain_context: str = ""
    handle_patterns: List[str] = field(default_factory=list)
    handle_toolkits: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, role: AgentRole, data: Dict[str, Any]) -> "AgentConfigData":
        """
        Build a config from one agents.yaml entry.

        Args:
            role: Role the entry is keyed under
            data: Parsed YAML mapping

        Returns:
            AgentConfigData with defaults filled in
        """
        fallback = data.get("fallback_agent")
        return cls(
            role=role,
            id=data.get("id", f"{role.value}-agent"),
            name=data.get("name", f"{role.value.title()} Agent"),
            avatar=data.get("avatar", "🤖"),
            color=data.get("color", "#6B7280"),
            description=data.get("description", ""),
            system_prompt=(data.get("system_prompt") or DEFAULT_FALLBACK_PROMPT).strip(),
            model=data.get("model", "gpt-4o-mini"),
            temperature=float(data.get("temperature", 0.7)),
            max_tokens=int(data.get("max_tokens", 2000)),
            tool_categories=list(data.get("tool_categories") or []),
            required_capabilities=list(data.get("required_capabilities") or []),
            fallback_agent=AgentRole.parse(fallback) if fallback else None,
            domain_context=(data.get("domain_context") or "").strip(),
            handle_patterns=list(data.get("handle_patterns") or []),
            handle_toolkits=list(data.get("handle_toolkits") or []),
        )

    @property
    def display_label(self) -> str:
        """Emoji plus name, e.g. '💼 Sales Agent'."""
        return f"{self.avatar} {self.name}"
