"""
Routing table accessors built on routing.yaml.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List

from domain.enums import AgentRole

from .loaders import get_routing_config


@dataclass(frozen=True)
class KeywordRoute:
    """One row of the ordered keyword table."""

    role: AgentRole
    pattern: "re.Pattern[str]"


def get_keyword_routes() -> List[KeywordRoute]:
    """
    Get the ordered keyword table. The first matching row wins.
    """
    routes = []
    for entry in get_routing_config().get("keyword_routes") or []:
        role = AgentRole.parse(entry.get("role"))
        if role is None or not entry.get("pattern"):
            continue
        routes.append(KeywordRoute(role=role, pattern=re.compile(entry["pattern"], re.IGNORECASE)))
    return routes


def get_role_toolkits() -> Dict[AgentRole, List[str]]:
    """Get the role -> relevant toolkit keyword mapping (upper-cased)."""
    mapping: Dict[AgentRole, List[str]] = {}
    for key, keywords in (get_routing_config().get("role_toolkits") or {}).items():
        role = AgentRole.parse(key)
        if role is not None:
            mapping[role] = [str(k).upper() for k in keywords or []]
    return mapping


def get_fast_path_settings() -> Dict[str, float]:
    defaults = {
        "confidence_with_toolkit": 0.85,
        "confidence_without_toolkit": 0.7,
        "authoritative_above": 0.8,
    }
    return {**defaults, **(get_routing_config().get("fast_path") or {})}


def get_llm_routing_settings() -> Dict[str, Any]:
    defaults = {
        "temperature": 0.1,
        "max_tokens": 500,
        "history_turns": 3,
        "history_chars": 200,
        "parse_failure_confidence": 0.3,
        "default_confidence": 0.5,
        "toolkit_boost": 0.1,
        "unavailable_penalty": 0.5,
        "task": "Respond ONLY with a JSON object.",
    }
    return {**defaults, **(get_routing_config().get("llm") or {})}
