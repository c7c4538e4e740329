"""
Crew preset accessors built on crews.yaml.
"""

import logging
from typing import Dict, List

from domain.crew import CrewConfig
from domain.enums import AgentRole, CrewWorkflow

from .loaders import get_crews_config

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = {
    "sequential_query": (
        "Based on the previous analysis:\n{previous}\n\nOriginal query: {query}\n\n"
        "Please continue or refine this analysis."
    ),
    "enhancement_query": "Review and enhance this response:\n{primary}\n\nOriginal query: {query}",
    "no_responses": "No responses generated.",
}


def get_crew_presets() -> Dict[str, CrewConfig]:
    """
    Build CrewConfig for every preset in crews.yaml.

    Returns:
        Mapping of preset name to config
    """
    presets: Dict[str, CrewConfig] = {}
    for name, data in (get_crews_config().get("crews") or {}).items():
        data = data or {}
        try:
            workflow = CrewWorkflow(str(data.get("workflow", "sequential")).lower())
        except ValueError:
            logger.warning(f"⚠️ Crew '{name}' has unknown workflow {data.get('workflow')!r}, using sequential")
            workflow = CrewWorkflow.SEQUENTIAL
        agents = [role for role in (AgentRole.parse(a) for a in data.get("agents") or []) if role is not None]
        presets[name] = CrewConfig(
            name=name,
            description=data.get("description", ""),
            agents=agents,
            workflow=workflow,
        )
    return presets


def get_delegation_triggers() -> List[str]:
    """Lower-cased phrases that make a hierarchical primary delegate."""
    return [str(p).lower() for p in get_crews_config().get("delegation_triggers") or []]


def get_crew_template(name: str) -> str:
    """Get a text template for chained or enhancement queries."""
    templates = get_crews_config().get("templates") or {}
    return templates.get(name) or DEFAULT_TEMPLATES[name]
