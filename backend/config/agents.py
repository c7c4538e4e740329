"""
Agent definition accessors built on agents.yaml.
"""

import logging
from typing import Dict

from domain.agent_config import AgentConfigData
from domain.enums import AgentRole

from .loaders import get_agents_config

logger = logging.getLogger(__name__)


def get_all_agent_configs() -> Dict[AgentRole, AgentConfigData]:
    """
    Build AgentConfigData for every role defined in agents.yaml.

    Unknown role keys are skipped with a warning.

    Returns:
        Mapping of role to config, in file order
    """
    configs: Dict[AgentRole, AgentConfigData] = {}
    for key, data in (get_agents_config().get("agents") or {}).items():
        role = AgentRole.parse(key)
        if role is None:
            logger.warning(f"⚠️ Ignoring agents.yaml entry with unknown role: {key}")
            continue
        configs[role] = AgentConfigData.from_dict(role, data or {})
    return configs


def get_agent_config(role: AgentRole) -> AgentConfigData:
    """
    Get the configuration for one role.

    Roles missing from agents.yaml get a default config so an agent can
    still be constructed.
    """
    config = get_all_agent_configs().get(role)
    if config is None:
        logger.warning(f"⚠️ No agents.yaml entry for role '{role}', using defaults")
        return AgentConfigData.from_dict(role, {})
    return config
