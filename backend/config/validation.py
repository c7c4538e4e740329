"""
Configuration validation and logging.

Provides functions for validating configuration schema and startup logging.
"""

import logging
import re

from domain.enums import SPECIALIST_ROLES, AgentRole, CrewWorkflow

from .cache import clear_cache
from .loaders import get_agents_config, get_crews_config, get_memory_config, get_routing_config

logger = logging.getLogger(__name__)


def reload_all_configs():
    """Force reload all configuration files by clearing the cache."""
    clear_cache()
    logger.info("Reloaded all configuration files")


def _check_pattern(errors: list, source: str, pattern) -> None:
    try:
        re.compile(str(pattern))
    except re.error as e:
        errors.append(f"{source} has an invalid regex {pattern!r}: {e}")


def validate_config_schema() -> list[str]:
    """
    Validate configuration files have required keys and structure.

    Returns:
        List of validation errors (empty if all valid)
    """
    errors = []

    # Validate agents.yaml
    agents = get_agents_config().get("agents")
    if not agents:
        errors.append("agents.yaml is empty or missing the 'agents' section")
    else:
        for role in SPECIALIST_ROLES:
            if role.value not in agents:
                errors.append(f"agents.yaml missing required agent: {role.value}")
        for key, data in agents.items():
            if AgentRole.parse(key) is None:
                errors.append(f"agents.yaml has unknown role: {key}")
                continue
            data = data or {}
            if "system_prompt" not in data:
                errors.append(f"agents.yaml agent '{key}' missing 'system_prompt' field")
            for pattern in data.get("handle_patterns") or []:
                _check_pattern(errors, f"agents.yaml agent '{key}'", pattern)

    # Validate routing.yaml
    routing = get_routing_config()
    if not routing.get("keyword_routes"):
        errors.append("routing.yaml missing 'keyword_routes' section")
    else:
        for entry in routing["keyword_routes"]:
            if AgentRole.parse(entry.get("role")) is None:
                errors.append(f"routing.yaml keyword route has unknown role: {entry.get('role')}")
            _check_pattern(errors, "routing.yaml keyword route", entry.get("pattern", ""))

    # Validate crews.yaml
    crews = get_crews_config()
    if not crews.get("crews"):
        errors.append("crews.yaml missing 'crews' section")
    else:
        if "full" not in crews["crews"]:
            errors.append("crews.yaml missing required crew: full")
        workflows = {w.value for w in CrewWorkflow}
        for name, data in crews["crews"].items():
            data = data or {}
            if data.get("workflow") not in workflows:
                errors.append(f"crews.yaml crew '{name}' has invalid workflow: {data.get('workflow')}")
            if not data.get("agents"):
                errors.append(f"crews.yaml crew '{name}' has no agents")

    # Validate memory.yaml
    memory = get_memory_config()
    families = (memory.get("extraction") or {}).get("families")
    if not families:
        errors.append("memory.yaml missing 'extraction.families' section")
    else:
        for name, data in families.items():
            for pattern in (data or {}).get("patterns") or []:
                _check_pattern(errors, f"memory.yaml family '{name}'", pattern)

    return errors


def log_config_validation():
    """
    Validate and log configuration status at startup.

    This should be called once during application initialization.
    """
    logger.info("Validating YAML configuration files...")

    errors = validate_config_schema()

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"   - {error}")
        logger.error("Fix configuration files in backend/config/")
    else:
        logger.info("All configuration files validated successfully")

    crews = get_crews_config().get("crews") or {}
    logger.info(f"Crew presets: {', '.join(crews.keys()) or 'none'}")


__all__ = [
    "reload_all_configs",
    "validate_config_schema",
    "log_config_validation",
]
