"""
Configuration file loaders.

Provides functions to load specific configuration files with caching.

Caching Behavior:
-----------------
Configuration files are cached with mtime-based invalidation. The cache is
automatically refreshed when the underlying YAML file is modified, so pattern
tables can be tuned without restarting the service.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from .cache import get_cached_config

logger = logging.getLogger(__name__)

# Configuration file paths
CONFIG_DIR = Path(__file__).parent
AGENTS_CONFIG = CONFIG_DIR / "agents.yaml"
ROUTING_CONFIG = CONFIG_DIR / "routing.yaml"
CREWS_CONFIG = CONFIG_DIR / "crews.yaml"
MEMORY_CONFIG = CONFIG_DIR / "memory.yaml"


def get_agents_config() -> Dict[str, Any]:
    """
    Load the agent definitions from agents.yaml.

    Returns:
        Dictionary containing the 'agents' mapping keyed by role
    """
    return get_cached_config(AGENTS_CONFIG)


def get_routing_config() -> Dict[str, Any]:
    """
    Load the routing tables from routing.yaml.

    Returns:
        Dictionary containing keyword routes, role toolkits and LLM routing settings
    """
    return get_cached_config(ROUTING_CONFIG)


def get_crews_config() -> Dict[str, Any]:
    """
    Load crew presets and delegation triggers from crews.yaml.

    Returns:
        Dictionary containing crews, delegation_triggers and templates
    """
    return get_cached_config(CREWS_CONFIG)


def get_memory_config() -> Dict[str, Any]:
    """
    Load memory tuning and extraction patterns from memory.yaml.

    Returns:
        Dictionary containing retrieval, consolidation, decay and extraction sections
    """
    return get_cached_config(MEMORY_CONFIG)
