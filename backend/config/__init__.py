"""
Configuration module for the YAML behavior tables.

Agent definitions, routing tables, crew presets and memory pattern tables live in
YAML files beside this module and are loaded with mtime-based caching.
"""

from .agents import get_agent_config, get_all_agent_configs
from .cache import clear_cache, get_cached_config
from .crews import get_crew_presets, get_crew_template, get_delegation_triggers
from .memory import get_extraction_families, get_extraction_settings, get_memory_section, get_stopwords
from .routing import get_fast_path_settings, get_keyword_routes, get_llm_routing_settings, get_role_toolkits

__all__ = [
    "clear_cache",
    "get_agent_config",
    "get_all_agent_configs",
    "get_cached_config",
    "get_crew_presets",
    "get_crew_template",
    "get_delegation_triggers",
    "get_extraction_families",
    "get_extraction_settings",
    "get_fast_path_settings",
    "get_keyword_routes",
    "get_llm_routing_settings",
    "get_memory_section",
    "get_role_toolkits",
    "get_stopwords",
]
