"""
Memory configuration accessors built on memory.yaml.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List

from domain.enums import MemoryType

from .loaders import get_memory_config

_SECTION_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "retrieval": {
        "semantic_default_limit": 10,
        "semantic_min_similarity": 0.5,
        "semantic_candidate_pool": 100,
        "hybrid_min_similarity": 0.6,
        "hybrid_max_keywords": 3,
        "max_keywords": 10,
        "min_keyword_length": 3,
        "embed_min_chars": 11,
    },
    "agent_memory": {
        "short_term_limit": 10,
        "short_term_min_relevance": 0.3,
        "long_term_limit": 10,
        "long_term_min_relevance": 0.7,
    },
    "consolidation": {
        "batch_limit": 500,
        "similarity_threshold": 0.7,
        "boost_per_merged": 0.1,
    },
    "decay": {
        "days_threshold": 30,
        "factor": 0.1,
        "floor": 0.1,
    },
}


@dataclass(frozen=True)
class ExtractionFamily:
    """A group of regexes producing one memory type."""

    type: MemoryType
    relevance: float
    max_per_message: int
    patterns: List["re.Pattern[str]"]


def get_memory_section(name: str) -> Dict[str, Any]:
    """
    Get one tuning section of memory.yaml merged over built-in defaults.

    Args:
        name: retrieval, agent_memory, consolidation or decay
    """
    return {**_SECTION_DEFAULTS.get(name, {}), **(get_memory_config().get(name) or {})}


def get_extraction_settings() -> Dict[str, Any]:
    extraction = get_memory_config().get("extraction") or {}
    return {
        "min_message_length": extraction.get("min_message_length", 20),
        "max_match_length": extraction.get("max_match_length", 100),
        "consolidate_above": extraction.get("consolidate_above", 5),
    }


def get_extraction_families() -> List[ExtractionFamily]:
    """
    Compile the fact / preference / decision pattern tables.

    Returns:
        Families in file order, patterns compiled case-insensitively
    """
    families = []
    for key, data in ((get_memory_config().get("extraction") or {}).get("families") or {}).items():
        try:
            memory_type = MemoryType(key)
        except ValueError:
            continue
        families.append(
            ExtractionFamily(
                type=memory_type,
                relevance=float(data.get("relevance", 0.5)),
                max_per_message=int(data.get("max_per_message", 3)),
                patterns=[re.compile(p, re.IGNORECASE) for p in data.get("patterns") or []],
            )
        )
    return families


def get_stopwords() -> FrozenSet[str]:
    return frozenset(str(w).lower() for w in get_memory_config().get("stopwords") or [])
