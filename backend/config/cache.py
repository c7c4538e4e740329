"""
Configuration caching infrastructure.

YAML files are parsed once and re-read only when their mtime changes.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

# path -> (mtime, parsed config)
_config_cache: Dict[Path, Tuple[float, Dict[str, Any]]] = {}
_cache_lock = threading.Lock()


def _get_file_mtime(path: Path) -> float:
    """Return the file's modification time, or 0.0 if it does not exist."""
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return 0.0


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """
    Parse a YAML file.

    Returns:
        Parsed mapping, or an empty dict if the file is missing or invalid
    """
    if not path.exists():
        logger.warning(f"Configuration file not found: {path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {path}: {e}")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.error(f"Configuration file {path} must contain a mapping at the top level")
        return {}
    return data


def get_cached_config(path: Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file, reusing the cached copy while the file is unchanged.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed configuration mapping
    """
    path = Path(path)
    mtime = _get_file_mtime(path)

    with _cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[0] == mtime:
            return cached[1]

    config = _load_yaml_file(path)

    with _cache_lock:
        _config_cache[path] = (mtime, config)

    logger.debug(f"Loaded configuration: {path.name}")
    return config


def clear_cache() -> None:
    """Drop every cached configuration."""
    with _cache_lock:
        _config_cache.clear()
