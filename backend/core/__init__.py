"""
Core application infrastructure: settings, logging, and the app factory.
"""

from .logging import get_logger, setup_logging
from .settings import DEFAULT_FALLBACK_PROMPT, Settings, get_settings, reset_settings

__all__ = [
    "DEFAULT_FALLBACK_PROMPT",
    "Settings",
    "get_logger",
    "get_settings",
    "reset_settings",
    "setup_logging",
]
