"""
Centralized application settings using Pydantic BaseSettings.

This module provides type-safe access to environment variables with validation.
All settings are loaded once at application startup.
"""

import logging
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# ============================================================================
# Application Constants
# ============================================================================

# Default fallback prompt if an agent definition has none
DEFAULT_FALLBACK_PROMPT = "You are a helpful AI assistant."

# Fixed dimensionality of text-embedding-3-small vectors
DEFAULT_EMBEDDING_DIMENSION = 1536


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults and are validated on startup.
    """

    # Model configuration
    completion_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    embedding_max_chars: int = 8000

    # Timeouts applied around every completion and tool call
    completion_timeout_seconds: float = 60.0
    tool_timeout_seconds: float = 30.0

    # Crew
    default_crew: str = "full"

    # Memory subsystem
    memory_cache_ttl_seconds: int = 300
    memory_registry_max_users: int = 1000
    memory_registry_idle_seconds: int = 3600

    # Background learning queue
    learning_queue_size: int = 100
    learning_workers: int = 1

    # Background scheduler configuration
    enable_scheduler: bool = True
    consolidation_interval_minutes: int = 60
    decay_interval_hours: int = 24
    decay_days_threshold: int = 30
    expired_cleanup_interval_minutes: int = 30

    # Logging
    log_level: str = "INFO"

    # Request identity
    user_id_header: str = "X-User-Id"

    # Comma-separated CORS origins; empty disables the middleware
    cors_origins: str = ""

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Optional[str]) -> str:
        """Normalize LOG_LEVEL and fall back to INFO for unknown levels."""
        if not v:
            return "INFO"
        v_upper = str(v).upper()
        if v_upper in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return v_upper
        logging.warning(f"Invalid LOG_LEVEL value: {v}. Defaulting to 'INFO'.")
        return "INFO"

    @field_validator("enable_scheduler", mode="before")
    @classmethod
    def validate_enable_scheduler(cls, v: Optional[str]) -> bool:
        """Parse enable_scheduler from string to bool."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() == "true"
        return True

    @field_validator("embedding_dimension", "embedding_max_chars", "learning_queue_size", "learning_workers")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Reject non-positive sizes."""
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    def get_cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS into a list of origins."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def backend_dir(self) -> Path:
        """
        Get the backend directory.

        Returns:
            Path to the backend directory
        """
        return Path(__file__).parent.parent

    @property
    def project_root(self) -> Path:
        """
        Get the project root directory (parent of backend/).

        Returns:
            Path to the project root directory
        """
        return self.backend_dir.parent

    @property
    def config_dir(self) -> Path:
        """
        Get the configuration files directory.

        Returns:
            Path to backend/config
        """
        return self.backend_dir / "config"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        # Allow extra fields for forward compatibility
        extra = "ignore"


# Singleton instance - load settings once
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        # Reload with the project-root .env if one exists
        env_path = _settings.project_root / ".env"
        if env_path.exists():
            _settings = Settings(_env_file=str(env_path))

    return _settings


def reset_settings() -> None:
    """
    Reset the settings singleton (useful for testing).
    """
    global _settings
    _settings = None
