"""Configuration management.

Uses pydantic-settings for type-safe configuration from environment variables.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_config_dir() -> Path:
    """Find the config directory by walking up from the package location.

    Falls back to relative Path("config") if not found.
    """
    # src/osquery_nli/core/config.py -> project root is 4 levels up
    package_dir = Path(__file__).resolve().parent.parent.parent.parent
    candidate = package_dir / "config"
    if candidate.is_dir():
        return candidate

    return Path("config")


def _default_data_dir() -> Path:
    return Path.home() / ".osquery-nli"


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Prefix: OSQUERY_NLI_
    """

    model_config = SettingsConfigDict(
        env_prefix="OSQUERY_NLI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars (like ANTHROPIC_API_KEY)
    )

    # Storage
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding settings, history, scheduled queries and results",
    )

    # Configuration paths
    config_path: Path = Field(
        default_factory=_find_config_dir,
        description="Directory containing llm.yaml and prompts/",
    )

    # osquery
    osqueryi_path: str | None = Field(
        default=None,
        description="Path to osqueryi. Searched in common install locations when unset",
    )
    osquery_extension_path: Path | None = Field(
        default=None,
        description="AI discovery extension loaded into osqueryi when set",
    )

    # Scheduler
    scheduler_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between scheduler ticks",
    )

    # Result cache
    cache_ttl_seconds: float = Field(default=300.0)
    cache_max_entries: int = Field(default=50)

    # Logging
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="console", description="console or json")

    @property
    def prompts_path(self) -> Path:
        return self.config_path / "prompts"

    @property
    def llm_config_path(self) -> Path:
        return self.config_path / "llm.yaml"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
