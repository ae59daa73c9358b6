"""LLM configuration models and loader.

Loads configuration from config/llm.yaml and provides typed access
to provider settings, request limits and retry settings.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Configuration for a single LLM provider."""

    api_key_env: str
    default_model: str
    models: list[str] = Field(default_factory=list)
    base_url: str | None = None


class LLMLimits(BaseModel):
    """Per-request limits."""

    timeout_seconds: float = 30.0
    max_output_tokens: int = 2048


class RetryConfig(BaseModel):
    """Exponential backoff settings for retryable provider failures."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0


class LLMConfig(BaseModel):
    """Complete LLM configuration from llm.yaml."""

    version: str = "1.0.0"
    providers: dict[str, ProviderConfig]
    active_provider: str
    limits: LLMLimits = Field(default_factory=LLMLimits)
    retry: RetryConfig = Field(default_factory=RetryConfig)


def load_llm_config(config_path: Path | None = None) -> LLMConfig:
    """Load LLM configuration from YAML.

    Args:
        config_path: Path to llm.yaml. If None, uses config/llm.yaml

    Returns:
        Parsed LLM configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        pydantic.ValidationError: If config doesn't match schema
    """
    if config_path is None:
        config_path = Path("config/llm.yaml")

    if not config_path.exists():
        raise FileNotFoundError(
            f"LLM config not found: {config_path}. Create config/llm.yaml from the template."
        )

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return LLMConfig(**data)
