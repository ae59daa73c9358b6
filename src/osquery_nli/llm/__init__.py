"""LLM module - translation of questions into osquery SQL and result summaries.

Example usage:

    from osquery_nli.llm import PromptRenderer, ProviderRegistry, load_llm_config

    config = load_llm_config(Path("config/llm.yaml"))
    registry = ProviderRegistry(config, PromptRenderer(Path("config/prompts")))

    provider = registry.get("gemini")
    translation = await provider.translate_to_sql("Is FileVault on?", schema)
"""

from osquery_nli.llm.config import LLMConfig, load_llm_config
from osquery_nli.llm.prompts import PromptRenderer
from osquery_nli.llm.providers import LLMProvider, create_provider
from osquery_nli.llm.registry import ProviderRegistry
from osquery_nli.llm.retry import RetryPolicy

__all__ = [
    "LLMConfig",
    "LLMProvider",
    "PromptRenderer",
    "ProviderRegistry",
    "RetryPolicy",
    "create_provider",
    "load_llm_config",
]
