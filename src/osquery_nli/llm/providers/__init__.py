"""Translation provider implementations and factory."""

from osquery_nli.llm.providers.base import (
    LLMProvider,
    LLMResponse,
    SummaryResult,
    TranslationResult,
    clean_sql_response,
)

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "PROVIDER_IDS",
    "SummaryResult",
    "TranslationResult",
    "clean_sql_response",
    "create_provider",
]

PROVIDER_IDS = ("claude", "gemini", "openai")


def create_provider(provider_id: str, **kwargs) -> LLMProvider:
    """Create a translation provider by id.

    Args:
        provider_id: 'claude', 'gemini' or 'openai'
        **kwargs: Constructor arguments (api_key, model, renderer, timeout, ...)

    Returns:
        Provider instance

    Raises:
        ValueError: If provider id is unknown
    """
    if provider_id == "claude":
        from osquery_nli.llm.providers.anthropic import AnthropicProvider

        return AnthropicProvider(**kwargs)

    elif provider_id == "gemini":
        from osquery_nli.llm.providers.gemini import GeminiProvider

        return GeminiProvider(**kwargs)

    elif provider_id == "openai":
        from osquery_nli.llm.providers.openai import OpenAIProvider

        return OpenAIProvider(**kwargs)

    else:
        raise ValueError(
            f"Unknown LLM provider: {provider_id}. Supported providers: {', '.join(PROVIDER_IDS)}"
        )
