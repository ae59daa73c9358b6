"""Provider registry: one cached provider instance per provider id."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping

from osquery_nli.core.errors import InvalidResponseError, NotConfiguredError, OsqueryNLIError
from osquery_nli.core.logging import get_logger
from osquery_nli.core.models import Result
from osquery_nli.llm.config import LLMConfig
from osquery_nli.llm.prompts import PromptRenderer
from osquery_nli.llm.providers import LLMProvider, create_provider
from osquery_nli.llm.retry import RetryPolicy

logger = get_logger(__name__)

TEST_QUESTION = "What is the system uptime?"
TEST_SCHEMA = (
    "CREATE TABLE uptime (days INTEGER, hours INTEGER, minutes INTEGER, "
    "seconds INTEGER, total_seconds BIGINT);"
)

ProviderFactory = Callable[..., LLMProvider]


class ProviderRegistry:
    """Build and cache translation providers.

    A cached instance is reused while its model matches the request. It is
    rebuilt when the model changes, or when an API key has appeared in the
    environment since an unconfigured instance was built.

    Args:
        config: Loaded llm.yaml
        renderer: Prompt renderer handed to every provider
        environ: Where API keys are looked up (defaults to os.environ)
        factory: Provider constructor, ``create_provider`` by default
        retry_policy: Overrides the policy built from ``config.retry``
    """

    def __init__(
        self,
        config: LLMConfig,
        renderer: PromptRenderer,
        environ: Mapping[str, str] | None = None,
        factory: ProviderFactory = create_provider,
        retry_policy: RetryPolicy | None = None,
    ):
        self.config = config
        self.renderer = renderer
        self.environ = environ if environ is not None else os.environ
        self.factory = factory
        self.retry_policy = retry_policy or RetryPolicy.from_config(config.retry)
        self._providers: dict[str, LLMProvider] = {}

    def default_model(self, provider_id: str) -> str:
        return self._provider_config(provider_id).default_model

    def api_key(self, provider_id: str) -> str:
        return self.environ.get(self._provider_config(provider_id).api_key_env, "").strip()

    def is_configured(self, provider_id: str) -> bool:
        """True if an API key is available for the provider."""
        return bool(self.api_key(provider_id))

    def get(self, provider_id: str, model: str | None = None) -> LLMProvider:
        """Get or create the provider instance for ``provider_id``.

        Raises:
            ValueError: If the provider id is not in llm.yaml
        """
        model_to_use = model or self.default_model(provider_id)

        existing = self._providers.get(provider_id)
        if existing is not None and existing.model == model_to_use:
            if existing.is_configured or not self.is_configured(provider_id):
                return existing
            logger.info("provider_key_appeared", provider=provider_id)

        provider_config = self._provider_config(provider_id)
        kwargs: dict[str, object] = {
            "api_key": self.api_key(provider_id),
            "model": model_to_use,
            "renderer": self.renderer,
            "timeout": self.config.limits.timeout_seconds,
            "max_tokens": self.config.limits.max_output_tokens,
            "retry_policy": self.retry_policy,
        }
        if provider_config.base_url:
            kwargs["base_url"] = provider_config.base_url

        provider = self.factory(provider_id, **kwargs)
        self._providers[provider_id] = provider
        logger.debug("provider_created", provider=provider_id, model=model_to_use)
        return provider

    def invalidate(self, provider_id: str | None = None) -> None:
        """Drop cached instances so the next get() rebuilds them."""
        if provider_id is None:
            self._providers.clear()
        else:
            self._providers.pop(provider_id, None)

    async def test_connection(
        self, provider_id: str | None = None, model: str | None = None
    ) -> Result[str]:
        """Translate a fixed question to check the provider answers.

        Returns:
            Result with a success message, or the user-facing error
        """
        provider_id = provider_id or self.config.active_provider
        try:
            provider = self.get(provider_id, model)
            if not provider.is_configured:
                raise NotConfiguredError()
            translation = await provider.translate_to_sql(TEST_QUESTION, TEST_SCHEMA)
            if not translation.sql:
                raise InvalidResponseError()
        except OsqueryNLIError as e:
            logger.warning("provider_test_failed", provider=provider_id, error=e.user_message)
            return Result.fail(e.user_message)
        except ValueError as e:
            return Result.fail(str(e))

        return Result.ok(f"Successfully connected to {provider.display_name}")

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        self._providers.clear()

    def _provider_config(self, provider_id: str):
        try:
            return self.config.providers[provider_id]
        except KeyError:
            raise ValueError(
                f"Unknown LLM provider: {provider_id}. "
                f"Configured providers: {', '.join(sorted(self.config.providers))}"
            ) from None
