"""Shared pytest fixtures for all tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from osquery_nli.core.errors import OsqueryNLIError
from osquery_nli.core.models import Row, TokenUsage
from osquery_nli.core.preferences import QuerySettings
from osquery_nli.llm.config import LLMConfig, ProviderConfig
from osquery_nli.llm.prompts import PromptRenderer, RenderedPrompt
from osquery_nli.llm.providers import LLMProvider, LLMResponse
from osquery_nli.llm.retry import RetryPolicy

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "config" / "prompts"

UPTIME_SCHEMA = "CREATE TABLE uptime (days INTEGER, hours INTEGER, total_seconds BIGINT);"

# A scripted reply: text, an exception to raise, or a coroutine function to await
Reply = str | OsqueryNLIError | Callable[[RenderedPrompt], Awaitable[str]]


class FakeInventory:
    """In-memory inventory client with canned rows per statement."""

    def __init__(
        self,
        rows: dict[str, list[Row]] | None = None,
        schema: str = UPTIME_SCHEMA,
        tables: list[str] | None = None,
        errors: dict[str, Exception] | None = None,
    ):
        self.rows = rows or {}
        self.schema = schema
        self.tables = tables or ["uptime", "processes", "users"]
        self.errors = errors or {}
        self.executed: list[str] = []
        self.schema_requests: list[list[str]] = []

    async def execute(self, sql: str) -> list[Row]:
        self.executed.append(sql)
        if sql in self.errors:
            raise self.errors[sql]
        return [dict(row) for row in self.rows.get(sql, [])]

    async def get_schema(self, tables: list[str]) -> str:
        self.schema_requests.append(list(tables))
        return self.schema

    async def get_all_tables(self) -> list[str]:
        return list(self.tables)


class FakeProvider(LLMProvider):
    """Provider whose wire call replays scripted replies in order."""

    provider_id = "fake"
    display_name = "Fake LLM"

    def __init__(self, replies: list[Reply] | None = None, api_key: str = "test-key", **kwargs):
        kwargs.setdefault("model", "fake-model")
        kwargs.setdefault("renderer", PromptRenderer(PROMPTS_DIR))
        kwargs.setdefault("retry_policy", RetryPolicy(sleep=RecordedSleep()))
        super().__init__(api_key=api_key, **kwargs)
        self.replies: list[Reply] = list(replies or [])
        self.prompts: list[RenderedPrompt] = []

    async def _complete(self, prompt: RenderedPrompt) -> LLMResponse:
        self.prompts.append(prompt)
        if not self.replies:
            raise AssertionError("FakeProvider ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, OsqueryNLIError):
            raise reply
        text = reply if isinstance(reply, str) else await reply(prompt)
        return LLMResponse(
            content=text,
            model=self.model,
            token_usage=TokenUsage(input_tokens=10, output_tokens=5),
        )


class StaticProviders:
    """Provider source that always hands out the same instance."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider
        self.requests: list[tuple[str, str | None]] = []

    def get(self, provider_id: str, model: str | None = None) -> LLMProvider:
        self.requests.append((provider_id, model))
        return self.provider

    async def aclose(self) -> None:
        await self.provider.aclose()


class RecordedSleep:
    """Sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class RecordingNotifier:
    def __init__(self) -> None:
        self.delivered: list[tuple[str, str, str]] = []

    def deliver(self, title: str, body: str, correlation_id: str) -> None:
        self.delivered.append((title, body, correlation_id))


class FakeClock:
    """Settable UTC clock for the scheduler."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def renderer() -> PromptRenderer:
    return PromptRenderer(PROMPTS_DIR)


@pytest.fixture
def recorded_sleep() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def query_settings() -> QuerySettings:
    return QuerySettings(provider="fake", enabled_tables=["uptime"])


@pytest.fixture
def llm_config() -> LLMConfig:
    return LLMConfig(
        active_provider="gemini",
        providers={
            "claude": ProviderConfig(
                api_key_env="ANTHROPIC_API_KEY", default_model="claude-sonnet-4-20250514"
            ),
            "gemini": ProviderConfig(
                api_key_env="GEMINI_API_KEY",
                default_model="gemini-2.0-flash-lite",
                base_url="https://gemini.test/v1beta",
            ),
            "openai": ProviderConfig(
                api_key_env="OPENAI_API_KEY",
                default_model="gpt-4o-mini",
                base_url="https://openai.test/v1",
            ),
        },
    )
