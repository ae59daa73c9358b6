"""Shared plumbing for providers that speak JSON over HTTP (Gemini, OpenAI)."""

from __future__ import annotations

from typing import Any

import httpx

from osquery_nli.core.errors import (
    CannotTranslateError,
    InvalidAPIKeyError,
    InvalidResponseError,
    LLMTimeoutError,
    NetworkError,
    RateLimitedError,
)
from osquery_nli.llm.providers.base import LLMProvider, parse_retry_after


def error_message(response: httpx.Response) -> str | None:
    """The ``error.message`` field of a provider error payload, if any."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return None


def raise_for_status(response: httpx.Response) -> None:
    """Map an HTTP status to the matching provider error.

    Raises:
        InvalidAPIKeyError: 401 or 403
        RateLimitedError: 429, with the retry-after header when numeric
        CannotTranslateError: Any other 4xx, carrying the provider's message
        NetworkError: 5xx
        InvalidResponseError: Any other non-200 status
    """
    status = response.status_code
    if status == 200:
        return
    if status in (401, 403):
        raise InvalidAPIKeyError()
    if status == 429:
        raise RateLimitedError(parse_retry_after(response.headers.get("retry-after")))
    if 400 <= status < 500:
        raise CannotTranslateError(error_message(response) or f"Client error: {status}")
    if 500 <= status < 600:
        raise NetworkError(f"Server error: {status}")
    raise InvalidResponseError()


class HTTPProvider(LLMProvider):
    """Provider backed by an ``httpx.AsyncClient``.

    A client can be injected (tests pass one built on ``httpx.MockTransport``);
    otherwise one is created on first use and closed by ``aclose``.
    """

    default_base_url: str

    def __init__(
        self,
        *args: Any,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._http_client

    async def post_json(
        self, path: str, body: dict[str, Any], headers: dict[str, str]
    ) -> tuple[httpx.Response, dict[str, Any]]:
        """POST a JSON body and return the response with its decoded JSON object.

        Transport failures are wrapped so callers only see provider errors.
        """
        try:
            response = await self.http_client.post(
                f"{self.base_url}/{path.lstrip('/')}", json=body, headers=headers
            )
        except httpx.TimeoutException as e:
            raise LLMTimeoutError() from e
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        self.check_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseError() from e
        if not isinstance(payload, dict):
            raise InvalidResponseError()
        return response, payload

    def check_status(self, response: httpx.Response) -> None:
        raise_for_status(response)

    async def aclose(self) -> None:
        await super().aclose()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
