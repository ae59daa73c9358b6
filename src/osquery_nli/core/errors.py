"""Typed failures raised across the query pipeline.

Every error carries a ``user_message`` suitable for display and a
``retryable`` flag consulted by the retry policy. Only rate limiting,
LLM timeouts and network failures are retryable.
"""

from __future__ import annotations


class OsqueryNLIError(Exception):
    """Base class for all osquery-nli failures."""

    retryable: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return "An unexpected error occurred."

    @property
    def user_message(self) -> str:
        """Human-readable description of the failure."""
        return str(self)


# === LLM errors ===


class LLMError(OsqueryNLIError):
    """Failure while talking to a translation provider."""


class NotConfiguredError(LLMError):
    def default_message(self) -> str:
        return "LLM provider is not configured. Please set your API key in Settings."


class InvalidAPIKeyError(LLMError):
    def default_message(self) -> str:
        return "Invalid API key. Please check your API key in Settings."


class EmptyInputError(LLMError):
    """A required input was empty after stripping whitespace."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Cannot process request: {field} is empty.")


class NetworkError(LLMError):
    """Transport failure or server-side error."""

    retryable = True

    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class RateLimitedError(LLMError):
    """The provider asked us to slow down."""

    retryable = True

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"Rate limited. Please retry after {int(retry_after)} seconds."
        else:
            message = "Rate limited. Please try again later."
        super().__init__(message)


class LLMTimeoutError(LLMError):
    retryable = True

    def default_message(self) -> str:
        return "Request timed out. Please try again."


class InvalidResponseError(LLMError):
    def default_message(self) -> str:
        return "Invalid response from LLM provider."


class CannotTranslateError(LLMError):
    """The provider refused or was unable to produce SQL."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class QueryCancelledError(LLMError):
    def default_message(self) -> str:
        return "Request was cancelled."


# === Inventory errors ===


class InventoryError(OsqueryNLIError):
    """Failure while querying the system inventory."""


class NotInstalledError(InventoryError):
    def default_message(self) -> str:
        return "osquery is not installed. Install it with: brew install osquery"


class ExecutionFailedError(InventoryError):
    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"Query execution failed: {stderr}")


class InvalidSQLError(InventoryError):
    def __init__(self, details: str):
        self.details = details
        super().__init__(f"Invalid SQL: {details}")


class InventoryTimeoutError(InventoryError):
    def default_message(self) -> str:
        return "Query timed out."


class ParseError(InventoryError):
    def __init__(self, details: str):
        self.details = details
        super().__init__(f"Failed to parse osquery output: {details}")


class NoSchemaAvailableError(InventoryError):
    def default_message(self) -> str:
        return "No schema available. Please enable some tables in Settings."
