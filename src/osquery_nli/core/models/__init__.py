"""Core models: shared base types only."""

from osquery_nli.core.models.base import Result, TokenUsage
from osquery_nli.core.models.query import QueryResult, Row, stringify_rows, stringify_value

__all__ = [
    "QueryResult",
    "Result",
    "Row",
    "TokenUsage",
    "stringify_rows",
    "stringify_value",
]
