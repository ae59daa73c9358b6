"""Inventory client protocol.

The pipeline and scheduler only depend on this protocol; ``OsqueryClient``
is the default adapter and tests substitute an in-memory fake.
"""

from __future__ import annotations

from typing import Protocol

from osquery_nli.core.models import Row


class InventoryClient(Protocol):
    """Read-only SQL access to the machine's inventory."""

    async def execute(self, sql: str) -> list[Row]:
        """Run one SQL statement and return its rows with stringified values.

        Raises:
            InventoryError subclasses on validation, execution, timeout or parse failure
        """
        ...

    async def get_schema(self, tables: list[str]) -> str:
        """Return CREATE TABLE statements for the given tables ("" if none known)."""
        ...

    async def get_all_tables(self) -> list[str]:
        """Return every table name the inventory exposes, sorted."""
        ...
