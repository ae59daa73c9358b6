"""System inventory access (osquery)."""

from osquery_nli.inventory.base import InventoryClient
from osquery_nli.inventory.osquery import OsqueryClient, validate_sql

__all__ = ["InventoryClient", "OsqueryClient", "validate_sql"]
