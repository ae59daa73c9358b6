"""User preferences read by the pipeline and scheduler on every run."""

from __future__ import annotations

import threading
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from osquery_nli.core.logging import get_logger
from osquery_nli.core.storage import read_json, write_json

logger = get_logger(__name__)

SETTINGS_FILENAME = "settings.json"

DEFAULT_ENABLED_TABLES: list[str] = [
    # System
    "uptime",
    "osquery_info",
    "system_info",
    "os_version",
    # Users and processes
    "users",
    "logged_in_users",
    "processes",
    # Network
    "listening_ports",
    "interface_details",
    "wifi_status",
    # Hardware and storage
    "battery",
    "mounts",
    "disk_encryption",
    # Software
    "apps",
    "homebrew_packages",
    "launchd",
    "startup_items",
    # Security
    "sip_config",
    "gatekeeper",
    # AI discovery extension
    "ai_tools_installed",
    "ai_mcp_servers",
    "ai_env_vars",
    "ai_browser_extensions",
    "ai_code_assistants",
    "ai_api_keys",
    "ai_local_servers",
]


class QuerySettings(BaseModel):
    """Selected provider/model, table scope and feature toggles."""

    provider: str = "gemini"
    model: str | None = None  # None means the provider's default model
    enabled_tables: list[str] = Field(default_factory=lambda: list(DEFAULT_ENABLED_TABLES))
    cache_enabled: bool = True
    notifications_enabled: bool = False


class PreferencesStore:
    """QuerySettings persisted as settings.json in the data directory."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> QuerySettings:
        with self._lock:
            data = read_json(self.path, default=None)
        if data is None:
            return QuerySettings()
        try:
            return QuerySettings.model_validate(data)
        except ValidationError as e:
            logger.warning("settings_invalid", path=str(self.path), error=str(e))
            return QuerySettings()

    def save(self, settings: QuerySettings) -> None:
        with self._lock:
            write_json(self.path, settings.model_dump(mode="json"))

    def __call__(self) -> QuerySettings:
        return self.load()
