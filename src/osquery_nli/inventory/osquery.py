"""osqueryi adapter for the inventory client protocol.

Shells out to ``osqueryi`` with ``asyncio.create_subprocess_exec``. Each
call is one short-lived process bounded by a timeout; the process is
killed if the timeout fires or the awaiting task is cancelled.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import re
import shutil
import uuid
from pathlib import Path
from typing import Any

from osquery_nli.core.errors import (
    ExecutionFailedError,
    InvalidSQLError,
    InventoryError,
    InventoryTimeoutError,
    NotInstalledError,
    ParseError,
)
from osquery_nli.core.logging import get_logger
from osquery_nli.core.models import Row, stringify_rows

logger = get_logger(__name__)

COMMON_OSQUERYI_PATHS = (
    "/opt/homebrew/bin/osqueryi",  # Apple Silicon Homebrew
    "/usr/local/bin/osqueryi",  # Intel Homebrew
    "/usr/bin/osqueryi",
)
DAEMON_SOCKET_PATH = Path("/var/osquery/osquery.em")

EXECUTE_TIMEOUT_SECONDS = 30.0
TABLES_TIMEOUT_SECONDS = 10.0
SCHEMA_TIMEOUT_SECONDS = 15.0

MAX_SQL_LENGTH = 10_000
ALLOWED_PREFIXES = ("SELECT", "PRAGMA", "EXPLAIN")
DISALLOWED_PATTERNS = (
    "$(",
    "`",
    "&&",
    "||",
    "|",
    ">",
    "<",
    "\n",
    "\r",
    "\\x",
    "\\u",
)

_CREATE_TABLE_RE = re.compile(
    r"CREATE (?:VIRTUAL )?TABLE ([a-zA-Z_][a-zA-Z0-9_]*)", re.IGNORECASE
)

# Tables served by the AI discovery extension. `.tables` and `.schema` do not
# list extension tables, so their schemas are kept here.
EXTENSION_TABLE_SCHEMAS: dict[str, str] = {
    "ai_tools_installed": (
        "CREATE TABLE ai_tools_installed (name TEXT, category TEXT, path TEXT, "
        "version TEXT, installed TEXT, running TEXT, config_path TEXT);"
    ),
    "ai_mcp_servers": (
        "CREATE TABLE ai_mcp_servers (name TEXT, config_file TEXT, server_type TEXT, "
        "command TEXT, args TEXT, url TEXT, has_env_vars TEXT, has_api_key TEXT, "
        "source_app TEXT);"
    ),
    "ai_env_vars": (
        "CREATE TABLE ai_env_vars (variable_name TEXT, source TEXT, source_file TEXT, "
        "is_set TEXT, value_preview TEXT, category TEXT);"
    ),
    "ai_browser_extensions": (
        "CREATE TABLE ai_browser_extensions (name TEXT, browser TEXT, extension_id TEXT, "
        "version TEXT, enabled TEXT, ai_related TEXT, path TEXT);"
    ),
    "ai_code_assistants": (
        "CREATE TABLE ai_code_assistants (name TEXT, tool TEXT, config_type TEXT, "
        "config_path TEXT, enabled TEXT, details TEXT);"
    ),
    "ai_api_keys": (
        "CREATE TABLE ai_api_keys (service TEXT, source TEXT, env_var_name TEXT, "
        "key_present TEXT, key_prefix TEXT, key_length TEXT);"
    ),
    "ai_local_servers": (
        "CREATE TABLE ai_local_servers (name TEXT, service_type TEXT, pid TEXT, port TEXT, "
        "status TEXT, endpoint TEXT, model_loaded TEXT, version TEXT);"
    ),
}


def find_osqueryi() -> str:
    """Locate osqueryi in the usual install locations, falling back to PATH."""
    for candidate in COMMON_OSQUERYI_PATHS:
        if Path(candidate).exists():
            return candidate
    return shutil.which("osqueryi") or "osqueryi"


def validate_sql(sql: str) -> str:
    """Check a statement is safe to hand to osqueryi.

    Returns:
        The stripped statement

    Raises:
        InvalidSQLError: If the statement is empty, too long, not a read
            query, or contains shell metacharacters
    """
    trimmed = sql.strip()
    if not trimmed:
        raise InvalidSQLError("Empty query")
    if len(trimmed) > MAX_SQL_LENGTH:
        raise InvalidSQLError("Query too long (max 10,000 characters)")
    if not trimmed.upper().startswith(ALLOWED_PREFIXES):
        raise InvalidSQLError("Only SELECT queries are allowed")
    if any(pattern in trimmed for pattern in DISALLOWED_PATTERNS):
        raise InvalidSQLError("Query contains disallowed characters")
    return trimmed


def extract_json_rows(stdout: str) -> list[dict[str, Any]]:
    """Parse the JSON array osqueryi prints, ignoring warnings around it."""
    text = stdout.strip()
    if not text:
        return []

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        text = text[start : end + 1]

    preview = stdout[:200]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"{e}\nOutput: {preview}") from e

    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ParseError(f"Expected JSON array. Got: {preview}")
    return data


def parse_tables_output(output: str) -> list[str]:
    """Parse ``.tables`` output ("  => name" per line)."""
    tables = []
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("=>"):
            tables.append(line.removeprefix("=>").strip())
    return tables


def filter_schema(output: str, tables: set[str]) -> list[str]:
    """Keep only the CREATE statements of ``.schema`` output for the given tables."""
    statements: list[str] = []
    current: list[str] = []

    for line in output.split("\n"):
        if line.startswith(("CREATE TABLE ", "CREATE VIRTUAL TABLE ")):
            if current:
                statements.append("\n".join(current))
            match = _CREATE_TABLE_RE.match(line)
            current = [line] if match and match.group(1) in tables else []
        elif current:
            current.append(line)

    if current:
        statements.append("\n".join(current))
    return statements


class OsqueryClient:
    """Inventory client backed by the osqueryi binary.

    Args:
        osqueryi_path: Binary to run. Located with find_osqueryi() when None
        extension_path: AI discovery extension to load. When set, the
            extension tables are listed and their schemas served
        daemon_socket: osqueryd extension socket to connect to when it
            exists and no extension is loaded
    """

    def __init__(
        self,
        osqueryi_path: str | None = None,
        extension_path: Path | None = None,
        daemon_socket: Path | None = DAEMON_SOCKET_PATH,
    ):
        self.osqueryi_path = osqueryi_path or find_osqueryi()
        self.extension_path = extension_path
        self.daemon_socket = daemon_socket

    @property
    def extension_tables_available(self) -> bool:
        return self.extension_path is not None

    async def execute(self, sql: str) -> list[Row]:
        statement = validate_sql(sql)
        returncode, stdout, stderr = await self._run(
            self._build_arguments(statement, json_output=True), EXECUTE_TIMEOUT_SECONDS
        )

        if returncode != 0:
            message = stderr.strip() or stdout.strip() or f"Exit code {returncode}"
            raise ExecutionFailedError(message)

        return stringify_rows(extract_json_rows(stdout))

    async def get_all_tables(self) -> list[str]:
        _, stdout, _ = await self._run(
            self._build_arguments(".tables", json_output=False), TABLES_TIMEOUT_SECONDS
        )
        tables = set(parse_tables_output(stdout))
        if self.extension_tables_available:
            tables.update(EXTENSION_TABLE_SCHEMAS)
        return sorted(tables)

    async def get_schema(self, tables: list[str]) -> str:
        if not tables:
            return ""

        requested = set(tables)
        statements: list[str] = []
        try:
            _, stdout, _ = await self._run(
                self._build_arguments(".schema", json_output=False), SCHEMA_TIMEOUT_SECONDS
            )
            statements.extend(filter_schema(stdout, requested))
        except InventoryError as e:
            # Extension schemas can still be served
            logger.warning("schema_fetch_failed", error=str(e))

        if self.extension_tables_available:
            statements.extend(
                schema for name, schema in EXTENSION_TABLE_SCHEMAS.items() if name in requested
            )

        return "\n".join(statements).strip()

    def _build_arguments(self, query: str, json_output: bool) -> list[str]:
        args: list[str] = []
        if self.extension_path is not None:
            socket_path = f"/tmp/osquery_nli_{uuid.uuid4()}.sock"
            args += [
                "--extensions_socket",
                socket_path,
                "--extension",
                str(self.extension_path),
                "--extensions_require=ai_tables",
                "--extensions_timeout=10",
                "--disable_database",
            ]
        elif self.daemon_socket is not None and self.daemon_socket.exists():
            args += ["--connect", str(self.daemon_socket)]

        if json_output:
            args.append("--json")
        args.append(query)
        return args

    async def _run(self, args: list[str], timeout: float) -> tuple[int, str, str]:
        logger.debug("osqueryi_invoked", args=args[-1], timeout=timeout)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.osqueryi_path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise NotInstalledError() from e

        try:
            async with asyncio.timeout(timeout):
                stdout, stderr = await proc.communicate()
        except TimeoutError as e:
            raise InventoryTimeoutError() from e
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        return (
            proc.returncode or 0,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )
