"""JSON file persistence shared by the file-backed stores."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from osquery_nli.core.logging import get_logger

logger = get_logger(__name__)

DATA_DIR_MODE = 0o700


def ensure_data_dir(directory: Path) -> Path:
    """Create the data directory (owner-only access) if missing."""
    directory.mkdir(parents=True, exist_ok=True, mode=DATA_DIR_MODE)
    return directory


def read_json(path: Path, default: Any) -> Any:
    """Read a JSON document, returning ``default`` if missing or unreadable.

    A corrupt file is logged and treated as empty so a bad write never
    locks the user out of the store.
    """
    if not path.exists():
        return default
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("json_store_unreadable", path=str(path), error=str(e))
        return default


def write_json(path: Path, data: Any) -> None:
    """Write a JSON document atomically (temp file in the same dir, then replace)."""
    ensure_data_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
