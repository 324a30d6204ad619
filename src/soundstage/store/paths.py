"""Helpers for resolving the library database path."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["DEFAULT_DATA_DIR", "resolve_db_path"]

DEFAULT_DATA_DIR = Path("data")
DB_FILE_NAME = "soundstage.db"


def resolve_db_path(db_path: str | Path | None = None) -> str:
    """Resolve the on-disk path for the library database.

    Args:
        db_path: Optional explicit path or `":memory:"` for in-memory usage.
            When omitted, uses `SOUNDSTAGE_DB_PATH`, then
            `SOUNDSTAGE_DATA_DIR/soundstage.db`, then `./data/soundstage.db`.

    Returns:
        Absolute string path suitable for sqlite3.
    """

    chosen: str | Path | None = db_path
    if chosen is None:
        chosen = os.getenv("SOUNDSTAGE_DB_PATH") or None
    if chosen is None:
        data_dir = os.getenv("SOUNDSTAGE_DATA_DIR")
        chosen = Path(data_dir or DEFAULT_DATA_DIR) / DB_FILE_NAME

    if str(chosen) == ":memory:":
        return ":memory:"

    resolved = Path(chosen).expanduser().absolute()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)
