"""SQLite migration utilities for the library database."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib import resources
from importlib.abc import Traversable
from pathlib import Path

import aiosqlite

__all__ = [
    "MigrationFile",
    "applied_migrations",
    "apply_migrations",
    "ensure_connection_migrated",
    "get_migration_files",
]


@dataclass(frozen=True)
class MigrationFile:
    """A bundled SQL migration, applied in file-name order."""

    name: str
    sql: str


def _iter_sql_resources() -> Iterable[Traversable]:
    package = resources.files(__name__)
    for entry in package.iterdir():
        if entry.name.endswith(".sql"):
            yield entry


def get_migration_files() -> list[MigrationFile]:
    """Load bundled migration files sorted by name."""

    return [
        MigrationFile(name=entry.name, sql=entry.read_text(encoding="utf-8"))
        for entry in sorted(_iter_sql_resources(), key=lambda item: item.name)
    ]


async def applied_migrations(connection: aiosqlite.Connection) -> list[str]:
    """Names of migrations already recorded on ``connection``, oldest first."""

    async with connection.execute(
        "SELECT name FROM schema_migrations ORDER BY id"
    ) as cursor:
        return [row[0] for row in await cursor.fetchall()]


async def ensure_connection_migrated(connection: aiosqlite.Connection) -> list[str]:
    """Enable foreign keys and apply pending migrations to ``connection``.

    Returns:
        Names of the migrations applied by this call (empty when current).
    """

    await connection.execute("PRAGMA foreign_keys=ON")
    await connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            applied_at TEXT NOT NULL
        )
        """
    )
    await connection.commit()

    applied = set(await applied_migrations(connection))
    newly_applied: list[str] = []

    for migration in get_migration_files():
        if migration.name in applied:
            continue

        await connection.executescript(migration.sql)
        applied_at = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        await connection.execute(
            "INSERT INTO schema_migrations (name, applied_at) VALUES (?, ?)",
            (migration.name, applied_at),
        )
        await connection.commit()
        applied.add(migration.name)
        newly_applied.append(migration.name)

    return newly_applied


async def apply_migrations(db_path: str | Path) -> list[str]:
    """Apply library migrations to the SQLite database at ``db_path``."""

    if str(db_path) != ":memory:":
        path_obj = Path(db_path).expanduser()
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        target_path = str(path_obj)
    else:
        target_path = ":memory:"

    async with aiosqlite.connect(target_path) as connection:
        return await ensure_connection_migrated(connection)
