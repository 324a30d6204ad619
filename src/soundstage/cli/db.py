"""CLI commands for library database management."""

from __future__ import annotations

import asyncio
import importlib
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from soundstage.store.migrations import apply_migrations
from soundstage.store.paths import resolve_db_path

app: TyperType = typer.Typer(help="Manage the Soundstage library database.")

DbPathOption = Annotated[
    Path | None,
    typer.Option(
        "--db-path",
        help="Optional override for the library database location.",
    ),
]


def migrate(db_path: DbPathOption = None) -> None:
    """Apply library migrations to ensure schema is up-to-date."""

    resolved_path = resolve_db_path(db_path)
    applied = asyncio.run(apply_migrations(resolved_path))
    if applied:
        typer.echo(f"Applied: {', '.join(applied)}")
    typer.secho(f"Migrations applied to {resolved_path}", fg=typer.colors.GREEN)


app.command("migrate")(migrate)
