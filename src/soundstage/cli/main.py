"""Top-level ``soundstage`` command."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from soundstage.cli.db import app as db_app
from soundstage.cli.library import app as library_app
from soundstage.config import Settings
from soundstage.utils.logging import configure_logging

app: TyperType = typer.Typer(help="Soundstage media library scanner.")
app.add_typer(db_app, name="db")
app.add_typer(library_app, name="library")


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override SOUNDSTAGE_LOG_LEVEL."),
    ] = None,
    log_json: Annotated[
        bool,
        typer.Option("--log-json", help="Emit JSON log lines."),
    ] = False,
) -> None:
    """Configure logging before any subcommand runs."""

    settings = Settings.from_env()
    configure_logging(
        level=log_level or settings.log_level,
        json_output=log_json or settings.log_json,
    )


if __name__ == "__main__":  # pragma: no cover
    app()
