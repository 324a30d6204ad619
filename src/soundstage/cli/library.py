"""CLI commands for managing and scanning libraries."""

from __future__ import annotations

import asyncio
import importlib
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from soundstage.config import Settings, build_scan_engine
from soundstage.core.constants import LIBRARY_KINDS
from soundstage.core.errors import (
    InvalidLibraryKind,
    LibraryExistsError,
    LibraryNotFoundError,
    LibraryPathNotFoundError,
    ScanRootUnavailable,
)
from soundstage.core.schemas import Library, LibraryStats, ScanSummary
from soundstage.store.library_store import LibraryStore

app: TyperType = typer.Typer(help="Create, list, remove and scan media libraries.")

DbPathOption = Annotated[
    Path | None,
    typer.Option(
        "--db-path",
        help="Optional override for the library database location.",
    ),
]
KindOption = Annotated[
    str,
    typer.Option("--kind", "-k", help=f"Library kind ({', '.join(LIBRARY_KINDS)})."),
]
ScanFlag = Annotated[
    bool,
    typer.Option("--scan/--no-scan", help="Scan the library right after adding it."),
]
LibraryIdArgument = Annotated[str, typer.Argument(help="Library identifier.")]


def _settings(db_path: Path | None) -> Settings:
    return Settings.from_env().with_db_path(db_path)


def _fail(message: str) -> typer.Exit:
    typer.secho(message, err=True, fg=typer.colors.RED)
    return typer.Exit(code=1)


def _render_summary(console: Console, summary: ScanSummary) -> None:
    table = Table(title=f"Scan of {summary.library_name or summary.library_id}")
    table.add_column("Field")
    table.add_column("Value", justify="right")

    table.add_row("State", summary.state.value)
    table.add_row("Files found", str(summary.files_found))
    table.add_row("Entities created", str(summary.entities_created))
    table.add_row("Episodes created", str(summary.episodes_created))
    table.add_row("Tracks created", str(summary.tracks_created))
    table.add_row("Skipped files", str(summary.skipped_files))
    table.add_row("Duplicate episodes", str(summary.duplicate_episodes))
    table.add_row("Metadata misses", str(summary.metadata_misses))
    table.add_row("Errors", str(summary.errors))
    table.add_row("Unreadable directories", str(summary.walk_failures))
    table.add_row("Elapsed (s)", f"{summary.elapsed:.2f}")
    console.print(table)


async def _scan(settings: Settings, store: LibraryStore, library_id: str) -> ScanSummary:
    engine = build_scan_engine(settings, store)
    try:
        return await engine.scan_library(library_id)
    finally:
        await engine.aclose()


async def _add(
    settings: Settings, name: str, path: Path, kind: str, scan: bool
) -> tuple[Library, ScanSummary | None]:
    async with LibraryStore(settings.db_path) as store:
        library = await store.create_library(name, path, kind)
        summary = await _scan(settings, store, library.id) if scan else None
        return library, summary


def add(
    name: Annotated[str, typer.Argument(help="Display name.")],
    path: Annotated[Path, typer.Argument(help="Library root directory.")],
    kind: KindOption,
    scan: ScanFlag = False,
    db_path: DbPathOption = None,
) -> None:
    """Register a library root, optionally scanning it immediately."""

    settings = _settings(db_path)
    try:
        library, summary = asyncio.run(_add(settings, name, path, kind, scan))
    except LibraryExistsError as exc:
        raise _fail(f"Library already exists for path {exc.path}") from exc
    except LibraryPathNotFoundError as exc:
        raise _fail(f"Path does not exist: {exc.path}") from exc
    except InvalidLibraryKind as exc:
        raise _fail(
            f"Invalid library kind {exc.kind!r}; expected one of "
            f"{', '.join(LIBRARY_KINDS)}"
        ) from exc
    except ScanRootUnavailable as exc:
        raise _fail(str(exc)) from exc

    typer.secho(
        f"Added library {library.name} ({library.kind}) with id {library.id}",
        fg=typer.colors.GREEN,
    )
    if summary is not None:
        _render_summary(Console(), summary)


async def _list(settings: Settings) -> list[Library]:
    async with LibraryStore(settings.db_path) as store:
        return await store.list_libraries()


def list_libraries(db_path: DbPathOption = None) -> None:
    """List registered libraries."""

    libraries = asyncio.run(_list(_settings(db_path)))
    if not libraries:
        typer.echo("No libraries configured.")
        return

    table = Table(title="Libraries")
    table.add_column("ID", overflow="fold")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Path", overflow="fold")
    table.add_column("Last scan")
    for library in libraries:
        table.add_row(
            library.id,
            library.name,
            library.kind,
            library.path,
            library.last_scan.isoformat(timespec="seconds") if library.last_scan else "never",
        )
    Console().print(table)


async def _remove(settings: Settings, library_id: str) -> bool:
    async with LibraryStore(settings.db_path) as store:
        return await store.delete_library(library_id)


def remove(library_id: LibraryIdArgument, db_path: DbPathOption = None) -> None:
    """Delete a library and everything scanned into it."""

    if not asyncio.run(_remove(_settings(db_path), library_id)):
        raise _fail(f"Library not found: {library_id}")
    typer.secho(f"Removed library {library_id}", fg=typer.colors.GREEN)


async def _scan_command(settings: Settings, library_id: str) -> ScanSummary:
    async with LibraryStore(settings.db_path) as store:
        return await _scan(settings, store, library_id)


def scan(library_id: LibraryIdArgument, db_path: DbPathOption = None) -> None:
    """Rebuild a library from disk and print the scan summary."""

    try:
        summary = asyncio.run(_scan_command(_settings(db_path), library_id))
    except LibraryNotFoundError as exc:
        raise _fail(str(exc)) from exc
    except ScanRootUnavailable as exc:
        raise _fail(str(exc)) from exc

    _render_summary(Console(), summary)


async def _stats(settings: Settings, library_id: str | None) -> LibraryStats:
    async with LibraryStore(settings.db_path) as store:
        if library_id is not None and await store.get_library(library_id) is None:
            raise LibraryNotFoundError(library_id)
        return await store.library_stats(library_id)


def stats(
    library_id: Annotated[
        str | None, typer.Argument(help="Limit counts to one library.")
    ] = None,
    db_path: DbPathOption = None,
) -> None:
    """Show entity, episode and track counts."""

    try:
        counts = asyncio.run(_stats(_settings(db_path), library_id))
    except LibraryNotFoundError as exc:
        raise _fail(str(exc)) from exc

    table = Table(title="Library statistics")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for label, value in counts.model_dump().items():
        table.add_row(label, str(value))
    Console().print(table)


app.command("add")(add)
app.command("list")(list_libraries)
app.command("remove")(remove)
app.command("scan")(scan)
app.command("stats")(stats)
