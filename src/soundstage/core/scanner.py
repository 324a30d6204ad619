"""Library filesystem walker.

This module enumerates candidate media files under a library root, filtering
by the extension allow-list of the library kind. It performs no parsing and
no metadata lookups; grouping files into entities is the scan engine's job.
"""

import os
from pathlib import Path
from typing import Any

import anyio
import structlog

from soundstage.core.constants import EXTENSIONS_BY_KIND
from soundstage.core.errors import InvalidLibraryKind, ScanRootUnavailable
from soundstage.core.schemas import WalkFailure, WalkResult

_DirEntry = tuple[str, bool, bool]


def _list_directory(directory: Path) -> list[_DirEntry]:
    """Read one directory, returning sorted ``(name, is_dir, is_file)`` tuples.

    Symbolic links are reported as neither directories nor files, so they are
    never descended into and never collected.
    """

    entries: list[_DirEntry] = []
    with os.scandir(directory) as iterator:
        for entry in iterator:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError:
                is_dir = is_file = False
            entries.append((entry.name, is_dir, is_file))

    entries.sort(key=lambda item: item[0])
    return entries


async def walk_library(
    root: str | Path,
    kind: str,
    logger: Any = None,
) -> WalkResult:
    """Walk a library root and collect files matching the kind's extensions.

    Uses an explicit stack of pending directories rather than recursion, and
    reads each directory in a worker thread so slow mounts do not block the
    event loop (and therefore other library scans).

    Args:
        root: Library root directory
        kind: Library kind ('movies', 'tvshows', 'music' or 'photos')
        logger: Optional structlog logger

    Returns:
        WalkResult with absolute file paths (stable order) and the
        sub-directories that could not be read

    Raises:
        InvalidLibraryKind: If ``kind`` has no extension allow-list
        ScanRootUnavailable: If the root itself cannot be read
    """
    log = logger or structlog.get_logger(__name__)

    extensions = EXTENSIONS_BY_KIND.get(kind)
    if extensions is None:
        raise InvalidLibraryKind(kind)

    root_path = Path(root).expanduser().absolute()
    result = WalkResult(root=root_path, kind=kind)  # type: ignore[arg-type]

    pending: list[Path] = [root_path]
    while pending:
        directory = pending.pop()
        try:
            entries = await anyio.to_thread.run_sync(_list_directory, directory)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            if directory == root_path:
                raise ScanRootUnavailable(str(root_path), reason) from exc
            log.warning("walk.directory_unreadable", path=str(directory), reason=reason)
            result.failures.append(WalkFailure(path=directory, reason=reason))
            continue

        subdirectories: list[Path] = []
        for name, is_dir, is_file in entries:
            # Hidden entries are neither collected nor descended into
            if name.startswith("."):
                continue

            full_path = directory / name
            if is_dir:
                subdirectories.append(full_path)
            elif is_file and full_path.suffix.lower() in extensions:
                result.files.append(full_path)

        # Reversed so the stack pops sub-directories in sorted order
        pending.extend(reversed(subdirectories))

    log.debug(
        "walk.complete",
        root=str(root_path),
        files=len(result.files),
        failures=len(result.failures),
    )
    return result
