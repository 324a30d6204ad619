"""Custom exceptions for Soundstage.

This module defines typed exceptions used throughout the scanning pipeline.
Only a handful of them ever escape a scan; everything provider related is
absorbed by the metadata client and logged.
"""

from typing import Any


class SoundstageError(Exception):
    """Base exception for all Soundstage errors.

    All custom exceptions should inherit from this base class to allow
    for broad exception handling when needed.
    """

    pass


class LibraryNotFoundError(SoundstageError):
    """Raised when a library id does not resolve to a stored library.

    This is the only scan-fatal condition: nothing is deleted or rebuilt.

    Attributes:
        library_id: The id that could not be found
    """

    def __init__(self, library_id: str) -> None:
        self.library_id = library_id
        super().__init__(f"Library not found: {library_id}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"error": "library_not_found", "library_id": self.library_id}

    def __repr__(self) -> str:
        return f"LibraryNotFoundError(library_id={self.library_id!r})"


class LibraryExistsError(SoundstageError):
    """Raised when a library is created for a path that is already registered.

    Attributes:
        path: The duplicate library root
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Library path already exists: {path}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"error": "library_exists", "path": self.path}

    def __repr__(self) -> str:
        return f"LibraryExistsError(path={self.path!r})"


class InvalidLibraryKind(SoundstageError, ValueError):
    """Raised when a library kind is not one of movies/tvshows/music/photos."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Invalid library kind: {kind}")


class ScanRootUnavailable(SoundstageError):
    """Raised when a library root cannot be read at the start of a walk.

    Unreadable sub-directories are not errors; they are recorded on the
    walk result and the walk continues with their siblings.

    Attributes:
        path: Library root that could not be read
        reason: Human-readable reason (usually the OSError text)
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Library root unavailable: {path} ({reason})")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"error": "scan_root_unavailable", "path": self.path, "reason": self.reason}

    def __repr__(self) -> str:
        return f"ScanRootUnavailable(path={self.path!r}, reason={self.reason!r})"


class LibraryPathNotFoundError(SoundstageError):
    """Raised when a library is created for a path that is not a directory.

    Attributes:
        path: The requested library root
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Library path does not exist: {path}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {"error": "library_path_not_found", "path": self.path}


class GroupUnavailableError(SoundstageError):
    """Raised for a file whose show or album failed to store earlier in the scan.

    Attributes:
        kind: Group kind ("tvshow" or "album")
        title: Group title parsed from the file
        reason: The original storage failure
    """

    def __init__(self, kind: str, title: str, reason: str) -> None:
        self.kind = kind
        self.title = title
        self.reason = reason
        super().__init__(f"{kind} {title!r} could not be stored: {reason}")

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": "group_unavailable",
            "kind": self.kind,
            "title": self.title,
            "reason": self.reason,
        }
