"""Pydantic schemas for the scan pipeline and the persisted library model.

These schemas define the data structures shared by the walker, the scan
engine and the store:
- Library / MediaEntity / Season / Episode / Track / WatchProgress: rows
- CastMember / CrewMember: typed credit sub-entities (JSON only in the store)
- WalkResult / ScanSummary: walker and scan outputs

All schemas use Pydantic v2 for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_serializer

LibraryKind = Literal["movies", "tvshows", "music", "photos"]
EntityKind = Literal["movie", "tvshow", "album", "photo"]


class CastMember(BaseModel):
    """A credited cast member and the character they play."""

    name: str
    character: str | None = None

    model_config = {"frozen": True}


class CrewMember(BaseModel):
    """A credited crew member (director, writer, creator)."""

    name: str
    job: str | None = None

    model_config = {"frozen": True}


class Library(BaseModel):
    """A configured root directory plus the kind of media it holds.

    Attributes:
        id: Stable library identifier
        name: Display name
        path: Absolute root directory (unique across libraries)
        kind: Library kind (movies, tvshows, music, photos)
        created_at: Creation timestamp
        last_scan: Completion time of the last full scan, if any
    """

    id: str
    name: str
    path: str
    kind: LibraryKind
    created_at: datetime | None = None
    last_scan: datetime | None = None


class MediaEntity(BaseModel):
    """A logical browsable work: movie, TV show, album or photo.

    Shows and albums are containers; their playable files live in the
    episodes and tracks tables. Artwork fields always hold local cache
    references, never provider URLs.
    """

    id: str
    library_id: str
    kind: EntityKind
    title: str
    path: str
    original_title: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    duration: int | None = None
    year: int | None = None
    end_year: int | None = None
    overview: str | None = None
    tagline: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    logo_path: str | None = None
    rating: float | None = None
    content_rating: str | None = None
    genres: list[str] = Field(default_factory=list)
    cast: list[CastMember] = Field(default_factory=list)
    directors: list[CrewMember] = Field(default_factory=list)
    writers: list[CrewMember] = Field(default_factory=list)
    studio: str | None = None
    tmdb_id: int | None = None
    imdb_id: str | None = None
    season_count: int | None = None
    episode_count: int | None = None
    status: str | None = None
    added_at: datetime | None = None


class Season(BaseModel):
    """Season-level metadata cached for a show, independent of episode files."""

    id: str
    media_id: str
    season_number: int
    name: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    episode_count: int | None = None
    air_date: str | None = None


class Episode(BaseModel):
    """A playable episode file belonging to a show."""

    id: str
    media_id: str
    season_number: int
    episode_number: int
    path: str
    title: str | None = None
    overview: str | None = None
    duration: int | None = None
    still_path: str | None = None
    air_date: str | None = None
    runtime: int | None = None


class Track(BaseModel):
    """A playable audio file belonging to an album."""

    id: str
    media_id: str
    title: str
    path: str
    track_number: int | None = None
    disc_number: int | None = None
    duration: int | None = None


class WatchProgress(BaseModel):
    """Current playback position of one user on one media entity."""

    user_id: str
    media_id: str
    position: int = Field(default=0, ge=0)
    completed: bool = False
    updated_at: datetime | None = None


class WalkFailure(BaseModel):
    """A directory the walker could not read."""

    path: Path
    reason: str

    @field_serializer("path")
    def serialize_path(self, path: Path) -> str:
        """Serialize Path to string for JSON."""
        return str(path)


class WalkResult(BaseModel):
    """Candidate media files found under a library root.

    Attributes:
        root: Library root that was walked
        kind: Library kind used for the extension allow-list
        files: Matching absolute file paths, stable order
        failures: Sub-directories that could not be read
    """

    root: Path
    kind: LibraryKind
    files: list[Path] = Field(default_factory=list)
    failures: list[WalkFailure] = Field(default_factory=list)

    @field_serializer("root")
    def serialize_root(self, root: Path) -> str:
        """Serialize Path to string for JSON."""
        return str(root)

    @field_serializer("files")
    def serialize_files(self, files: list[Path]) -> list[str]:
        """Serialize Paths to strings for JSON."""
        return [str(path) for path in files]


class ScanState(str, Enum):
    """Lifecycle state of a library scan.

    Attributes:
        IDLE: No scan has run in this process
        RUNNING: Scan in progress
        COMPLETED: Walk loop finished (possibly with per-file errors)
        FAILED: Scan aborted (library missing or root unreadable)
        CANCELLED: Stopped by the caller; library is partially rebuilt
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScanSummary(BaseModel):
    """Per-scan report returned by the scan engine."""

    library_id: str
    library_name: str | None = None
    state: ScanState = ScanState.RUNNING
    files_found: int = 0
    entities_created: int = 0
    episodes_created: int = 0
    tracks_created: int = 0
    skipped_files: int = 0
    duplicate_episodes: int = 0
    metadata_misses: int = 0
    errors: int = 0
    walk_failures: int = 0
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None
    elapsed: float = 0.0


class ContinueWatchingItem(BaseModel):
    """A partially watched entity and the user's saved position on it."""

    media: MediaEntity
    progress: WatchProgress


class LibraryStats(BaseModel):
    """Entity counts across one library or the whole store."""

    movies: int = 0
    tvshows: int = 0
    albums: int = 0
    photos: int = 0
    episodes: int = 0
    tracks: int = 0
