"""SQLite-backed library store with schema migrations.

Holds libraries, their media entities (movies, shows, albums, photos), show
seasons and episodes, album tracks, and per-user watch progress. Deleting a
library cascades to its media; deleting a media entity cascades to its
seasons, episodes, tracks and progress rows.

Every write commits on its own, so readers may observe a library while a
scan is rebuilding it.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import anyio

from soundstage.core.constants import CONTINUE_WATCHING_LIMIT, LIBRARY_KINDS
from soundstage.core.errors import (
    InvalidLibraryKind,
    LibraryExistsError,
    LibraryPathNotFoundError,
)
from soundstage.core.schemas import (
    CastMember,
    ContinueWatchingItem,
    CrewMember,
    Episode,
    Library,
    LibraryStats,
    MediaEntity,
    Season,
    Track,
    WatchProgress,
)
from soundstage.store.migrations import ensure_connection_migrated
from soundstage.store.paths import resolve_db_path

_MEDIA_COLUMNS: tuple[str, ...] = (
    "id",
    "library_id",
    "kind",
    "title",
    "original_title",
    "path",
    "file_name",
    "file_size",
    "duration",
    "year",
    "end_year",
    "overview",
    "tagline",
    "poster_path",
    "backdrop_path",
    "logo_path",
    "rating",
    "content_rating",
    "genres",
    "cast_members",
    "directors",
    "writers",
    "studio",
    "tmdb_id",
    "imdb_id",
    "season_count",
    "episode_count",
    "status",
    "added_at",
)


def new_id() -> str:
    """Generate a fresh row id."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def _dump_list(items: list[Any]) -> str | None:
    if not items:
        return None
    return json.dumps(
        [item.model_dump() if hasattr(item, "model_dump") else item for item in items]
    )


def _load_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    value = json.loads(raw)
    return value if isinstance(value, list) else []


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _row_to_library(row: aiosqlite.Row) -> Library:
    return Library(
        id=row["id"],
        name=row["name"],
        path=row["path"],
        kind=row["kind"],
        created_at=row["created_at"],
        last_scan=row["last_scan"],
    )


def _row_to_media(row: aiosqlite.Row) -> MediaEntity:
    data = {key: row[key] for key in row.keys() if key in _MEDIA_COLUMNS}
    data["genres"] = _load_list(data.pop("genres", None))
    data["cast"] = [CastMember(**item) for item in _load_list(data.pop("cast_members"))]
    data["directors"] = [CrewMember(**item) for item in _load_list(data["directors"])]
    data["writers"] = [CrewMember(**item) for item in _load_list(data["writers"])]
    return MediaEntity(**data)


def _row_to_progress(row: aiosqlite.Row) -> WatchProgress:
    return WatchProgress(
        user_id=row["user_id"],
        media_id=row["media_id"],
        position=row["position"],
        completed=bool(row["completed"]),
        updated_at=row["updated_at"],
    )


class LibraryStore:
    """Async SQLite store for libraries, media and watch progress."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize the library store.

        Args:
            db_path: Path to SQLite database file (":memory:" for in-memory).
                When omitted, resolves from `SOUNDSTAGE_DB_PATH` /
                `SOUNDSTAGE_DATA_DIR` or `./data/soundstage.db`.
        """

        self._db_path = resolve_db_path(db_path)
        self._db: aiosqlite.Connection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the database connection, migrating on first use."""

        if self._db is None:
            self._db = await aiosqlite.connect(self._db_path)
            self._db.row_factory = aiosqlite.Row
            if self._db_path != ":memory:":
                await self._db.execute("PRAGMA journal_mode=WAL")
            await ensure_connection_migrated(self._db)
        return self._db

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------

    async def create_library(self, name: str, path: str | Path, kind: str) -> Library:
        """Register a library root.

        Raises:
            InvalidLibraryKind: If ``kind`` is not a known library kind
            LibraryPathNotFoundError: If ``path`` is not an existing directory
            LibraryExistsError: If another library already uses ``path``
        """

        if kind not in LIBRARY_KINDS:
            raise InvalidLibraryKind(kind)

        root = Path(path).expanduser().absolute()
        if not await anyio.to_thread.run_sync(root.is_dir):
            raise LibraryPathNotFoundError(str(root))

        library = Library(
            id=new_id(),
            name=name,
            path=str(root),
            kind=kind,  # type: ignore[arg-type]
            created_at=utc_now(),
        )

        db = await self._get_connection()
        try:
            await db.execute(
                """
                INSERT INTO libraries (id, name, path, kind, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    library.id,
                    library.name,
                    library.path,
                    library.kind,
                    _timestamp(library.created_at),
                ),
            )
            await db.commit()
        except sqlite3.IntegrityError as exc:
            raise LibraryExistsError(library.path) from exc
        return library

    async def get_library(self, library_id: str) -> Library | None:
        db = await self._get_connection()
        async with db.execute(
            "SELECT * FROM libraries WHERE id = ?", (library_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_library(row) if row is not None else None

    async def list_libraries(self) -> list[Library]:
        db = await self._get_connection()
        async with db.execute("SELECT * FROM libraries ORDER BY name, id") as cursor:
            rows = await cursor.fetchall()
        return [_row_to_library(row) for row in rows]

    async def delete_library(self, library_id: str) -> bool:
        """Delete a library and, by cascade, everything it owns."""

        db = await self._get_connection()
        cursor = await db.execute("DELETE FROM libraries WHERE id = ?", (library_id,))
        await db.commit()
        return cursor.rowcount > 0

    async def mark_scanned(
        self, library_id: str, scanned_at: datetime | None = None
    ) -> None:
        """Stamp the library's last completed scan time."""

        db = await self._get_connection()
        await db.execute(
            "UPDATE libraries SET last_scan = ? WHERE id = ?",
            (_timestamp(scanned_at or utc_now()), library_id),
        )
        await db.commit()

    # ------------------------------------------------------------------
    # Media entities
    # ------------------------------------------------------------------

    async def clear_library_media(self, library_id: str) -> int:
        """Delete every media entity of a library. Returns the row count."""

        db = await self._get_connection()
        cursor = await db.execute(
            "DELETE FROM media WHERE library_id = ?", (library_id,)
        )
        await db.commit()
        return cursor.rowcount

    async def insert_media(self, entity: MediaEntity) -> MediaEntity:
        """Insert a media entity.

        Raises:
            sqlite3.IntegrityError: On a duplicate path or unknown library
        """

        if entity.added_at is None:
            entity = entity.model_copy(update={"added_at": utc_now()})

        values: dict[str, Any] = entity.model_dump(exclude={"cast"})
        values["cast_members"] = _dump_list(entity.cast)
        values["genres"] = _dump_list(entity.genres)
        values["directors"] = _dump_list(entity.directors)
        values["writers"] = _dump_list(entity.writers)
        values["added_at"] = _timestamp(entity.added_at)

        columns = ", ".join(_MEDIA_COLUMNS)
        placeholders = ", ".join("?" for _ in _MEDIA_COLUMNS)

        db = await self._get_connection()
        await db.execute(
            f"INSERT INTO media ({columns}) VALUES ({placeholders})",
            tuple(values[column] for column in _MEDIA_COLUMNS),
        )
        await db.commit()
        return entity

    async def find_media_by_title(
        self, library_id: str, kind: str, title: str
    ) -> MediaEntity | None:
        """Exact-title lookup of a media entity within one library."""

        db = await self._get_connection()
        async with db.execute(
            """
            SELECT * FROM media
            WHERE library_id = ? AND kind = ? AND title = ?
            ORDER BY added_at
            LIMIT 1
            """,
            (library_id, kind, title),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_media(row) if row is not None else None

    async def get_media(self, media_id: str) -> MediaEntity | None:
        db = await self._get_connection()
        async with db.execute("SELECT * FROM media WHERE id = ?", (media_id,)) as cursor:
            row = await cursor.fetchone()
        return _row_to_media(row) if row is not None else None

    async def list_media(
        self, library_id: str, kind: str | None = None
    ) -> list[MediaEntity]:
        """List a library's entities ordered by title."""

        db = await self._get_connection()
        query = "SELECT * FROM media WHERE library_id = ?"
        params: tuple[Any, ...] = (library_id,)
        if kind is not None:
            query += " AND kind = ?"
            params += (kind,)
        query += " ORDER BY title COLLATE NOCASE, path"

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_media(row) for row in rows]

    async def delete_media(self, media_id: str) -> bool:
        db = await self._get_connection()
        cursor = await db.execute("DELETE FROM media WHERE id = ?", (media_id,))
        await db.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Seasons / episodes / tracks
    # ------------------------------------------------------------------

    async def upsert_season(self, season: Season) -> None:
        """Insert a season, or refresh it when the show already has that number."""

        db = await self._get_connection()
        await db.execute(
            """
            INSERT INTO seasons
                (id, media_id, season_number, name, overview, poster_path,
                 episode_count, air_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (media_id, season_number) DO UPDATE SET
                name = excluded.name,
                overview = excluded.overview,
                poster_path = excluded.poster_path,
                episode_count = excluded.episode_count,
                air_date = excluded.air_date
            """,
            (
                season.id,
                season.media_id,
                season.season_number,
                season.name,
                season.overview,
                season.poster_path,
                season.episode_count,
                season.air_date,
            ),
        )
        await db.commit()

    async def list_seasons(self, media_id: str) -> list[Season]:
        db = await self._get_connection()
        async with db.execute(
            "SELECT * FROM seasons WHERE media_id = ? ORDER BY season_number",
            (media_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Season(**dict(row)) for row in rows]

    async def insert_episode(self, episode: Episode) -> bool:
        """Insert an episode file into its (show, season, episode) slot.

        The first file to claim a slot keeps it.

        Returns:
            True if inserted, False if the slot was already taken
        """

        db = await self._get_connection()
        cursor = await db.execute(
            """
            INSERT INTO episodes
                (id, media_id, season_number, episode_number, title, overview,
                 path, duration, still_path, air_date, runtime)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (media_id, season_number, episode_number) DO NOTHING
            """,
            (
                episode.id,
                episode.media_id,
                episode.season_number,
                episode.episode_number,
                episode.title,
                episode.overview,
                episode.path,
                episode.duration,
                episode.still_path,
                episode.air_date,
                episode.runtime,
            ),
        )
        await db.commit()
        return cursor.rowcount > 0

    async def list_episodes(
        self, media_id: str, season_number: int | None = None
    ) -> list[Episode]:
        db = await self._get_connection()
        query = "SELECT * FROM episodes WHERE media_id = ?"
        params: tuple[Any, ...] = (media_id,)
        if season_number is not None:
            query += " AND season_number = ?"
            params += (season_number,)
        query += " ORDER BY season_number, episode_number"

        async with db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [Episode(**dict(row)) for row in rows]

    async def insert_track(self, track: Track) -> None:
        db = await self._get_connection()
        await db.execute(
            """
            INSERT INTO tracks
                (id, media_id, title, track_number, disc_number, duration, path)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                track.id,
                track.media_id,
                track.title,
                track.track_number,
                track.disc_number,
                track.duration,
                track.path,
            ),
        )
        await db.commit()

    async def list_tracks(self, media_id: str) -> list[Track]:
        """List an album's tracks; unnumbered tracks sort last."""

        db = await self._get_connection()
        async with db.execute(
            """
            SELECT * FROM tracks WHERE media_id = ?
            ORDER BY disc_number IS NULL, disc_number,
                     track_number IS NULL, track_number, title
            """,
            (media_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Track(**dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Watch progress
    # ------------------------------------------------------------------

    async def save_progress(
        self,
        user_id: str,
        media_id: str,
        position: int,
        completed: bool = False,
    ) -> WatchProgress:
        """Record a user's position on a media entity, replacing any earlier one.

        Raises:
            ValueError: If ``position`` is negative
            sqlite3.IntegrityError: If the media entity does not exist
        """

        progress = WatchProgress(
            user_id=user_id,
            media_id=media_id,
            position=position,
            completed=completed,
            updated_at=utc_now(),
        )

        db = await self._get_connection()
        await db.execute(
            """
            INSERT INTO watch_progress
                (user_id, media_id, position, completed, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (user_id, media_id) DO UPDATE SET
                position = excluded.position,
                completed = excluded.completed,
                updated_at = excluded.updated_at
            """,
            (
                progress.user_id,
                progress.media_id,
                progress.position,
                int(progress.completed),
                _timestamp(progress.updated_at),
            ),
        )
        await db.commit()
        return progress

    async def get_progress(self, user_id: str, media_id: str) -> WatchProgress | None:
        db = await self._get_connection()
        async with db.execute(
            "SELECT * FROM watch_progress WHERE user_id = ? AND media_id = ?",
            (user_id, media_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_progress(row) if row is not None else None

    async def continue_watching(
        self, user_id: str, limit: int = CONTINUE_WATCHING_LIMIT
    ) -> list[ContinueWatchingItem]:
        """Entities the user started but did not finish, most recent first."""

        db = await self._get_connection()
        async with db.execute(
            """
            SELECT m.*,
                   p.user_id AS progress_user_id,
                   p.position AS progress_position,
                   p.completed AS progress_completed,
                   p.updated_at AS progress_updated_at
            FROM watch_progress p
            JOIN media m ON m.id = p.media_id
            WHERE p.user_id = ? AND p.completed = 0 AND p.position > 0
            ORDER BY p.updated_at DESC
            LIMIT ?
            """,
            (user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            ContinueWatchingItem(
                media=_row_to_media(row),
                progress=WatchProgress(
                    user_id=row["progress_user_id"],
                    media_id=row["id"],
                    position=row["progress_position"],
                    completed=bool(row["progress_completed"]),
                    updated_at=row["progress_updated_at"],
                ),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def library_stats(self, library_id: str | None = None) -> LibraryStats:
        """Count entities, episodes and tracks in one library or all of them."""

        db = await self._get_connection()
        scope = "" if library_id is None else "WHERE m.library_id = ?"
        params: tuple[Any, ...] = () if library_id is None else (library_id,)

        counts: dict[str, int] = {}
        async with db.execute(
            f"SELECT m.kind, COUNT(*) FROM media m {scope} GROUP BY m.kind", params
        ) as cursor:
            for kind, count in await cursor.fetchall():
                counts[kind] = count

        async with db.execute(
            f"SELECT COUNT(*) FROM episodes e JOIN media m ON m.id = e.media_id {scope}",
            params,
        ) as cursor:
            episodes = (await cursor.fetchone())[0]

        async with db.execute(
            f"SELECT COUNT(*) FROM tracks t JOIN media m ON m.id = t.media_id {scope}",
            params,
        ) as cursor:
            tracks = (await cursor.fetchone())[0]

        return LibraryStats(
            movies=counts.get("movie", 0),
            tvshows=counts.get("tvshow", 0),
            albums=counts.get("album", 0),
            photos=counts.get("photo", 0),
            episodes=episodes,
            tracks=tracks,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close database connection."""

        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> LibraryStore:
        """Async context manager entry."""

        await self._get_connection()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""

        await self.close()
