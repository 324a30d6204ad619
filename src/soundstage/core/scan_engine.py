"""Library scan engine: Clear -> Walk -> Group and Enrich -> Persist.

A scan fully re-derives a library from disk. Its media rows are deleted
first, then every file found by the walker is grouped into entities (one
movie or photo per file, shows and albums shared across files), enriched
through the metadata source when one is configured, and written to the
store.

Files are processed by a small pool of workers fed from an anyio memory
stream. Show/album creation is serialized per (kind, title) and season
detail lookups per (show, season), so concurrent workers never create the
same group twice or fetch the same season twice.
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import anyio
import structlog
from anyio.abc import ObjectReceiveStream, TaskGroup

from soundstage.core.constants import DEFAULT_SCAN_CONCURRENCY
from soundstage.core.errors import (
    GroupUnavailableError,
    LibraryNotFoundError,
    ScanRootUnavailable,
    SoundstageError,
)
from soundstage.core.parser import (
    EpisodeInfo,
    parse_album_info,
    parse_episode_info,
    parse_title,
    parse_year,
)
from soundstage.core.prober import MediaProber
from soundstage.core.scanner import walk_library
from soundstage.core.schemas import (
    Episode,
    Library,
    MediaEntity,
    ScanState,
    ScanSummary,
    Season,
    Track,
)
from soundstage.metadata.client import MetadataSource
from soundstage.metadata.models import (
    MovieDetails,
    SeasonDetails,
    SeasonSummary,
    TVShowDetails,
)
from soundstage.store.library_store import LibraryStore, new_id, utc_now

_GroupKey = tuple[str, str]
_SeasonKey = tuple[str, int]


def _check_root(root: Path) -> None:
    """Raise OSError unless ``root`` is a directory that can be listed."""
    with os.scandir(root):
        pass


def _details_fields(details: MovieDetails | TVShowDetails | None) -> dict[str, Any]:
    """Entity fields copied from provider details."""

    if details is None:
        return {}

    fields: dict[str, Any] = {
        "original_title": details.original_title,
        "overview": details.overview,
        "tagline": details.tagline,
        "poster_path": details.poster_path,
        "backdrop_path": details.backdrop_path,
        "rating": details.rating,
        "genres": list(details.genres),
        "cast": list(details.cast),
        "directors": list(details.directors),
        "writers": list(details.writers),
        "studio": details.studio,
        "tmdb_id": details.tmdb_id,
        "imdb_id": details.imdb_id,
        "status": details.status,
    }
    if isinstance(details, TVShowDetails):
        fields.update(
            end_year=details.end_year,
            content_rating=details.content_rating,
            season_count=details.season_count,
            episode_count=details.episode_count,
        )
    return fields


@dataclass
class _ScanRun:
    """Mutable state shared by the workers of one scan."""

    library: Library
    summary: ScanSummary
    log: Any
    cancel_event: anyio.Event | None = None
    groups: dict[_GroupKey, MediaEntity] = field(default_factory=dict)
    group_locks: dict[_GroupKey, anyio.Lock] = field(default_factory=dict)
    season_cache: dict[_SeasonKey, SeasonDetails | None] = field(default_factory=dict)
    season_locks: dict[_SeasonKey, anyio.Lock] = field(default_factory=dict)
    stored_seasons: set[_SeasonKey] = field(default_factory=set)
    failed_groups: dict[_GroupKey, str] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def group_lock(self, key: _GroupKey) -> anyio.Lock:
        return self.group_locks.setdefault(key, anyio.Lock())

    def season_lock(self, key: _SeasonKey) -> anyio.Lock:
        return self.season_locks.setdefault(key, anyio.Lock())


class ScanEngine:
    """Rebuilds a library's media rows from its files on disk."""

    def __init__(
        self,
        store: LibraryStore,
        metadata: MetadataSource | None = None,
        prober: MediaProber | None = None,
        concurrency: int = DEFAULT_SCAN_CONCURRENCY,
        logger: Any = None,
        current_year: int | None = None,
    ) -> None:
        """Initialize the scan engine.

        Args:
            store: Library store to read libraries from and write media to
            metadata: Optional metadata source; None scans filesystem-only
            prober: Optional duration prober for movies and episodes
            concurrency: Number of files processed at once within a scan
            logger: Optional structlog logger
            current_year: Pin the parser's year ceiling (tests)
        """
        self.store = store
        self.metadata = metadata
        self.prober = prober
        self.concurrency = max(1, concurrency)
        self.current_year = current_year
        self._logger = logger or structlog.get_logger(__name__)
        self._states: dict[str, ScanState] = {}

    async def aclose(self) -> None:
        """Release the metadata source's network resources, if it holds any."""
        close = getattr(self.metadata, "aclose", None)
        if close is not None:
            await close()

    def scan_state(self, library_id: str) -> ScanState:
        """State of the most recent scan of ``library_id`` in this process."""
        return self._states.get(library_id, ScanState.IDLE)

    def start_scan(
        self,
        task_group: TaskGroup,
        library_id: str,
        cancel_event: anyio.Event | None = None,
    ) -> None:
        """Run :meth:`scan_library` in ``task_group`` without waiting for it.

        Failures are logged rather than propagated into the task group.
        """

        async def _run() -> None:
            try:
                await self.scan_library(library_id, cancel_event)
            except SoundstageError as exc:
                self._logger.error(
                    "scan.failed", library_id=library_id, error=str(exc)
                )
            except Exception:
                self._logger.exception("scan.crashed", library_id=library_id)

        task_group.start_soon(_run, name=f"scan:{library_id}")

    async def scan_library(
        self, library_id: str, cancel_event: anyio.Event | None = None
    ) -> ScanSummary:
        """Fully rebuild one library from disk.

        Args:
            library_id: Library to scan
            cancel_event: Optional event; once set, no further files are
                processed and the library is left partially rebuilt

        Returns:
            ScanSummary with counts for the run

        Raises:
            LibraryNotFoundError: If the library does not exist (nothing is touched)
            ScanRootUnavailable: If the library root cannot be read (nothing is
                deleted)
        """
        library = await self.store.get_library(library_id)
        if library is None:
            self._states[library_id] = ScanState.FAILED
            raise LibraryNotFoundError(library_id)

        log = self._logger.bind(
            library_id=library.id,
            library=library.name,
            scan_id=uuid.uuid4().hex[:12],
        )
        summary = ScanSummary(
            library_id=library.id,
            library_name=library.name,
            state=ScanState.RUNNING,
            started_at=utc_now(),
        )
        run = _ScanRun(library=library, summary=summary, log=log, cancel_event=cancel_event)
        self._states[library_id] = ScanState.RUNNING
        started = time.monotonic()
        log.info("scan.started", path=library.path, kind=library.kind)

        try:
            root = Path(library.path)
            try:
                await anyio.to_thread.run_sync(_check_root, root)
            except OSError as exc:
                raise ScanRootUnavailable(
                    library.path, exc.strerror or str(exc)
                ) from exc

            cleared = await self.store.clear_library_media(library.id)
            log.debug("scan.cleared", removed=cleared)

            walk = await walk_library(root, library.kind, logger=log)
            summary.files_found = len(walk.files)
            summary.walk_failures = len(walk.failures)

            await self._process_files(run, walk.files)

            if run.cancelled:
                summary.cancelled = True
                summary.state = ScanState.CANCELLED
            else:
                await self.store.mark_scanned(library.id)
                summary.state = ScanState.COMPLETED
        except Exception as exc:
            summary.state = ScanState.FAILED
            self._states[library_id] = ScanState.FAILED
            log.error("scan.aborted", error_type=type(exc).__name__, error=str(exc))
            raise
        finally:
            if summary.state is ScanState.RUNNING:
                # Cancelled from outside (enclosing cancel scope)
                summary.state = ScanState.CANCELLED
                summary.cancelled = True
            self._states[library_id] = summary.state

        summary.finished_at = utc_now()
        summary.elapsed = round(time.monotonic() - started, 3)
        log.info(
            "scan.finished",
            state=summary.state.value,
            files=summary.files_found,
            entities=summary.entities_created,
            episodes=summary.episodes_created,
            tracks=summary.tracks_created,
            skipped=summary.skipped_files,
            duplicates=summary.duplicate_episodes,
            metadata_misses=summary.metadata_misses,
            errors=summary.errors,
            elapsed=summary.elapsed,
        )
        return summary

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    async def _process_files(self, run: _ScanRun, files: list[Path]) -> None:
        send, receive = anyio.create_memory_object_stream[Path](
            max_buffer_size=self.concurrency
        )
        async with anyio.create_task_group() as tg:
            async with receive:
                for _ in range(self.concurrency):
                    tg.start_soon(self._worker, run, receive.clone())

            async with send:
                for index, path in enumerate(files):
                    if run.cancelled:
                        run.log.info("scan.cancelled", remaining=len(files) - index)
                        break
                    await send.send(path)

    async def _worker(self, run: _ScanRun, receive: ObjectReceiveStream[Path]) -> None:
        async with receive:
            async for path in receive:
                # Drain without processing once cancelled
                if run.cancelled:
                    continue
                await self._process_file(run, path)

    async def _process_file(self, run: _ScanRun, path: Path) -> None:
        kind = run.library.kind
        try:
            if kind == "movies":
                await self._process_movie(run, path)
            elif kind == "tvshows":
                await self._process_episode(run, path)
            elif kind == "music":
                await self._process_track(run, path)
            else:
                await self._process_photo(run, path)
        except Exception as exc:
            run.summary.errors += 1
            run.log.warning(
                "scan.file_failed",
                path=str(path),
                error_type=type(exc).__name__,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Best-effort helpers
    # ------------------------------------------------------------------

    async def _lookup(
        self, run: _ScanRun, operation: str, *args: Any
    ) -> Any:
        """Call ``self.metadata.<operation>(*args)``; failures become None."""

        if self.metadata is None:
            return None
        try:
            return await getattr(self.metadata, operation)(*args)
        except Exception as exc:
            run.log.warning(
                "scan.metadata_failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    async def _probe(self, run: _ScanRun, path: Path) -> int | None:
        if self.prober is None:
            return None
        try:
            return await self.prober.probe_duration(path)
        except Exception as exc:
            run.log.warning("scan.probe_failed", path=str(path), error=str(exc))
            return None

    def _count_miss(self, run: _ScanRun, result: object, **context: Any) -> None:
        if self.metadata is not None and result is None:
            run.summary.metadata_misses += 1
            run.log.info("scan.metadata_miss", **context)

    # ------------------------------------------------------------------
    # Per-kind processing
    # ------------------------------------------------------------------

    async def _process_movie(self, run: _ScanRun, path: Path) -> None:
        title = parse_title(path.name, current_year=self.current_year)
        year = parse_year(path.name, current_year=self.current_year)
        stat = await anyio.to_thread.run_sync(path.stat)

        details: MovieDetails | None = await self._lookup(
            run, "fetch_movie_metadata", title, year
        )
        self._count_miss(run, details, title=title, year=year)

        duration = await self._probe(run, path)
        if duration is None and details is not None and details.runtime:
            duration = details.runtime * 60

        entity = MediaEntity(
            id=new_id(),
            library_id=run.library.id,
            kind="movie",
            title=(details.title if details and details.title else title),
            path=str(path),
            file_name=path.name,
            file_size=stat.st_size,
            duration=duration,
            year=(details.year if details and details.year else year),
            **_details_fields(details),
        )
        await self.store.insert_media(entity)
        run.summary.entities_created += 1

    async def _process_photo(self, run: _ScanRun, path: Path) -> None:
        stat = await anyio.to_thread.run_sync(path.stat)
        entity = MediaEntity(
            id=new_id(),
            library_id=run.library.id,
            kind="photo",
            title=parse_title(path.name, current_year=self.current_year),
            path=str(path),
            file_name=path.name,
            file_size=stat.st_size,
            year=parse_year(path.name, current_year=self.current_year),
        )
        await self.store.insert_media(entity)
        run.summary.entities_created += 1

    async def _process_episode(self, run: _ScanRun, path: Path) -> None:
        info = parse_episode_info(path, current_year=self.current_year)
        if info is None:
            run.summary.skipped_files += 1
            run.log.debug("scan.file_skipped", path=str(path), reason="no_episode_pattern")
            return

        show = await self._get_or_create_show(run, info, path)
        season = await self._get_season_details(run, show, info.season)
        details = season.episode(info.episode) if season is not None else None

        duration = await self._probe(run, path)
        if duration is None and details is not None and details.runtime:
            duration = details.runtime * 60

        episode = Episode(
            id=new_id(),
            media_id=show.id,
            season_number=info.season,
            episode_number=info.episode,
            path=str(path),
            title=(
                (details.title if details else None)
                or info.episode_title
                or parse_title(path.name, current_year=self.current_year)
            ),
            overview=details.overview if details else None,
            duration=duration,
            still_path=details.still_path if details else None,
            air_date=details.air_date if details else None,
            runtime=details.runtime if details else None,
        )
        if await self.store.insert_episode(episode):
            run.summary.episodes_created += 1
        else:
            run.summary.duplicate_episodes += 1
            run.log.info(
                "scan.duplicate_episode",
                path=str(path),
                show=show.title,
                season=info.season,
                episode=info.episode,
            )

    async def _process_track(self, run: _ScanRun, path: Path) -> None:
        info = parse_album_info(path, current_year=self.current_year)
        album = await self._get_or_create_album(run, info.album, path)
        track = Track(
            id=new_id(),
            media_id=album.id,
            title=info.title,
            track_number=info.track,
            path=str(path),
        )
        await self.store.insert_track(track)
        run.summary.tracks_created += 1

    # ------------------------------------------------------------------
    # Group find-or-create
    # ------------------------------------------------------------------

    async def _find_group(
        self, run: _ScanRun, key: _GroupKey
    ) -> MediaEntity | None:
        group = run.groups.get(key)
        if group is None:
            kind, title = key
            group = await self.store.find_media_by_title(run.library.id, kind, title)
            if group is not None:
                run.groups[key] = group
        return group

    async def _get_or_create_show(
        self, run: _ScanRun, info: EpisodeInfo, path: Path
    ) -> MediaEntity:
        key: _GroupKey = ("tvshow", info.show_title)
        async with run.group_lock(key):
            if key in run.failed_groups:
                raise GroupUnavailableError(*key, run.failed_groups[key])
            existing = await self._find_group(run, key)
            if existing is not None:
                return existing

            details: TVShowDetails | None = await self._lookup(
                run, "fetch_tv_show_metadata", info.show_title, info.year
            )
            self._count_miss(run, details, title=info.show_title, year=info.year)

            show = MediaEntity(
                id=new_id(),
                library_id=run.library.id,
                kind="tvshow",
                title=(details.title if details and details.title else info.show_title),
                path=str(path.parent),
                file_name=info.show_title,
                year=(details.year if details and details.year else info.year),
                **_details_fields(details),
            )
            try:
                await self.store.insert_media(show)
            except Exception as exc:
                run.failed_groups[key] = str(exc)
                raise
            run.summary.entities_created += 1
            run.groups[key] = show

            if details is not None:
                for summary in details.seasons:
                    await self._store_season(run, show, summary)
            return show

    async def _get_or_create_album(
        self, run: _ScanRun, album_title: str, path: Path
    ) -> MediaEntity:
        key: _GroupKey = ("album", album_title)
        async with run.group_lock(key):
            existing = await self._find_group(run, key)
            if existing is not None:
                return existing

            album = MediaEntity(
                id=new_id(),
                library_id=run.library.id,
                kind="album",
                title=album_title,
                path=str(path.parent),
                file_name=album_title,
            )
            await self.store.insert_media(album)
            run.summary.entities_created += 1
            run.groups[key] = album
            return album

    # ------------------------------------------------------------------
    # Seasons
    # ------------------------------------------------------------------

    async def _store_season(
        self, run: _ScanRun, show: MediaEntity, summary: SeasonSummary
    ) -> None:
        await self.store.upsert_season(
            Season(
                id=new_id(),
                media_id=show.id,
                season_number=summary.season_number,
                name=summary.name,
                overview=summary.overview,
                poster_path=summary.poster_path,
                episode_count=summary.episode_count,
                air_date=summary.air_date,
            )
        )
        run.stored_seasons.add((show.id, summary.season_number))

    async def _get_season_details(
        self, run: _ScanRun, show: MediaEntity, season_number: int
    ) -> SeasonDetails | None:
        """Episode list for one season, fetched at most once per scan."""

        if self.metadata is None or show.tmdb_id is None:
            return None

        key: _SeasonKey = (show.id, season_number)
        async with run.season_lock(key):
            if key in run.season_cache:
                return run.season_cache[key]

            season: SeasonDetails | None = await self._lookup(
                run, "get_season_details", show.tmdb_id, season_number
            )
            run.season_cache[key] = season

            if season is not None and key not in run.stored_seasons:
                await self._store_season(run, show, season.to_summary())
            return season
