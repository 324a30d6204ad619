"""Best-effort metadata client used by the scan engine.

Wraps :class:`TMDBProvider` and :class:`ArtworkCache`: every lookup returns
a typed model or None. Transport failures, non-success statuses, exhausted
retries and malformed payloads are logged and resolve to None, so a scan
never fails because the provider is unreachable.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from soundstage.metadata.images import ArtworkCache
from soundstage.metadata.models import (
    MovieDetails,
    SearchCandidate,
    SeasonDetails,
    TVShowDetails,
)
from soundstage.metadata.providers.base import ProviderError
from soundstage.metadata.providers.tmdb import TMDBProvider

T = TypeVar("T")

_RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    AttributeError,
    ProviderError,
    ValidationError,
    KeyError,
    TypeError,
    ValueError,
)


class MetadataSource(Protocol):
    """What the scan engine needs from a metadata backend."""

    async def fetch_movie_metadata(
        self, title: str, year: int | None = None
    ) -> MovieDetails | None: ...

    async def fetch_tv_show_metadata(
        self, title: str, year: int | None = None
    ) -> TVShowDetails | None: ...

    async def get_season_details(
        self, show_id: int, season_number: int
    ) -> SeasonDetails | None: ...


class MetadataClient:
    """Typed, never-raising facade over the TMDB provider."""

    def __init__(
        self,
        provider: TMDBProvider,
        artwork: ArtworkCache | None = None,
        logger: Any = None,
    ) -> None:
        self.provider = provider
        self.artwork = artwork
        self._logger = logger or structlog.get_logger(__name__)

    async def _guard(
        self, operation: str, call: Callable[[], Awaitable[T]], **context: Any
    ) -> T | None:
        try:
            return await call()
        except _RECOVERABLE_ERRORS as exc:
            self._logger.warning(
                "metadata.lookup_failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
                **context,
            )
            return None

    async def _artwork(self, remote_path: str | None, kind: str) -> str | None:
        if self.artwork is None:
            return None
        return await self.artwork.fetch(remote_path, kind)

    async def search_movie(
        self, title: str, year: int | None = None
    ) -> SearchCandidate | None:
        """Return the provider's top movie hit for ``title``, if any."""

        async def _call() -> SearchCandidate | None:
            results = await self.provider.search_movie(title, year)
            if not results:
                return None
            return SearchCandidate.from_movie_result(results[0])

        return await self._guard("search_movie", _call, title=title, year=year)

    async def search_tv_show(
        self, title: str, year: int | None = None
    ) -> SearchCandidate | None:
        """Return the provider's top series hit for ``title``, if any."""

        async def _call() -> SearchCandidate | None:
            results = await self.provider.search_tv(title, year)
            if not results:
                return None
            return SearchCandidate.from_tv_result(results[0])

        return await self._guard("search_tv_show", _call, title=title, year=year)

    async def get_movie_details(self, tmdb_id: int) -> MovieDetails | None:
        """Fetch movie details and cache its poster and backdrop locally."""

        async def _call() -> MovieDetails | None:
            payload = await self.provider.get_movie_details(tmdb_id)
            if payload is None:
                return None
            details = MovieDetails.from_tmdb(payload)
            details.poster_path = await self._artwork(details.remote_poster, "poster")
            details.backdrop_path = await self._artwork(
                details.remote_backdrop, "backdrop"
            )
            return details

        return await self._guard("get_movie_details", _call, tmdb_id=tmdb_id)

    async def get_tv_show_details(self, tmdb_id: int) -> TVShowDetails | None:
        """Fetch show details (season summaries included, no episodes)."""

        async def _call() -> TVShowDetails | None:
            payload = await self.provider.get_tv_details(tmdb_id)
            if payload is None:
                return None
            details = TVShowDetails.from_tmdb(payload)
            details.poster_path = await self._artwork(details.remote_poster, "poster")
            details.backdrop_path = await self._artwork(
                details.remote_backdrop, "backdrop"
            )
            for season in details.seasons:
                season.poster_path = await self._artwork(season.remote_poster, "season")
            return details

        return await self._guard("get_tv_show_details", _call, tmdb_id=tmdb_id)

    async def get_season_details(
        self, show_id: int, season_number: int
    ) -> SeasonDetails | None:
        """Fetch a season's episode list, caching episode stills locally."""

        async def _call() -> SeasonDetails | None:
            payload = await self.provider.get_season_details(show_id, season_number)
            if payload is None:
                return None
            season = SeasonDetails.from_tmdb(payload)
            season.poster_path = await self._artwork(season.remote_poster, "season")
            for episode in season.episodes:
                episode.still_path = await self._artwork(episode.remote_still, "still")
            return season

        return await self._guard(
            "get_season_details", _call, show_id=show_id, season=season_number
        )

    async def fetch_movie_metadata(
        self, title: str, year: int | None = None
    ) -> MovieDetails | None:
        """Search for a movie and return the top hit's details."""
        candidate = await self.search_movie(title, year)
        if candidate is None:
            return None
        return await self.get_movie_details(candidate.tmdb_id)

    async def fetch_tv_show_metadata(
        self, title: str, year: int | None = None
    ) -> TVShowDetails | None:
        """Search for a series and return the top hit's details."""
        candidate = await self.search_tv_show(title, year)
        if candidate is None:
            return None
        return await self.get_tv_show_details(candidate.tmdb_id)

    async def aclose(self) -> None:
        await self.provider.aclose()
