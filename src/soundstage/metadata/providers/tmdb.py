"""TMDB (The Movie Database) provider with dual auth.

Security:
- Supports both API key (query param) and Bearer token (header)
- Auto-detects auth method by token format
- Never exposes keys in logs/errors

Features:
- Movie and TV search (top results as ranked by TMDB)
- Details with credits, external ids and content ratings appended
- Season detail (episode list) lookups
- Raw artwork downloads from the image CDN
- Automatic retry/backoff via BaseProvider
"""

from typing import Any

import httpx

from soundstage.core.constants import (
    MAX_PROVIDER_RETRIES,
    PROVIDER_RATE_LIMIT,
    PROVIDER_RATE_WINDOW_SECONDS,
    PROVIDER_TIMEOUT,
    TMDB_BASE_URL,
    TMDB_IMAGE_BASE,
)
from soundstage.metadata.providers.base import BaseProvider, ProviderError


class TMDBProvider(BaseProvider):
    """TMDB provider for movies and TV shows with dual authentication support."""

    BASE_URL = TMDB_BASE_URL
    IMAGE_BASE = TMDB_IMAGE_BASE

    def __init__(
        self,
        api_key: str | None,
        timeout: float = PROVIDER_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        max_retries: int = MAX_PROVIDER_RETRIES,
    ) -> None:
        """Initialize TMDB provider with auto-detected auth method.

        Args:
            api_key: TMDB v3 API key or v4 read access token
            timeout: Per-request timeout in seconds
            client: Optional pre-built httpx client (tests, shared pools)
            max_retries: Maximum attempts per request
        """
        super().__init__(
            provider_name="TMDB",
            api_key=api_key,
            rate_limit=PROVIDER_RATE_LIMIT,
            rate_window_seconds=PROVIDER_RATE_WINDOW_SECONDS,
            max_retries=max_retries,
        )

        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)

    def _get_auth(self) -> tuple[dict[str, str], dict[str, Any]]:
        """Get auth headers and params based on key format.

        Returns:
            (headers, params) tuple for httpx request
        """
        api_key = self.api_key
        if not api_key:
            raise ProviderError("TMDB API key not configured")

        # Detect Bearer token: starts with "eyJ" and length > 100
        is_bearer = api_key.startswith("eyJ") and len(api_key) > 100

        if is_bearer:
            return {"Authorization": f"Bearer {api_key}"}, {"language": "en-US"}
        return {}, {"api_key": api_key, "language": "en-US"}

    async def _get_json(
        self,
        path: str,
        operation_name: str,
        extra_params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """GET ``BASE_URL + path`` and return the decoded object, None on 404."""

        headers, params = self._get_auth()
        if extra_params:
            params.update(extra_params)

        async def _do_get() -> dict[str, Any] | None:
            try:
                response = await self._client.get(
                    f"{self.BASE_URL}{path}", headers=headers, params=params
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    return None
                raise  # Let retry wrapper handle it

            data = response.json()
            if not isinstance(data, dict):
                raise ProviderError(
                    f"{self.provider_name} {operation_name} returned a non-object body"
                )
            return data

        return await self._execute_with_retry(_do_get, operation_name)

    async def _search(
        self, path: str, query: str, extra_params: dict[str, Any], operation: str
    ) -> list[dict[str, Any]]:
        data = await self._get_json(path, operation, {"query": query, **extra_params})
        if data is None:
            return []
        results = data.get("results", [])
        if not isinstance(results, list):
            return []
        return [dict(item) for item in results if isinstance(item, dict)]

    async def search(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:
        """Search for movies by title.

        Args:
            query: Movie title to search
            **kwargs: Optional 'year' for filtering

        Returns:
            List of search results, in TMDB's ranking order
        """
        extra: dict[str, Any] = {}
        if kwargs.get("year") is not None:
            extra["year"] = kwargs["year"]
        return await self._search("/search/movie", query, extra, "search_movie")

    async def search_movie(
        self, title: str, year: int | None = None
    ) -> list[dict[str, Any]]:
        """Search for movies by title and optional release year."""
        return await self.search(title, year=year)

    async def search_tv(
        self, title: str, year: int | None = None
    ) -> list[dict[str, Any]]:
        """Search for television series by title and optional first-air year."""

        extra: dict[str, Any] = {}
        if year is not None:
            extra["first_air_date_year"] = year
        return await self._search("/search/tv", title, extra, "search_tv")

    async def get_details(self, entity_id: str, **kwargs: Any) -> dict[str, Any] | None:
        """Alias for get_movie_details for BaseProvider interface."""
        return await self.get_movie_details(int(entity_id))

    async def get_movie_details(self, movie_id: int) -> dict[str, Any] | None:
        """Get movie details with credits and external ids appended.

        Args:
            movie_id: TMDB movie ID

        Returns:
            Raw TMDB movie payload, or None if TMDB has no such movie
        """
        return await self._get_json(
            f"/movie/{movie_id}",
            "get_movie_details",
            {"append_to_response": "credits,external_ids"},
        )

    async def get_tv_details(self, series_id: int) -> dict[str, Any] | None:
        """Get series details with credits, external ids and content ratings.

        The payload lists season summaries but no episodes; use
        :meth:`get_season_details` for those.
        """
        return await self._get_json(
            f"/tv/{series_id}",
            "get_tv_details",
            {"append_to_response": "credits,external_ids,content_ratings"},
        )

    async def get_season_details(
        self, series_id: int, season_number: int
    ) -> dict[str, Any] | None:
        """Get one season of a series, including its episode list."""
        return await self._get_json(
            f"/tv/{series_id}/season/{season_number}",
            f"get_season_details:{season_number}",
        )

    def image_url(self, file_path: str, size: str) -> str:
        """Build the CDN URL for an image path at a given size tier."""
        return f"{self.IMAGE_BASE}/{size}/{file_path.lstrip('/')}"

    async def download_image(self, file_path: str, size: str) -> bytes | None:
        """Download raw image bytes from the TMDB image CDN.

        The CDN is keyless, so no auth parameters are sent.

        Args:
            file_path: TMDB image path (e.g. "/abc123.jpg")
            size: Size tier (e.g. "w500")

        Returns:
            Image bytes, or None if the image does not exist
        """
        url = self.image_url(file_path, size)

        async def _do_download() -> bytes | None:
            try:
                response = await self._client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    return None
                raise
            return response.content

        return await self._execute_with_retry(_do_download, "download_image")

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "TMDBProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit - close client."""
        await self.aclose()
