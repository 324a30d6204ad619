"""Tests for the best-effort metadata client."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from soundstage.metadata.client import MetadataClient
from soundstage.metadata.images import ArtworkCache
from soundstage.metadata.providers.tmdb import TMDBProvider

MOVIE = {
    "id": 603,
    "title": "The Matrix",
    "release_date": "1999-03-30",
    "runtime": 136,
    "poster_path": "/matrix.jpg",
    "backdrop_path": None,
    "credits": {"cast": [{"name": "Keanu Reeves", "character": "Neo"}], "crew": []},
}

SHOW = {
    "id": 1396,
    "name": "Breaking Bad",
    "first_air_date": "2008-01-20",
    "poster_path": "/bb.jpg",
    "seasons": [{"season_number": 1, "episode_count": 7, "poster_path": "/bb-s1.jpg"}],
}

SEASON = {
    "season_number": 1,
    "episodes": [{"episode_number": 1, "name": "Pilot", "still_path": "/pilot.jpg"}],
}


def _routes(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if request.url.host == "image.tmdb.org":
        return httpx.Response(200, content=b"img:" + path.encode())
    if path == "/3/search/movie":
        if request.url.params["query"] == "Nothing":
            return httpx.Response(200, json={"results": []})
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": 603, "title": "The Matrix", "release_date": "1999-03-30"},
                    {"id": 604, "title": "The Matrix Reloaded"},
                ]
            },
        )
    if path == "/3/search/tv":
        return httpx.Response(200, json={"results": [{"id": 1396, "name": "Breaking Bad"}]})
    if path == "/3/movie/603":
        return httpx.Response(200, json=MOVIE)
    if path == "/3/tv/1396":
        return httpx.Response(200, json=SHOW)
    if path == "/3/tv/1396/season/1":
        return httpx.Response(200, json=SEASON)
    return httpx.Response(404)


def _client(
    handler: Callable[[httpx.Request], httpx.Response] = _routes,
    cache_dir: Path | None = None,
) -> MetadataClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = TMDBProvider("test_key", client=http)
    provider.backoff_base_delay = 0
    artwork = ArtworkCache(cache_dir, provider) if cache_dir is not None else None
    return MetadataClient(provider, artwork=artwork)


@pytest.mark.asyncio
async def test_search_movie_takes_top_hit() -> None:
    candidate = await _client().search_movie("The Matrix", 1999)

    assert candidate is not None
    assert (candidate.tmdb_id, candidate.year) == (603, 1999)


@pytest.mark.asyncio
async def test_search_without_results_is_none() -> None:
    assert await _client().search_movie("Nothing") is None


@pytest.mark.asyncio
async def test_fetch_movie_metadata_with_artwork(tmp_path: Path) -> None:
    client = _client(cache_dir=tmp_path)

    details = await client.fetch_movie_metadata("The Matrix", 1999)

    assert details is not None
    assert details.tmdb_id == 603
    assert details.runtime == 136
    assert details.poster_path == "/cache/images/poster_matrix.jpg"
    assert details.backdrop_path is None
    assert (tmp_path / "poster_matrix.jpg").read_bytes() == b"img:/t/p/w500/matrix.jpg"


@pytest.mark.asyncio
async def test_fetch_without_artwork_cache_leaves_paths_empty() -> None:
    details = await _client().fetch_movie_metadata("The Matrix")

    assert details is not None
    assert details.remote_poster == "/matrix.jpg"
    assert details.poster_path is None


@pytest.mark.asyncio
async def test_fetch_tv_show_metadata_caches_season_posters(tmp_path: Path) -> None:
    details = await _client(cache_dir=tmp_path).fetch_tv_show_metadata("Breaking Bad")

    assert details is not None
    assert details.poster_path == "/cache/images/poster_bb.jpg"
    assert details.seasons[0].poster_path == "/cache/images/season_bb-s1.jpg"


@pytest.mark.asyncio
async def test_season_details_cache_stills(tmp_path: Path) -> None:
    season = await _client(cache_dir=tmp_path).get_season_details(1396, 1)

    assert season is not None
    assert season.episode(1).title == "Pilot"
    assert season.episode(1).still_path == "/cache/images/still_pilot.jpg"


@pytest.mark.asyncio
async def test_unknown_ids_are_none() -> None:
    client = _client()

    assert await client.get_movie_details(999) is None
    assert await client.get_season_details(1396, 9) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500),
        lambda request: httpx.Response(401),
        lambda request: httpx.Response(200, json=["not", "an", "object"]),
        lambda request: httpx.Response(200, json={"results": [{"title": "no id"}]}),
    ],
    ids=["server-error", "unauthorized", "non-object", "malformed-result"],
)
async def test_failures_resolve_to_none(handler) -> None:
    client = _client(handler)

    assert await client.fetch_movie_metadata("The Matrix") is None
    assert await client.fetch_tv_show_metadata("Breaking Bad") is None


@pytest.mark.asyncio
async def test_network_errors_resolve_to_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert await _client(handler).fetch_movie_metadata("The Matrix") is None


@pytest.mark.asyncio
async def test_malformed_details_payload_is_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/3/movie/603":
            return httpx.Response(200, json={"title": "missing id"})
        return _routes(request)

    assert await _client(handler).fetch_movie_metadata("The Matrix") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "payload", "lookup"),
    [
        ("/3/movie/603", {**MOVIE, "credits": ["bad"]}, "movie"),
        ("/3/movie/603", {**MOVIE, "external_ids": ["bad"]}, "movie"),
        ("/3/tv/1396", {**SHOW, "content_ratings": "bad"}, "show"),
    ],
    ids=["credits-list", "external-ids-list", "content-ratings-string"],
)
async def test_malformed_nested_fields_are_none(path, payload, lookup) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == path:
            return httpx.Response(200, json=payload)
        return _routes(request)

    client = _client(handler)
    if lookup == "movie":
        assert await client.get_movie_details(603) is None
    else:
        assert await client.get_tv_show_details(1396) is None


@pytest.mark.asyncio
async def test_aclose_closes_http_client() -> None:
    client = _client()

    await client.aclose()

    assert client.provider._client.is_closed
