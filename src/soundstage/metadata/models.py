"""Normalized provider metadata.

Raw TMDB payloads are converted here into typed models the scan engine can
map onto library rows. ``remote_*`` fields hold provider image paths; the
matching ``*_path`` fields are filled with local artwork cache references
by :class:`soundstage.metadata.client.MetadataClient`.
"""

from typing import Any

from pydantic import BaseModel, Field

from soundstage.core.constants import MAX_CAST_MEMBERS, WRITER_JOBS
from soundstage.core.schemas import CastMember, CrewMember


def _year_of(date_text: Any) -> int | None:
    """Return the year of an ISO ``YYYY-MM-DD`` date string."""
    if not isinstance(date_text, str) or len(date_text) < 4:
        return None
    try:
        return int(date_text[:4])
    except ValueError:
        return None


def _names(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    return [item["name"] for item in items if isinstance(item, dict) and item.get("name")]


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    """Return the nested object at ``key``; malformed payloads raise TypeError."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"expected an object for {key!r}, got {type(value).__name__}")
    return value


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _cast(credits: dict[str, Any]) -> list[CastMember]:
    cast = _list(credits.get("cast"))
    return [
        CastMember(name=member["name"], character=member.get("character") or None)
        for member in cast[:MAX_CAST_MEMBERS]
        if isinstance(member, dict) and member.get("name")
    ]


def _crew(credits: dict[str, Any], jobs: frozenset[str]) -> list[CrewMember]:
    crew = _list(credits.get("crew"))
    return [
        CrewMember(name=member["name"], job=member.get("job"))
        for member in crew
        if isinstance(member, dict) and member.get("job") in jobs and member.get("name")
    ]


def _rating(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


class SearchCandidate(BaseModel):
    """Top search hit for a title (provider ranking, no re-ranking)."""

    tmdb_id: int
    title: str
    year: int | None = None
    overview: str | None = None

    @classmethod
    def from_movie_result(cls, result: dict[str, Any]) -> "SearchCandidate":
        return cls(
            tmdb_id=result["id"],
            title=result.get("title") or result.get("original_title") or "",
            year=_year_of(result.get("release_date")),
            overview=result.get("overview") or None,
        )

    @classmethod
    def from_tv_result(cls, result: dict[str, Any]) -> "SearchCandidate":
        return cls(
            tmdb_id=result["id"],
            title=result.get("name") or result.get("original_name") or "",
            year=_year_of(result.get("first_air_date")),
            overview=result.get("overview") or None,
        )


class _Details(BaseModel):
    """Fields shared by movie and show details."""

    tmdb_id: int
    title: str
    original_title: str | None = None
    overview: str | None = None
    tagline: str | None = None
    year: int | None = None
    rating: float | None = None
    genres: list[str] = Field(default_factory=list)
    studio: str | None = None
    cast: list[CastMember] = Field(default_factory=list)
    directors: list[CrewMember] = Field(default_factory=list)
    writers: list[CrewMember] = Field(default_factory=list)
    imdb_id: str | None = None
    status: str | None = None
    remote_poster: str | None = None
    remote_backdrop: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None


class MovieDetails(_Details):
    """Movie details, runtime in minutes."""

    runtime: int | None = None

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "MovieDetails":
        """Build from a ``/movie/{id}`` payload with credits appended."""

        credits = _mapping(data, "credits")
        external_ids = _mapping(data, "external_ids")
        companies = _names(data.get("production_companies"))

        return cls(
            tmdb_id=data["id"],
            title=data.get("title") or data.get("original_title") or "",
            original_title=data.get("original_title"),
            overview=data.get("overview") or None,
            tagline=data.get("tagline") or None,
            year=_year_of(data.get("release_date")),
            runtime=data.get("runtime") or None,
            rating=_rating(data.get("vote_average")),
            genres=_names(data.get("genres")),
            studio=companies[0] if companies else None,
            cast=_cast(credits),
            directors=_crew(credits, frozenset({"Director"})),
            writers=_crew(credits, WRITER_JOBS),
            imdb_id=external_ids.get("imdb_id") or data.get("imdb_id") or None,
            status=data.get("status"),
            remote_poster=data.get("poster_path"),
            remote_backdrop=data.get("backdrop_path"),
        )


class SeasonSummary(BaseModel):
    """Season entry listed on a show's detail payload."""

    season_number: int
    name: str | None = None
    overview: str | None = None
    episode_count: int | None = None
    air_date: str | None = None
    remote_poster: str | None = None
    poster_path: str | None = None

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "SeasonSummary":
        return cls(
            season_number=data["season_number"],
            name=data.get("name"),
            overview=data.get("overview") or None,
            episode_count=data.get("episode_count"),
            air_date=data.get("air_date"),
            remote_poster=data.get("poster_path"),
        )


class TVShowDetails(_Details):
    """Show details including season summaries (no episodes)."""

    end_year: int | None = None
    content_rating: str | None = None
    season_count: int | None = None
    episode_count: int | None = None
    episode_runtime: int | None = None
    seasons: list[SeasonSummary] = Field(default_factory=list)

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "TVShowDetails":
        """Build from a ``/tv/{id}`` payload with credits/ratings appended.

        Creators stand in for both directors and writers.
        """

        credits = _mapping(data, "credits")
        external_ids = _mapping(data, "external_ids")
        ratings = _list(_mapping(data, "content_ratings").get("results"))
        us_rating = next(
            (
                entry.get("rating")
                for entry in ratings
                if isinstance(entry, dict) and entry.get("iso_3166_1") == "US"
            ),
            None,
        )
        studios = _names(data.get("networks")) or _names(
            data.get("production_companies")
        )
        creators = [
            CrewMember(name=name, job="Creator")
            for name in _names(data.get("created_by"))
        ]
        run_times = _list(data.get("episode_run_time"))

        return cls(
            tmdb_id=data["id"],
            title=data.get("name") or data.get("original_name") or "",
            original_title=data.get("original_name"),
            overview=data.get("overview") or None,
            tagline=data.get("tagline") or None,
            year=_year_of(data.get("first_air_date")),
            end_year=_year_of(data.get("last_air_date")),
            rating=_rating(data.get("vote_average")),
            content_rating=us_rating or None,
            genres=_names(data.get("genres")),
            studio=studios[0] if studios else None,
            cast=_cast(credits),
            directors=list(creators),
            writers=list(creators),
            imdb_id=external_ids.get("imdb_id") or None,
            status=data.get("status"),
            season_count=data.get("number_of_seasons"),
            episode_count=data.get("number_of_episodes"),
            episode_runtime=run_times[0] if run_times else None,
            seasons=[
                SeasonSummary.from_tmdb(season)
                for season in _list(data.get("seasons"))
                if isinstance(season, dict) and season.get("season_number") is not None
            ],
            remote_poster=data.get("poster_path"),
            remote_backdrop=data.get("backdrop_path"),
        )


class EpisodeDetails(BaseModel):
    """One episode within a season's detail payload, runtime in minutes."""

    episode_number: int
    title: str | None = None
    overview: str | None = None
    air_date: str | None = None
    runtime: int | None = None
    rating: float | None = None
    remote_still: str | None = None
    still_path: str | None = None

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "EpisodeDetails":
        return cls(
            episode_number=data["episode_number"],
            title=data.get("name") or None,
            overview=data.get("overview") or None,
            air_date=data.get("air_date"),
            runtime=data.get("runtime") or None,
            rating=_rating(data.get("vote_average")),
            remote_still=data.get("still_path"),
        )


class SeasonDetails(BaseModel):
    """A season with its full episode list."""

    season_number: int
    name: str | None = None
    overview: str | None = None
    air_date: str | None = None
    remote_poster: str | None = None
    poster_path: str | None = None
    episodes: list[EpisodeDetails] = Field(default_factory=list)

    @classmethod
    def from_tmdb(cls, data: dict[str, Any]) -> "SeasonDetails":
        return cls(
            season_number=data["season_number"],
            name=data.get("name"),
            overview=data.get("overview") or None,
            air_date=data.get("air_date"),
            remote_poster=data.get("poster_path"),
            episodes=[
                EpisodeDetails.from_tmdb(episode)
                for episode in _list(data.get("episodes"))
                if isinstance(episode, dict)
                and episode.get("episode_number") is not None
            ],
        )

    def episode(self, episode_number: int) -> EpisodeDetails | None:
        """Return the episode with ``episode_number``, if listed."""
        for episode in self.episodes:
            if episode.episode_number == episode_number:
                return episode
        return None

    def to_summary(self) -> SeasonSummary:
        """Summarize for storage when the show payload lacked this season."""
        return SeasonSummary(
            season_number=self.season_number,
            name=self.name,
            overview=self.overview,
            episode_count=len(self.episodes),
            air_date=self.air_date,
            remote_poster=self.remote_poster,
            poster_path=self.poster_path,
        )
