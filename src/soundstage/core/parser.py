"""Deterministic filename parser for library media files.

Derives display titles, years, episode slots and album/track identities
from filenames and their immediate directory:
- Movies: The.Matrix.1999.1080p.BluRay.x264.mkv -> "The Matrix" (1999)
- TV: Show.Name.S02E05.Title.mkv or Show Name - 2x05 - Title.mkv
- Music: <Album Directory>/01 - Track Title.mp3

Everything here is string manipulation only. No filesystem or network access.
"""

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from soundstage.core.constants import MIN_YEAR, RELEASE_TAGS, UNKNOWN_ALBUM

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_BRACKETED_RE = re.compile(r"\[.*?\]|\(.*?\)")
_RELEASE_TAG_RE = re.compile(
    r"(?<![A-Za-z0-9])(?:"
    + "|".join(re.escape(tag) for tag in RELEASE_TAGS)
    + r")(?![A-Za-z0-9])",
    re.IGNORECASE,
)
_TRAILING_YEAR_RE = re.compile(r"(?<![A-Za-z0-9])(\d{4})[\s._\-]*$")
_YEAR_RUN_RE = re.compile(r"[(\[]?(\d{4})[)\]]?")

# Episode patterns, tried in order
_SEASON_EPISODE_RE = re.compile(r"S(\d{1,2})E(\d{1,2})", re.IGNORECASE)
_CROSS_RE = re.compile(r"(?<!\d)(\d{1,2})x(\d{1,2})(?!\d)", re.IGNORECASE)
_EPISODE_PATTERNS: tuple[re.Pattern[str], ...] = (_SEASON_EPISODE_RE, _CROSS_RE)

_SEPARATORS_RE = re.compile(r"[._\-]+")
_WHITESPACE_RE = re.compile(r"\s+")
_TRACK_NUMBER_RE = re.compile(r"^(\d{1,2})")
_TRACK_PREFIX_RE = re.compile(r"^\d{1,2}[\s._\-]+")


@dataclass(frozen=True)
class EpisodeInfo:
    """Episode identity parsed from a filename.

    Attributes:
        show_title: Cleaned show title (from filename prefix or parent dir)
        season: Season number
        episode: Episode number
        year: Year found next to the show title, if any
        episode_title: Cleaned text after the episode token, if any
    """

    show_title: str
    season: int
    episode: int
    year: int | None = None
    episode_title: str | None = None


@dataclass(frozen=True)
class AlbumInfo:
    """Album/track identity parsed from a music file path."""

    album: str
    title: str
    track: int | None = None


def _current_year() -> int:
    return date.today().year


def is_plausible_year(year: int, current_year: int | None = None) -> bool:
    """Return True when ``year`` lies in 1900..current_year+1 inclusive."""

    upper = (current_year if current_year is not None else _current_year()) + 1
    return MIN_YEAR <= year <= upper


def _strip_trailing_year(text: str, current_year: int) -> str:
    """Drop a plausible bare year ending ``text`` unless it is the only token."""

    match = _TRAILING_YEAR_RE.search(text)
    if not match:
        return text
    if not _SEPARATORS_RE.sub(" ", text[: match.start()]).strip():
        return text
    if not is_plausible_year(int(match.group(1)), current_year):
        return text
    return text[: match.start()]


def clean_title(
    text: str,
    *,
    strip_extension: bool = True,
    current_year: int | None = None,
) -> str:
    """Clean raw filename text into a display title.

    Unlike :func:`parse_title` this may return an empty string, which lets
    callers fall back to another source (e.g. the parent directory).
    """

    year_ceiling = current_year if current_year is not None else _current_year()

    title = _EXTENSION_RE.sub("", text) if strip_extension else text
    title = _RELEASE_TAG_RE.sub(" ", title)
    for pattern in _EPISODE_PATTERNS:
        title = pattern.sub(" ", title)
    # a year is trailing only when no bracketed group follows it
    title = _strip_trailing_year(title, year_ceiling)
    title = _BRACKETED_RE.sub(" ", title)
    title = _SEPARATORS_RE.sub(" ", title)
    return _WHITESPACE_RE.sub(" ", title).strip()


def parse_title(filename: str, *, current_year: int | None = None) -> str:
    """Parse a display title from a filename.

    Falls back to the original filename verbatim if cleaning leaves nothing.

    Examples:
        >>> parse_title("The.Matrix.1999.1080p.BluRay.x264.mkv")
        'The Matrix'
        >>> parse_title("[Group] Movie Name (2010).mkv")
        'Movie Name'
    """

    return clean_title(filename, current_year=current_year) or filename


def parse_year(filename: str, *, current_year: int | None = None) -> int | None:
    """Return the first 4-digit run of ``filename`` if it is a plausible year."""

    match = _YEAR_RUN_RE.search(filename)
    if not match:
        return None
    year = int(match.group(1))
    if is_plausible_year(year, current_year):
        return year
    return None


def parse_episode_info(
    path: str | Path, *, current_year: int | None = None
) -> EpisodeInfo | None:
    """Extract show title, season and episode from an episode file path.

    Tries ``S<season>E<episode>`` first, then ``<season>x<episode>``. The
    show title comes from the filename text before the matched token, or
    from the parent directory name when that prefix cleans to nothing.

    Returns:
        EpisodeInfo, or None when neither pattern matches.
    """

    file_path = Path(path)
    filename = file_path.name
    dir_name = file_path.parent.name

    for pattern in _EPISODE_PATTERNS:
        match = pattern.search(filename)
        if not match:
            continue

        prefix = filename[: match.start()]
        show_title = clean_title(
            prefix, strip_extension=False, current_year=current_year
        )
        year = parse_year(prefix, current_year=current_year) if prefix else None

        if not show_title:
            show_title = (
                clean_title(dir_name, strip_extension=False, current_year=current_year)
                or dir_name
                or parse_title(filename, current_year=current_year)
            )
            if year is None and dir_name:
                year = parse_year(dir_name, current_year=current_year)

        suffix = filename[match.end() :]
        episode_title = clean_title(suffix, current_year=current_year) or None

        return EpisodeInfo(
            show_title=show_title,
            season=int(match.group(1)),
            episode=int(match.group(2)),
            year=year,
            episode_title=episode_title,
        )

    return None


def parse_album_info(
    path: str | Path, *, current_year: int | None = None
) -> AlbumInfo:
    """Derive album, track title and track number from a music file path.

    Album identity is the immediate parent directory name. No tag or
    provider data is consulted.
    """

    file_path = Path(path)
    filename = file_path.name
    album = file_path.parent.name or UNKNOWN_ALBUM

    track_match = _TRACK_NUMBER_RE.match(filename)
    track = int(track_match.group(1)) if track_match else None

    stem = _EXTENSION_RE.sub("", filename)
    remainder = _TRACK_PREFIX_RE.sub("", stem)
    title = clean_title(
        remainder, strip_extension=False, current_year=current_year
    ) or parse_title(filename, current_year=current_year)

    return AlbumInfo(album=album, title=title, track=track)
