"""Pytest configuration and fixtures for Soundstage tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from pathlib import Path

import pytest
import pytest_asyncio

from soundstage.store.library_store import LibraryStore


def make_files(root: Path, relative_paths: Iterable[str], content: str = "x") -> Path:
    """Create ``relative_paths`` (and parents) under ``root``."""

    for relative in relative_paths:
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return root


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep developer settings (API keys, data dirs) out of the tests."""

    for name in (
        "TMDB_API_KEY",
        "SOUNDSTAGE_DB_PATH",
        "SOUNDSTAGE_IMAGE_CACHE_DIR",
        "SOUNDSTAGE_PROVIDER_TIMEOUT",
        "SOUNDSTAGE_SCAN_CONCURRENCY",
        "SOUNDSTAGE_FFPROBE",
        "SOUNDSTAGE_LOG_LEVEL",
        "SOUNDSTAGE_LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SOUNDSTAGE_DATA_DIR", str(tmp_path / "data"))


@pytest_asyncio.fixture
async def store() -> AsyncIterator[LibraryStore]:
    """In-memory library store, migrated and closed around each test."""

    async with LibraryStore(":memory:") as library_store:
        yield library_store


@pytest.fixture
def movie_tree(tmp_path: Path) -> Path:
    """A small movie library.

    Structure:
        movies/
            The.Matrix.1999.1080p.BluRay.x264.mkv
            Inception (2010).mp4
            Collections/
                Alien.1979.avi
            notes.txt
            .DS_Store.mkv
    """

    return make_files(
        tmp_path / "movies",
        [
            "The.Matrix.1999.1080p.BluRay.x264.mkv",
            "Inception (2010).mp4",
            "Collections/Alien.1979.avi",
            "notes.txt",
            ".DS_Store.mkv",
        ],
    )


@pytest.fixture
def tv_tree(tmp_path: Path) -> Path:
    """A TV library with two shows and one unparseable file.

    Structure:
        tv/
            Show Name/
                Season 01/
                    Show.Name.S01E01.Pilot.mkv
                    Show.Name.S01E02.mkv
                Season 02/
                    Show.Name.S02E01.mkv
            Other Show/
                Other Show - 1x01 - Beginning.mp4
            Extras/
                Behind the Scenes.mkv
    """

    return make_files(
        tmp_path / "tv",
        [
            "Show Name/Season 01/Show.Name.S01E01.Pilot.mkv",
            "Show Name/Season 01/Show.Name.S01E02.mkv",
            "Show Name/Season 02/Show.Name.S02E01.mkv",
            "Other Show/Other Show - 1x01 - Beginning.mp4",
            "Extras/Behind the Scenes.mkv",
        ],
    )


@pytest.fixture
def music_tree(tmp_path: Path) -> Path:
    """A music library with two albums.

    Structure:
        music/
            Discovery/
                01 - One More Time.mp3
                02 - Aerodynamic.mp3
            Homework/
                03 - Da Funk.flac
    """

    return make_files(
        tmp_path / "music",
        [
            "Discovery/01 - One More Time.mp3",
            "Discovery/02 - Aerodynamic.mp3",
            "Homework/03 - Da Funk.flac",
        ],
    )


@pytest.fixture
def make_tree():
    """Factory fixture: ``make_tree(root, ["a/b.mkv", ...])`` creates files."""

    return make_files
