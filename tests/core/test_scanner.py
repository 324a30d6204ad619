"""Tests for the library filesystem walker."""

import os
from pathlib import Path

import pytest

from soundstage.core import scanner
from soundstage.core.errors import InvalidLibraryKind, ScanRootUnavailable
from soundstage.core.scanner import walk_library


@pytest.mark.asyncio
async def test_walk_collects_matching_extensions(movie_tree: Path) -> None:
    result = await walk_library(movie_tree, "movies")

    names = [path.name for path in result.files]
    assert sorted(names) == [
        "Alien.1979.avi",
        "Inception (2010).mp4",
        "The.Matrix.1999.1080p.BluRay.x264.mkv",
    ]
    assert all(path.is_absolute() for path in result.files)
    assert result.failures == []


@pytest.mark.asyncio
async def test_walk_skips_hidden_entries(tmp_path: Path, make_tree) -> None:
    root = make_tree(
        tmp_path / "lib",
        ["visible.mkv", ".hidden.mkv", ".cache/inside.mkv", "dir/.also-hidden.mp4"],
    )

    result = await walk_library(root, "movies")

    assert [path.name for path in result.files] == ["visible.mkv"]


@pytest.mark.asyncio
async def test_walk_matches_extensions_case_insensitively(
    tmp_path: Path, make_tree
) -> None:
    root = make_tree(tmp_path / "lib", ["LOUD.MKV", "quiet.mp4", "doc.TXT"])

    result = await walk_library(root, "movies")

    assert sorted(path.name for path in result.files) == ["LOUD.MKV", "quiet.mp4"]


@pytest.mark.asyncio
async def test_walk_filters_by_library_kind(tmp_path: Path, make_tree) -> None:
    root = make_tree(
        tmp_path / "mixed",
        ["film.mkv", "song.flac", "photo.JPG", "clip.webm", "track.ogg"],
    )

    music = await walk_library(root, "music")
    photos = await walk_library(root, "photos")
    tv = await walk_library(root, "tvshows")

    assert sorted(p.name for p in music.files) == ["song.flac", "track.ogg"]
    assert [p.name for p in photos.files] == ["photo.JPG"]
    assert sorted(p.name for p in tv.files) == ["clip.webm", "film.mkv"]


@pytest.mark.asyncio
async def test_walk_order_is_stable(tv_tree: Path) -> None:
    first = await walk_library(tv_tree, "tvshows")
    second = await walk_library(tv_tree, "tvshows")

    assert first.files == second.files
    assert len(first.files) == 5


@pytest.mark.asyncio
async def test_walk_does_not_follow_symlinks(tmp_path: Path, make_tree) -> None:
    outside = make_tree(tmp_path / "outside", ["linked.mkv"])
    root = make_tree(tmp_path / "lib", ["real.mkv"])
    os.symlink(outside, root / "dir-link")
    os.symlink(outside / "linked.mkv", root / "file-link.mkv")
    # A cycle back to the root must not hang the walk
    os.symlink(root, root / "loop")

    result = await walk_library(root, "movies")

    assert [path.name for path in result.files] == ["real.mkv"]


@pytest.mark.asyncio
async def test_unreadable_subdirectory_is_recorded(
    tmp_path: Path, make_tree, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = make_tree(tmp_path / "lib", ["ok/a.mkv", "locked/b.mkv", "c.mkv"])
    real_list = scanner._list_directory

    def flaky_list(directory: Path):
        if directory.name == "locked":
            raise PermissionError(13, "Permission denied", str(directory))
        return real_list(directory)

    monkeypatch.setattr(scanner, "_list_directory", flaky_list)

    result = await walk_library(root, "movies")

    assert sorted(path.name for path in result.files) == ["a.mkv", "c.mkv"]
    assert len(result.failures) == 1
    assert result.failures[0].path == root.absolute() / "locked"
    assert result.failures[0].reason == "Permission denied"


@pytest.mark.asyncio
async def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(ScanRootUnavailable) as exc_info:
        await walk_library(tmp_path / "nope", "movies")

    assert exc_info.value.path == str((tmp_path / "nope").absolute())


@pytest.mark.asyncio
async def test_unknown_kind_raises(tmp_path: Path) -> None:
    with pytest.raises(InvalidLibraryKind):
        await walk_library(tmp_path, "podcasts")


@pytest.mark.asyncio
async def test_empty_library_is_not_an_error(tmp_path: Path) -> None:
    result = await walk_library(tmp_path, "photos")

    assert result.files == []
    assert result.model_dump(mode="json")["root"] == str(tmp_path.absolute())
