"""Tests for filename parsing: titles, years, episode slots and album tracks."""

from pathlib import Path

import pytest

from soundstage.core.parser import (
    AlbumInfo,
    EpisodeInfo,
    clean_title,
    is_plausible_year,
    parse_album_info,
    parse_episode_info,
    parse_title,
    parse_year,
)

YEAR = 2026


class TestParseTitle:
    """Display titles derived from movie-style filenames."""

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("The.Matrix.1999.1080p.BluRay.x264.mkv", "The Matrix"),
            ("[Group] Movie Name (2010).mkv", "Movie Name"),
            ("Inception (2010).mp4", "Inception"),
            ("Blade_Runner_2049_2160p_HDR_x265.mkv", "Blade Runner 2049"),
            ("Some-Film-WEB-DL-720p.mkv", "Some Film"),
            ("Alien.1979.avi", "Alien"),
            ("2001 A Space Odyssey (1968).mkv", "2001 A Space Odyssey"),
        ],
    )
    def test_cleans_release_noise(self, filename: str, expected: str) -> None:
        assert parse_title(filename, current_year=YEAR) == expected

    def test_release_tags_are_case_insensitive(self) -> None:
        assert parse_title("movie.title.bluray.X264.mkv", current_year=YEAR) == (
            "movie title"
        )

    def test_release_tags_only_match_whole_tokens(self) -> None:
        # "HDTVShow" is not the HDTV tag
        assert parse_title("HDTVShow.mkv", current_year=YEAR) == "HDTVShow"

    def test_falls_back_to_filename_when_nothing_remains(self) -> None:
        assert parse_title("[1080p].mkv", current_year=YEAR) == "[1080p].mkv"

    def test_is_pure(self) -> None:
        name = "The.Matrix.1999.1080p.BluRay.x264.mkv"
        assert parse_title(name, current_year=YEAR) == parse_title(
            name, current_year=YEAR
        )

    def test_implausible_year_stays_in_title(self) -> None:
        assert parse_title("Movie 2099.mkv", current_year=YEAR) == "Movie 2099"

    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("Movie 1984 Remastered.mkv", "Movie 1984 Remastered"),
            ("Wonder Woman 1984 (2020).mkv", "Wonder Woman 1984"),
            ("Blade.Runner.2049.1080p.mkv", "Blade Runner 2049"),
        ],
    )
    def test_mid_title_year_is_kept(self, filename: str, expected: str) -> None:
        assert parse_title(filename, current_year=YEAR) == expected

    def test_only_the_last_trailing_year_is_dropped(self) -> None:
        assert parse_title("Brazil.1985.2004.mkv", current_year=YEAR) == "Brazil 1985"

    def test_lone_year_is_the_title(self) -> None:
        assert parse_title("1917.mkv", current_year=YEAR) == "1917"


class TestCleanTitle:
    def test_may_return_empty_string(self) -> None:
        assert clean_title("(2010)", current_year=YEAR) == ""

    def test_keeps_extension_when_asked(self) -> None:
        assert clean_title("Show.Name.", strip_extension=False) == "Show Name"


class TestParseYear:
    """Years are the first 4-digit run, accepted only in 1900..next year."""

    def test_first_run_wins(self) -> None:
        assert parse_year("The.Matrix.1999.1080p.mkv", current_year=YEAR) == 1999

    def test_bracketed_year(self) -> None:
        assert parse_year("Inception [2010].mkv", current_year=YEAR) == 2010

    def test_no_year(self) -> None:
        assert parse_year("Untitled.mkv", current_year=YEAR) is None

    @pytest.mark.parametrize(
        ("year", "accepted"),
        [
            (1899, False),
            (1900, True),
            (YEAR, True),
            (YEAR + 1, True),
            (YEAR + 2, False),
        ],
    )
    def test_boundaries(self, year: int, accepted: bool) -> None:
        expected = year if accepted else None
        assert parse_year(f"Movie ({year}).mkv", current_year=YEAR) == expected
        assert is_plausible_year(year, current_year=YEAR) is accepted

    def test_defaults_to_todays_year(self) -> None:
        assert parse_year("Movie (1950).mkv") == 1950


class TestParseEpisodeInfo:
    """Season/episode extraction for TV files."""

    def test_season_episode_pattern(self) -> None:
        info = parse_episode_info(
            Path("/tv/Show Name/Show.Name.S02E05.Title.mkv"), current_year=YEAR
        )

        assert info == EpisodeInfo(
            show_title="Show Name", season=2, episode=5, episode_title="Title"
        )

    def test_cross_pattern(self) -> None:
        info = parse_episode_info("/tv/x/Show Name - 2x05 - Title.mkv", current_year=YEAR)

        assert info is not None
        assert (info.show_title, info.season, info.episode) == ("Show Name", 2, 5)
        assert info.episode_title == "Title"

    def test_lowercase_pattern(self) -> None:
        info = parse_episode_info("/tv/show.name.s01e02.mkv", current_year=YEAR)

        assert info is not None
        assert (info.show_title, info.season, info.episode) == ("show name", 1, 2)

    def test_show_title_falls_back_to_directory(self) -> None:
        info = parse_episode_info("/tv/Breaking Bad (2008)/S01E01.mkv", current_year=YEAR)

        assert info is not None
        assert info.show_title == "Breaking Bad"
        assert info.year == 2008
        assert info.episode_title is None

    def test_year_next_to_title(self) -> None:
        info = parse_episode_info("/tv/The Office (2005) S01E01.mkv", current_year=YEAR)

        assert info is not None
        assert info.show_title == "The Office"
        assert info.year == 2005

    @pytest.mark.parametrize(
        "filename",
        [
            "Random Video.mkv",
            "Concert 1920x1080.mkv",
            "Behind the Scenes.mkv",
        ],
    )
    def test_no_pattern_returns_none(self, filename: str) -> None:
        assert parse_episode_info(f"/tv/Extras/{filename}", current_year=YEAR) is None

    def test_double_digit_numbers(self) -> None:
        info = parse_episode_info("/tv/Show.S12E24.mkv", current_year=YEAR)

        assert info is not None
        assert (info.season, info.episode) == (12, 24)


class TestParseAlbumInfo:
    """Album identity comes from the parent directory, track data from the name."""

    def test_numbered_track(self) -> None:
        info = parse_album_info("/music/Discovery/01 - One More Time.mp3")

        assert info == AlbumInfo(album="Discovery", title="One More Time", track=1)

    def test_dotted_track_prefix(self) -> None:
        info = parse_album_info("/music/Album/03.Song_Title.mp3")

        assert info.track == 3
        assert info.title == "Song Title"

    def test_unnumbered_track(self) -> None:
        info = parse_album_info("/music/Album/Track Name.flac")

        assert info.track is None
        assert info.title == "Track Name"

    def test_unknown_album_without_parent(self) -> None:
        assert parse_album_info("song.mp3").album == "Unknown Album"
