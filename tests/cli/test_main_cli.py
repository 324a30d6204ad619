"""Tests for the top-level ``soundstage`` command."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from typer.testing import CliRunner

from soundstage.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """The root callback reconfigures logging against the runner's streams."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def test_subcommands_are_registered() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "db" in result.output
    assert "library" in result.output


def test_db_migrate_through_root(tmp_path: Path) -> None:
    db_path = tmp_path / "root.db"

    result = runner.invoke(
        app, ["--log-level", "debug", "db", "migrate", "--db-path", str(db_path)]
    )

    assert result.exit_code == 0
    assert db_path.exists()
    assert logging.getLogger().level == logging.DEBUG


def test_library_list_through_root(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["--log-json", "library", "list", "--db-path", str(tmp_path / "x.db")]
    )

    assert result.exit_code == 0
    assert "No libraries configured." in result.output
