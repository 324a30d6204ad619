"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from soundstage.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


def test_json_output(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(level="INFO", json_output=True)

    structlog.get_logger("test").info("scan.started", library_id="lib-1")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "scan.started"
    assert event["library_id"] == "lib-1"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filters_events(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(level="WARNING", json_output=True)
    log = structlog.get_logger("test")

    log.info("hidden")
    log.warning("shown")

    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "shown" in err


def test_console_output(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(level="DEBUG")

    structlog.get_logger("test").debug("artwork.cached", kind="poster")

    err = capsys.readouterr().err
    assert "artwork.cached" in err
    assert "poster" in err


def test_unknown_level_falls_back_to_info() -> None:
    configure_logging(level="chatty")

    assert logging.getLogger().level == logging.INFO
