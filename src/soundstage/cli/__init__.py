"""CLI entrypoints for Soundstage."""

from soundstage.cli.db import app as db_app
from soundstage.cli.library import app as library_app

__all__ = ["db_app", "library_app"]
