"""Soundstage: media library scanning and metadata reconciliation."""

__version__ = "0.1.0"
