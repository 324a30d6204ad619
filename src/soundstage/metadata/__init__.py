"""Metadata enrichment: provider access, normalized models and artwork cache."""
