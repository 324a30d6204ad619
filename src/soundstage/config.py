"""Runtime configuration for Soundstage.

Settings are read once from the environment and then passed explicitly to
the components that need them; nothing below this module reads environment
variables itself.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import structlog

from soundstage.core.constants import DEFAULT_SCAN_CONCURRENCY, PROVIDER_TIMEOUT
from soundstage.core.prober import FFProbeProber
from soundstage.core.scan_engine import ScanEngine
from soundstage.metadata.client import MetadataClient
from soundstage.metadata.images import ArtworkCache
from soundstage.metadata.providers.tmdb import TMDBProvider
from soundstage.store.library_store import LibraryStore
from soundstage.store.paths import DB_FILE_NAME, DEFAULT_DATA_DIR

_TRUTHY = {"1", "true", "yes", "on"}


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Resolved configuration.

    Attributes:
        data_dir: Root for the database and artwork cache
        db_path: SQLite database file
        image_cache_dir: Directory holding cached artwork
        tmdb_api_key: TMDB key or read token; None disables enrichment
        provider_timeout: Per-request provider timeout in seconds
        scan_concurrency: Files processed at once within one scan
        ffprobe_bin: ffprobe executable used for duration probing
        log_level: structlog minimum level
        log_json: Emit JSON log lines instead of console output
    """

    data_dir: Path = DEFAULT_DATA_DIR
    db_path: Path = DEFAULT_DATA_DIR / DB_FILE_NAME
    image_cache_dir: Path = DEFAULT_DATA_DIR / "cache" / "images"
    tmdb_api_key: str | None = None
    provider_timeout: float = PROVIDER_TIMEOUT
    scan_concurrency: int = DEFAULT_SCAN_CONCURRENCY
    ffprobe_bin: str = "ffprobe"
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``env`` (defaults to ``os.environ``)."""

        env = os.environ if env is None else env
        data_dir = Path(env.get("SOUNDSTAGE_DATA_DIR") or DEFAULT_DATA_DIR).expanduser()
        db_path = env.get("SOUNDSTAGE_DB_PATH")
        image_cache_dir = env.get("SOUNDSTAGE_IMAGE_CACHE_DIR")

        return cls(
            data_dir=data_dir,
            db_path=Path(db_path).expanduser() if db_path else data_dir / DB_FILE_NAME,
            image_cache_dir=(
                Path(image_cache_dir).expanduser()
                if image_cache_dir
                else data_dir / "cache" / "images"
            ),
            tmdb_api_key=env.get("TMDB_API_KEY") or None,
            provider_timeout=_env_float(
                env, "SOUNDSTAGE_PROVIDER_TIMEOUT", PROVIDER_TIMEOUT
            ),
            scan_concurrency=max(
                1,
                _env_int(env, "SOUNDSTAGE_SCAN_CONCURRENCY", DEFAULT_SCAN_CONCURRENCY),
            ),
            ffprobe_bin=env.get("SOUNDSTAGE_FFPROBE") or "ffprobe",
            log_level=(env.get("SOUNDSTAGE_LOG_LEVEL") or "INFO").upper(),
            log_json=(env.get("SOUNDSTAGE_LOG_JSON") or "").lower() in _TRUTHY,
        )

    def with_db_path(self, db_path: str | Path | None) -> Settings:
        """Copy with an explicit database path (CLI override)."""
        if db_path is None:
            return self
        return replace(self, db_path=Path(db_path))

    def __repr__(self) -> str:
        key = "***" if self.tmdb_api_key else None
        return (
            f"Settings(data_dir={str(self.data_dir)!r}, db_path={str(self.db_path)!r}, "
            f"tmdb_api_key={key!r}, scan_concurrency={self.scan_concurrency})"
        )


def build_metadata_client(settings: Settings, logger: Any = None) -> MetadataClient | None:
    """Wire the TMDB provider and artwork cache, or None without an API key."""

    if not settings.tmdb_api_key:
        return None

    provider = TMDBProvider(settings.tmdb_api_key, timeout=settings.provider_timeout)
    artwork = ArtworkCache(settings.image_cache_dir, provider, logger=logger)
    return MetadataClient(provider, artwork, logger=logger)


def build_scan_engine(
    settings: Settings, store: LibraryStore, logger: Any = None
) -> ScanEngine:
    """Build a scan engine with every optional collaborator that is available."""

    log = logger or structlog.get_logger(__name__)
    metadata = build_metadata_client(settings)
    if metadata is None:
        log.info("config.metadata_disabled", reason="TMDB_API_KEY not set")

    prober = FFProbeProber.detect(settings.ffprobe_bin)
    if prober is None:
        log.info("config.prober_disabled", binary=settings.ffprobe_bin)

    return ScanEngine(
        store,
        metadata=metadata,
        prober=prober,
        concurrency=settings.scan_concurrency,
    )
