"""Local artwork cache for provider images.

Each remote image is downloaded once into the cache directory as
``<kind>_<remote path without separators>`` and referred to afterwards by a
local reference (``/cache/images/<file name>`` by default). Entities only
ever store these local references.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import anyio
import httpx
import structlog

from soundstage.core.constants import IMAGE_SIZE_TIERS
from soundstage.metadata.providers.base import ProviderError

DEFAULT_REFERENCE_PREFIX = "/cache/images"


class ImageDownloader(Protocol):
    async def download_image(self, file_path: str, size: str) -> bytes | None: ...


def _write_atomic(target: Path, data: bytes) -> None:
    """Write ``data`` to ``target`` through a temp file and atomic replace."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ArtworkCache:
    """Download-once cache of provider artwork on local disk."""

    def __init__(
        self,
        cache_dir: str | Path,
        downloader: ImageDownloader,
        reference_prefix: str = DEFAULT_REFERENCE_PREFIX,
        logger: Any = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.reference_prefix = reference_prefix.rstrip("/")
        self._downloader = downloader
        self._logger = logger or structlog.get_logger(__name__)

    @staticmethod
    def local_name(remote_path: str, kind: str) -> str:
        """Cache file name for a remote image path."""
        return f"{kind}_{remote_path.replace('/', '')}"

    def reference_for(self, file_name: str) -> str:
        return f"{self.reference_prefix}/{file_name}"

    async def fetch(self, remote_path: str | None, kind: str = "poster") -> str | None:
        """Return a local reference for ``remote_path``, downloading if needed.

        Args:
            remote_path: Provider image path (e.g. "/abc.jpg"); None is a no-op
            kind: Artwork class, one of ``IMAGE_SIZE_TIERS`` (poster, backdrop,
                season, still)

        Returns:
            Local reference, or None when there is no image or it could not
            be fetched or written
        """
        if not remote_path:
            return None

        size = IMAGE_SIZE_TIERS.get(kind, IMAGE_SIZE_TIERS["poster"])
        file_name = self.local_name(remote_path, kind)
        target = self.cache_dir / file_name

        if await anyio.to_thread.run_sync(target.exists):
            return self.reference_for(file_name)

        try:
            data = await self._downloader.download_image(remote_path, size)
        except (ProviderError, httpx.HTTPError) as exc:
            self._logger.warning(
                "artwork.download_failed",
                remote_path=remote_path,
                kind=kind,
                error=str(exc),
            )
            return None

        if not data:
            return None

        try:
            await anyio.to_thread.run_sync(_write_atomic, target, data)
        except OSError as exc:
            self._logger.warning(
                "artwork.write_failed", path=str(target), error=str(exc)
            )
            return None

        self._logger.debug("artwork.cached", path=str(target), kind=kind)
        return self.reference_for(file_name)
