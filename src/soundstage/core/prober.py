"""Container duration probing via ffprobe.

Used only to backfill durations for movies and episodes when the metadata
provider does not supply a runtime. Per-file failures never raise.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Protocol

import anyio
import structlog

_FFPROBE_ARGS: tuple[str, ...] = (
    "-v",
    "quiet",
    "-print_format",
    "json",
    "-show_format",
)


class MediaProber(Protocol):
    """Anything that can report a media file's duration in seconds."""

    async def probe_duration(self, path: Path) -> int | None: ...


def summarize_duration(payload: dict[str, Any]) -> int | None:
    """Extract a rounded duration (seconds) from ffprobe's JSON output."""

    fmt = payload.get("format") or {}
    if not isinstance(fmt, dict):
        return None
    try:
        seconds = float(fmt.get("duration"))
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return round(seconds)


class FFProbeProber:
    """Run ffprobe in a subprocess and read the container duration."""

    def __init__(
        self,
        binary: str = "ffprobe",
        timeout: float = 30.0,
        logger: Any = None,
    ) -> None:
        self.binary = binary
        self.timeout = timeout
        self._logger = logger or structlog.get_logger(__name__)

    @classmethod
    def detect(cls, binary: str = "ffprobe", **kwargs: Any) -> FFProbeProber | None:
        """Return a prober if ``binary`` is on PATH, else None."""

        if shutil.which(binary) is None:
            return None
        return cls(binary, **kwargs)

    async def probe_duration(self, path: Path) -> int | None:
        """Return the duration of ``path`` in whole seconds, or None."""

        cmd = [self.binary, *_FFPROBE_ARGS, str(path)]
        try:
            with anyio.fail_after(self.timeout):
                proc = await anyio.run_process(cmd, check=False)
        except TimeoutError:
            self._logger.warning("probe.timeout", path=str(path))
            return None
        except OSError as exc:
            self._logger.warning("probe.exec_failed", path=str(path), error=str(exc))
            return None

        if proc.returncode != 0:
            self._logger.debug(
                "probe.failed", path=str(path), returncode=proc.returncode
            )
            return None

        try:
            payload = json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            self._logger.warning("probe.invalid_json", path=str(path), error=str(exc))
            return None

        if not isinstance(payload, dict):
            return None
        return summarize_duration(payload)
