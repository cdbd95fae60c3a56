from __future__ import annotations

"""Detection of the external binaries the waterfalls rely on."""

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional
import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

# Flag that makes each executable print its version.
VERSION_FLAGS: Mapping[str, str] = {
    "oxipng": "--version",
    "pngquant": "--version",
    "jpegoptim": "--version",
    "magick": "-version",
    "gs": "--version",
}


@dataclass(frozen=True)
class ToolStatus:
    available: bool
    version: Optional[str] = None
    path: Optional[str] = None


def probe_version(executable: str, timeout: float = 5.0) -> str:
    flag = VERSION_FLAGS.get(executable, "--version")
    try:
        completed = subprocess.run(
            [executable, flag], capture_output=True, timeout=timeout, check=False
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("version probe for %s failed: %s", executable, exc)
        return "unknown"
    text = (completed.stdout or completed.stderr or b"").decode("utf-8", errors="replace").strip()
    return text.splitlines()[0] if text else "unknown"


def detect_tools(executables: Iterable[str] | None = None) -> Dict[str, ToolStatus]:
    """Return ``{executable: ToolStatus}`` for ``executables``.

    Defaults to every executable used by the built-in tools.
    """
    names = list(executables) if executables is not None else list(VERSION_FLAGS)
    statuses: Dict[str, ToolStatus] = {}
    for name in names:
        path = shutil.which(name)
        if path is None:
            statuses[name] = ToolStatus(available=False)
            continue
        statuses[name] = ToolStatus(available=True, version=probe_version(name), path=path)
    missing = [n for n, s in statuses.items() if not s.available]
    if missing:
        logger.info("missing tools: %s", ", ".join(missing))
    return statuses


__all__ = ["ToolStatus", "detect_tools", "probe_version", "VERSION_FLAGS"]
