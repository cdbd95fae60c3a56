import re
from pathlib import Path
from typing import Optional

from .exceptions import UnsupportedMediaError
from .models import MediaKind

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)(k|m|kb|mb)?$", re.IGNORECASE)

_SUFFIX_TO_KIND = {
    ".png": MediaKind.PNG,
    ".jpg": MediaKind.JPG,
    ".jpeg": MediaKind.JPG,
    ".pdf": MediaKind.PDF,
}


def parse_size(size_str: str) -> Optional[int]:
    """Parse ``200k``, ``1.5m``, ``500kb`` or ``2mb`` into bytes.

    A bare number is read as kilobytes. Returns ``None`` for unparseable input.
    """
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        return None
    value = float(match.group(1))
    unit = (match.group(2) or "k").lower()
    if unit in ("m", "mb"):
        return int(value * 1024 * 1024)
    return int(value * 1024)


def format_size(num_bytes: Optional[int]) -> str:
    if num_bytes is None:
        return "-"
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.2f} MB"
    if num_bytes >= 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes} B"


def detect_media_kind(path: Path | str) -> MediaKind:
    suffix = Path(path).suffix.lower()
    try:
        return _SUFFIX_TO_KIND[suffix]
    except KeyError:
        raise UnsupportedMediaError(f"Unsupported file type: {suffix or '(none)'}") from None


def default_output_path(input_path: Path | str) -> Path:
    """Return ``crnched_<name>`` next to the current working directory."""
    p = Path(input_path)
    return Path(f"crnched_{p.stem}{p.suffix.lower()}")


def file_size(path: Path | str) -> int:
    return Path(path).stat().st_size


__all__ = [
    "parse_size",
    "format_size",
    "detect_media_kind",
    "default_output_path",
    "file_size",
]
