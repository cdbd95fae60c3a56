"""crnch: shrink PNG, JPG and PDF files to a target size."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "CompressionJob",
    "CompressionResult",
    "CompressionLevel",
    "MediaKind",
    "JobState",
    "EngineConfig",
    "JobOrchestrator",
    "compress_file",
    "register_tool",
    "get_tool",
    "available_tools",
    "get_tool_metadata",
    "detect_tools",
]

_lazy_map = {
    "CompressionJob": "crnch.models",
    "CompressionResult": "crnch.models",
    "CompressionLevel": "crnch.models",
    "MediaKind": "crnch.models",
    "JobState": "crnch.models",
    "EngineConfig": "crnch.engine_config",
    "JobOrchestrator": "crnch.orchestrator",
    "compress_file": "crnch.orchestrator",
    "register_tool": "crnch.tools.registry",
    "get_tool": "crnch.tools.registry",
    "available_tools": "crnch.tools.registry",
    "get_tool_metadata": "crnch.tools.registry",
    "detect_tools": "crnch.dependencies",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - simple passthrough
    if name in _lazy_map:
        module = importlib.import_module(_lazy_map[name])
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - for completeness
    return sorted(list(globals().keys()) + list(_lazy_map.keys()))


__version__ = "0.1.0"
