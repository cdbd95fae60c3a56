from __future__ import annotations

"""Registry utilities for tool adapters."""

import importlib
from typing import Dict, List, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from ..engine_config import EngineConfig
    from .base import BaseTool

_TOOL_REGISTRY: Dict[str, Type["BaseTool"]] = {}
_TOOL_INFO: Dict[str, Dict[str, Optional[str]]] = {}

_BUILTIN_MODULES = (
    "crnch.tools.oxipng",
    "crnch.tools.pngquant",
    "crnch.tools.jpegoptim",
    "crnch.tools.imagemagick",
    "crnch.tools.ghostscript",
)


def _ensure_builtins_loaded() -> None:
    for module in _BUILTIN_MODULES:
        importlib.import_module(module)


def register_tool(
    id: str,
    cls: Type["BaseTool"],
    *,
    display_name: str | None = None,
    source: str = "built-in",
) -> None:
    """Register ``cls`` under ``id`` with optional metadata."""
    prev = _TOOL_INFO.get(id)
    overrides = prev["source"] if prev else None
    _TOOL_REGISTRY[id] = cls
    _TOOL_INFO[id] = {
        "display_name": display_name or id,
        "executable": cls.executable,
        "source": source,
        "overrides": overrides,
    }


def get_tool(id: str) -> Type["BaseTool"]:
    """Return the tool class registered under ``id``."""
    _ensure_builtins_loaded()
    return _TOOL_REGISTRY[id]


def available_tools() -> List[str]:
    _ensure_builtins_loaded()
    return sorted(_TOOL_REGISTRY)


def get_tool_metadata(id: str) -> Dict[str, Optional[str]] | None:
    _ensure_builtins_loaded()
    info = _TOOL_INFO.get(id)
    if info:
        info_with_id = info.copy()
        info_with_id["tool_id"] = id
        return info_with_id
    return None


def build_toolset(config: "EngineConfig | None" = None) -> Dict[str, "BaseTool"]:
    """Instantiate every registered tool with ``config``."""
    _ensure_builtins_loaded()
    return {tool_id: cls(config) for tool_id, cls in _TOOL_REGISTRY.items()}


__all__ = [
    "register_tool",
    "get_tool",
    "available_tools",
    "get_tool_metadata",
    "build_toolset",
]
