from __future__ import annotations

"""Adapters for the external encoders driven by the engine."""

from .base import BaseTool, ScratchSpace, ToolOutput
from .registry import (
    available_tools,
    build_toolset,
    get_tool,
    get_tool_metadata,
    register_tool,
)

__all__ = [
    "BaseTool",
    "ScratchSpace",
    "ToolOutput",
    "available_tools",
    "build_toolset",
    "get_tool",
    "get_tool_metadata",
    "register_tool",
]
