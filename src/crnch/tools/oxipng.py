from __future__ import annotations

"""Lossless PNG optimisation with oxipng."""

from pathlib import Path
from typing import Any, List, Optional

from .base import BaseTool
from .registry import register_tool


class OxipngTool(BaseTool):
    """Recompresses PNG data and strips safe-to-remove metadata."""

    id = "oxipng"
    executable = "oxipng"

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        level = options.get("level", self.config.oxipng_level)
        return [
            self.executable,
            "-o",
            str(level),
            "--strip",
            "safe",
            "--quiet",
            "--out",
            str(destination),
            str(source),
        ]


register_tool(OxipngTool.id, OxipngTool, display_name="oxipng (lossless PNG)")
