from __future__ import annotations

"""Palette quantization of PNG images with pngquant."""

from pathlib import Path
from typing import Any, List, Optional

from .base import BaseTool
from .registry import register_tool


class PngquantTool(BaseTool):
    """``parameter`` is the upper bound of pngquant's quality range.

    A higher bound keeps more colours and produces a larger file. The lower
    bound defaults to 0 so that pngquant never refuses to write an output.
    """

    id = "pngquant"
    executable = "pngquant"
    parameter_domain = (0, 100)
    requires_parameter = True

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        quality_min = min(int(options.get("quality_min", 0)), parameter)
        return [
            self.executable,
            "--quality",
            f"{quality_min}-{parameter}",
            "--force",
            "--output",
            str(destination),
            str(source),
        ]


register_tool(PngquantTool.id, PngquantTool, display_name="pngquant (PNG quantization)")
