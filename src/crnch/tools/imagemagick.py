from __future__ import annotations

"""ImageMagick operations: JPEG quality, grayscale conversion and resizing."""

from pathlib import Path
from typing import Any, List, Optional

from .base import BaseTool
from .registry import register_tool


class MagickQualityTool(BaseTool):
    """Re-encodes a JPEG at ``parameter`` quality."""

    id = "magick-quality"
    executable = "magick"
    parameter_domain = (1, 100)
    requires_parameter = True

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        return [
            self.executable,
            str(source),
            "-strip",
            "-sampling-factor",
            "4:4:4",
            "-interlace",
            "Plane",
            "-quality",
            str(parameter),
            str(destination),
        ]


class MagickGrayscaleTool(BaseTool):
    id = "magick-grayscale"
    executable = "magick"

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        return [
            self.executable,
            str(source),
            "-colorspace",
            "Gray",
            "-depth",
            "8",
            str(destination),
        ]


class MagickResizeTool(BaseTool):
    """Scales an image to ``parameter`` percent of its dimensions.

    With ``extent_bytes`` set, JPEG output is additionally capped with
    ImageMagick's ``jpeg:extent`` define.
    """

    id = "magick-resize"
    executable = "magick"
    parameter_domain = (1, 100)
    requires_parameter = True

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        command = [self.executable, str(source), "-resize", f"{parameter}%"]
        extent_bytes = options.get("extent_bytes")
        if extent_bytes:
            command += ["-define", f"jpeg:extent={max(1, extent_bytes // 1024)}KB"]
        command.append(str(destination))
        return command


register_tool(MagickQualityTool.id, MagickQualityTool, display_name="ImageMagick (JPEG quality)")
register_tool(MagickGrayscaleTool.id, MagickGrayscaleTool, display_name="ImageMagick (grayscale)")
register_tool(MagickResizeTool.id, MagickResizeTool, display_name="ImageMagick (resize)")
