from __future__ import annotations

"""PDF rewriting with Ghostscript's pdfwrite device."""

from pathlib import Path
from typing import Any, List, Optional

from ..exceptions import InvalidParameter
from .base import BaseTool
from .registry import register_tool

PDF_PRESETS = ("/screen", "/ebook", "/printer", "/prepress", "/default")


class GhostscriptTool(BaseTool):
    """Rewrites a PDF either with a named ``preset`` or, when ``parameter`` is
    given, with every image class downsampled to ``parameter`` DPI.
    """

    id = "gs"
    executable = "gs"
    parameter_domain = (1, 2400)

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        command = [
            self.executable,
            "-sDEVICE=pdfwrite",
            "-dCompatibilityLevel=1.4",
            "-dCompressFonts=true",
            "-dSubsetFonts=true",
        ]
        if parameter is not None:
            command += [
                "-dDownsampleColorImages=true",
                "-dDownsampleGrayImages=true",
                "-dDownsampleMonoImages=true",
                f"-dColorImageResolution={parameter}",
                f"-dGrayImageResolution={parameter}",
                f"-dMonoImageResolution={parameter}",
            ]
        else:
            preset = options.get("preset", "/printer")
            if preset not in PDF_PRESETS:
                raise InvalidParameter(self.id, preset, PDF_PRESETS)
            command.append(f"-dPDFSETTINGS={preset}")
        if options.get("grayscale"):
            command += ["-sColorConversionStrategy=Gray", "-dProcessColorModel=/DeviceGray"]
        command += [
            "-dNOPAUSE",
            "-dQUIET",
            "-dBATCH",
            f"-sOutputFile={destination}",
            str(source),
        ]
        return command


register_tool(GhostscriptTool.id, GhostscriptTool, display_name="Ghostscript (PDF)")
