from __future__ import annotations

"""Lossless JPEG optimisation with jpegoptim."""

from pathlib import Path
from typing import Any, List, Optional

from .base import BaseTool
from .registry import register_tool


class JpegoptimTool(BaseTool):
    id = "jpegoptim"
    executable = "jpegoptim"
    writes_stdout = True

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        return [self.executable, "--strip-all", "--stdout", str(source)]


register_tool(JpegoptimTool.id, JpegoptimTool, display_name="jpegoptim (lossless JPEG)")
