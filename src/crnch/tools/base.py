from __future__ import annotations

"""Uniform adapter around the external encoders.

Every tool turns ``(source, parameter, options)`` into a file in a scratch
directory and reports its size. Failures are translated into the
:class:`~crnch.exceptions.ToolFailure` family so that the waterfall can skip the
stage and carry on.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple
import itertools
import logging
import shutil
import subprocess
import tempfile
import time

from ..engine_config import EngineConfig
from ..exceptions import InvalidParameter, ToolError, ToolTimeout, ToolUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolOutput:
    path: Path
    size: int
    elapsed_ms: float = 0.0
    command: List[str] = field(default_factory=list)

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class ScratchSpace:
    """Private directory for intermediate files, removed on exit.

    Use as a context manager so the files disappear however the job ends::

        with ScratchSpace() as scratch:
            out = tool.invoke(src, 60, scratch=scratch)
    """

    def __init__(self, parent: Optional[str | Path] = None, prefix: str = "crnch-") -> None:
        self._parent = str(parent) if parent else None
        self._prefix = prefix
        self._root: Optional[Path] = None
        self._counter = itertools.count(1)

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("ScratchSpace used outside of its context")
        return self._root

    def __enter__(self) -> "ScratchSpace":
        self._root = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._parent))
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self._root is not None:
            shutil.rmtree(self._root, ignore_errors=True)
            self._root = None

    def path_for(self, label: str, parameter: Optional[int], suffix: str) -> Path:
        tag = label if parameter is None else f"{label}-{parameter}"
        return self.root / f"{next(self._counter):04d}-{tag}{suffix}"


class BaseTool:
    """Base class for external tool adapters.

    Subclasses set ``id``, ``executable`` and, when the tool takes a scalar
    parameter, ``parameter_domain`` (inclusive). They implement
    :meth:`build_command`.
    """

    id = "base"
    executable = ""
    parameter_domain: Optional[Tuple[int, int]] = None
    requires_parameter = False
    # Tools that can only write to stdout get their stdout redirected to the
    # destination file.
    writes_stdout = False

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    def build_command(
        self, source: Path, destination: Path, parameter: Optional[int], **options: Any
    ) -> List[str]:
        raise NotImplementedError

    def validate_parameter(self, parameter: Optional[int]) -> None:
        if parameter is None:
            if self.requires_parameter:
                raise InvalidParameter(self.id, parameter, self.parameter_domain)
            return
        if self.parameter_domain is None:
            raise InvalidParameter(self.id, parameter, None)
        lo, hi = self.parameter_domain
        if isinstance(parameter, bool) or not isinstance(parameter, int) or not lo <= parameter <= hi:
            raise InvalidParameter(self.id, parameter, self.parameter_domain)

    def invoke(
        self,
        source: Path | str,
        parameter: Optional[int] = None,
        *,
        scratch: ScratchSpace,
        timeout: Optional[float] = None,
        **options: Any,
    ) -> ToolOutput:
        """Run the tool on ``source`` and return the produced file."""
        self.validate_parameter(parameter)
        source = Path(source)
        destination = scratch.path_for(self.id, parameter, source.suffix.lower())
        command = self.build_command(source, destination, parameter, **options)
        timeout = timeout if timeout is not None else self.config.tool_timeout

        logger.debug("running %s", " ".join(command))
        start = time.monotonic()
        self._run(command, destination, timeout)
        elapsed_ms = (time.monotonic() - start) * 1000

        try:
            size = destination.stat().st_size
        except FileNotFoundError:
            raise ToolError(self.id, "no output file was produced") from None
        if size == 0:
            raise ToolError(self.id, "produced an empty output file")
        return ToolOutput(path=destination, size=size, elapsed_ms=elapsed_ms, command=command)

    def _run(self, command: List[str], destination: Path, timeout: float) -> None:
        stdout_target = None
        try:
            if self.writes_stdout:
                stdout_target = open(destination, "wb")
            completed = subprocess.run(
                command,
                stdout=stdout_target if stdout_target is not None else subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError:
            raise ToolUnavailable(self.id, f"executable '{command[0]}' not found") from None
        except subprocess.TimeoutExpired:
            raise ToolTimeout(self.id, f"timed out after {timeout:g}s") from None
        finally:
            if stdout_target is not None:
                stdout_target.close()

        if completed.returncode != 0:
            stderr = (completed.stderr or b"").decode("utf-8", errors="replace").strip()
            message = f"exited with status {completed.returncode}"
            if stderr:
                message += f": {stderr.splitlines()[-1]}"
            raise ToolError(self.id, message)


__all__ = ["BaseTool", "ScratchSpace", "ToolOutput"]
