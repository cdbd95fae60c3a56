from __future__ import annotations

"""Waterfall runner: executes stages in order and stops at the first success."""

from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence
import logging
import time

from .engine_config import EngineConfig
from .exceptions import InvalidParameter, JobCancelled, ToolError, ToolFailure
from .models import AttemptOutcome, AttemptRecord, CompressionJob, JobState, StageResult
from .stages import Stage
from .tools.base import BaseTool, ScratchSpace, ToolOutput

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    NOT_STARTED = "not_started"
    AT_STAGE = "at_stage"
    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"


class StageContext:
    """Everything a stage needs while it runs for one job.

    Holds the artifacts produced so far (``input`` plus one entry per finished
    stage), the best result of the job, and records one
    :class:`~crnch.models.AttemptRecord` per tool call through ``on_attempt``.
    """

    def __init__(
        self,
        job: CompressionJob,
        *,
        tools: Mapping[str, BaseTool],
        scratch: ScratchSpace,
        config: EngineConfig,
        available: Iterable[str],
        original_size: int,
        on_attempt: Callable[[AttemptRecord], None],
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> None:
        self.job = job
        self.tools = tools
        self.scratch = scratch
        self.config = config
        self.available = frozenset(available)
        self.original_size = original_size
        self.on_attempt = on_attempt
        self.is_cancelled = is_cancelled

        self.target: Optional[int] = job.target_bytes
        self.tolerance = config.tolerance_for(self.target) if self.target is not None else 0
        self.artifacts: Dict[str, Path] = {"input": job.input_path}
        # Results computed ahead of their stage, e.g. by the estimator.
        self.results: Dict[str, StageResult] = {}
        self.best: Optional[StageResult] = None

    # -- queries ---------------------------------------------------------
    def can_run(self, stage: Stage) -> bool:
        return all(t in self.available and t in self.tools for t in stage.required_tools)

    def satisfies(self, size: int) -> bool:
        return self.target is not None and size <= self.target + self.tolerance

    def has_source(self, sources: Sequence[str]) -> bool:
        return any(name in self.artifacts for name in sources)

    def resolve_source(self, sources: Sequence[str]) -> Path:
        for name in sources:
            if name in self.artifacts:
                return self.artifacts[name]
        raise ToolError(sources[0], "no source artifact available")

    def check_cancelled(self) -> None:
        if self.is_cancelled():
            raise JobCancelled(f"job {self.job.job_id} cancelled")

    # -- tool calls ------------------------------------------------------
    def _classify(self, size: int) -> AttemptOutcome:
        if self.satisfies(size):
            return AttemptOutcome.SUCCESS
        if self.best is None or size < self.best.size:
            return AttemptOutcome.CLOSER
        return AttemptOutcome.NO_IMPROVEMENT

    def _record(
        self,
        stage: str,
        tool: str,
        parameter: Optional[int],
        size: Optional[int],
        elapsed_ms: float,
        outcome: AttemptOutcome,
        detail: Optional[str] = None,
    ) -> None:
        self.on_attempt(
            AttemptRecord(
                stage=stage,
                tool=tool,
                parameter=parameter,
                size=size,
                elapsed_ms=elapsed_ms,
                outcome=outcome,
                best_size=self.best.size if self.best is not None else None,
                detail=detail,
            )
        )

    def call_tool(
        self,
        tool_id: str,
        label: str,
        source: Path,
        parameter: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> ToolOutput:
        self.check_cancelled()
        tool = self.tools[tool_id]
        start = time.monotonic()
        try:
            output = tool.invoke(
                source,
                parameter,
                scratch=self.scratch,
                timeout=self.config.tool_timeout,
                **(options or {}),
            )
        except (ToolFailure, InvalidParameter) as exc:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._record(label, tool_id, parameter, None, elapsed_ms, AttemptOutcome.TOOL_ERROR, str(exc))
            raise
        elapsed_ms = (time.monotonic() - start) * 1000
        self._record(label, tool_id, parameter, output.size, elapsed_ms, self._classify(output.size))
        return output

    def invoke(
        self,
        stage: Stage,
        source: Path,
        parameter: Optional[int],
        options: Dict[str, Any],
        *,
        label: Optional[str] = None,
    ) -> ToolOutput:
        return self.call_tool(stage.tool, label or stage.name, source, parameter, options)

    def finish(self, stage: Stage, path: Path, parameter: Optional[int]) -> StageResult:
        """Polish the chosen output when the stage asks for it and publish it."""
        size = path.stat().st_size
        if stage.polish and stage.polish in self.available and stage.polish in self.tools:
            try:
                polished = self.call_tool(stage.polish, f"{stage.name}:polish", path)
            except ToolFailure as exc:
                logger.warning("%s: polish with %s failed, keeping unpolished output: %s", stage.name, stage.polish, exc)
            else:
                if polished.size < size:
                    path, size = polished.path, polished.size
        self.artifacts[stage.name] = path
        return StageResult(stage=stage.name, tool=stage.tool, path=path, size=size, parameter=parameter)

    def record_skip(self, stage: Stage, reason: str) -> None:
        self._record(stage.name, stage.tool, None, None, 0.0, AttemptOutcome.TOOL_ERROR, reason)

    # -- results ---------------------------------------------------------
    def offer(self, result: StageResult) -> bool:
        """Keep ``result`` if it beats the best so far; discard it otherwise."""
        if self.best is None or result.size < self.best.size:
            self.best = result
            return True
        logger.debug(
            "%s: %d bytes does not beat %d bytes from %s, discarded",
            result.stage,
            result.size,
            self.best.size,
            self.best.stage,
        )
        return False


class StagePipeline:
    """Runs an ordered list of stages against a :class:`StageContext`."""

    def __init__(self, stages: Iterable[Stage], context: StageContext) -> None:
        self.stages: List[Stage] = list(stages)
        self.context = context
        self.index = 0
        self.state = PipelineState.NOT_STARTED
        self.completed: List[str] = []

    def extend(self, stages: Iterable[Stage]) -> None:
        """Append stages; the next :meth:`run` resumes after the current index."""
        self.stages.extend(stages)

    def exhaust(self) -> None:
        """Mark every queued stage as passed without running it."""
        self.index = len(self.stages)
        self.state = PipelineState.EXHAUSTED

    def run(self) -> PipelineState:
        ctx = self.context
        has_target = ctx.target is not None
        while self.index < len(self.stages):
            stage = self.stages[self.index]
            self.index += 1
            self.state = PipelineState.AT_STAGE
            ctx.check_cancelled()
            if ctx.job.state is JobState.RUNNING:
                ctx.job.transition(JobState.RUNNING)

            if not ctx.can_run(stage):
                logger.info("skipping stage %s: %s not available", stage.name, stage.tool)
                ctx.record_skip(stage, f"{stage.tool} not available")
                continue

            logger.info("stage %s (%s)", stage.name, stage.tool)
            result = ctx.results.pop(stage.name, None)
            if result is None:
                if not ctx.has_source(stage.sources):
                    logger.info("skipping stage %s: no %s output", stage.name, " or ".join(stage.sources))
                    ctx.record_skip(stage, f"no source artifact ({', '.join(stage.sources)})")
                    continue
                try:
                    result = stage.run(ctx)
                except (ToolFailure, InvalidParameter) as exc:
                    logger.warning("stage %s failed: %s", stage.name, exc)
                    continue
            else:
                ctx.artifacts.setdefault(stage.name, result.path)
            self.completed.append(stage.name)

            ctx.offer(result)
            if has_target and ctx.satisfies(result.size):
                logger.info("stage %s met the target with %d bytes", stage.name, result.size)
                self.state = PipelineState.SATISFIED
                return self.state

        if not has_target and ctx.best is not None:
            self.state = PipelineState.SATISFIED
        else:
            self.state = PipelineState.EXHAUSTED
        logger.debug("pipeline %s after stages: %s", self.state.value, ", ".join(self.completed) or "none")
        return self.state


__all__ = ["PipelineState", "StageContext", "StagePipeline"]
