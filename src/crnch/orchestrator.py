from __future__ import annotations

"""Runs one compression job end to end.

The orchestrator detects the installed tools, estimates whether a target is
reachable, drives the waterfall, consults the escalation policy when the
waterfall runs dry, and finally writes the best result to the output path.
"""

from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Union
import logging
import os
import shutil
import threading
import time

from .dependencies import ToolStatus, detect_tools
from .engine_config import EngineConfig
from .escalation import EscalationPolicy, Prompt
from .estimator import FloorCeilingEstimator, Reachability
from .exceptions import CrnchError, EscalationAborted, JobCancelled, NoToolAvailable
from .models import (
    AttemptOutcome,
    AttemptRecord,
    CompressionJob,
    CompressionLevel,
    CompressionResult,
    EscalationDecision,
    JobState,
    ProgressEvent,
    StageResult,
)
from .pipeline import PipelineState, StageContext, StagePipeline
from .tools.base import BaseTool, ScratchSpace
from .tools.registry import build_toolset
from .utils import detect_media_kind, file_size
from .waterfalls import Waterfall, get_waterfall

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]
Availability = Mapping[str, Union[ToolStatus, bool]]

PASSTHROUGH_STAGE = "passthrough"


def _is_available(status: Union[ToolStatus, bool, None]) -> bool:
    if isinstance(status, ToolStatus):
        return status.available
    return bool(status)


def write_output(source: Path, destination: Path) -> None:
    """Copy ``source`` to ``destination`` so that readers never see a partial file."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(destination.name + ".part")
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, destination)
    finally:
        if partial.exists():
            partial.unlink()


class JobOrchestrator:
    """Drive a :class:`~crnch.models.CompressionJob` to a final state.

    ``tools`` and ``availability`` default to the registered tool set and to
    what :func:`~crnch.dependencies.detect_tools` finds on ``PATH``.
    ``prompt`` is asked for an escalation decision when the job is not
    ``auto_yes``; ``on_progress`` receives one event per attempt.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        tools: Optional[Mapping[str, BaseTool]] = None,
        availability: Optional[Availability] = None,
        on_progress: Optional[ProgressListener] = None,
        prompt: Optional[Prompt] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._tools = tools
        self._availability = availability
        self.on_progress = on_progress
        self.prompt = prompt
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    # ------------------------------------------------------------------
    def _resolve_tools(self) -> Dict[str, BaseTool]:
        tools = dict(self._tools) if self._tools is not None else build_toolset(self.config)
        availability = self._availability
        if availability is None:
            availability = detect_tools({tool.executable for tool in tools.values()})
        ready = {
            tool_id: tool
            for tool_id, tool in tools.items()
            if _is_available(availability.get(tool.executable))
        }
        missing = sorted(set(tools) - set(ready))
        if missing:
            logger.info("tools not installed: %s", ", ".join(missing))
        return ready

    def _emit(self, job: CompressionJob, attempt: AttemptRecord) -> None:
        job.record(attempt)
        logger.debug(
            "attempt %d: %s/%s param=%s size=%s outcome=%s",
            len(job.attempts),
            attempt.stage,
            attempt.tool,
            attempt.parameter,
            attempt.size,
            attempt.outcome.value,
        )
        if self.on_progress is None:
            return
        event = ProgressEvent(
            stage=attempt.stage,
            attempt_number=len(job.attempts),
            size=attempt.size,
            best_size=attempt.best_size,
            parameter=attempt.parameter,
            outcome=attempt.outcome,
        )
        try:
            self.on_progress(event)
        except Exception:
            logger.exception("progress listener failed for job %s", job.job_id)

    # ------------------------------------------------------------------
    def run(self, job: CompressionJob) -> CompressionResult:
        """Compress ``job.input_path`` and write the result to ``job.output_path``.

        Raises :class:`~crnch.exceptions.NoToolAvailable` when nothing can
        process the input, :class:`~crnch.exceptions.EscalationAborted` when the
        user aborts, and :class:`~crnch.exceptions.JobCancelled` on
        cancellation. These, any other :class:`~crnch.exceptions.CrnchError`,
        ``OSError`` and ``ValueError`` leave the job ``FAILED`` with no output file.
        """
        start = time.monotonic()
        job.transition(JobState.RUNNING)
        logger.info(
            "job %s: %s (%s) target=%s level=%s",
            job.job_id,
            job.input_path,
            job.media_kind.value,
            job.target_bytes,
            job.level.value,
        )
        try:
            original_size = file_size(job.input_path)
            tools = self._resolve_tools()
            with ScratchSpace(self.config.scratch_dir) as scratch:
                ctx = StageContext(
                    job,
                    tools=tools,
                    scratch=scratch,
                    config=self.config,
                    available=tools.keys(),
                    original_size=original_size,
                    on_attempt=lambda attempt: self._emit(job, attempt),
                    is_cancelled=self.cancel_event.is_set,
                )
                result = self._execute(job, ctx, get_waterfall(job.media_kind), start)
        except KeyboardInterrupt:
            job.transition(JobState.FAILED)
            raise JobCancelled(f"job {job.job_id} interrupted") from None
        except (CrnchError, OSError, ValueError):
            if not job.state.is_terminal:
                job.transition(JobState.FAILED)
            raise
        logger.info(
            "job %s finished %s: %d -> %d bytes via %s",
            job.job_id,
            result.state.value,
            result.original_size,
            result.final_size,
            result.stage,
        )
        return result

    def _execute(
        self, job: CompressionJob, ctx: StageContext, waterfall: Waterfall, start: float
    ) -> CompressionResult:
        if job.has_target and job.target_bytes >= ctx.original_size:
            return self._passthrough(job, ctx, start)

        stages = waterfall.eligible_stages(job)
        if not any(ctx.can_run(stage) for stage in stages):
            needed = sorted({tool for stage in stages for tool in stage.required_tools})
            raise NoToolAvailable(
                f"no tool available for {job.media_kind.value}; install one of: {', '.join(needed)}"
            )

        pipeline = StagePipeline(stages, ctx)
        if job.has_target:
            self._estimate(job, ctx, waterfall, pipeline)
        if pipeline.state is not PipelineState.EXHAUSTED:
            pipeline.run()
        if pipeline.state is PipelineState.EXHAUSTED and job.has_target:
            self._escalate(job, ctx, waterfall, pipeline)

        if ctx.best is None:
            raise NoToolAvailable(f"every stage failed for {job.input_path}")
        return self._settle(job, ctx, ctx.best, start)

    def _estimate(
        self,
        job: CompressionJob,
        ctx: StageContext,
        waterfall: Waterfall,
        pipeline: StagePipeline,
    ) -> None:
        runnable = [stage for stage in pipeline.stages if ctx.can_run(stage)]
        estimate = FloorCeilingEstimator(ctx).estimate(waterfall, runnable)
        if estimate is None:
            return
        reach = estimate.reachability(ctx.target, ctx.tolerance)
        logger.info("job %s: target %d bytes is %s", job.job_id, ctx.target, reach.value)
        if reach is Reachability.UNREACHABLE:
            job.transition(JobState.UNREACHABLE)
            ctx.offer(estimate.ceiling)
            ctx.offer(estimate.floor)
            pipeline.exhaust()

    def _escalate(
        self,
        job: CompressionJob,
        ctx: StageContext,
        waterfall: Waterfall,
        pipeline: StagePipeline,
    ) -> None:
        options = [
            decision
            for decision, stages in waterfall.fallbacks.items()
            if any(ctx.can_run(stage) for stage in stages)
        ]
        policy = EscalationPolicy(options, self.prompt)
        while pipeline.state is PipelineState.EXHAUSTED:
            decision = policy.escalate(job, ctx.best)
            if decision is EscalationDecision.ABORT:
                raise EscalationAborted(f"job {job.job_id} aborted at escalation")
            if decision is EscalationDecision.ACCEPT_BEST:
                return
            pipeline.extend(
                stage for stage in waterfall.fallbacks[decision] if stage.eligible(True, job.level)
            )
            pipeline.run()

    def _passthrough(self, job: CompressionJob, ctx: StageContext, start: float) -> CompressionResult:
        logger.info(
            "job %s: target %d bytes is not below the original %d bytes, copying input",
            job.job_id,
            job.target_bytes,
            ctx.original_size,
        )
        self._emit(
            job,
            AttemptRecord(
                stage=PASSTHROUGH_STAGE,
                tool="copy",
                parameter=None,
                size=ctx.original_size,
                elapsed_ms=0.0,
                outcome=AttemptOutcome.SUCCESS,
                best_size=ctx.original_size,
            ),
        )
        original = StageResult(
            stage=PASSTHROUGH_STAGE, tool="copy", path=job.input_path, size=ctx.original_size
        )
        return self._settle(job, ctx, original, start)

    def _settle(
        self, job: CompressionJob, ctx: StageContext, best: StageResult, start: float
    ) -> CompressionResult:
        ctx.check_cancelled()
        target_met = not job.has_target or best.size <= job.target_bytes + ctx.tolerance
        write_output(best.path, job.output_path)
        state = JobState.CONVERGED if target_met else JobState.PARTIALLY_CONVERGED
        job.transition(state)
        return CompressionResult(
            job_id=job.job_id,
            input_path=job.input_path,
            output_path=job.output_path,
            original_size=ctx.original_size,
            final_size=best.size,
            elapsed_ms=(time.monotonic() - start) * 1000,
            stage=best.stage,
            state=state,
            parameter=best.parameter,
            target_bytes=job.target_bytes,
            target_met=target_met,
            attempts=job.attempts,
        )


def compress_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    *,
    target_bytes: Optional[int] = None,
    level: str = "medium",
    auto_yes: bool = False,
    config: Optional[EngineConfig] = None,
    **orchestrator_kwargs,
) -> CompressionResult:
    """Convenience wrapper that builds the job and runs it."""
    job = CompressionJob(
        input_path,
        output_path,
        detect_media_kind(input_path),
        target_bytes=target_bytes,
        level=CompressionLevel(level),
        auto_yes=auto_yes,
    )
    return JobOrchestrator(config, **orchestrator_kwargs).run(job)


__all__ = ["JobOrchestrator", "compress_file", "write_output", "PASSTHROUGH_STAGE"]
