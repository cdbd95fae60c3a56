from __future__ import annotations

"""Floor/ceiling estimation.

Runs the least aggressive stage and the most aggressive setting once each so
the orchestrator knows whether the target is reachable before any bisection.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
import logging

from .exceptions import InvalidParameter, ToolFailure
from .models import StageResult
from .pipeline import StageContext
from .stages import SearchBackedTransform, Stage
from .waterfalls import Waterfall

logger = logging.getLogger(__name__)

FLOOR_PROBE_LABEL = "floor_probe"


class Reachability(str, Enum):
    SATISFIED_BY_CEILING = "satisfied_by_ceiling"
    SEARCH = "search"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Estimate:
    floor: StageResult
    ceiling: StageResult

    @property
    def floor_size(self) -> int:
        return self.floor.size

    @property
    def ceiling_size(self) -> int:
        return self.ceiling.size

    def reachability(self, target: int, tolerance: int) -> Reachability:
        if self.ceiling_size <= target + tolerance:
            return Reachability.SATISFIED_BY_CEILING
        if self.floor_size > target + tolerance:
            return Reachability.UNREACHABLE
        return Reachability.SEARCH


class FloorCeilingEstimator:
    def __init__(self, context: StageContext) -> None:
        self.context = context

    def estimate(self, waterfall: Waterfall, stages: List[Stage]) -> Optional[Estimate]:
        """Measure the extremes of ``stages`` (the job's eligible stage list).

        The ceiling is the first stage's output and is cached so the pipeline
        does not run that stage again. Returns ``None`` when either probe
        cannot run; the caller then falls back to the plain waterfall.
        """
        ctx = self.context
        if not stages or waterfall.floor_stage is None:
            return None
        ceiling_stage = stages[0]
        try:
            floor_stage = waterfall.stage(waterfall.floor_stage)
        except KeyError:
            return None
        if not (ctx.can_run(ceiling_stage) and ctx.can_run(floor_stage)):
            logger.info("floor/ceiling estimate skipped: tools unavailable")
            return None

        try:
            ceiling = ceiling_stage.run(ctx)
        except (ToolFailure, InvalidParameter) as exc:
            logger.warning("ceiling probe %s failed: %s", ceiling_stage.name, exc)
            return None
        ctx.results[ceiling_stage.name] = ceiling

        try:
            if isinstance(floor_stage, SearchBackedTransform):
                floor = floor_stage.probe(
                    ctx, floor_stage.floor_parameter(ctx), label=FLOOR_PROBE_LABEL
                )
            else:
                floor = floor_stage.run(ctx)
                ctx.results[floor_stage.name] = floor
        except (ToolFailure, InvalidParameter) as exc:
            logger.warning("floor probe %s failed: %s", floor_stage.name, exc)
            return None

        # Tools are not strictly monotone; the floor never exceeds the ceiling.
        if floor.size > ceiling.size:
            floor = ceiling
        logger.info("estimate: floor=%d bytes ceiling=%d bytes", floor.size, ceiling.size)
        return Estimate(floor=floor, ceiling=ceiling)


__all__ = ["Reachability", "Estimate", "FloorCeilingEstimator", "FLOOR_PROBE_LABEL"]
