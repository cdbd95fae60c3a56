from __future__ import annotations

"""Declarative stage descriptors for the waterfalls.

A stage names the tool it drives, the artifacts it may read (the first one that
exists wins), and when it is eligible. ``DirectTransform`` runs its tool once;
``SearchBackedTransform`` bisects one parameter of its tool toward the job's
target. Adding or reordering stages is a change to the lists in
:mod:`crnch.waterfalls`, not to the runner.
"""

from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    Optional,
    Tuple,
    Union,
)
import logging

from .exceptions import ToolFailure
from .models import CompressionLevel, MediaKind, StageResult
from .search import Direction, preferred_probe, search

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .pipeline import StageContext

logger = logging.getLogger(__name__)

ALL_LEVELS: FrozenSet[CompressionLevel] = frozenset(CompressionLevel)

ParameterSpec = Union[int, None, Callable[["StageContext"], Optional[int]]]
DomainSpec = Union[Tuple[int, int], Callable[["StageContext"], Tuple[int, int]]]
OptionsSpec = Optional[Callable[["StageContext"], Dict[str, Any]]]


@dataclass(frozen=True)
class Stage:
    name: str
    kinds: FrozenSet[MediaKind]
    tool: str
    sources: Tuple[str, ...] = ("input",)
    # Levels at which the stage runs when the job has no target.
    levels: FrozenSet[CompressionLevel] = ALL_LEVELS
    target_only: bool = False
    level_only: bool = False
    options: OptionsSpec = None
    # Tool run once on the chosen output, e.g. oxipng after quantization.
    polish: Optional[str] = None

    is_search_backed: ClassVar[bool] = False

    @property
    def required_tools(self) -> Tuple[str, ...]:
        return (self.tool,)

    def eligible(self, has_target: bool, level: CompressionLevel) -> bool:
        if has_target:
            return not self.level_only
        if self.target_only or self.is_search_backed:
            return False
        return level in self.levels

    def resolve_options(self, ctx: "StageContext") -> Dict[str, Any]:
        return dict(self.options(ctx)) if self.options is not None else {}

    def run(self, ctx: "StageContext") -> StageResult:
        raise NotImplementedError


@dataclass(frozen=True)
class DirectTransform(Stage):
    parameter: ParameterSpec = None

    def resolve_parameter(self, ctx: "StageContext") -> Optional[int]:
        if callable(self.parameter):
            return self.parameter(ctx)
        return self.parameter

    def run(self, ctx: "StageContext") -> StageResult:
        source = ctx.resolve_source(self.sources)
        parameter = self.resolve_parameter(ctx)
        output = ctx.invoke(self, source, parameter, self.resolve_options(ctx))
        return ctx.finish(self, output.path, parameter)


@dataclass(frozen=True)
class SearchBackedTransform(Stage):
    domain: DomainSpec = (0, 100)
    direction: Direction = Direction.INCREASING

    is_search_backed: ClassVar[bool] = True

    def resolve_domain(self, ctx: "StageContext") -> Tuple[int, int]:
        if callable(self.domain):
            return self.domain(ctx)
        return self.domain

    def floor_parameter(self, ctx: "StageContext") -> int:
        """Most aggressive value of the domain."""
        lo, hi = self.resolve_domain(ctx)
        return lo if self.direction is Direction.INCREASING else hi

    def probe(self, ctx: "StageContext", parameter: int, *, label: Optional[str] = None) -> StageResult:
        """Run the tool once at ``parameter`` without searching."""
        source = ctx.resolve_source(self.sources)
        output = ctx.invoke(self, source, parameter, self.resolve_options(ctx), label=label)
        return StageResult(stage=label or self.name, tool=self.tool, path=output.path, size=output.size, parameter=parameter)

    def run(self, ctx: "StageContext") -> StageResult:
        source = ctx.resolve_source(self.sources)
        options = self.resolve_options(ctx)
        outputs = {}

        def evaluate(parameter: int) -> int:
            output = ctx.invoke(self, source, parameter, options)
            outputs[parameter] = output
            return output.size

        domain = self.resolve_domain(ctx)
        try:
            outcome = search(
                domain,
                self.direction,
                ctx.target,
                ctx.tolerance,
                ctx.config.max_iterations,
                evaluate,
            )
        except ToolFailure as exc:
            if not outputs:
                raise
            # Probes that already finished stay usable when a later one fails.
            history = [(parameter, output.size) for parameter, output in outputs.items()]
            best_parameter, best_size = preferred_probe(history, ctx.target)
            logger.warning(
                "%s: probe failed (%s), keeping parameter %d -> %d bytes from %d earlier probes",
                self.name,
                exc,
                best_parameter,
                best_size,
                len(outputs),
            )
            return ctx.finish(self, outputs[best_parameter].path, best_parameter)
        logger.info(
            "%s: best parameter %d -> %d bytes after %d probes (converged=%s)",
            self.name,
            outcome.best_parameter,
            outcome.best_size,
            outcome.iterations,
            outcome.converged,
        )
        return ctx.finish(self, outputs[outcome.best_parameter].path, outcome.best_parameter)


__all__ = [
    "ALL_LEVELS",
    "Stage",
    "DirectTransform",
    "SearchBackedTransform",
]
