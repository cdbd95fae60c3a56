from __future__ import annotations

"""Bisection over a single integer encoder parameter.

One optimizer serves every format: the caller states through ``direction``
whether raising the parameter grows the output (quality, DPI, scale) or shrinks
it, and supplies ``evaluate`` which runs the tool and returns the byte size.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple
import logging

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    INCREASING = "increasing"  # larger parameter -> larger output
    DECREASING = "decreasing"  # larger parameter -> smaller output


@dataclass
class SearchState:
    """Bracket of one search invocation.

    ``best_parameter`` is always one of the bracket ends once set, so
    ``low_bound <= best_parameter <= high_bound`` holds after every iteration.
    """

    low_bound: int
    high_bound: int
    direction: Direction = Direction.INCREASING
    best_parameter: Optional[int] = None
    best_size: Optional[int] = None
    iterations_used: int = 0
    history: List[Tuple[int, int]] = field(default_factory=list)
    _evaluated: Set[int] = field(default_factory=set, repr=False)

    def next_probe(self) -> Optional[int]:
        lo = self.low_bound + (1 if self.low_bound in self._evaluated else 0)
        hi = self.high_bound - (1 if self.high_bound in self._evaluated else 0)
        if lo > hi:
            return None
        return (lo + hi) // 2

    def _update(self, parameter: int, size: int, target: int) -> None:
        self.iterations_used += 1
        self._evaluated.add(parameter)
        self.history.append((parameter, size))

        wants_larger_output = size < target
        if wants_larger_output == (self.direction is Direction.INCREASING):
            self.low_bound = parameter
        else:
            self.high_bound = parameter

        # An undershoot always beats an overshoot; within the same side the
        # latest probe is the one nearest the target.
        best_undershoots = self.best_size is not None and self.best_size <= target
        if size <= target or not best_undershoots:
            self.best_parameter = parameter
            self.best_size = size


@dataclass(frozen=True)
class SearchOutcome:
    best_parameter: int
    best_size: int
    converged: bool
    iterations: int


def preferred_probe(history: List[Tuple[int, int]], target: int) -> Tuple[int, int]:
    """Pick the closest undershoot from ``(parameter, size)`` pairs, else the smallest overshoot."""
    undershoots = [h for h in history if h[1] <= target]
    if undershoots:
        return max(undershoots, key=lambda h: h[1])
    return min(history, key=lambda h: h[1])


def search(
    domain: Tuple[int, int],
    direction: Direction,
    target: int,
    tolerance: int,
    max_iterations: int,
    evaluate: Callable[[int], int],
    observer: Optional[Callable[[SearchState], None]] = None,
) -> SearchOutcome:
    """Bisect ``domain`` until ``evaluate`` lands within ``tolerance`` of ``target``.

    Returns as soon as a probe converges. When the bracket or the iteration
    budget runs out first, the best probe is returned: the undershoot closest
    to ``target`` or, when every probe overshot, the smallest overshoot.

    Exceptions raised by ``evaluate`` propagate to the caller.
    """
    lo, hi = domain
    if lo > hi:
        raise ValueError(f"empty search domain {domain}")
    if max_iterations < 1:
        raise ValueError("max_iterations must be at least 1")

    state = SearchState(low_bound=lo, high_bound=hi, direction=Direction(direction))
    while state.iterations_used < max_iterations:
        mid = state.next_probe()
        if mid is None:
            break
        size = evaluate(mid)
        logger.debug(
            "probe %d/%d: parameter=%d size=%d target=%d",
            state.iterations_used + 1,
            max_iterations,
            mid,
            size,
            target,
        )
        if abs(size - target) <= tolerance:
            state.iterations_used += 1
            state._evaluated.add(mid)
            state.history.append((mid, size))
            state.low_bound = state.high_bound = mid
            state.best_parameter, state.best_size = mid, size
            if observer is not None:
                observer(state)
            return SearchOutcome(mid, size, True, state.iterations_used)

        state._update(mid, size, target)
        if observer is not None:
            observer(state)

    best_parameter, best_size = preferred_probe(state.history, target)
    return SearchOutcome(best_parameter, best_size, False, state.iterations_used)


__all__ = ["Direction", "SearchState", "SearchOutcome", "preferred_probe", "search"]
