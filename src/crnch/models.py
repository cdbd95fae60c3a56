from __future__ import annotations

"""Data model shared by the optimization engine and its callers."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import uuid

from .exceptions import InvalidStateTransition


class MediaKind(str, Enum):
    PNG = "png"
    JPG = "jpg"
    PDF = "pdf"

    @property
    def suffix(self) -> str:
        return f".{self.value}"


class CompressionLevel(str, Enum):
    LOW = "low"  # better quality
    MEDIUM = "medium"  # balanced
    HIGH = "high"  # smallest size


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    CONVERGED = "converged"
    PARTIALLY_CONVERGED = "partially_converged"
    UNREACHABLE = "unreachable"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        # UNREACHABLE always settles into one of these once escalation ends.
        return self in (JobState.CONVERGED, JobState.PARTIALLY_CONVERGED, JobState.FAILED)


_ALLOWED_TRANSITIONS = {
    JobState.PENDING: {JobState.RUNNING, JobState.FAILED},
    JobState.RUNNING: {
        JobState.RUNNING,
        JobState.CONVERGED,
        JobState.PARTIALLY_CONVERGED,
        JobState.UNREACHABLE,
        JobState.FAILED,
    },
    # Escalation after an unreachable floor still settles the job.
    JobState.UNREACHABLE: {
        JobState.CONVERGED,
        JobState.PARTIALLY_CONVERGED,
        JobState.FAILED,
    },
}


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    CLOSER = "closer"
    NO_IMPROVEMENT = "no_improvement"
    TOOL_ERROR = "tool_error"


class EscalationDecision(str, Enum):
    GRAYSCALE_RETRY = "grayscale"
    RESIZE_RETRY = "resize"
    ACCEPT_BEST = "accept"
    ABORT = "abort"

    @property
    def is_retry(self) -> bool:
        return self in (EscalationDecision.GRAYSCALE_RETRY, EscalationDecision.RESIZE_RETRY)


@dataclass(frozen=True)
class AttemptRecord:
    """One tool invocation, as kept in the job's audit trail."""

    stage: str
    tool: str
    parameter: Optional[int]
    size: Optional[int]
    elapsed_ms: float
    outcome: AttemptOutcome
    # Size of the best result the job held when the attempt was recorded. The
    # probes of a search stage count only once the stage finishes; a probe
    # that meets the target is marked by ``outcome`` SUCCESS instead.
    best_size: Optional[int] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class StageResult:
    stage: str
    tool: str
    path: Path
    size: int
    parameter: Optional[int] = None


@dataclass(frozen=True)
class ProgressEvent:
    """Published after every attempt; ``best_size`` and ``outcome`` as in :class:`AttemptRecord`."""

    stage: str
    attempt_number: int
    size: Optional[int]
    best_size: Optional[int]
    parameter: Optional[int] = None
    outcome: Optional[AttemptOutcome] = None


class CompressionJob:
    """State of one compression attempt, created once per input file."""

    def __init__(
        self,
        input_path: Path | str,
        output_path: Path | str,
        media_kind: MediaKind,
        *,
        target_bytes: Optional[int] = None,
        level: CompressionLevel = CompressionLevel.MEDIUM,
        auto_yes: bool = False,
        job_id: Optional[str] = None,
    ) -> None:
        if target_bytes is not None and target_bytes <= 0:
            raise ValueError("target_bytes must be positive")
        self.input_path = Path(input_path)
        self.output_path = Path(output_path)
        self._media_kind = MediaKind(media_kind)
        self._target_bytes = target_bytes
        self.level = CompressionLevel(level)
        self.auto_yes = auto_yes
        self.job_id = job_id or uuid.uuid4().hex
        self._attempts: List[AttemptRecord] = []
        self._state = JobState.PENDING

    @property
    def media_kind(self) -> MediaKind:
        return self._media_kind

    @property
    def target_bytes(self) -> Optional[int]:
        return self._target_bytes

    @property
    def has_target(self) -> bool:
        return self._target_bytes is not None

    @property
    def attempts(self) -> Tuple[AttemptRecord, ...]:
        return tuple(self._attempts)

    def record(self, attempt: AttemptRecord) -> None:
        self._attempts.append(attempt)

    @property
    def state(self) -> JobState:
        return self._state

    def transition(self, new_state: JobState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self._state, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"job {self.job_id}: cannot move from {self._state.value} to {new_state.value}"
            )
        self._state = new_state

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"CompressionJob(id={self.job_id!r}, kind={self._media_kind.value}, "
            f"target={self._target_bytes}, level={self.level.value}, state={self._state.value})"
        )


@dataclass
class CompressionResult:
    job_id: str
    input_path: Path
    output_path: Optional[Path]
    original_size: int
    final_size: int
    elapsed_ms: float
    stage: str
    state: JobState
    parameter: Optional[int] = None
    target_bytes: Optional[int] = None
    target_met: bool = True
    attempts: Tuple[AttemptRecord, ...] = field(default_factory=tuple)

    @property
    def reduction_percent(self) -> float:
        if self.original_size <= 0:
            return 0.0
        return (self.original_size - self.final_size) / self.original_size * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "input_path": str(self.input_path),
            "output_path": str(self.output_path) if self.output_path else None,
            "original_size": self.original_size,
            "final_size": self.final_size,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "stage": self.stage,
            "parameter": self.parameter,
            "state": self.state.value,
            "target_bytes": self.target_bytes,
            "target_met": self.target_met,
            "attempts": len(self.attempts),
        }


__all__ = [
    "MediaKind",
    "CompressionLevel",
    "JobState",
    "AttemptOutcome",
    "EscalationDecision",
    "AttemptRecord",
    "StageResult",
    "ProgressEvent",
    "CompressionJob",
    "CompressionResult",
]
