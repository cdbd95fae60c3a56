from __future__ import annotations

"""What to do once the ordinary stages cannot meet the target."""

from typing import Callable, Optional, Sequence, Set
import logging

from .models import CompressionJob, EscalationDecision, StageResult

logger = logging.getLogger(__name__)

# Least destructive first.
FALLBACK_ORDER = (EscalationDecision.GRAYSCALE_RETRY, EscalationDecision.RESIZE_RETRY)

Prompt = Callable[[Optional[StageResult], Sequence[EscalationDecision]], EscalationDecision]


def decide(
    best: Optional[StageResult],
    available: Sequence[EscalationDecision],
    auto_yes: bool,
    prompt: Optional[Prompt] = None,
) -> EscalationDecision:
    """Choose the next escalation step.

    ``available`` lists the untried retries. With ``auto_yes`` the least
    destructive one is taken. Otherwise ``prompt`` (the interactive
    collaborator) decides; without one the best result is accepted.
    """
    ordered = [d for d in FALLBACK_ORDER if d in available]
    if auto_yes:
        return ordered[0] if ordered else EscalationDecision.ACCEPT_BEST
    if prompt is None:
        return EscalationDecision.ACCEPT_BEST
    decision = prompt(best, ordered)
    if decision.is_retry and decision not in ordered:
        raise ValueError(f"escalation prompt returned unavailable option {decision.value}")
    return decision


class EscalationPolicy:
    """Tracks which fallbacks a job has already used."""

    def __init__(self, available: Sequence[EscalationDecision], prompt: Optional[Prompt] = None) -> None:
        self._available = [d for d in FALLBACK_ORDER if d in available]
        self._tried: Set[EscalationDecision] = set()
        self.prompt = prompt

    @property
    def untried(self) -> list:
        return [d for d in self._available if d not in self._tried]

    def escalate(self, job: CompressionJob, best: Optional[StageResult]) -> EscalationDecision:
        decision = decide(best, self.untried, job.auto_yes, self.prompt)
        if decision.is_retry:
            self._tried.add(decision)
        logger.info(
            "escalation for job %s: %s (best=%s)",
            job.job_id,
            decision.value,
            best.size if best else None,
        )
        return decision


__all__ = ["FALLBACK_ORDER", "Prompt", "decide", "EscalationPolicy"]
