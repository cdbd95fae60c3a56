from pathlib import Path

import pytest

from crnch.escalation import EscalationPolicy, decide
from crnch.models import CompressionJob, EscalationDecision, MediaKind, StageResult

GRAY = EscalationDecision.GRAYSCALE_RETRY
RESIZE = EscalationDecision.RESIZE_RETRY
ACCEPT = EscalationDecision.ACCEPT_BEST
ABORT = EscalationDecision.ABORT

BEST = StageResult(stage="quality_search", tool="pngquant", path=Path("x.png"), size=300_000)


def test_auto_yes_picks_least_destructive_first():
    assert decide(BEST, [RESIZE, GRAY], auto_yes=True) is GRAY
    assert decide(BEST, [RESIZE], auto_yes=True) is RESIZE
    assert decide(BEST, [], auto_yes=True) is ACCEPT


def test_without_prompt_the_best_result_is_accepted():
    assert decide(BEST, [GRAY, RESIZE], auto_yes=False) is ACCEPT


def test_prompt_answer_is_used():
    asked = []

    def prompt(best, options):
        asked.append((best, list(options)))
        return ABORT

    assert decide(BEST, [RESIZE, GRAY], auto_yes=False, prompt=prompt) is ABORT
    assert asked == [(BEST, [GRAY, RESIZE])]


def test_prompt_cannot_choose_unavailable_retry():
    with pytest.raises(ValueError):
        decide(BEST, [GRAY], auto_yes=False, prompt=lambda best, options: RESIZE)


def test_policy_does_not_offer_a_fallback_twice(tmp_path):
    job = CompressionJob(tmp_path / "a.png", tmp_path / "b.png", MediaKind.PNG, target_bytes=1000, auto_yes=True)
    policy = EscalationPolicy([GRAY, RESIZE])

    assert policy.escalate(job, BEST) is GRAY
    assert policy.untried == [RESIZE]
    assert policy.escalate(job, BEST) is RESIZE
    assert policy.escalate(job, BEST) is ACCEPT
    assert policy.untried == []
