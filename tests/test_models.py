from pathlib import Path

import pytest

from crnch.exceptions import InvalidStateTransition
from crnch.models import (
    CompressionJob,
    CompressionLevel,
    CompressionResult,
    EscalationDecision,
    JobState,
    MediaKind,
)


def _job(**kwargs) -> CompressionJob:
    return CompressionJob(Path("in.png"), Path("out.png"), MediaKind.PNG, **kwargs)


def test_job_defaults():
    job = _job()
    assert job.state is JobState.PENDING
    assert job.level is CompressionLevel.MEDIUM
    assert not job.has_target
    assert job.attempts == ()
    assert job.job_id


def test_target_must_be_positive():
    with pytest.raises(ValueError):
        _job(target_bytes=0)


def test_job_identity_is_read_only():
    job = _job(target_bytes=1000)
    with pytest.raises(AttributeError):
        job.target_bytes = 5
    with pytest.raises(AttributeError):
        job.media_kind = MediaKind.PDF


def test_lifecycle_moves_forward_only():
    job = _job(target_bytes=1000)
    job.transition(JobState.RUNNING)
    job.transition(JobState.RUNNING)
    job.transition(JobState.UNREACHABLE)
    job.transition(JobState.PARTIALLY_CONVERGED)
    assert job.state.is_terminal

    with pytest.raises(InvalidStateTransition):
        job.transition(JobState.RUNNING)


@pytest.mark.parametrize(
    "start, target",
    [
        (JobState.PENDING, JobState.CONVERGED),
        (JobState.UNREACHABLE, JobState.RUNNING),
        (JobState.CONVERGED, JobState.FAILED),
        (JobState.FAILED, JobState.RUNNING),
    ],
)
def test_illegal_transitions(start, target):
    job = _job()
    path = {
        JobState.PENDING: [],
        JobState.UNREACHABLE: [JobState.RUNNING, JobState.UNREACHABLE],
        JobState.CONVERGED: [JobState.RUNNING, JobState.CONVERGED],
        JobState.FAILED: [JobState.FAILED],
    }[start]
    for step in path:
        job.transition(step)
    with pytest.raises(InvalidStateTransition):
        job.transition(target)


def test_unreachable_is_not_terminal():
    assert not JobState.UNREACHABLE.is_terminal
    assert JobState.FAILED.is_terminal


def test_escalation_retry_flags():
    assert EscalationDecision.GRAYSCALE_RETRY.is_retry
    assert EscalationDecision.RESIZE_RETRY.is_retry
    assert not EscalationDecision.ACCEPT_BEST.is_retry
    assert not EscalationDecision.ABORT.is_retry


def test_result_reduction_and_dict():
    result = CompressionResult(
        job_id="abc",
        input_path=Path("in.png"),
        output_path=Path("out.png"),
        original_size=1000,
        final_size=250,
        elapsed_ms=12.5,
        stage="quality_search",
        state=JobState.CONVERGED,
        parameter=62,
        target_bytes=300,
    )
    assert result.reduction_percent == 75.0
    data = result.to_dict()
    assert data["state"] == "converged"
    assert data["parameter"] == 62
    assert data["elapsed_ms"] == 12.5
    assert data["attempts"] == 0
