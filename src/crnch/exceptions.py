"""
Custom exceptions for the crnch library.
"""


class CrnchError(Exception):
    """Base class for all crnch specific errors."""
    pass


class ToolFailure(CrnchError):
    """Base class for stage-local failures of an external tool.

    These never end a job on their own: the current stage is skipped and the
    waterfall moves on.
    """

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class ToolUnavailable(ToolFailure):
    """Raised when the tool binary cannot be found."""
    pass


class ToolError(ToolFailure):
    """Raised when a tool exits non-zero or produces unreadable output."""
    pass


class ToolTimeout(ToolError):
    """Raised when a tool exceeds its time limit."""
    pass


class InvalidParameter(CrnchError):
    """Raised when a parameter outside a tool's accepted domain is requested.

    This points at an engine bug rather than a user error. It aborts the
    current search but not the job.
    """

    def __init__(self, tool: str, parameter, domain) -> None:
        super().__init__(
            f"{tool}: parameter {parameter!r} outside accepted domain {domain}"
        )
        self.tool = tool
        self.parameter = parameter
        self.domain = domain


class JobError(CrnchError):
    """Base class for conditions that end a job in the FAILED state."""
    pass


class NoToolAvailable(JobError):
    """Raised when no stage for the media kind could run."""
    pass


class EscalationAborted(JobError):
    """Raised when the escalation decision is to abort."""
    pass


class JobCancelled(JobError):
    """Raised when the caller cancels a running job."""
    pass


class InvalidStateTransition(CrnchError):
    """Raised when a job is moved backwards through its lifecycle."""
    pass


class ConfigurationError(CrnchError):
    """Raised for general configuration issues."""
    pass


class UnsupportedMediaError(CrnchError):
    """Raised for inputs that are not PNG, JPG or PDF files."""
    pass


__all__ = [
    "CrnchError",
    "ToolFailure",
    "ToolUnavailable",
    "ToolError",
    "ToolTimeout",
    "InvalidParameter",
    "JobError",
    "NoToolAvailable",
    "EscalationAborted",
    "JobCancelled",
    "InvalidStateTransition",
    "ConfigurationError",
    "UnsupportedMediaError",
]
