import math
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError


class EngineConfig(BaseModel):
    """
    Tunables of the target-size optimization engine: convergence tolerance,
    search budget, tool timeout and scratch location.
    """

    tolerance: float = Field(
        default=0.05,
        ge=0.0,
        lt=1.0,
        description="Relative deviation from the target still counted as convergence.",
    )
    tolerance_bytes: Optional[int] = Field(
        default=None,
        ge=0,
        description="Absolute tolerance in bytes. Overrides the relative tolerance when set.",
    )
    max_iterations: int = Field(
        default=14, ge=1, description="Safety cap on evaluations per bisection search."
    )
    tool_timeout: float = Field(
        default=120.0, gt=0, description="Seconds before an external tool call is abandoned."
    )
    oxipng_level: int = Field(
        default=2, ge=0, le=6, description="Optimisation preset passed to oxipng (-o)."
    )
    scratch_dir: Optional[str] = Field(
        default=None,
        description="Parent directory for scratch files. Defaults to the system temp dir.",
    )

    class Config:
        validate_assignment = True
        extra = "forbid"

    def tolerance_for(self, target: int) -> int:
        """Return the allowed absolute deviation for ``target`` bytes."""
        if self.tolerance_bytes is not None:
            return self.tolerance_bytes
        return int(math.floor(target * self.tolerance))

    @classmethod
    def from_app_config(cls, config: Any) -> "EngineConfig":
        """Build from a :class:`crnch.config.Config` instance."""
        try:
            return cls(
                tolerance=config.get("tolerance"),
                max_iterations=config.get("max_iterations"),
                tool_timeout=config.get("tool_timeout"),
            )
        except ValidationError as exc:
            raise ConfigurationError(f"invalid engine settings: {exc}") from exc
