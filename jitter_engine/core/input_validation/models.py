"""Input validation Pydantic models.

Pure data models describing the outcome of validating one scoring
snapshot. The parsed profile, ledger and signals ride along so the
scorer never re-parses raw input.
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from jitter_engine.core.input_validation.enums import InputCheckType
from jitter_engine.schemas.events import DailySignals, DrinkEvent
from jitter_engine.schemas.profile import Profile


class InputCheckResult(BaseModel):
    """Result of a single input check."""

    model_config = ConfigDict(frozen=True)

    check_type: InputCheckType
    passed: bool
    message: str = Field(min_length=1)
    errors: list[str] = Field(default_factory=list)
    details: dict[str, Any] | None = None


class InputValidationResult(BaseModel):
    """Aggregate result of all input checks for a snapshot."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    checks: list[InputCheckResult] = Field(default_factory=list)
    profile: Profile | None = None
    events: tuple[DrinkEvent, ...] = ()
    signals: DailySignals = Field(default_factory=DailySignals)

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        """Enforce that valid/invalid states are internally consistent."""
        if self.valid and self.reasons:
            msg = "reasons must be empty when the snapshot is valid"
            raise ValueError(msg)
        if not self.valid and not self.reasons:
            msg = "reasons must not be empty when the snapshot is invalid"
            raise ValueError(msg)
        if self.valid and self.profile is None:
            msg = "a valid snapshot must carry a parsed profile"
            raise ValueError(msg)
        return self
