"""Daily caffeine planning schemas.

A plan schedules one dose ahead of each focus session, timed so the
absorption peak lines up with the session start and kept clear of
bedtime.
"""

import datetime as dt
from enum import StrEnum, auto
from typing import Final, Self

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, computed_field, model_validator

from jitter_engine.schemas.events import MAX_CAFFEINE_MG

MIN_IMPORTANCE: Final[int] = 1
MAX_IMPORTANCE: Final[int] = 3
MAX_SLEEP_BUFFER_HOURS: Final[float] = 24.0


class DoseStatus(StrEnum):
    """Lifecycle of a planned dose."""

    pending = auto()
    consumed = auto()
    skipped = auto()


class CurveZone(StrEnum):
    """Where a projected level sits relative to the user's usual intake."""

    low = auto()
    building = auto()
    peak = auto()
    stable = auto()
    declining = auto()
    crash = auto()


class FocusSession(BaseModel):
    """A block of time the user wants to be alert for."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    start_time: AwareDatetime
    end_time: AwareDatetime
    importance: int = Field(
        default=2,
        ge=MIN_IMPORTANCE,
        le=MAX_IMPORTANCE,
        description="1 = normal, 2 = important, 3 = critical.",
    )

    @model_validator(mode="after")
    def check_times(self) -> Self:
        if self.end_time <= self.start_time:
            msg = "end_time must be after start_time"
            raise ValueError(msg)
        return self


class PlanningPreferences(BaseModel):
    """Per-user bounds on planned doses."""

    model_config = ConfigDict(frozen=True)

    preferred_dose_mg_min: float = Field(default=80.0, ge=0.0, le=MAX_CAFFEINE_MG)
    preferred_dose_mg_max: float = Field(default=200.0, ge=0.0, le=MAX_CAFFEINE_MG)
    sleep_buffer_hours: float = Field(
        default=6.0,
        ge=0.0,
        le=MAX_SLEEP_BUFFER_HOURS,
        description="Minimum gap between the last dose and bedtime.",
    )

    @model_validator(mode="after")
    def check_dose_bounds(self) -> Self:
        if self.preferred_dose_mg_min > self.preferred_dose_mg_max:
            msg = "preferred_dose_mg_min must not exceed preferred_dose_mg_max"
            raise ValueError(msg)
        return self


class PlannedDose(BaseModel):
    """One scheduled drink, tied to the session it prepares for."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    session_id: str
    recommended_time: AwareDatetime
    dose_mg: int = Field(ge=0, le=int(MAX_CAFFEINE_MG))
    reasoning: str
    sipping_window_minutes: float = Field(gt=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    status: DoseStatus = DoseStatus.pending
    actual_drink_id: str | None = None


class CaffeinePlan(BaseModel):
    """A day's schedule of planned doses."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    plan_date: dt.date
    bedtime: AwareDatetime
    sessions: tuple[FocusSession, ...] = ()
    doses: tuple[PlannedDose, ...] = ()
    latest_safe_caffeine_time: AwareDatetime
    generated_at: AwareDatetime
    last_updated_at: AwareDatetime

    @computed_field
    @property
    def total_planned_caffeine_mg(self) -> int:
        return sum(dose.dose_mg for dose in self.doses)

    @property
    def pending_doses(self) -> tuple[PlannedDose, ...]:
        return tuple(d for d in self.doses if d.status == DoseStatus.pending)


class CaffeineCurvePoint(BaseModel):
    """Projected caffeine level at one instant of a plan."""

    model_config = ConfigDict(frozen=True)

    time: AwareDatetime
    caffeine_level_mg: float = Field(ge=0.0, description="From logged drinks only.")
    projected_level_mg: float = Field(
        ge=0.0, description="Logged drinks plus pending planned doses."
    )
    zone: CurveZone


class PlanningResult(BaseModel):
    """A plan with its projected curve and the notes produced building it."""

    model_config = ConfigDict(frozen=True)

    plan: CaffeinePlan
    caffeine_curve: list[CaffeineCurvePoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    conflict_resolutions: list[str] = Field(default_factory=list)
