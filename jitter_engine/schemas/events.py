"""Ledger and daily-signal schemas.

Drink events are immutable once recorded. Sleep, stress, meal and
exercise samples are optional daily signals; the engine degrades to
neutral defaults when they are absent.
"""

import datetime as dt
from enum import StrEnum, auto
from typing import Any, Final

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, computed_field, field_validator

from jitter_engine.schemas.profile import MAX_SLEEP_HOURS

MAX_CAFFEINE_MG: Final[float] = 1000.0
MAX_COMPLETION_PERCENTAGE: Final[float] = 100.0
MIN_STRESS_LEVEL: Final[int] = 1
MAX_STRESS_LEVEL: Final[int] = 10
DEFAULT_CONSUMPTION_DURATION: Final[dt.timedelta] = dt.timedelta(minutes=15)
MAX_CONSUMPTION_DURATION: Final[dt.timedelta] = dt.timedelta(hours=12)


class SleepSource(StrEnum):
    """Where a sleep sample came from."""

    manual = auto()
    wearable = auto()
    health_app = auto()


class ExercisePhase(StrEnum):
    """Whether the user is exercising now or has just finished."""

    starting = auto()
    completed = auto()


class DrinkEvent(BaseModel):
    """A single caffeinated drink in the consumption ledger."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str | None = None
    timestamp: AwareDatetime = Field(description="When consumption started.")
    caffeine_mg: float = Field(
        ge=0.0,
        le=MAX_CAFFEINE_MG,
        description=f"Declared caffeine content in mg. Range: 0-{MAX_CAFFEINE_MG:g}.",
    )
    completion_percentage: float = Field(
        default=100.0,
        ge=0.0,
        le=MAX_COMPLETION_PERCENTAGE,
        description="How much of the drink was consumed. Range: 0-100.",
    )
    consumption_duration: dt.timedelta = DEFAULT_CONSUMPTION_DURATION
    recorded_at: AwareDatetime | None = None

    @field_validator("consumption_duration")
    @classmethod
    def check_duration(cls, value: dt.timedelta) -> dt.timedelta:
        """Reject negative or implausibly long consumption durations."""
        if value < dt.timedelta(0) or value > MAX_CONSUMPTION_DURATION:
            msg = "consumption_duration must be between 0 and 12 hours"
            raise ValueError(msg)
        return value

    @computed_field
    @property
    def actual_caffeine_mg(self) -> float:
        """Caffeine actually consumed: declared mg scaled by completion."""
        return self.caffeine_mg * self.completion_percentage / 100.0


class SleepSample(BaseModel):
    """Hours slept on one night."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    hours_slept: float = Field(
        ge=0.0,
        le=MAX_SLEEP_HOURS,
        description=f"Hours slept. Range: 0-{MAX_SLEEP_HOURS:g}.",
    )
    source: SleepSource = SleepSource.manual


class StressSample(BaseModel):
    """Self-reported stress for one day."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    level: int = Field(ge=MIN_STRESS_LEVEL, le=MAX_STRESS_LEVEL)


class MealEvent(BaseModel):
    """A meal, recorded by time only."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime


class ExerciseEvent(BaseModel):
    """An exercise session start or completion."""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime
    phase: ExercisePhase


class DailySignals(BaseModel):
    """Optional daily context supplied alongside the ledger.

    Every field may be absent; each factor that reads one falls back to
    its documented neutral default.
    """

    model_config = ConfigDict(frozen=True)

    last_night_sleep_hours: float | None = Field(
        default=None,
        ge=0.0,
        le=MAX_SLEEP_HOURS,
    )
    stress_level: int | None = Field(
        default=None,
        ge=MIN_STRESS_LEVEL,
        le=MAX_STRESS_LEVEL,
    )
    meal_times: tuple[AwareDatetime, ...] = ()
    exercise: ExerciseEvent | None = None

    @field_validator("meal_times", mode="before")
    @classmethod
    def unwrap_meal_events(cls, value: Any) -> Any:
        """Accept MealEvent records as well as bare meal timestamps."""
        if isinstance(value, list | tuple):
            return tuple(
                item.timestamp if isinstance(item, MealEvent) else item
                for item in value
            )
        return value
