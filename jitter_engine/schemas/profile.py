"""Physiological profile schema.

Created once at onboarding and mutated only by explicit settings edits.
The engine reads it; it never writes it back.
"""

from enum import StrEnum, auto
from typing import Final, Self

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

MIN_WEIGHT_KG: Final[float] = 30.0
MAX_WEIGHT_KG: Final[float] = 300.0
MIN_AGE_YEARS: Final[int] = 13
MAX_AGE_YEARS: Final[int] = 120
MAX_SLEEP_HOURS: Final[float] = 16.0
MAX_MEAN_DAILY_CAFFEINE_MG: Final[float] = 2000.0


class Sex(StrEnum):
    """Biological sex used for hormonal metabolism effects."""

    male = auto()
    female = auto()


class MetabolismRate(StrEnum):
    """Self-reported caffeine metabolism speed."""

    very_slow = auto()
    slow = auto()
    medium = auto()
    fast = auto()
    very_fast = auto()


class Medication(StrEnum):
    """CYP1A2-inhibiting medications, strongest first."""

    fluvoxamine = auto()
    ciprofloxacin = auto()
    other_cyp1a2_inhibitor = auto()


class Profile(BaseModel):
    """A user's physiological profile.

    Weight, age, sex and smoking status are required for scoring.
    Females must also declare pregnancy status, and non-pregnant
    females must declare oral contraceptive use.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    weight_kg: float = Field(
        ge=MIN_WEIGHT_KG,
        le=MAX_WEIGHT_KG,
        description=f"Body weight in kg. Range: {MIN_WEIGHT_KG:g}-{MAX_WEIGHT_KG:g}.",
    )
    age: int = Field(
        ge=MIN_AGE_YEARS,
        le=MAX_AGE_YEARS,
        description=f"Age in years. Range: {MIN_AGE_YEARS}-{MAX_AGE_YEARS}.",
    )
    sex: Sex
    smoker: bool
    pregnant: bool | None = None
    oral_contraceptives: bool | None = None

    fluvoxamine: bool = False
    ciprofloxacin: bool = False
    other_cyp1a2_inhibitor: bool = False
    metabolism_rate: MetabolismRate = MetabolismRate.medium

    average_sleep_7_days: float = Field(
        default=0.0,
        ge=0.0,
        le=MAX_SLEEP_HOURS,
        description="Rolling 7-day sleep average in hours (0 when unknown).",
    )
    mean_daily_caffeine_mg: float = Field(
        default=0.0,
        ge=0.0,
        le=MAX_MEAN_DAILY_CAFFEINE_MG,
        description="Rolling 30-day mean daily caffeine intake in mg.",
    )

    created_at: AwareDatetime
    updated_at: AwareDatetime | None = None

    @model_validator(mode="after")
    def check_reproductive_status(self) -> Self:
        """Require pregnancy/contraceptive status where it affects clearance."""
        if self.sex == Sex.female:
            if self.pregnant is None:
                msg = "pregnancy status is required for females"
                raise ValueError(msg)
            if not self.pregnant and self.oral_contraceptives is None:
                msg = "oral contraceptive status is required for non-pregnant females"
                raise ValueError(msg)
        return self

    @property
    def is_pregnant(self) -> bool:
        return bool(self.pregnant)

    @property
    def uses_oral_contraceptives(self) -> bool:
        """Contraceptive use only counts for non-pregnant females."""
        return (
            self.sex == Sex.female
            and bool(self.oral_contraceptives)
            and not self.is_pregnant
        )

    @property
    def strongest_medication(self) -> Medication | None:
        """Return the single strongest CYP1A2 inhibitor taken, if any."""
        if self.fluvoxamine:
            return Medication.fluvoxamine
        if self.ciprofloxacin:
            return Medication.ciprofloxacin
        if self.other_cyp1a2_inhibitor:
            return Medication.other_cyp1a2_inhibitor
        return None
