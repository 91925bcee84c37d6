"""Score result schemas."""

from datetime import datetime
from enum import StrEnum, auto

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class ScoreKind(StrEnum):
    """Which composite score a result carries."""

    crash_risk = auto()
    caff_score = auto()


class RiskLevel(StrEnum):
    """Coarse interpretation band for a score."""

    low = auto()
    medium = auto()
    high = auto()


class ScoreResult(BaseModel):
    """A freshly computed score snapshot.

    Never partially updated: every evaluation builds a new instance.
    ``fail_safe`` distinguishes the neutral fallback returned for invalid
    input from a genuine zero.
    """

    model_config = ConfigDict(frozen=True)

    kind: ScoreKind
    score: float = Field(ge=0.0, le=100.0)
    factors: dict[str, float]
    half_life_hours: float = Field(gt=0.0)
    current_level_mg: float = Field(ge=0.0)
    peak_level_mg: float = Field(ge=0.0)
    computed_at: AwareDatetime
    valid_until: AwareDatetime
    fail_safe: bool = False
    warnings: list[str] = Field(default_factory=list)

    def is_valid_at(self, at: datetime) -> bool:
        """Return True while ``at`` falls inside the snapshot window."""
        return self.computed_at <= at < self.valid_until


class RiskCurvePoint(BaseModel):
    """Projected crash risk at one future instant, ledger held fixed."""

    model_config = ConfigDict(frozen=True)

    time: AwareDatetime
    score: float = Field(ge=0.0, le=100.0)
    level_mg: float = Field(ge=0.0)


class ScoreInterpretation(BaseModel):
    """User-facing reading of a crash-risk score."""

    model_config = ConfigDict(frozen=True)

    level: RiskLevel
    message: str
    advisory: str
