"""Data model for the engine: profile, ledger, daily signals and results."""

from jitter_engine.schemas.events import (
    DailySignals,
    DrinkEvent,
    ExerciseEvent,
    ExercisePhase,
    MealEvent,
    SleepSample,
    SleepSource,
    StressSample,
)
from jitter_engine.schemas.planning import (
    CaffeineCurvePoint,
    CaffeinePlan,
    CurveZone,
    DoseStatus,
    FocusSession,
    PlannedDose,
    PlanningPreferences,
    PlanningResult,
)
from jitter_engine.schemas.profile import MetabolismRate, Medication, Profile, Sex
from jitter_engine.schemas.score import (
    RiskCurvePoint,
    RiskLevel,
    ScoreInterpretation,
    ScoreKind,
    ScoreResult,
)

__all__ = [
    "CaffeineCurvePoint",
    "CaffeinePlan",
    "CurveZone",
    "DailySignals",
    "DoseStatus",
    "DrinkEvent",
    "ExerciseEvent",
    "ExercisePhase",
    "FocusSession",
    "MealEvent",
    "Medication",
    "MetabolismRate",
    "PlannedDose",
    "PlanningPreferences",
    "PlanningResult",
    "Profile",
    "RiskCurvePoint",
    "RiskLevel",
    "ScoreInterpretation",
    "ScoreKind",
    "ScoreResult",
    "Sex",
    "SleepSample",
    "SleepSource",
    "StressSample",
]
