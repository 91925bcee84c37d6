# Scoring Services
from jitter_engine.services.planning import (
    adjust_plan_for_intake,
    generate_daily_plan,
    latest_safe_caffeine_time,
    optimal_caffeine_time,
    project_caffeine_curve,
    recommended_dose,
)
from jitter_engine.services.recommendations import (
    CaffeineRecommendation,
    next_caffeine_recommendation,
)
from jitter_engine.services.scoring import (
    compute_caff_score,
    compute_crash_risk,
    compute_risk_curve,
    interpret_score,
)
from jitter_engine.services.status import StatusResult, StatusTrend, calculate_status
from jitter_engine.services.storage import (
    NO_DATA,
    StorageCollaborator,
    compute_caff_score_for_user,
    compute_crash_risk_for_user,
    load_evaluation_inputs,
)
from jitter_engine.services.validity import ResultValidityGuard

__all__ = [
    "adjust_plan_for_intake",
    "generate_daily_plan",
    "latest_safe_caffeine_time",
    "optimal_caffeine_time",
    "project_caffeine_curve",
    "recommended_dose",
    "CaffeineRecommendation",
    "next_caffeine_recommendation",
    "compute_caff_score",
    "compute_crash_risk",
    "compute_risk_curve",
    "interpret_score",
    "StatusResult",
    "StatusTrend",
    "calculate_status",
    "NO_DATA",
    "StorageCollaborator",
    "compute_caff_score_for_user",
    "compute_crash_risk_for_user",
    "load_evaluation_inputs",
    "ResultValidityGuard",
]
