"""Composite crash-risk and CaffScore scoring.

CrashRisk = 100 * delta^0.6 * S^0.4 * (1-T)^0.3 * M * C^0.2
CaffScore = 100 * (L*sensitivity) * R^0.25 * T^0.25 * F^0.25 * A^0.35
            * Stress^0.15 * FoodDelay^0.1 * Exercise^0.1 * Anxiety

Both scores are rounded to one decimal and clamped to [0, 100]. Input
that fails validation never raises: the scorer returns a fail-safe
neutral result flagged with ``fail_safe=True`` and logs a warning, so a
fallback is always distinguishable from a genuine zero.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jitter_engine.config import settings
from jitter_engine.core.input_validation import InputValidationResult, InputValidator
from jitter_engine.core.input_validation.validator import (
    DrinkInput,
    ProfileInput,
    SignalsInput,
    is_usable_time,
)
from jitter_engine.logging_config import get_logger
from jitter_engine.schemas.events import DailySignals, DrinkEvent
from jitter_engine.schemas.profile import Profile
from jitter_engine.schemas.score import (
    RiskCurvePoint,
    RiskLevel,
    ScoreInterpretation,
    ScoreKind,
    ScoreResult,
)
from jitter_engine.services.factors import (
    CAFF_SCORE_CIRCADIAN,
    CAFF_SCORE_TOLERANCE,
    CRASH_RISK_CIRCADIAN,
    CRASH_RISK_TOLERANCE,
    absorption_factor,
    anxiety_risk_factor,
    average_rising_rate,
    caffeine_sensitivity_factor,
    current_level_factor,
    delta_factor,
    exercise_factor,
    focus_capacity,
    food_timing,
    is_sustained_plateau,
    metabolic_factor,
    rising_rate_factor,
    sleep_debt_factor,
    sleep_debt_hours,
    stress_factor,
    tolerance_factor,
)
from jitter_engine.services.half_life import (
    BASE_HALF_LIFE_HOURS,
    CAFF_SCORE_HALF_LIFE,
    CRASH_RISK_HALF_LIFE,
    calculate_half_life,
)
from jitter_engine.services.pharmacokinetics import (
    current_activity,
    current_level,
    peak_level,
)
from jitter_engine.services.validity import ResultValidityGuard

logger = get_logger(__name__)

# Score interpretation bands (inclusive upper bounds)
LOW_RISK_MAX = 30.0
MEDIUM_RISK_MAX = 70.0

DEFAULT_CURVE_HORIZON_HOURS = 6
DEFAULT_CURVE_STEP_MINUTES = 30
MAX_CURVE_HORIZON_HOURS = 48
MIN_CURVE_STEP_MINUTES = 1

CRASH_RISK_NEUTRAL_FACTORS: dict[str, float] = {
    "delta": 0.0,
    "sleep_debt": 0.0,
    "tolerance": 0.5,
    "metabolic": 1.0,
    "circadian": 0.5,
}

CAFF_SCORE_NEUTRAL_FACTORS: dict[str, float] = {
    "current_level": 0.0,
    "rising_rate": 0.5,
    "tolerance": 0.5,
    "focus": 0.5,
    "absorption": 0.0,
    "sensitivity": 1.0,
    "stress": 0.7,
    "food_delay": 1.0,
    "exercise": 1.0,
    "anxiety": 1.0,
}

_NEUTRAL_FACTORS = {
    ScoreKind.crash_risk: CRASH_RISK_NEUTRAL_FACTORS,
    ScoreKind.caff_score: CAFF_SCORE_NEUTRAL_FACTORS,
}

_validator = InputValidator()


@dataclass(frozen=True)
class _Evaluation:
    """Raw outcome of one pure score computation."""

    score: float
    factors: dict[str, float]
    half_life_hours: float
    current_level_mg: float
    peak_level_mg: float


def finalize_score(raw_score: float) -> float:
    """Round to one decimal and clamp to [0, 100]; non-finite becomes 0."""
    if not math.isfinite(raw_score):
        return 0.0
    return max(0.0, min(100.0, round(raw_score, 1)))


def _evaluate_crash_risk(
    profile: Profile,
    events: tuple[DrinkEvent, ...],
    signals: DailySignals,
    at: datetime,
) -> _Evaluation:
    debt_hours = sleep_debt_hours(profile, signals.last_night_sleep_hours, at)
    half_life = calculate_half_life(
        profile,
        CRASH_RISK_HALF_LIFE,
        sleep_debt_hours=debt_hours,
        stress_level=signals.stress_level,
        exercise=signals.exercise,
        at=at,
    )
    current = current_level(events, half_life, at)
    peak = peak_level(
        events,
        half_life,
        at,
        lookback_hours=settings.peak_lookback_hours,
        sample_interval_minutes=settings.peak_sample_interval_minutes,
    )

    factors = {
        "delta": delta_factor(current, peak),
        "sleep_debt": sleep_debt_factor(debt_hours),
        "tolerance": tolerance_factor(profile, CRASH_RISK_TOLERANCE),
        "metabolic": metabolic_factor(profile),
        "circadian": CRASH_RISK_CIRCADIAN(at),
    }
    raw = (
        100
        * math.pow(factors["delta"], 0.6)
        * math.pow(factors["sleep_debt"], 0.4)
        * math.pow(max(1 - factors["tolerance"], 0.0), 0.3)
        * factors["metabolic"]
        * math.pow(factors["circadian"], 0.2)
    )
    return _Evaluation(
        score=finalize_score(raw),
        factors=factors,
        half_life_hours=half_life,
        current_level_mg=current,
        peak_level_mg=peak,
    )


def _evaluate_caff_score(
    profile: Profile,
    events: tuple[DrinkEvent, ...],
    signals: DailySignals,
    at: datetime,
) -> _Evaluation:
    debt_hours = sleep_debt_hours(profile, signals.last_night_sleep_hours, at)
    half_life = calculate_half_life(
        profile,
        CAFF_SCORE_HALF_LIFE,
        sleep_debt_hours=debt_hours,
        stress_level=signals.stress_level,
        exercise=signals.exercise,
        at=at,
    )
    current = current_level(events, half_life, at)
    peak = peak_level(
        events,
        half_life,
        at,
        lookback_hours=settings.peak_lookback_hours,
        sample_interval_minutes=settings.peak_sample_interval_minutes,
    )
    food = food_timing(signals.meal_times, at)
    in_plateau = is_sustained_plateau(events, current, peak, at, food.duration)

    factors = {
        "current_level": current_level_factor(
            current, profile.mean_daily_caffeine_mg
        ),
        "rising_rate": rising_rate_factor(
            average_rising_rate(events, half_life, at), in_plateau
        ),
        "tolerance": tolerance_factor(profile, CAFF_SCORE_TOLERANCE),
        "focus": focus_capacity(
            sleep_debt_factor(debt_hours), CAFF_SCORE_CIRCADIAN(at), profile.age
        ),
        "absorption": absorption_factor(current_activity(events, half_life, at)),
        "sensitivity": caffeine_sensitivity_factor(debt_hours),
        "stress": stress_factor(signals.stress_level),
        "food_delay": food.absorption,
        "exercise": exercise_factor(signals.exercise, at),
        "anxiety": anxiety_risk_factor(signals.stress_level, current),
    }
    raw = (
        100
        * factors["current_level"]
        * factors["sensitivity"]
        * math.pow(factors["rising_rate"], 0.25)
        * math.pow(factors["tolerance"], 0.25)
        * math.pow(factors["focus"], 0.25)
        * math.pow(factors["absorption"], 0.35)
        * math.pow(factors["stress"], 0.15)
        * math.pow(factors["food_delay"], 0.1)
        * math.pow(factors["exercise"], 0.1)
        * factors["anxiety"]
    )
    return _Evaluation(
        score=finalize_score(raw),
        factors=factors,
        half_life_hours=half_life,
        current_level_mg=current,
        peak_level_mg=peak,
    )


_EVALUATORS = {
    ScoreKind.crash_risk: _evaluate_crash_risk,
    ScoreKind.caff_score: _evaluate_caff_score,
}


def _emit_factor_events(kind: ScoreKind, evaluation: _Evaluation) -> None:
    if not settings.debug_factor_events or not logger.is_enabled_for(logging.DEBUG):
        return
    for name, value in evaluation.factors.items():
        logger.debug("Factor computed", kind=kind.value, factor=name, value=value)
    logger.debug(
        "Composite score computed",
        kind=kind.value,
        score=evaluation.score,
        half_life_hours=evaluation.half_life_hours,
        current_level_mg=evaluation.current_level_mg,
        peak_level_mg=evaluation.peak_level_mg,
    )


def fail_safe_result(
    kind: ScoreKind,
    now: Any,
    reasons: Iterable[str] = (),
) -> ScoreResult:
    """Neutral result returned in place of a score for unusable input.

    Args:
        kind: Which score was requested.
        now: Requested evaluation instant; replaced by the current UTC time
            when it is not a usable timezone-aware datetime.
        reasons: Why the input was rejected.

    Returns:
        ScoreResult with score 0, neutral factors and ``fail_safe=True``.
    """
    computed_at = now if is_usable_time(now) else datetime.now(UTC)
    warnings = list(reasons)
    logger.warning(
        "Scoring fell back to fail-safe result",
        kind=kind.value,
        fail_safe=True,
        reasons=warnings,
    )
    return ScoreResult(
        kind=kind,
        score=0.0,
        factors=dict(_NEUTRAL_FACTORS[kind]),
        half_life_hours=BASE_HALF_LIFE_HOURS,
        current_level_mg=0.0,
        peak_level_mg=0.0,
        computed_at=computed_at,
        valid_until=ResultValidityGuard().valid_until(computed_at),
        fail_safe=True,
        warnings=warnings,
    )


def _compute(
    kind: ScoreKind,
    profile: ProfileInput,
    events: Iterable[DrinkInput] | None,
    now: Any,
    signals: SignalsInput,
) -> ScoreResult:
    validation = _validator.validate(profile, events, now, signals)
    if not validation.valid:
        return fail_safe_result(kind, now, [*validation.reasons, *validation.warnings])
    return _score_validated(kind, validation, now)


def _score_validated(
    kind: ScoreKind,
    validation: InputValidationResult,
    at: datetime,
) -> ScoreResult:
    evaluation = _EVALUATORS[kind](
        validation.profile, validation.events, validation.signals, at
    )
    _emit_factor_events(kind, evaluation)
    return ScoreResult(
        kind=kind,
        score=evaluation.score,
        factors=evaluation.factors,
        half_life_hours=evaluation.half_life_hours,
        current_level_mg=evaluation.current_level_mg,
        peak_level_mg=evaluation.peak_level_mg,
        computed_at=at,
        valid_until=ResultValidityGuard().valid_until(at),
        warnings=list(validation.warnings),
    )


def compute_crash_risk(
    profile: ProfileInput,
    events: Iterable[DrinkInput] | None,
    now: Any,
    signals: SignalsInput = None,
) -> ScoreResult:
    """Crash risk (0-100) for the snapshot at ``now``.

    Args:
        profile: Profile model or raw mapping.
        events: Drink ledger.
        now: Timezone-aware evaluation instant in the user's local
            timezone; circadian buckets read its wall-clock hour.
        signals: Optional daily signals (sleep, stress, meals, exercise).

    Returns:
        A fresh ScoreResult; the fail-safe result for invalid input.
    """
    return _compute(ScoreKind.crash_risk, profile, events, now, signals)


def compute_caff_score(
    profile: ProfileInput,
    events: Iterable[DrinkInput] | None,
    now: Any,
    signals: SignalsInput = None,
) -> ScoreResult:
    """CaffScore focus potential (0-100) for the snapshot at ``now``.

    Same contract as :func:`compute_crash_risk`.
    """
    return _compute(ScoreKind.caff_score, profile, events, now, signals)


def check_curve_bounds(horizon_hours: float, step_minutes: float) -> None:
    """Reject a projection horizon or step that is not finite or out of range.

    Raises:
        ValueError: If ``horizon_hours`` is not within
            [0, MAX_CURVE_HORIZON_HOURS] or ``step_minutes`` is below
            MIN_CURVE_STEP_MINUTES.
    """
    if not (
        math.isfinite(horizon_hours) and 0 <= horizon_hours <= MAX_CURVE_HORIZON_HOURS
    ):
        msg = (
            f"horizon_hours must be between 0 and {MAX_CURVE_HORIZON_HOURS}, "
            f"got {horizon_hours}"
        )
        raise ValueError(msg)
    if not (math.isfinite(step_minutes) and step_minutes >= MIN_CURVE_STEP_MINUTES):
        msg = f"step_minutes must be >= {MIN_CURVE_STEP_MINUTES}, got {step_minutes}"
        raise ValueError(msg)


def compute_risk_curve(
    profile: ProfileInput,
    events: Iterable[DrinkInput] | None,
    now: Any,
    horizon_hours: float = DEFAULT_CURVE_HORIZON_HOURS,
    step_minutes: float = DEFAULT_CURVE_STEP_MINUTES,
    signals: SignalsInput = None,
) -> list[RiskCurvePoint]:
    """Project crash risk forward with the ledger and signals held fixed.

    Points run from ``now`` to ``now + horizon_hours`` inclusive, every
    ``step_minutes``. As with :func:`compute_crash_risk`, ``now`` must be in
    the user's local timezone.

    Returns:
        The projected curve; empty when the snapshot fails validation.

    Raises:
        ValueError: If the horizon or step is out of bounds.
    """
    check_curve_bounds(horizon_hours, step_minutes)

    validation = _validator.validate(profile, events, now, signals)
    if not validation.valid:
        logger.warning(
            "Risk curve skipped for invalid input",
            reasons=validation.reasons,
        )
        return []

    intervals = math.ceil(horizon_hours * 60 / step_minutes)
    curve = []
    for index in range(intervals + 1):
        at = now + timedelta(minutes=index * step_minutes)
        evaluation = _evaluate_crash_risk(
            validation.profile, validation.events, validation.signals, at
        )
        curve.append(
            RiskCurvePoint(
                time=at,
                score=evaluation.score,
                level_mg=evaluation.current_level_mg,
            )
        )
    return curve


def interpret_score(score: float) -> ScoreInterpretation:
    """Map a crash-risk score to a risk band and advice."""
    if score <= LOW_RISK_MAX:
        return ScoreInterpretation(
            level=RiskLevel.low,
            message="Low crash risk",
            advisory="Good time for focused work",
        )
    if score <= MEDIUM_RISK_MAX:
        return ScoreInterpretation(
            level=RiskLevel.medium,
            message="Moderate crash risk",
            advisory="Consider a small caffeine boost or break",
        )
    return ScoreInterpretation(
        level=RiskLevel.high,
        message="High crash risk",
        advisory="Take a break or have some caffeine soon",
    )
