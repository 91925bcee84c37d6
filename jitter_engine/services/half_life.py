"""Personalized caffeine elimination half-life.

Starts from a population baseline and applies ordered multiplicative
modifiers for age, smoking, pregnancy, oral contraceptives, CYP1A2
inhibitors, self-reported metabolism, sleep debt, stress and exercise.
The crash-risk and CaffScore paths weight age, smoking and pregnancy
differently; both are expressed as named HalfLifeStrategy variants.

Recomputed on every call. Nothing is cached.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from jitter_engine.config import settings
from jitter_engine.schemas.events import ExerciseEvent, ExercisePhase
from jitter_engine.schemas.profile import Medication, MetabolismRate, Profile

BASE_HALF_LIFE_HOURS = 5.0

ORAL_CONTRACEPTIVE_MULTIPLIER = 1.4

# Only the strongest inhibitor applies
MEDICATION_MULTIPLIERS: dict[Medication, float] = {
    Medication.fluvoxamine: 8.0,
    Medication.ciprofloxacin: 2.5,
    Medication.other_cyp1a2_inhibitor: 1.5,
}

METABOLISM_MULTIPLIERS: dict[MetabolismRate, float] = {
    MetabolismRate.very_slow: 1.6,
    MetabolismRate.slow: 1.3,
    MetabolismRate.medium: 1.0,
    MetabolismRate.fast: 0.8,
    MetabolismRate.very_fast: 0.6,
}

# Exercise speeds clearance by up to 20%, back to baseline after 4h
MAX_EXERCISE_SPEEDUP = 0.2
EXERCISE_RAMP_MINUTES = 30
EXERCISE_HOLD_MINUTES = 60
EXERCISE_EFFECT_MINUTES = 240


def progressive_age_multiplier(age: int) -> float:
    """+2% per year above 30, capped at x1.8."""
    if age <= 30:
        return 1.0
    return min(1.0 + (age - 30) * 0.02, 1.8)


def bracketed_age_multiplier(age: int) -> float:
    """x1.3 above 65, x1.1 above 40."""
    if age > 65:
        return 1.3
    if age > 40:
        return 1.1
    return 1.0


@dataclass(frozen=True)
class HalfLifeStrategy:
    """Weighting of the profile-driven half-life modifiers."""

    name: str
    age_multiplier: Callable[[int], float]
    smoker_multiplier: float
    pregnancy_multiplier: float


CRASH_RISK_HALF_LIFE = HalfLifeStrategy(
    name="crash_risk",
    age_multiplier=progressive_age_multiplier,
    smoker_multiplier=0.6,
    pregnancy_multiplier=2.5,
)

CAFF_SCORE_HALF_LIFE = HalfLifeStrategy(
    name="caff_score",
    age_multiplier=bracketed_age_multiplier,
    smoker_multiplier=0.7,
    pregnancy_multiplier=2.0,
)


def sleep_debt_multiplier(sleep_debt_hours: float | None) -> float:
    """Slower clearance under sleep debt.

    - up to 1h: up to +5%
    - 1-3h: up to +20%
    - beyond 3h: up to +30%
    """
    if sleep_debt_hours is None or sleep_debt_hours <= 0:
        return 1.0
    if sleep_debt_hours <= 1:
        return 1.0 + 0.05 * sleep_debt_hours
    if sleep_debt_hours <= 3:
        return 1.05 + (sleep_debt_hours - 1) * 0.075
    return min(1.20 + min(sleep_debt_hours - 3, 2) * 0.05, 1.30)


def stress_multiplier(stress_level: int | None) -> float:
    """Slower clearance under stress above 3 (up to +12% at 6, +31% at 10)."""
    if stress_level is None or stress_level <= 3:
        return 1.0
    if stress_level <= 6:
        return 1.0 + (stress_level - 3) * 0.04
    return 1.12 + (stress_level - 6) * 0.0475


def exercise_speedup(exercise: ExerciseEvent | None, at: datetime | None) -> float:
    """Fractional clearance speedup from exercise (0.0 to 0.2).

    A session that is starting ramps up over 30 minutes, holds until the
    hour mark, then fades out by 4h. A completed session starts at the
    full effect and fades linearly over 4h.
    """
    if exercise is None or at is None:
        return 0.0
    minutes = (at - exercise.timestamp).total_seconds() / 60
    if minutes < 0 or minutes >= EXERCISE_EFFECT_MINUTES:
        return 0.0

    if exercise.phase == ExercisePhase.starting:
        if minutes <= EXERCISE_RAMP_MINUTES:
            return MAX_EXERCISE_SPEEDUP * minutes / EXERCISE_RAMP_MINUTES
        if minutes <= EXERCISE_HOLD_MINUTES:
            return MAX_EXERCISE_SPEEDUP
        remaining = (EXERCISE_EFFECT_MINUTES - minutes) / (
            EXERCISE_EFFECT_MINUTES - EXERCISE_HOLD_MINUTES
        )
        return MAX_EXERCISE_SPEEDUP * remaining

    return MAX_EXERCISE_SPEEDUP * (1 - minutes / EXERCISE_EFFECT_MINUTES)


def calculate_half_life(
    profile: Profile,
    strategy: HalfLifeStrategy = CRASH_RISK_HALF_LIFE,
    *,
    sleep_debt_hours: float | None = None,
    stress_level: int | None = None,
    exercise: ExerciseEvent | None = None,
    at: datetime | None = None,
    min_hours: float | None = None,
    max_hours: float | None = None,
) -> float:
    """Calculate the personalized elimination half-life in hours.

    Args:
        profile: Physiological profile.
        strategy: Named modifier weighting (crash risk or CaffScore).
        sleep_debt_hours: Hours of sleep debt, if known.
        stress_level: Stress level 1-10, if known.
        exercise: Most recent exercise event, if any.
        at: Evaluation instant; required for the exercise modifier.
        min_hours: Lower clamp (defaults to settings.half_life_min_hours).
        max_hours: Upper clamp (defaults to settings.half_life_max_hours).

    Returns:
        Half-life in hours, clamped to [min_hours, max_hours].
    """
    lower = settings.half_life_min_hours if min_hours is None else min_hours
    upper = settings.half_life_max_hours if max_hours is None else max_hours

    half_life = BASE_HALF_LIFE_HOURS
    half_life *= strategy.age_multiplier(profile.age)
    if profile.smoker:
        half_life *= strategy.smoker_multiplier
    if profile.is_pregnant:
        half_life *= strategy.pregnancy_multiplier
    if profile.uses_oral_contraceptives:
        half_life *= ORAL_CONTRACEPTIVE_MULTIPLIER

    medication = profile.strongest_medication
    if medication is not None:
        half_life *= MEDICATION_MULTIPLIERS[medication]

    half_life *= METABOLISM_MULTIPLIERS[profile.metabolism_rate]
    half_life *= sleep_debt_multiplier(sleep_debt_hours)
    half_life *= stress_multiplier(stress_level)
    half_life *= 1.0 - exercise_speedup(exercise, at)

    return max(lower, min(upper, half_life))
