"""Factor engine for the composite scores.

Each factor is a pure function of the profile, ledger levels and daily
signals, normalized to [0, 1] unless noted. Absent optional inputs
resolve to a documented neutral value and never raise.

The crash-risk and CaffScore paths weight tolerance and circadian timing
differently. Both weightings are kept as named variants rather than
merged:

- CRASH_RISK_TOLERANCE / CAFF_SCORE_TOLERANCE
- CRASH_RISK_CIRCADIAN / CAFF_SCORE_CIRCADIAN
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from jitter_engine.schemas.events import DrinkEvent, ExerciseEvent, ExercisePhase
from jitter_engine.schemas.profile import Medication, MetabolismRate, Profile, Sex
from jitter_engine.services.pharmacokinetics import current_activity

# Peaks at or below this are treated as "no peak"
PEAK_EPSILON_MG = 1e-6

# Sleep
BASELINE_SLEEP_HOURS = 7.5
SLEEP_HISTORY_DAYS = 7
MAX_SLEEP_DEBT_HOURS = 3.0

# Tolerance baseline: moderate intake per kg of body weight per day
MODERATE_INTAKE_MG_PER_KG = 4.0
HEAVY_USER_MG = 400.0
LIGHT_USER_MG = 50.0

# Focus level normalization
DEFAULT_TOLERANCE_THRESHOLD_MG = 200.0
OPTIMAL_LEVEL_RATIO = 1.25

# Rising rate (mg/min)
RATE_WINDOW_MINUTES = 10
OPTIMAL_MIN_RATE = 2.0
OPTIMAL_MAX_RATE = 5.0

# Sustained plateau
PLATEAU_MIN_DRINK_MG = 30.0
PLATEAU_MIN_HOURS = 0.5
PLATEAU_MAX_HOURS = 4.0
PLATEAU_PEAK_RATIO = 0.6
PLATEAU_MIN_LEVEL_MG = 30.0

NEUTRAL_STRESS_FACTOR = 0.7

# Food timing
FOOD_EFFECT_HOURS = 4.0
MIN_FOOD_ABSORPTION = 0.4
MAX_FOOD_DURATION = 1.8

# Exercise (cognitive benefit, minutes)
EXERCISE_EFFECT_MINUTES = 240

# Anxiety
ANXIETY_STRESS_THRESHOLD = 5
ANXIETY_LEVEL_THRESHOLD_MG = 100.0
ANXIETY_LEVEL_SPAN_MG = 150.0
MAX_ANXIETY_PENALTY = 0.3

# Absorption-weighted activity that counts as full absorption
FULL_ABSORPTION_ACTIVITY_MG = 200.0

# Shared tolerance multipliers
TOLERANCE_MEDICATION_MULTIPLIERS: dict[Medication, float] = {
    Medication.fluvoxamine: 0.7,
    Medication.ciprofloxacin: 0.85,
    Medication.other_cyp1a2_inhibitor: 0.95,
}

TOLERANCE_METABOLISM_MULTIPLIERS: dict[MetabolismRate, float] = {
    MetabolismRate.very_slow: 0.85,
    MetabolismRate.slow: 0.93,
    MetabolismRate.medium: 1.0,
    MetabolismRate.fast: 1.07,
    MetabolismRate.very_fast: 1.15,
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _lerp(start: float, end: float, progress: float) -> float:
    return start + (end - start) * progress


# ---------------------------------------------------------------------------
# Crash-risk inputs
# ---------------------------------------------------------------------------


def delta_factor(current_mg: float, peak_mg: float) -> float:
    """Relative drop from the recent peak. No peak means no risk."""
    if peak_mg <= PEAK_EPSILON_MG:
        return 0.0
    return clamp((peak_mg - current_mg) / peak_mg, 0.0, 1.0)


def has_sleep_history(profile: Profile, now: datetime) -> bool:
    """True once the profile is old enough for a 7-day sleep average."""
    return now - profile.created_at >= timedelta(days=SLEEP_HISTORY_DAYS)


def sleep_debt_hours(
    profile: Profile,
    last_night_sleep_hours: float | None,
    now: datetime,
) -> float:
    """Hours slept below the user's ideal.

    The ideal is the rolling 7-day average once enough history exists,
    otherwise the population baseline. Unknown last-night sleep counts
    as the baseline.
    """
    if has_sleep_history(profile, now) and profile.average_sleep_7_days > 0:
        ideal = profile.average_sleep_7_days
    else:
        ideal = BASELINE_SLEEP_HOURS
    effective = (
        BASELINE_SLEEP_HOURS
        if last_night_sleep_hours is None
        else last_night_sleep_hours
    )
    return max(0.0, ideal - effective)


def sleep_debt_factor(debt_hours: float) -> float:
    """Normalize sleep debt; three hours or more saturates at 1.0."""
    return clamp(debt_hours / MAX_SLEEP_DEBT_HOURS, 0.0, 1.0)


@dataclass(frozen=True)
class ToleranceWeighting:
    """Health and experience weights applied to the raw tolerance ratio."""

    name: str
    elderly: float
    youth: float
    female: float
    smoker: float
    pregnant: float
    oral_contraceptives: float
    heavy_user: float
    light_user: float
    output: Callable[[float], float]


CRASH_RISK_TOLERANCE = ToleranceWeighting(
    name="crash_risk",
    elderly=0.85,
    youth=1.1,
    female=0.9,
    smoker=1.6,
    pregnant=0.3,
    oral_contraceptives=0.8,
    heavy_user=1.3,
    light_user=0.6,
    output=lambda x: clamp(x, 0.0, 1.0),
)

# Higher tolerance supports focus, up to a point
CAFF_SCORE_TOLERANCE = ToleranceWeighting(
    name="caff_score",
    elderly=0.8,
    youth=1.1,
    female=0.9,
    smoker=1.5,
    pregnant=0.4,
    oral_contraceptives=0.85,
    heavy_user=1.2,
    light_user=0.7,
    output=lambda x: clamp(x * 0.7 + 0.3, 0.1, 1.0),
)


def tolerance_factor(
    profile: Profile,
    weighting: ToleranceWeighting = CRASH_RISK_TOLERANCE,
) -> float:
    """Habitual-intake tolerance under the given weighting.

    Args:
        profile: Physiological profile.
        weighting: CRASH_RISK_TOLERANCE or CAFF_SCORE_TOLERANCE.

    Returns:
        Tolerance factor in [0, 1].
    """
    baseline_mg = MODERATE_INTAKE_MG_PER_KG * profile.weight_kg
    if baseline_mg <= 0:
        return weighting.output(0.0)
    mean_daily = profile.mean_daily_caffeine_mg
    base = mean_daily / baseline_mg

    health = 1.0
    if profile.age >= 65:
        health *= weighting.elderly
    elif profile.age <= 18:
        health *= weighting.youth
    if profile.sex == Sex.female:
        health *= weighting.female
    if profile.smoker:
        health *= weighting.smoker
    if profile.is_pregnant:
        health *= weighting.pregnant
    if profile.uses_oral_contraceptives:
        health *= weighting.oral_contraceptives
    medication = profile.strongest_medication
    if medication is not None:
        health *= TOLERANCE_MEDICATION_MULTIPLIERS[medication]
    health *= TOLERANCE_METABOLISM_MULTIPLIERS[profile.metabolism_rate]

    experience = 1.0
    if mean_daily > HEAVY_USER_MG:
        experience = weighting.heavy_user
    elif mean_daily < LIGHT_USER_MG:
        experience = weighting.light_user

    return weighting.output(base * health * experience)


@dataclass(frozen=True)
class CircadianTable:
    """Time-of-day lookup; first matching bucket wins."""

    name: str
    lookup: Callable[[datetime], float]

    def __call__(self, at: datetime) -> float:
        return self.lookup(at)


def _crash_circadian(at: datetime) -> float:
    hour = at.hour
    if hour >= 22 or hour < 6:
        return 1.0  # night
    if hour < 10:
        return 0.6  # morning
    if hour < 16:
        return 0.4  # midday
    return 0.7  # evening


def _focus_circadian(at: datetime) -> float:
    time_decimal = at.hour + at.minute / 60
    if 9 <= time_decimal <= 11:
        return 1.0
    if 13 <= time_decimal <= 15:
        return 0.9
    if 6 <= time_decimal <= 9:
        return 0.7
    if 15 <= time_decimal <= 18:
        return 0.8
    if 18 <= time_decimal <= 22:
        return 0.6
    if time_decimal >= 22 or time_decimal <= 6:
        return 0.4
    return 0.7


# Crash susceptibility by time of day: highest at night, lowest midday
CRASH_RISK_CIRCADIAN = CircadianTable(name="crash_risk", lookup=_crash_circadian)

# Alertness: peaks 9-11 and 13-15, lowest overnight
CAFF_SCORE_CIRCADIAN = CircadianTable(name="caff_score", lookup=_focus_circadian)


def metabolic_factor(profile: Profile) -> float:
    """Sex-based metabolic modifier (0.8 to 1.2, not a [0, 1] factor)."""
    value = 0.95 if profile.sex == Sex.male else 1.05
    return clamp(value, 0.8, 1.2)


# ---------------------------------------------------------------------------
# CaffScore inputs
# ---------------------------------------------------------------------------


def current_level_factor(current_mg: float, mean_daily_mg: float) -> float:
    """Focus benefit of the current level relative to the user's threshold.

    Peaks at 125% of threshold. Over-stimulation is penalized, harshly so
    above 200%.
    """
    threshold = mean_daily_mg if mean_daily_mg > 0 else DEFAULT_TOLERANCE_THRESHOLD_MG
    normalized = current_mg / max(threshold, 1.0)

    if normalized <= 0.3:
        return normalized * 0.3
    if normalized <= OPTIMAL_LEVEL_RATIO:
        return 0.1 + (normalized - 0.3) * (0.9 / (OPTIMAL_LEVEL_RATIO - 0.3))
    if normalized <= 2.0:
        return max(1.0 - (normalized - OPTIMAL_LEVEL_RATIO) * 0.5, 0.3)
    return max(0.05, 0.2 - (normalized - 2.0) * 0.1)


def average_rising_rate(
    events: Iterable[DrinkEvent],
    half_life_hours: float,
    at: datetime,
) -> float:
    """Mean of two successive 10-minute rates of absorbed activity (mg/min)."""
    ledger = list(events)
    window = timedelta(minutes=RATE_WINDOW_MINUTES)
    now_level = current_activity(ledger, half_life_hours, at)
    earlier = current_activity(ledger, half_life_hours, at - window)
    earliest = current_activity(ledger, half_life_hours, at - 2 * window)
    recent_rate = (now_level - earlier) / RATE_WINDOW_MINUTES
    earlier_rate = (earlier - earliest) / RATE_WINDOW_MINUTES
    return (recent_rate + earlier_rate) / 2


def rising_rate_factor(rate_mg_per_min: float, in_plateau: bool = False) -> float:
    """Score the rate of change of absorbed caffeine.

    A 2-5 mg/min rise is optimal; faster rises over-stimulate. Declines
    are penalized, except inside a sustained plateau where a slow decline
    means steady focus.
    """
    rate = rate_mg_per_min
    if rate < 0:
        if in_plateau:
            steepness = abs(rate)
            if steepness <= 0.5:
                return 0.8
            return max(0.5, 0.8 - (steepness - 0.5) * 0.2)
        return max(0.2, 0.5 + rate * 0.1)
    if rate <= OPTIMAL_MIN_RATE:
        return 0.3 + (rate / OPTIMAL_MIN_RATE) * 0.4
    if rate <= OPTIMAL_MAX_RATE:
        return 0.7 + (rate - OPTIMAL_MIN_RATE) / (OPTIMAL_MAX_RATE - OPTIMAL_MIN_RATE) * 0.3
    return max(0.4 - (rate - OPTIMAL_MAX_RATE) * 0.05, 0.1)


def is_sustained_plateau(
    events: Iterable[DrinkEvent],
    current_mg: float,
    peak_mg: float,
    at: datetime,
    duration_multiplier: float = 1.0,
) -> bool:
    """True while a substantial drink is holding the level near its peak.

    The latest drink of at least 30 mg must have been started 30 min to
    4 h ago (stretched by ``duration_multiplier`` after a meal), and the
    current level must be at least 60% of peak and at least 30 mg.
    """
    substantial = [
        e
        for e in events
        if e.actual_caffeine_mg >= PLATEAU_MIN_DRINK_MG and e.timestamp <= at
    ]
    if not substantial:
        return False

    latest = max(substantial, key=lambda e: e.timestamp)
    hours_since = (at - latest.timestamp).total_seconds() / 3600
    in_window = (
        PLATEAU_MIN_HOURS * duration_multiplier
        <= hours_since
        <= PLATEAU_MAX_HOURS * duration_multiplier
    )
    return (
        in_window
        and current_mg >= PLATEAU_PEAK_RATIO * peak_mg
        and current_mg >= PLATEAU_MIN_LEVEL_MG
    )


def stress_factor(stress_level: int | None) -> float:
    """Focus headroom under stress: 1.0 at 1, 0.9 at 3, 0.6 at 6, 0.3 at 10."""
    if stress_level is None:
        return NEUTRAL_STRESS_FACTOR
    if stress_level <= 3:
        return _lerp(1.0, 0.9, (stress_level - 1) / 2)
    if stress_level <= 6:
        return _lerp(0.9, 0.6, (stress_level - 3) / 3)
    return _lerp(0.6, 0.3, (stress_level - 6) / 4)


@dataclass(frozen=True)
class FoodTiming:
    """Meal effect on caffeine uptake.

    ``absorption`` is the FoodDelay factor (1.0 = fast absorption);
    ``duration`` stretches the effect window (1.0 = normal).
    """

    absorption: float = 1.0
    duration: float = 1.0


def _single_meal_timing(hours_since: float) -> FoodTiming:
    if hours_since < 0.5:
        return FoodTiming(absorption=0.7, duration=1.3)
    if hours_since < 1.5:
        progress = hours_since - 0.5
        return FoodTiming(
            absorption=_lerp(0.7, 0.95, progress),
            duration=_lerp(1.3, 1.1, progress),
        )
    progress = (hours_since - 1.5) / (FOOD_EFFECT_HOURS - 1.5)
    return FoodTiming(
        absorption=_lerp(0.95, 1.0, progress),
        duration=_lerp(1.1, 1.0, progress),
    )


def food_timing(meal_times: Iterable[datetime], at: datetime) -> FoodTiming:
    """Combine recent meals into absorption and duration multipliers.

    Meals 4 h old or older, and meals after ``at``, are ignored. Several
    recent meals compound multiplicatively.
    """
    absorption = 1.0
    duration = 1.0
    for meal_at in meal_times:
        hours_since = (at - meal_at).total_seconds() / 3600
        if hours_since < 0 or hours_since >= FOOD_EFFECT_HOURS:
            continue
        meal = _single_meal_timing(hours_since)
        absorption *= meal.absorption
        duration *= meal.duration
    return FoodTiming(
        absorption=max(MIN_FOOD_ABSORPTION, absorption),
        duration=min(MAX_FOOD_DURATION, duration),
    )


def exercise_factor(exercise: ExerciseEvent | None, at: datetime) -> float:
    """Cognitive boost from exercise (1.0 to 1.2, not a [0, 1] factor).

    Starting: ramps to 1.1 over 30 min, holds to 1.5 h, fades by 4 h.
    Completed: 1.2 for the first 30 min, fades by 4 h.
    """
    if exercise is None:
        return 1.0
    minutes = (at - exercise.timestamp).total_seconds() / 60
    if minutes < 0 or minutes >= EXERCISE_EFFECT_MINUTES:
        return 1.0

    if exercise.phase == ExercisePhase.starting:
        if minutes <= 30:
            return 1.0 + 0.1 * minutes / 30
        if minutes <= 90:
            return 1.1
        return 1.1 - 0.1 * (minutes - 90) / (EXERCISE_EFFECT_MINUTES - 90)

    if minutes <= 30:
        return 1.2
    return 1.2 - 0.2 * (minutes - 30) / (EXERCISE_EFFECT_MINUTES - 30)


def caffeine_sensitivity_factor(debt_hours: float) -> float:
    """Adenosine build-up amplifies caffeine under sleep debt (up to x1.5)."""
    if debt_hours <= 0.5:
        return 1.0
    if debt_hours <= 1.5:
        return 1.1
    if debt_hours <= 3.0:
        return 1.25
    return 1.5


def anxiety_risk_factor(stress_level: int | None, current_mg: float) -> float:
    """Penalty (down to 0.7) when high stress meets a high caffeine level."""
    if (
        stress_level is None
        or stress_level <= ANXIETY_STRESS_THRESHOLD
        or current_mg <= ANXIETY_LEVEL_THRESHOLD_MG
    ):
        return 1.0
    stress_weight = (stress_level - ANXIETY_STRESS_THRESHOLD) / 5
    level_weight = min(
        1.0, (current_mg - ANXIETY_LEVEL_THRESHOLD_MG) / ANXIETY_LEVEL_SPAN_MG
    )
    return max(1.0 - MAX_ANXIETY_PENALTY, 1.0 - MAX_ANXIETY_PENALTY * stress_weight * level_weight)


def age_focus(age: int) -> float:
    if age < 25:
        return 0.9
    if age > 60:
        return 0.8
    return 1.0


def focus_capacity(sleep_debt: float, circadian: float, age: int) -> float:
    """Capacity to focus from sleep debt, time of day and age.

    Args:
        sleep_debt: Normalized sleep debt factor (0-1).
        circadian: CAFF_SCORE_CIRCADIAN value for the instant.
        age: Age in years.
    """
    sleep_focus = max(0.0, 1.0 - sleep_debt * 0.8)
    return clamp(sleep_focus * 0.6 + circadian * 0.3 + age_focus(age) * 0.1, 0.1, 1.0)


def absorption_factor(activity_mg: float) -> float:
    """Absorbed activity relative to a full 200 mg dose."""
    return clamp(activity_mg / FULL_ABSORPTION_ACTIVITY_MG, 0.0, 1.0)
