"""Daily caffeine planning.

Builds a day's dose schedule from the user's focus sessions and bedtime:

1. The latest safe dose time is bedtime minus whichever is longer, the
   time for a 150 mg evening dose to decay to 25 mg or the user's sleep
   buffer.
2. Each session before that cut-off gets one dose sized by importance,
   reduced by caffeine already on board, scaled by tolerance and kept
   inside the user's dose preferences and the daily cap.
3. Each dose is timed so absorption peaks at the session start, and
   pushed back when it would land within 2 hours of the previous dose.

The plan carries a 24 hour projected curve of logged drinks plus pending
doses. When a drink is logged the plan is re-matched against it.
"""

import math
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from jitter_engine.logging_config import get_logger
from jitter_engine.schemas.events import DrinkEvent
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
from jitter_engine.schemas.profile import Profile
from jitter_engine.services.half_life import calculate_half_life
from jitter_engine.services.pharmacokinetics import current_level, elimination_fraction
from jitter_engine.services.scoring import check_curve_bounds

logger = get_logger(__name__)

# Daily ceiling, and the usual intake assumed when none is on record
MAX_DAILY_CAFFEINE_MG = 400.0
DEFAULT_TOLERANCE_THRESHOLD_MG = 200.0
DAILY_CAP_MEAN_MULTIPLIER = 1.2
MAX_TOLERANCE_SCALE = 1.5

IMPORTANCE_BASE_DOSE_MG: dict[int, float] = {1: 100.0, 2: 120.0, 3: 180.0}
IMPORTANCE_LABELS: dict[int, str] = {1: "normal", 2: "important", 3: "critical"}
CURRENT_LEVEL_OFFSET = 0.8
MIN_BASE_DOSE_MG = 50.0

# Minutes from drinking to peak effect, by dose size
LARGE_DOSE_MG = 150.0
SMALL_DOSE_MG = 100.0
LARGE_DOSE_LEAD_MINUTES = 55
SMALL_DOSE_LEAD_MINUTES = 40
DEFAULT_LEAD_MINUTES = 45

EVENING_DOSE_MG = 150.0
SAFE_SLEEP_LEVEL_MG = 25.0

MIN_DOSE_SPACING = timedelta(hours=2)
SIPPING_RATE_MG_PER_MINUTE = 6.0
MIN_SIPPING_MINUTES = 15.0
MAX_SIPPING_MINUTES = 30.0
PLAN_CONFIDENCE = 0.85

CURVE_HORIZON_HOURS = 24
CURVE_STEP_MINUTES = 30
# Zone upper bounds as fractions of the tolerance threshold
ZONE_BOUNDS: tuple[tuple[float, CurveZone], ...] = (
    (0.3, CurveZone.low),
    (0.8, CurveZone.building),
    (1.2, CurveZone.peak),
    (1.5, CurveZone.stable),
)
CRASH_DROP_MG_PER_HOUR = 30.0

# A logged drink satisfies a planned dose this close in time and size
DOSE_MATCH_WINDOW = timedelta(hours=1)
DOSE_MATCH_MG = 50.0
HIGH_LEVEL_MULTIPLIER = 1.5


def tolerance_threshold(profile: Profile) -> float:
    """Usual daily intake in mg, or 200 mg when none is on record."""
    return profile.mean_daily_caffeine_mg or DEFAULT_TOLERANCE_THRESHOLD_MG


def optimal_caffeine_time(session_start: datetime, dose_mg: float) -> datetime:
    """When to drink so the peak effect lands at ``session_start``.

    Larger doses peak later: 55 min lead at 150 mg or more, 40 min at
    100 mg or less, 45 min otherwise.
    """
    if dose_mg >= LARGE_DOSE_MG:
        lead = LARGE_DOSE_LEAD_MINUTES
    elif dose_mg <= SMALL_DOSE_MG:
        lead = SMALL_DOSE_LEAD_MINUTES
    else:
        lead = DEFAULT_LEAD_MINUTES
    return session_start - timedelta(minutes=lead)


def recommended_dose(
    session: FocusSession,
    profile: Profile,
    preferences: PlanningPreferences,
    current_level_mg: float,
    planned: Iterable[PlannedDose] = (),
) -> int:
    """Dose in mg for one session.

    Args:
        session: Session being planned.
        profile: User profile; supplies the tolerance threshold.
        preferences: Dose bounds.
        current_level_mg: Caffeine on board at the session start.
        planned: Doses already scheduled today; they use up the daily cap.

    Returns:
        Whole milligrams, never negative. May fall below the preferred
        minimum when the daily cap is nearly used up.
    """
    threshold = tolerance_threshold(profile)

    dose = IMPORTANCE_BASE_DOSE_MG[session.importance]
    dose = max(dose - max(0.0, current_level_mg * CURRENT_LEVEL_OFFSET), MIN_BASE_DOSE_MG)
    dose *= min(threshold / DEFAULT_TOLERANCE_THRESHOLD_MG, MAX_TOLERANCE_SCALE)

    daily_cap = min(MAX_DAILY_CAFFEINE_MG, threshold * DAILY_CAP_MEAN_MULTIPLIER)
    remaining = daily_cap - sum(d.dose_mg for d in planned)

    dose = max(dose, preferences.preferred_dose_mg_min)
    dose = min(dose, preferences.preferred_dose_mg_max)
    dose = min(dose, remaining)
    return round(max(dose, 0.0))


def latest_safe_caffeine_time(
    bedtime: datetime,
    profile: Profile,
    sleep_buffer_hours: float,
) -> datetime:
    """Last time a dose can be taken without disturbing sleep."""
    half_life = calculate_half_life(profile)
    decay_hours = math.log2(EVENING_DOSE_MG / SAFE_SLEEP_LEVEL_MG) * half_life
    return bedtime - timedelta(hours=max(decay_hours, sleep_buffer_hours))


def curve_zone(level_mg: float, threshold_mg: float) -> CurveZone:
    """Classify a projected level against the tolerance threshold."""
    for fraction, zone in ZONE_BOUNDS:
        if level_mg < threshold_mg * fraction:
            return zone
    return CurveZone.declining


def _pending_dose_level(
    doses: Iterable[PlannedDose], half_life: float, at: datetime
) -> float:
    total = 0.0
    for dose in doses:
        if dose.status != DoseStatus.pending or at < dose.recommended_time:
            continue
        elapsed = (at - dose.recommended_time).total_seconds() / 3600
        total += dose.dose_mg * elimination_fraction(elapsed, half_life)
    return total


def project_caffeine_curve(
    profile: Profile,
    events: Sequence[DrinkEvent],
    doses: Iterable[PlannedDose],
    start: datetime,
    horizon_hours: float = CURVE_HORIZON_HOURS,
    step_minutes: float = CURVE_STEP_MINUTES,
) -> list[CaffeineCurvePoint]:
    """Project logged drinks plus pending planned doses forward.

    Each pending dose is treated as drunk at its recommended time. A point
    whose projected level falls faster than 30 mg/h since the previous
    point is marked as a crash.

    Raises:
        ValueError: If ``horizon_hours`` or ``step_minutes`` is outside the
            bounds :func:`check_curve_bounds` accepts.
    """
    check_curve_bounds(horizon_hours, step_minutes)

    half_life = calculate_half_life(profile)
    threshold = tolerance_threshold(profile)
    pending = [d for d in doses if d.status == DoseStatus.pending]
    step_hours = step_minutes / 60

    curve: list[CaffeineCurvePoint] = []
    for index in range(math.ceil(horizon_hours / step_hours) + 1):
        at = start + timedelta(minutes=index * step_minutes)
        level = current_level(events, half_life, at)
        projected = level + _pending_dose_level(pending, half_life, at)

        zone = curve_zone(projected, threshold)
        if curve:
            drop_rate = (curve[-1].projected_level_mg - projected) / step_hours
            if drop_rate > CRASH_DROP_MG_PER_HOUR:
                zone = CurveZone.crash

        curve.append(
            CaffeineCurvePoint(
                time=at,
                caffeine_level_mg=level,
                projected_level_mg=projected,
                zone=zone,
            )
        )
    return curve


def _sipping_window(dose_mg: float) -> float:
    return max(
        MIN_SIPPING_MINUTES,
        min(MAX_SIPPING_MINUTES, dose_mg / SIPPING_RATE_MG_PER_MINUTE),
    )


def generate_daily_plan(
    profile: Profile,
    sessions: Iterable[FocusSession],
    bedtime: datetime,
    now: datetime,
    preferences: PlanningPreferences | None = None,
    events: Sequence[DrinkEvent] = (),
) -> PlanningResult:
    """Plan one dose ahead of each focus session.

    Args:
        profile: User profile.
        sessions: Focus sessions, in any order.
        bedtime: Tonight's target bedtime.
        now: Planning instant in the user's local timezone; its date is
            the plan date and the curve starts here.
        preferences: Dose bounds; defaults apply when omitted.
        events: Drinks already logged today.

    Returns:
        PlanningResult with the plan, a 24 hour curve and any warnings,
        suggestions and timing adjustments.
    """
    preferences = preferences or PlanningPreferences()
    ordered = sorted(sessions, key=lambda s: s.start_time)
    latest_safe = latest_safe_caffeine_time(
        bedtime, profile, preferences.sleep_buffer_hours
    )
    half_life = calculate_half_life(profile)

    doses: list[PlannedDose] = []
    warnings: list[str] = []
    conflict_resolutions: list[str] = []

    for session in ordered:
        if session.start_time >= latest_safe:
            warnings.append(
                f"{session.name} is too close to bedtime for safe caffeine use"
            )
            continue

        level = current_level(events, half_life, session.start_time)
        dose_mg = recommended_dose(session, profile, preferences, level, doses)
        if dose_mg < preferences.preferred_dose_mg_min:
            warnings.append(
                f"Recommended dose for {session.name} is below your minimum preference"
            )
            continue

        recommended_time = optimal_caffeine_time(session.start_time, dose_mg)
        if doses:
            gap = recommended_time - doses[-1].recommended_time
            if gap < MIN_DOSE_SPACING:
                conflict_resolutions.append(
                    f"Adjusted timing for {session.name} to avoid overlap"
                )
                recommended_time += MIN_DOSE_SPACING - gap

        doses.append(
            PlannedDose(
                id=f"dose_{session.id}",
                session_id=session.id,
                recommended_time=recommended_time,
                dose_mg=dose_mg,
                reasoning=(
                    f"Optimized for {IMPORTANCE_LABELS[session.importance]} "
                    "focus session"
                ),
                sipping_window_minutes=_sipping_window(dose_mg),
                confidence=PLAN_CONFIDENCE,
            )
        )

    plan_date = now.date()
    plan = CaffeinePlan(
        id=f"plan_{profile.user_id}_{plan_date.isoformat()}",
        user_id=profile.user_id,
        plan_date=plan_date,
        bedtime=bedtime,
        sessions=tuple(ordered),
        doses=tuple(doses),
        latest_safe_caffeine_time=latest_safe,
        generated_at=now,
        last_updated_at=now,
    )

    suggestions = []
    if not doses:
        suggestions.append("Add focus sessions to get personalized caffeine recommendations")

    logger.info(
        "Daily plan generated",
        user_id=profile.user_id,
        sessions=len(ordered),
        doses=len(doses),
        total_mg=plan.total_planned_caffeine_mg,
        warnings=len(warnings),
    )
    return PlanningResult(
        plan=plan,
        caffeine_curve=project_caffeine_curve(profile, events, doses, now),
        warnings=warnings,
        suggestions=suggestions,
        conflict_resolutions=conflict_resolutions,
    )


def _matches(dose: PlannedDose, drink: DrinkEvent) -> bool:
    return (
        dose.status == DoseStatus.pending
        and abs(drink.timestamp - dose.recommended_time) <= DOSE_MATCH_WINDOW
        and abs(drink.actual_caffeine_mg - dose.dose_mg) <= DOSE_MATCH_MG
    )


def adjust_plan_for_intake(
    plan: CaffeinePlan,
    profile: Profile,
    todays_drinks: Sequence[DrinkEvent],
    new_drink: DrinkEvent,
    now: datetime,
) -> PlanningResult:
    """Update a plan after a drink is logged.

    The first pending dose within 1 hour and 50 mg of the drink is marked
    consumed. The curve is re-projected from ``now`` with the remaining
    pending doses.

    Args:
        plan: Today's plan.
        profile: User profile.
        todays_drinks: Drinks logged today; ``new_drink`` is added when
            missing.
        new_drink: The drink just logged.
        now: Adjustment instant.

    Returns:
        PlanningResult with the updated plan and curve.
    """
    drinks = list(todays_drinks)
    if all(d.id != new_drink.id for d in drinks):
        drinks.append(new_drink)

    doses = list(plan.doses)
    matched = next((i for i, d in enumerate(doses) if _matches(d, new_drink)), None)
    if matched is not None:
        doses[matched] = doses[matched].model_copy(
            update={"status": DoseStatus.consumed, "actual_drink_id": new_drink.id}
        )

    warnings = []
    level = current_level(drinks, calculate_half_life(profile), now)
    if level > tolerance_threshold(profile) * HIGH_LEVEL_MULTIPLIER:
        warnings.append(
            "High caffeine level detected - consider skipping remaining planned drinks"
        )

    updated = plan.model_copy(update={"doses": tuple(doses), "last_updated_at": now})

    logger.info(
        "Plan adjusted for intake",
        user_id=plan.user_id,
        drink_id=new_drink.id,
        matched_dose=None if matched is None else doses[matched].id,
        level_mg=round(level, 1),
    )
    return PlanningResult(
        plan=updated,
        caffeine_curve=project_caffeine_curve(
            profile, drinks, updated.pending_doses, now
        ),
        warnings=warnings,
    )
