"""Caffeine pharmacokinetic model.

Computes blood caffeine levels from the drink ledger using first-order
elimination (C = C0 * 2^(-t/t_half)), an absorption-weighted activity
variant, and historical peak detection over a lookback window.
"""

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from jitter_engine.schemas.events import DrinkEvent

# Absorption curve breakpoints (minutes since the drink was started)
ABSORPTION_ONSET_MINUTES = 15
ABSORPTION_PEAK_MINUTES = 45
ABSORPTION_DECLINE_MINUTES = 90
ABSORPTION_COMPLETE_MINUTES = 120
# Time constant for the tail beyond ABSORPTION_COMPLETE_MINUTES
ABSORPTION_TAIL_MINUTES = 60.0

# Peak detection defaults
PEAK_LOOKBACK_HOURS = 6
PEAK_SAMPLE_INTERVAL_MINUTES = 5


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _require_half_life(half_life_hours: float) -> None:
    if not half_life_hours > 0 or not math.isfinite(half_life_hours):
        msg = f"half_life_hours must be a positive finite number, got {half_life_hours}"
        raise ValueError(msg)


def elimination_fraction(elapsed_hours: float, half_life_hours: float) -> float:
    """Fraction of a dose remaining after first-order elimination.

    Args:
        elapsed_hours: Hours since the dose.
        half_life_hours: Elimination half-life in hours.

    Returns:
        Remaining fraction (0.0 to 1.0); 1.0 for non-positive elapsed time.
    """
    if elapsed_hours <= 0:
        return 1.0
    return math.pow(2.0, -elapsed_hours / half_life_hours)


def absorption_rate(minutes_since: float) -> float:
    """Relative absorption weight for a drink started ``minutes_since`` ago.

    - 0-15 min: slow onset, linear 0 -> 0.3
    - 15-45 min: rapid rise, linear 0.3 -> 1.0
    - 45-90 min: plateau at 1.0
    - 90-120 min: decline, linear 1.0 -> 0.2
    - beyond 120 min: exponential tail toward 0 (60 min time constant)

    Returns:
        Weight in [0.0, 1.0]; 0.0 for drinks not yet started.
    """
    if minutes_since < 0:
        return 0.0
    if minutes_since < ABSORPTION_ONSET_MINUTES:
        return (minutes_since / ABSORPTION_ONSET_MINUTES) * 0.3
    if minutes_since <= ABSORPTION_PEAK_MINUTES:
        progress = (minutes_since - ABSORPTION_ONSET_MINUTES) / (
            ABSORPTION_PEAK_MINUTES - ABSORPTION_ONSET_MINUTES
        )
        return 0.3 + progress * 0.7
    if minutes_since <= ABSORPTION_DECLINE_MINUTES:
        return 1.0
    if minutes_since <= ABSORPTION_COMPLETE_MINUTES:
        progress = (minutes_since - ABSORPTION_DECLINE_MINUTES) / (
            ABSORPTION_COMPLETE_MINUTES - ABSORPTION_DECLINE_MINUTES
        )
        return 1.0 - progress * 0.8
    extra_minutes = minutes_since - ABSORPTION_COMPLETE_MINUTES
    return max(0.0, 0.2 * math.exp(-extra_minutes / ABSORPTION_TAIL_MINUTES))


def current_level(
    events: Iterable[DrinkEvent],
    half_life_hours: float,
    at: datetime,
) -> float:
    """Total caffeine in the system at ``at`` under pure elimination.

    Each drink counts in full from its start time; drinks dated after
    ``at`` contribute nothing.

    Args:
        events: Drink ledger.
        half_life_hours: Elimination half-life (> 0).
        at: Evaluation instant.

    Returns:
        Caffeine level in mg.
    """
    _require_half_life(half_life_hours)
    total = 0.0
    for event in events:
        elapsed = _hours_between(event.timestamp, at)
        if elapsed < 0:
            continue  # drink is in the future relative to at
        total += event.actual_caffeine_mg * elimination_fraction(
            elapsed, half_life_hours
        )
    return max(0.0, total)


def current_activity(
    events: Iterable[DrinkEvent],
    half_life_hours: float,
    at: datetime,
) -> float:
    """Physiologically active caffeine at ``at``.

    The elimination sum with each drink's term weighted by
    :func:`absorption_rate`, so freshly started and long-absorbed drinks
    count for less than drinks in their absorption plateau.

    Returns:
        Absorption-weighted caffeine level in mg.
    """
    _require_half_life(half_life_hours)
    total = 0.0
    for event in events:
        elapsed = _hours_between(event.timestamp, at)
        if elapsed < 0:
            continue
        total += (
            event.actual_caffeine_mg
            * elimination_fraction(elapsed, half_life_hours)
            * absorption_rate(elapsed * 60)
        )
    return max(0.0, total)


def peak_level(
    events: Iterable[DrinkEvent],
    half_life_hours: float,
    at: datetime,
    lookback_hours: float = PEAK_LOOKBACK_HOURS,
    sample_interval_minutes: float = PEAK_SAMPLE_INTERVAL_MINUTES,
) -> float:
    """Highest :func:`current_level` seen in the lookback window.

    Samples backwards from ``at`` in fixed steps, including ``at`` itself.

    Args:
        events: Drink ledger.
        half_life_hours: Elimination half-life (> 0).
        at: Evaluation instant (end of the window).
        lookback_hours: Window length in hours.
        sample_interval_minutes: Step between samples in minutes.

    Returns:
        Peak caffeine level in mg; 0.0 for an empty ledger.
    """
    _require_half_life(half_life_hours)
    if sample_interval_minutes <= 0:
        msg = f"sample_interval_minutes must be > 0, got {sample_interval_minutes}"
        raise ValueError(msg)

    ledger = list(events)
    if not ledger:
        return 0.0

    peak = 0.0
    steps = int((lookback_hours * 60) // sample_interval_minutes)
    for step in range(steps + 1):
        sample_at = at - timedelta(minutes=step * sample_interval_minutes)
        peak = max(peak, current_level(ledger, half_life_hours, sample_at))
    return peak


def has_recent_caffeine(
    events: Iterable[DrinkEvent],
    at: datetime,
    hours_back: float = 12,
) -> bool:
    """Return True when any drink started within ``hours_back`` of ``at``."""
    cutoff = at - timedelta(hours=hours_back)
    return any(cutoff <= event.timestamp <= at for event in events)
