"""Next-caffeine timing recommendation.

Looks at the current crash risk and, failing that, an 8 hour projected
risk curve to suggest when the next drink would head off a crash.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from jitter_engine.core.input_validation.validator import (
    DrinkInput,
    ProfileInput,
    SignalsInput,
)
from jitter_engine.logging_config import get_logger
from jitter_engine.services.scoring import compute_crash_risk, compute_risk_curve

logger = get_logger(__name__)

HIGH_RISK_THRESHOLD = 70.0
RECOMMENDATION_HORIZON_HOURS = 8
# Lead time ahead of a predicted high-risk point
RECOMMENDATION_LEAD_HOURS = 1.0


@dataclass(frozen=True)
class CaffeineRecommendation:
    """When to have the next caffeine, relative to the evaluation instant."""

    hours_from_now: float
    reason: str


def next_caffeine_recommendation(
    profile: ProfileInput,
    events: Iterable[DrinkInput] | None,
    now: Any,
    signals: SignalsInput = None,
) -> CaffeineRecommendation | None:
    """Recommend caffeine now, ahead of a predicted crash, or not at all.

    Args:
        profile: Profile model or raw mapping.
        events: Drink ledger.
        now: Timezone-aware evaluation instant.
        signals: Optional daily signals.

    Returns:
        A recommendation, or None when no high-risk point is predicted or
        the snapshot is invalid.
    """
    ledger = list(events or ())
    current = compute_crash_risk(profile, ledger, now, signals)
    if current.fail_safe:
        return None

    if current.score > HIGH_RISK_THRESHOLD:
        logger.info("Caffeine recommended now", score=current.score)
        return CaffeineRecommendation(
            hours_from_now=0.0,
            reason="High crash risk detected - caffeine recommended now",
        )

    curve = compute_risk_curve(
        profile,
        ledger,
        now,
        horizon_hours=RECOMMENDATION_HORIZON_HOURS,
        signals=signals,
    )
    high_risk = next((p for p in curve if p.score > HIGH_RISK_THRESHOLD), None)
    if high_risk is None:
        return None

    hours_until = (high_risk.time - now).total_seconds() / 3600
    logger.info(
        "Caffeine recommended ahead of predicted crash",
        hours_until_high_risk=hours_until,
        predicted_score=high_risk.score,
    )
    return CaffeineRecommendation(
        hours_from_now=max(0.0, hours_until - RECOMMENDATION_LEAD_HOURS),
        reason="Preparing for predicted crash risk",
    )
