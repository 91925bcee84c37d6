"""CaffScore status line.

Turns the change between two consecutive CaffScores into a trend and a
short human-readable status, for foreground and background callers alike.
"""

from dataclasses import dataclass
from enum import StrEnum, auto

# Differences smaller than this count as unchanged
SCORE_EPSILON = 1e-4

LOW_SCORE_MAX = 25.0  # exclusive
HIGH_SCORE_MIN = 80.0  # inclusive

NO_CAFFEINE_TEXT = "No active caffeine detected"


class StatusTrend(StrEnum):
    rising = auto()
    declining = auto()
    stable = auto()


@dataclass(frozen=True)
class StatusResult:
    """Status text and trend for the latest score."""

    text: str
    trend: StatusTrend


_RISING_TEXT = (
    "Caffeine being absorbed",
    "Caffeine levels rising",
    "Peak caffeine effect active",
)
_DECLINING_TEXT = (
    "Effects wearing off",
    "Caffeine leaving your system",
    "Caffeine leaving your system",
)


def _score_band(score: float) -> int:
    if score < LOW_SCORE_MAX:
        return 0
    if score < HIGH_SCORE_MIN:
        return 1
    return 2


def calculate_status(
    current_score: float,
    previous_score: float,
    current_text: str,
) -> StatusResult:
    """Derive the status for ``current_score`` given the previous one.

    Args:
        current_score: Freshly computed CaffScore.
        previous_score: Score from the previous run.
        current_text: Status text shown before this run; kept as-is when
            the score did not change noticeably.

    Returns:
        StatusResult with the new text and trend.
    """
    difference = current_score - previous_score
    if abs(difference) < SCORE_EPSILON:
        return StatusResult(text=current_text, trend=StatusTrend.stable)

    if current_score == 0:
        return StatusResult(text=NO_CAFFEINE_TEXT, trend=StatusTrend.stable)

    band = _score_band(current_score)
    if difference > 0:
        return StatusResult(text=_RISING_TEXT[band], trend=StatusTrend.rising)
    return StatusResult(text=_DECLINING_TEXT[band], trend=StatusTrend.declining)
