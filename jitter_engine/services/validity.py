"""Result validity window.

A score is a snapshot for one UI refresh. The guard stamps each result
with ``valid_until`` and lets a caller holding the previous result reuse
it inside that window. It holds no state of its own: the caller owns the
previous result, and an expired one is always recomputed from scratch.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from jitter_engine.config import settings
from jitter_engine.schemas.score import ScoreResult


class ResultValidityGuard:
    """Stamps and checks the validity window of score results."""

    def __init__(self, validity_seconds: float | None = None) -> None:
        self.validity_seconds = (
            settings.result_validity_seconds
            if validity_seconds is None
            else validity_seconds
        )

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.validity_seconds)

    def valid_until(self, computed_at: datetime) -> datetime:
        """End of the validity window for a result computed at ``computed_at``."""
        return computed_at + self.window

    def is_fresh(self, result: ScoreResult | None, at: datetime) -> bool:
        """Return True when ``result`` can still be shown at ``at``."""
        return result is not None and result.is_valid_at(at)

    def current(
        self,
        previous: ScoreResult | None,
        at: datetime,
        recompute: Callable[[datetime], ScoreResult],
    ) -> ScoreResult:
        """Reuse ``previous`` while fresh, otherwise recompute at ``at``.

        Args:
            previous: Last result the caller holds, if any.
            at: Instant the caller wants a score for.
            recompute: Called with ``at`` to build a new result.

        Returns:
            A result valid at ``at``.
        """
        if self.is_fresh(previous, at):
            return previous
        return recompute(at)
