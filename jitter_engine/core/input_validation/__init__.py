"""Scoring input validation.

Every scoring snapshot passes through the InputValidator before any
derived quantity is computed. Seven checks run on every snapshot (no
short-circuit):

1. Evaluation instant is timezone-aware
2. Profile is complete and within range
3. Every drink is within range
4. Last night's sleep hours
5. Stress level
6. Meal times
7. Exercise event

A failing snapshot is never fatal: the scorer substitutes its fail-safe
neutral result and carries the reasons as warnings.
"""

from jitter_engine.core.input_validation.enums import InputCheckType
from jitter_engine.core.input_validation.models import (
    InputCheckResult,
    InputValidationResult,
)
from jitter_engine.core.input_validation.validator import InputValidator

__all__ = [
    "InputCheckResult",
    "InputCheckType",
    "InputValidationResult",
    "InputValidator",
]
