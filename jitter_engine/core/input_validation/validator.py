"""Scoring input validator.

Validates a raw scoring snapshot (profile, drink ledger, daily signals and
evaluation instant) before any derived quantity is computed. Range checks
are expressed on the schemas; this module runs them, converts pydantic
errors into human-readable reasons and adds cross-record warnings.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from jitter_engine.core.input_validation.constants import (
    EVALUATION_TIME_MARGIN,
    FUTURE_DRINK_WARNING_MINUTES,
    STALE_DRINK_WARNING_HOURS,
)
from jitter_engine.core.input_validation.enums import InputCheckType
from jitter_engine.core.input_validation.models import (
    InputCheckResult,
    InputValidationResult,
)
from jitter_engine.schemas.events import DailySignals, DrinkEvent
from jitter_engine.schemas.profile import Profile

ProfileInput = Profile | Mapping[str, Any] | None
DrinkInput = DrinkEvent | Mapping[str, Any]
SignalsInput = DailySignals | Mapping[str, Any] | None

# Daily-signal fields and the check each one reports under
_SIGNAL_CHECKS: dict[str, InputCheckType] = {
    "last_night_sleep_hours": InputCheckType.last_night_sleep,
    "stress_level": InputCheckType.stress_level,
    "meal_times": InputCheckType.meal_times,
    "exercise": InputCheckType.exercise,
}


def _format_error(error: Mapping[str, Any], prefix: str) -> str:
    location = ".".join(str(part) for part in error["loc"])
    message = error["msg"]
    return f"{prefix}{location}: {message}" if location else f"{prefix}{message}"


def format_validation_errors(exc: ValidationError, prefix: str = "") -> list[str]:
    """Flatten a pydantic ValidationError into readable reason strings."""
    return [_format_error(error, prefix) for error in exc.errors()]


def is_aware(value: Any) -> bool:
    """Return True for a timezone-aware datetime."""
    return (
        isinstance(value, datetime)
        and value.tzinfo is not None
        and value.utcoffset() is not None
    )


def is_in_range(value: datetime) -> bool:
    """Return True when the evaluation margin fits on both sides of ``value``."""
    try:
        value - EVALUATION_TIME_MARGIN
        value + EVALUATION_TIME_MARGIN
    except OverflowError:
        return False
    return True


def evaluation_time_error(value: Any) -> str | None:
    """Reason ``value`` cannot be used as an evaluation instant, or None."""
    if not is_aware(value):
        return "Evaluation time must be a timezone-aware datetime"
    if not is_in_range(value):
        return "Evaluation time is out of the supported range"
    return None


def is_usable_time(value: Any) -> bool:
    """Return True for an aware datetime the engine can evaluate at."""
    return evaluation_time_error(value) is None


class InputValidator:
    """Validates scoring snapshots.

    Every check runs regardless of earlier failures (no short-circuit),
    so a caller sees the complete reason list at once. This class is
    stateless and safe to use as a singleton.
    """

    def validate(
        self,
        profile: ProfileInput,
        events: Iterable[DrinkInput] | None,
        now: Any,
        signals: SignalsInput = None,
    ) -> InputValidationResult:
        """Run all input checks against a snapshot.

        Args:
            profile: Profile model or raw mapping.
            events: Drink ledger as models or raw mappings.
            now: Evaluation instant; must be timezone-aware.
            signals: Optional daily signals.

        Returns:
            InputValidationResult with parsed models when valid.
        """
        time_check = self._check_evaluation_time(now)
        profile_check, parsed_profile = self._check_profile(profile)
        drinks_check, parsed_events = self._check_drink_events(events)
        signal_checks, parsed_signals = self._check_signals(signals)

        checks = [time_check, profile_check, drinks_check, *signal_checks]
        reasons = list(
            dict.fromkeys(reason for c in checks if not c.passed for reason in c.errors)
        )
        valid = not reasons

        warnings: list[str] = []
        if time_check.passed:
            warnings.extend(self._ledger_warnings(parsed_events, now))
        if parsed_profile is not None and parsed_profile.average_sleep_7_days <= 0:
            warnings.append("Sleep data will improve prediction accuracy")

        return InputValidationResult(
            valid=valid,
            reasons=reasons,
            warnings=warnings,
            checks=checks,
            profile=parsed_profile if valid else None,
            events=tuple(parsed_events) if valid else (),
            signals=parsed_signals,
        )

    def _check_evaluation_time(self, now: Any) -> InputCheckResult:
        """Require a timezone-aware evaluation instant inside the datetime range."""
        error = evaluation_time_error(now)
        if error is None:
            return InputCheckResult(
                check_type=InputCheckType.evaluation_time,
                passed=True,
                message="Evaluation time is timezone-aware",
                details={"now": now.isoformat()},
            )
        return InputCheckResult(
            check_type=InputCheckType.evaluation_time,
            passed=False,
            message=error,
            errors=[error],
            details={"now": repr(now)},
        )

    def _check_profile(
        self, profile: ProfileInput
    ) -> tuple[InputCheckResult, Profile | None]:
        """Parse the profile and report missing or out-of-range fields."""
        if profile is None:
            error = "Profile is required"
            return (
                InputCheckResult(
                    check_type=InputCheckType.profile,
                    passed=False,
                    message=error,
                    errors=[error],
                ),
                None,
            )

        try:
            parsed = Profile.model_validate(
                profile if isinstance(profile, Profile) else dict(profile)
            )
        except (ValidationError, TypeError, ValueError) as exc:
            errors = (
                format_validation_errors(exc, prefix="Profile ")
                if isinstance(exc, ValidationError)
                else ["Profile must be a profile record or mapping"]
            )
            return (
                InputCheckResult(
                    check_type=InputCheckType.profile,
                    passed=False,
                    message=f"Profile failed {len(errors)} check(s)",
                    errors=errors,
                ),
                None,
            )

        return (
            InputCheckResult(
                check_type=InputCheckType.profile,
                passed=True,
                message="Profile complete and within range",
                details={"user_id": parsed.user_id},
            ),
            parsed,
        )

    def _check_drink_events(
        self, events: Iterable[DrinkInput] | None
    ) -> tuple[InputCheckResult, list[DrinkEvent]]:
        """Parse every drink; any out-of-range drink fails the check."""
        parsed: list[DrinkEvent] = []
        errors: list[str] = []

        try:
            ledger = iter(events or ())
        except TypeError:
            ledger = iter(())
            errors.append("Drink events must be a sequence of drink records")

        for index, event in enumerate(ledger, start=1):
            try:
                parsed.append(
                    DrinkEvent.model_validate(
                        event if isinstance(event, DrinkEvent) else dict(event)
                    )
                )
            except ValidationError as exc:
                errors.extend(format_validation_errors(exc, prefix=f"Drink {index} "))
            except (TypeError, ValueError):
                errors.append(f"Drink {index}: not a drink record")

        passed = not errors
        return (
            InputCheckResult(
                check_type=InputCheckType.drink_events,
                passed=passed,
                message=(
                    f"{len(parsed)} drink(s) within range"
                    if passed
                    else f"{len(errors)} drink field(s) out of range"
                ),
                errors=errors,
                details={"drink_count": len(parsed)},
            ),
            parsed,
        )

    def _check_signals(
        self, signals: SignalsInput
    ) -> tuple[list[InputCheckResult], DailySignals]:
        """Parse daily signals and report one result per signal field."""
        errors_by_field: dict[str, list[str]] = {name: [] for name in _SIGNAL_CHECKS}
        parsed = DailySignals()

        if signals is not None:
            try:
                parsed = DailySignals.model_validate(
                    signals if isinstance(signals, DailySignals) else dict(signals)
                )
            except ValidationError as exc:
                for error in exc.errors():
                    field = str(error["loc"][0]) if error["loc"] else ""
                    if field in errors_by_field:
                        errors_by_field[field].append(
                            _format_error(error, prefix="Signal ")
                        )
            except (TypeError, ValueError):
                for field in errors_by_field:
                    errors_by_field[field].append(
                        "Signal: daily signals must be a mapping"
                    )

        results = []
        for field, check_type in _SIGNAL_CHECKS.items():
            errors = errors_by_field[field]
            results.append(
                InputCheckResult(
                    check_type=check_type,
                    passed=not errors,
                    message=(
                        f"{field} within range" if not errors else f"{field} invalid"
                    ),
                    errors=errors,
                )
            )
        return results, parsed

    def _ledger_warnings(self, events: list[DrinkEvent], now: datetime) -> list[str]:
        """Flag stale and future-dated drinks; neither is fatal."""
        warnings = []
        stale_cutoff = now - timedelta(hours=STALE_DRINK_WARNING_HOURS)
        future_cutoff = now + timedelta(minutes=FUTURE_DRINK_WARNING_MINUTES)

        stale = sum(1 for e in events if e.timestamp < stale_cutoff)
        if stale:
            warnings.append(
                f"{stale} drinks are older than {STALE_DRINK_WARNING_HOURS} hours "
                "and may not affect current risk"
            )
        future = sum(1 for e in events if e.timestamp > future_cutoff)
        if future:
            warnings.append(
                f"{future} drinks are dated after the evaluation time and were ignored"
            )
        return warnings
