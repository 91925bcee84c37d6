"""Async storage edge.

The scoring engine is pure; all I/O happens here, before computation.
A storage collaborator supplies the profile, drink ledger and daily
signals for one user. Each evaluation runs under its own evaluation id
so every log event it emits can be correlated.
"""

import asyncio
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Final, Protocol

from jitter_engine.config import settings
from jitter_engine.core.input_validation.validator import evaluation_time_error
from jitter_engine.logging_config import evaluation_id_ctx, get_logger
from jitter_engine.schemas.events import (
    DrinkEvent,
    ExerciseEvent,
    MealEvent,
    SleepSample,
    StressSample,
)
from jitter_engine.schemas.profile import Profile
from jitter_engine.schemas.score import ScoreKind, ScoreResult
from jitter_engine.services.scoring import (
    compute_caff_score,
    compute_crash_risk,
    fail_safe_result,
)

logger = get_logger(__name__)


class _NoData(Enum):
    token = "NO_DATA"

    def __repr__(self) -> str:
        return "NO_DATA"


# Returned by a collaborator when the requested record does not exist
NO_DATA: Final = _NoData.token

Window = tuple[datetime, datetime]


class StorageCollaborator(Protocol):
    """Read-only source of scoring inputs for one user."""

    async def get_profile(self, user_id: str) -> Profile | Mapping[str, Any] | _NoData: ...

    async def get_drink_events(
        self, user_id: str, window: Window
    ) -> Sequence[DrinkEvent | Mapping[str, Any]] | _NoData: ...

    async def get_sleep_sample(self, user_id: str, day: date) -> SleepSample | _NoData: ...

    async def get_stress_sample(self, user_id: str, day: date) -> StressSample | _NoData: ...

    async def get_recent_meal_times(
        self, user_id: str, hours_back: float
    ) -> Sequence[MealEvent | datetime] | _NoData: ...

    async def get_exercise_sample(self, user_id: str, day: date) -> ExerciseEvent | _NoData: ...


@dataclass(frozen=True)
class EvaluationInputs:
    """Snapshot fetched from storage for one evaluation."""

    profile: Profile | Mapping[str, Any] | None
    events: list[DrinkEvent | Mapping[str, Any]] = field(default_factory=list)
    signals: dict[str, Any] = field(default_factory=dict)


async def load_evaluation_inputs(
    storage: StorageCollaborator,
    user_id: str,
    now: datetime,
) -> EvaluationInputs:
    """Fetch the profile, ledger and daily signals for ``now``.

    Drinks come from the trailing drink window and meals from the trailing
    meal window. Last night's sleep is the sample dated the day before
    ``now``; stress and exercise are taken from the day of ``now``.

    Args:
        storage: Storage collaborator.
        user_id: User to evaluate.
        now: Timezone-aware evaluation instant in the user's local
            timezone. Today and yesterday are
            ``now.date()`` and the day before.

    Returns:
        EvaluationInputs; ``profile`` is None when storage has none.
    """
    today = now.date()
    yesterday = today - timedelta(days=1)
    window = (now - timedelta(hours=settings.drink_window_hours), now)

    profile, drinks, sleep, stress, meals, exercise = await asyncio.gather(
        storage.get_profile(user_id),
        storage.get_drink_events(user_id, window),
        storage.get_sleep_sample(user_id, yesterday),
        storage.get_stress_sample(user_id, today),
        storage.get_recent_meal_times(user_id, settings.meal_window_hours),
        storage.get_exercise_sample(user_id, today),
    )

    # Raw mapping; the scorer range-checks it
    signals = {
        "last_night_sleep_hours": None if sleep is NO_DATA else sleep.hours_slept,
        "stress_level": None if stress is NO_DATA else stress.level,
        "meal_times": () if meals is NO_DATA else tuple(meals),
        "exercise": None if exercise is NO_DATA else exercise,
    }
    inputs = EvaluationInputs(
        profile=None if profile is NO_DATA else profile,
        events=[] if drinks is NO_DATA else list(drinks),
        signals=signals,
    )

    logger.debug(
        "Evaluation inputs loaded",
        user_id=user_id,
        has_profile=inputs.profile is not None,
        drink_count=len(inputs.events),
        meal_count=len(signals["meal_times"]),
        has_sleep=signals["last_night_sleep_hours"] is not None,
        has_stress=signals["stress_level"] is not None,
        has_exercise=signals["exercise"] is not None,
    )
    return inputs


async def _score_from_storage(
    kind: ScoreKind,
    storage: StorageCollaborator,
    user_id: str,
    now: datetime,
) -> ScoreResult:
    inputs = await load_evaluation_inputs(storage, user_id, now)
    if inputs.profile is None:
        return fail_safe_result(kind, now, ["Profile is required"])
    if kind == ScoreKind.crash_risk:
        return compute_crash_risk(inputs.profile, inputs.events, now, inputs.signals)
    return compute_caff_score(inputs.profile, inputs.events, now, inputs.signals)


async def _compute_for_user(
    kind: ScoreKind,
    storage: StorageCollaborator,
    user_id: str,
    now: datetime,
) -> ScoreResult:
    token = evaluation_id_ctx.set(str(uuid.uuid4()))
    start_time = time.perf_counter()
    try:
        time_error = evaluation_time_error(now)
        if time_error is not None:
            result = fail_safe_result(kind, now, [time_error])
        else:
            result = await _score_from_storage(kind, storage, user_id, now)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Score computed",
            user_id=user_id,
            kind=kind.value,
            score=result.score,
            fail_safe=result.fail_safe,
            duration_ms=round(duration_ms, 2),
        )
        return result
    except Exception:
        logger.exception("Score computation failed", user_id=user_id, kind=kind.value)
        raise
    finally:
        evaluation_id_ctx.reset(token)


async def compute_crash_risk_for_user(
    storage: StorageCollaborator,
    user_id: str,
    now: datetime,
) -> ScoreResult:
    """Load a snapshot from storage and compute the user's crash risk.

    ``now`` must be in the user's local timezone.
    """
    return await _compute_for_user(ScoreKind.crash_risk, storage, user_id, now)


async def compute_caff_score_for_user(
    storage: StorageCollaborator,
    user_id: str,
    now: datetime,
) -> ScoreResult:
    """Load a snapshot from storage and compute the user's CaffScore.

    ``now`` must be in the user's local timezone.
    """
    return await _compute_for_user(ScoreKind.caff_score, storage, user_id, now)
