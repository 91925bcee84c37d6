"""Tests for the async storage edge."""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

import pytest

from jitter_engine.logging_config import evaluation_id_ctx
from jitter_engine.schemas import ExerciseEvent, MealEvent, SleepSample, StressSample
from jitter_engine.services.scoring import compute_caff_score, compute_crash_risk
from jitter_engine.services.storage import (
    NO_DATA,
    compute_caff_score_for_user,
    compute_crash_risk_for_user,
    load_evaluation_inputs,
)
from tests.conftest import NOW, FakeStorage, make_drink

TODAY = NOW.date()
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def storage(profile) -> FakeStorage:
    return FakeStorage(
        profile=profile,
        drinks=[make_drink(40, 150), make_drink(180, 95)],
        sleep={YESTERDAY: SleepSample(date=YESTERDAY, hours_slept=5.5)},
        stress={TODAY: StressSample(date=TODAY, level=7)},
        meals=[NOW - timedelta(minutes=20)],
        exercise={
            TODAY: ExerciseEvent(timestamp=NOW - timedelta(hours=1), phase="completed")
        },
    )


class FailingStorage(FakeStorage):
    async def get_drink_events(self, user_id, window):
        raise RuntimeError("ledger unavailable")


@pytest.mark.asyncio
class TestLoadEvaluationInputs:
    """Tests for fetching one evaluation snapshot."""

    async def test_requests_windows_and_days(self, storage):
        await load_evaluation_inputs(storage, "user-1", NOW)

        assert ("get_profile", "user-1") in storage.calls
        assert ("get_drink_events", "user-1", (NOW - timedelta(hours=24), NOW)) in storage.calls
        assert ("get_sleep_sample", "user-1", YESTERDAY) in storage.calls
        assert ("get_stress_sample", "user-1", TODAY) in storage.calls
        assert ("get_recent_meal_times", "user-1", 6) in storage.calls
        assert ("get_exercise_sample", "user-1", TODAY) in storage.calls

    async def test_signals_populated(self, storage):
        inputs = await load_evaluation_inputs(storage, "user-1", NOW)

        assert inputs.profile is storage.profile
        assert len(inputs.events) == 2
        assert inputs.signals["last_night_sleep_hours"] == 5.5
        assert inputs.signals["stress_level"] == 7
        assert inputs.signals["meal_times"] == (NOW - timedelta(minutes=20),)
        assert inputs.signals["exercise"].phase == "completed"

    async def test_no_data_becomes_absent(self):
        inputs = await load_evaluation_inputs(FakeStorage(), "user-1", NOW)

        assert inputs.profile is None
        assert inputs.events == []
        assert inputs.signals == {
            "last_night_sleep_hours": None,
            "stress_level": None,
            "meal_times": (),
            "exercise": None,
        }

    async def test_only_yesterdays_sleep_counts(self, profile):
        storage = FakeStorage(
            profile=profile,
            drinks=[],
            sleep={TODAY: SleepSample(date=TODAY, hours_slept=3.0)},
        )
        inputs = await load_evaluation_inputs(storage, "user-1", NOW)
        assert inputs.signals["last_night_sleep_hours"] is None

    async def test_no_data_repr(self):
        assert repr(NO_DATA) == "NO_DATA"


@pytest.mark.asyncio
class TestComputeForUser:
    """Tests for the per-user scoring entry points."""

    async def test_crash_risk_matches_pure_scorer(self, storage):
        result = await compute_crash_risk_for_user(storage, "user-1", NOW)
        inputs = await load_evaluation_inputs(storage, "user-1", NOW)
        expected = compute_crash_risk(inputs.profile, inputs.events, NOW, inputs.signals)

        assert result.fail_safe is False
        assert result.model_dump() == expected.model_dump()

    async def test_caff_score_matches_pure_scorer(self, storage):
        result = await compute_caff_score_for_user(storage, "user-1", NOW)
        inputs = await load_evaluation_inputs(storage, "user-1", NOW)
        expected = compute_caff_score(inputs.profile, inputs.events, NOW, inputs.signals)

        assert result.score == expected.score
        assert result.factors["stress"] == expected.factors["stress"]

    async def test_meal_records_reach_food_factor(self, storage, profile):
        """Storage may return MealEvent records instead of bare timestamps."""
        records = FakeStorage(
            profile=profile,
            drinks=storage.drinks,
            meals=[MealEvent(timestamp=t) for t in storage.meals],
        )
        bare = FakeStorage(profile=profile, drinks=storage.drinks, meals=storage.meals)

        from_records = await compute_caff_score_for_user(records, "user-1", NOW)
        from_bare = await compute_caff_score_for_user(bare, "user-1", NOW)

        assert from_records.fail_safe is False
        assert from_records.factors["food_delay"] < 1.0
        assert from_records.factors == from_bare.factors

    async def test_missing_profile_is_fail_safe(self):
        result = await compute_crash_risk_for_user(FakeStorage(drinks=[]), "user-1", NOW)

        assert result.fail_safe is True
        assert result.score == 0.0
        assert result.warnings == ["Profile is required"]

    async def test_out_of_range_time_skips_storage(self, storage):
        now = datetime.min.replace(tzinfo=UTC)
        result = await compute_crash_risk_for_user(storage, "user-1", now)

        assert result.fail_safe is True
        assert result.warnings == ["Evaluation time is out of the supported range"]
        assert storage.calls == []

    async def test_malformed_ledger_is_fail_safe(self, profile):
        storage = FakeStorage(
            profile=profile,
            drinks=[{"id": "d1", "timestamp": NOW, "caffeine_mg": 2000}],
        )
        result = await compute_caff_score_for_user(storage, "user-1", NOW)
        assert result.fail_safe is True

    async def test_evaluation_id_scoped_to_call(self, storage):
        """Every fetch shares one evaluation ID, cleared afterwards."""
        await compute_crash_risk_for_user(storage, "user-1", NOW)

        ids = set(storage.evaluation_ids)
        assert len(ids) == 1
        assert None not in ids
        assert evaluation_id_ctx.get() is None

    async def test_concurrent_evaluations_get_distinct_ids(self, profile):
        first = FakeStorage(profile=profile, drinks=[])
        second = FakeStorage(profile=profile, drinks=[])

        await asyncio.gather(
            compute_crash_risk_for_user(first, "user-1", NOW),
            compute_caff_score_for_user(second, "user-1", NOW),
        )

        assert set(first.evaluation_ids).isdisjoint(second.evaluation_ids)

    async def test_score_logged(self, storage, caplog):
        with caplog.at_level(logging.INFO, logger="jitter_engine.services.storage"):
            await compute_crash_risk_for_user(storage, "user-1", NOW)

        record = next(r for r in caplog.records if r.getMessage() == "Score computed")
        assert record.extra_fields["kind"] == "crash_risk"
        assert record.extra_fields["fail_safe"] is False
        assert "duration_ms" in record.extra_fields

    async def test_storage_error_propagates(self, profile, caplog):
        storage = FailingStorage(profile=profile)

        with caplog.at_level(logging.ERROR), pytest.raises(RuntimeError):
            await compute_crash_risk_for_user(storage, "user-1", NOW)

        assert "Score computation failed" in caplog.text
        assert evaluation_id_ctx.get() is None
