"""Pytest configuration and shared fixtures."""

from datetime import UTC, date, datetime, timedelta

import pytest

from jitter_engine.logging_config import evaluation_id_ctx
from jitter_engine.schemas import (
    DrinkEvent,
    ExerciseEvent,
    Profile,
    SleepSample,
    StressSample,
)
from jitter_engine.services.storage import NO_DATA

# Fixed evaluation instant: a Tuesday, mid-morning UTC
NOW = datetime(2025, 3, 4, 10, 0, tzinfo=UTC)


def make_profile(**overrides) -> Profile:
    """Build a valid adult male profile, a month old."""
    data = {
        "user_id": "user-1",
        "weight_kg": 70.0,
        "age": 25,
        "sex": "male",
        "smoker": False,
        "pregnant": False,
        "oral_contraceptives": False,
        "created_at": NOW - timedelta(days=30),
    }
    data.update(overrides)
    return Profile.model_validate(data)


def make_drink(
    minutes_ago: float,
    caffeine_mg: float = 95.0,
    at: datetime = NOW,
    **overrides,
) -> DrinkEvent:
    """Build a drink started ``minutes_ago`` before ``at``."""
    data = {
        "id": f"drink-{minutes_ago:g}-{caffeine_mg:g}",
        "name": "Coffee",
        "timestamp": at - timedelta(minutes=minutes_ago),
        "caffeine_mg": caffeine_mg,
    }
    data.update(overrides)
    return DrinkEvent.model_validate(data)


@pytest.fixture
def profile() -> Profile:
    return make_profile()


@pytest.fixture
def profile_data() -> dict:
    """Raw profile mapping, as a storage layer would return it."""
    return make_profile().model_dump()


class FakeStorage:
    """In-memory storage collaborator that records what was requested."""

    def __init__(
        self,
        profile=NO_DATA,
        drinks=NO_DATA,
        sleep: dict[date, SleepSample] | None = None,
        stress: dict[date, StressSample] | None = None,
        meals=NO_DATA,
        exercise: dict[date, ExerciseEvent] | None = None,
    ):
        self.profile = profile
        self.drinks = drinks
        self.sleep = sleep or {}
        self.stress = stress or {}
        self.meals = meals
        self.exercise = exercise or {}
        self.calls: list[tuple] = []
        self.evaluation_ids: list[str | None] = []

    def _record(self, *call) -> None:
        self.calls.append(call)
        self.evaluation_ids.append(evaluation_id_ctx.get())

    async def get_profile(self, user_id):
        self._record("get_profile", user_id)
        return self.profile

    async def get_drink_events(self, user_id, window):
        self._record("get_drink_events", user_id, window)
        return self.drinks

    async def get_sleep_sample(self, user_id, day):
        self._record("get_sleep_sample", user_id, day)
        return self.sleep.get(day, NO_DATA)

    async def get_stress_sample(self, user_id, day):
        self._record("get_stress_sample", user_id, day)
        return self.stress.get(day, NO_DATA)

    async def get_recent_meal_times(self, user_id, hours_back):
        self._record("get_recent_meal_times", user_id, hours_back)
        return self.meals

    async def get_exercise_sample(self, user_id, day):
        self._record("get_exercise_sample", user_id, day)
        return self.exercise.get(day, NO_DATA)
