"""Input validation enums."""

from enum import StrEnum, auto


class InputCheckType(StrEnum):
    """Checks applied to a scoring snapshot before any derivation."""

    evaluation_time = auto()
    profile = auto()
    drink_events = auto()
    last_night_sleep = auto()
    stress_level = auto()
    meal_times = auto()
    exercise = auto()
