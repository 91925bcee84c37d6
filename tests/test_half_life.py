"""Tests for the personalized half-life calculator."""

from datetime import timedelta

import pytest

from jitter_engine.config import settings
from jitter_engine.schemas import ExerciseEvent
from jitter_engine.services.half_life import (
    CAFF_SCORE_HALF_LIFE,
    CRASH_RISK_HALF_LIFE,
    calculate_half_life,
    exercise_speedup,
    sleep_debt_multiplier,
    stress_multiplier,
)
from tests.conftest import NOW, make_profile


class TestProfileModifiers:
    """Tests for the profile-driven modifiers."""

    def test_baseline(self, profile):
        """A 25 year old non-smoking male keeps the 5 h baseline."""
        assert calculate_half_life(profile, CRASH_RISK_HALF_LIFE) == pytest.approx(5.0)
        assert calculate_half_life(profile, CAFF_SCORE_HALF_LIFE) == pytest.approx(5.0)

    def test_crash_risk_progressive_aging(self):
        """2% per year above 30 for crash risk."""
        profile = make_profile(age=50)
        assert calculate_half_life(profile, CRASH_RISK_HALF_LIFE) == pytest.approx(7.0)

    def test_crash_risk_aging_cap(self):
        """Aging slowdown is capped at x1.8."""
        profile = make_profile(age=100)
        assert calculate_half_life(profile, CRASH_RISK_HALF_LIFE) == pytest.approx(9.0)

    def test_caff_score_bracketed_aging(self):
        """CaffScore uses age brackets instead."""
        assert calculate_half_life(
            make_profile(age=50), CAFF_SCORE_HALF_LIFE
        ) == pytest.approx(5.5)
        assert calculate_half_life(
            make_profile(age=70), CAFF_SCORE_HALF_LIFE
        ) == pytest.approx(6.5)

    def test_smoker_weightings(self):
        """Smoking speeds clearance differently per score."""
        profile = make_profile(smoker=True)
        assert calculate_half_life(profile, CRASH_RISK_HALF_LIFE) == pytest.approx(3.0)
        assert calculate_half_life(profile, CAFF_SCORE_HALF_LIFE) == pytest.approx(3.5)

    def test_pregnancy_weightings(self):
        """Pregnancy slows clearance differently per score."""
        profile = make_profile(sex="female", pregnant=True, oral_contraceptives=None)
        assert calculate_half_life(profile, CRASH_RISK_HALF_LIFE) == pytest.approx(12.5)
        assert calculate_half_life(profile, CAFF_SCORE_HALF_LIFE) == pytest.approx(10.0)

    def test_oral_contraceptives(self):
        """Contraceptives slow clearance for non-pregnant females."""
        profile = make_profile(sex="female", pregnant=False, oral_contraceptives=True)
        assert calculate_half_life(profile) == pytest.approx(7.0)

    def test_strongest_medication_only(self):
        """Inhibitors never stack; the strongest one applies."""
        profile = make_profile(
            smoker=True, ciprofloxacin=True, other_cyp1a2_inhibitor=True
        )
        # 5.0 * 0.6 * 2.5, not 5.0 * 0.6 * 2.5 * 1.5
        assert calculate_half_life(profile) == pytest.approx(7.5)

    @pytest.mark.parametrize(
        "rate,expected",
        [
            ("very_slow", 8.0),
            ("slow", 6.5),
            ("medium", 5.0),
            ("fast", 4.0),
            ("very_fast", 3.0),
        ],
    )
    def test_metabolism_rate(self, rate, expected):
        profile = make_profile(metabolism_rate=rate)
        assert calculate_half_life(profile) == pytest.approx(expected)


class TestDailyModifiers:
    """Tests for sleep, stress and exercise modifiers."""

    @pytest.mark.parametrize(
        "debt,expected",
        [
            (None, 1.0),
            (0.0, 1.0),
            (1.0, 1.05),
            (2.0, 1.125),
            (3.0, 1.20),
            (4.0, 1.25),
            (8.0, 1.30),
        ],
    )
    def test_sleep_debt_tiers(self, debt, expected):
        assert sleep_debt_multiplier(debt) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "level,expected",
        [(None, 1.0), (1, 1.0), (3, 1.0), (4, 1.04), (6, 1.12), (10, 1.31)],
    )
    def test_stress_tiers(self, level, expected):
        assert stress_multiplier(level) == pytest.approx(expected)

    def test_starting_exercise_ramps_up(self):
        """Starting exercise reaches the full 20% speedup after 30 min."""
        start = NOW - timedelta(minutes=15)
        event = ExerciseEvent(timestamp=start, phase="starting")
        assert exercise_speedup(event, NOW) == pytest.approx(0.1)
        assert exercise_speedup(event, start + timedelta(minutes=45)) == pytest.approx(0.2)

    def test_completed_exercise_decays(self):
        """Completed exercise starts at 20% and fades over 4 h."""
        event = ExerciseEvent(timestamp=NOW - timedelta(hours=1), phase="completed")
        assert exercise_speedup(event, NOW) == pytest.approx(0.15)
        assert exercise_speedup(event, NOW + timedelta(hours=3)) == 0.0

    def test_exercise_needs_evaluation_time(self):
        event = ExerciseEvent(timestamp=NOW, phase="completed")
        assert exercise_speedup(event, None) == 0.0

    def test_daily_modifiers_apply(self, profile):
        """Sleep debt, stress and exercise all reach the half-life."""
        exercise = ExerciseEvent(timestamp=NOW - timedelta(hours=1), phase="completed")
        half_life = calculate_half_life(
            profile,
            sleep_debt_hours=2.0,
            stress_level=6,
            exercise=exercise,
            at=NOW,
        )
        assert half_life == pytest.approx(5.0 * 1.125 * 1.12 * 0.85)


class TestClamp:
    """Tests for the configured half-life bounds."""

    def test_extreme_slow_clamped_to_max(self):
        """Every slowing modifier at its extreme stays within bounds."""
        profile = make_profile(
            age=120,
            sex="female",
            pregnant=True,
            oral_contraceptives=None,
            fluvoxamine=True,
            metabolism_rate="very_slow",
        )
        for strategy in (CRASH_RISK_HALF_LIFE, CAFF_SCORE_HALF_LIFE):
            half_life = calculate_half_life(
                profile, strategy, sleep_debt_hours=12, stress_level=10
            )
            assert half_life == pytest.approx(15.0)

    def test_extreme_fast_clamped_to_min(self):
        """Every speeding modifier at its extreme stays within bounds."""
        profile = make_profile(smoker=True, metabolism_rate="very_fast")
        exercise = ExerciseEvent(timestamp=NOW, phase="completed")
        half_life = calculate_half_life(profile, exercise=exercise, at=NOW)
        assert half_life == pytest.approx(2.0)

    def test_explicit_bounds(self):
        """Callers may pass their own clamp, e.g. the wider 24 h ceiling."""
        profile = make_profile(fluvoxamine=True)
        assert calculate_half_life(profile, max_hours=24.0) == pytest.approx(24.0)
        assert calculate_half_life(profile, max_hours=60.0) == pytest.approx(40.0)

    def test_settings_bounds(self, monkeypatch, profile):
        """Bounds default to the configured settings."""
        monkeypatch.setattr(settings, "half_life_min_hours", 6.0)
        assert calculate_half_life(profile) == pytest.approx(6.0)
