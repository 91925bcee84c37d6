"""Tests for the factor engine."""

from datetime import timedelta

import pytest

from jitter_engine.schemas import ExerciseEvent
from jitter_engine.services.factors import (
    CAFF_SCORE_CIRCADIAN,
    CAFF_SCORE_TOLERANCE,
    CRASH_RISK_CIRCADIAN,
    CRASH_RISK_TOLERANCE,
    FoodTiming,
    absorption_factor,
    anxiety_risk_factor,
    average_rising_rate,
    caffeine_sensitivity_factor,
    current_level_factor,
    delta_factor,
    exercise_factor,
    focus_capacity,
    food_timing,
    is_sustained_plateau,
    metabolic_factor,
    rising_rate_factor,
    sleep_debt_factor,
    sleep_debt_hours,
    stress_factor,
    tolerance_factor,
)
from jitter_engine.services.pharmacokinetics import current_level, peak_level
from tests.conftest import NOW, make_drink, make_profile


class TestDeltaFactor:
    """Tests for the drop-from-peak factor."""

    def test_drop_from_peak(self):
        assert delta_factor(87.06, 200.0) == pytest.approx(0.5647, abs=0.001)

    def test_no_peak_means_no_risk(self):
        """A near-zero peak is forced to 0."""
        assert delta_factor(0.0, 0.0) == 0.0
        assert delta_factor(0.0, 1e-7) == 0.0

    def test_at_peak(self):
        assert delta_factor(150.0, 150.0) == 0.0


class TestSleepDebt:
    """Tests for sleep debt hours and factor."""

    def test_unknown_sleep_is_no_debt(self, profile):
        """Unknown last-night sleep counts as the 7.5 h baseline."""
        assert sleep_debt_hours(profile, None, NOW) == 0.0

    def test_new_profile_uses_baseline(self):
        """Under 7 days of history the ideal is 7.5 h, not the average."""
        profile = make_profile(created_at=NOW - timedelta(days=2), average_sleep_7_days=9.0)
        assert sleep_debt_hours(profile, 5.5, NOW) == pytest.approx(2.0)

    def test_established_profile_uses_average(self):
        """Once 7 days old, the rolling average is the ideal."""
        profile = make_profile(average_sleep_7_days=8.0)
        assert sleep_debt_hours(profile, 5.0, NOW) == pytest.approx(3.0)

    def test_zero_average_falls_back_to_baseline(self):
        profile = make_profile(average_sleep_7_days=0.0)
        assert sleep_debt_hours(profile, 6.5, NOW) == pytest.approx(1.0)

    def test_oversleeping_is_no_debt(self, profile):
        assert sleep_debt_hours(profile, 10.0, NOW) == 0.0

    @pytest.mark.parametrize(
        "hours,expected", [(0.0, 0.0), (1.5, 0.5), (3.0, 1.0), (6.0, 1.0)]
    )
    def test_factor_saturates_at_three_hours(self, hours, expected):
        assert sleep_debt_factor(hours) == pytest.approx(expected)

    def test_factor_monotonic_in_sleep(self, profile):
        """Less sleep never lowers the sleep debt factor."""
        values = [
            sleep_debt_factor(sleep_debt_hours(profile, hours, NOW))
            for hours in (8.0, 7.0, 6.0, 5.0, 4.0, 3.0)
        ]
        assert values == sorted(values)


class TestToleranceFactor:
    """Tests for both tolerance weightings."""

    def test_crash_risk_ratio(self):
        """140 mg/day at 70 kg is half the moderate-intake baseline."""
        profile = make_profile(mean_daily_caffeine_mg=140)
        assert tolerance_factor(profile, CRASH_RISK_TOLERANCE) == pytest.approx(0.5)

    def test_caff_score_mapping(self):
        """CaffScore maps the same ratio into [0.3, 1]."""
        profile = make_profile(mean_daily_caffeine_mg=140)
        assert tolerance_factor(profile, CAFF_SCORE_TOLERANCE) == pytest.approx(0.65)

    def test_light_user(self):
        """No habitual intake: zero crash tolerance, CaffScore floor 0.3."""
        profile = make_profile(mean_daily_caffeine_mg=0)
        assert tolerance_factor(profile, CRASH_RISK_TOLERANCE) == 0.0
        assert tolerance_factor(profile, CAFF_SCORE_TOLERANCE) == pytest.approx(0.3)

    def test_heavy_user_clamped(self):
        profile = make_profile(mean_daily_caffeine_mg=600)
        assert tolerance_factor(profile, CRASH_RISK_TOLERANCE) == 1.0
        assert tolerance_factor(profile, CAFF_SCORE_TOLERANCE) == 1.0

    def test_weightings_differ(self):
        """The two weightings are distinct tuning decisions."""
        profile = make_profile(mean_daily_caffeine_mg=100, smoker=True)
        crash = tolerance_factor(profile, CRASH_RISK_TOLERANCE)
        focus = tolerance_factor(profile, CAFF_SCORE_TOLERANCE)
        # 100/280 * 1.6 and (100/280 * 1.5) * 0.7 + 0.3
        assert crash == pytest.approx(100 / 280 * 1.6)
        assert focus == pytest.approx(100 / 280 * 1.5 * 0.7 + 0.3)

    def test_medication_and_metabolism(self):
        profile = make_profile(
            mean_daily_caffeine_mg=140, fluvoxamine=True, metabolism_rate="very_fast"
        )
        assert tolerance_factor(profile) == pytest.approx(0.5 * 0.7 * 1.15)


class TestCircadian:
    """Tests for the two circadian tables."""

    @pytest.mark.parametrize(
        "hour,expected",
        [(23, 1.0), (3, 1.0), (7, 0.6), (12, 0.4), (18, 0.7)],
    )
    def test_crash_risk_table(self, hour, expected):
        at = NOW.replace(hour=hour)
        assert CRASH_RISK_CIRCADIAN(at) == expected

    @pytest.mark.parametrize(
        "hour,minute,expected",
        [
            (10, 0, 1.0),
            (14, 0, 0.9),
            (7, 30, 0.7),
            (16, 0, 0.8),
            (20, 0, 0.6),
            (23, 0, 0.4),
            (3, 0, 0.4),
            (12, 0, 0.7),
        ],
    )
    def test_caff_score_table(self, hour, minute, expected):
        at = NOW.replace(hour=hour, minute=minute)
        assert CAFF_SCORE_CIRCADIAN(at) == expected


class TestMetabolicFactor:
    def test_sex_modifier(self):
        assert metabolic_factor(make_profile()) == 0.95
        assert metabolic_factor(
            make_profile(sex="female", pregnant=False, oral_contraceptives=False)
        ) == 1.05


class TestCurrentLevelFactor:
    """Tests for the focus current-level factor."""

    @pytest.mark.parametrize(
        "current,expected",
        [
            (0.0, 0.0),
            (250.0, 1.0),
            (300.0, 0.875),
            (400.0, 0.625),
            (500.0, 0.15),
        ],
    )
    def test_against_default_threshold(self, current, expected):
        """Without habitual intake the threshold is 200 mg."""
        assert current_level_factor(current, 0.0) == pytest.approx(expected)

    def test_uses_mean_daily_intake(self):
        assert current_level_factor(125.0, 100.0) == pytest.approx(1.0)


class TestRisingRate:
    """Tests for the rising-rate factor."""

    @pytest.mark.parametrize(
        "rate,expected",
        [(0.0, 0.3), (1.0, 0.5), (3.5, 0.85), (5.0, 1.0), (7.0, 0.3), (20.0, 0.1)],
    )
    def test_rising(self, rate, expected):
        assert rising_rate_factor(rate) == pytest.approx(expected)

    def test_decline_penalized(self):
        assert rising_rate_factor(-1.0) == pytest.approx(0.4)
        assert rising_rate_factor(-10.0) == pytest.approx(0.2)

    def test_slow_decline_rewarded_in_plateau(self):
        assert rising_rate_factor(-0.3, in_plateau=True) == pytest.approx(0.8)
        assert rising_rate_factor(-1.5, in_plateau=True) == pytest.approx(0.6)
        assert rising_rate_factor(-5.0, in_plateau=True) == pytest.approx(0.5)

    def test_average_rate_rising_after_drink(self):
        """Absorbed activity rises while a fresh drink is absorbed."""
        assert average_rising_rate([make_drink(25, 200)], 5.0, NOW) > 0

    def test_average_rate_empty_ledger(self):
        assert average_rising_rate([], 5.0, NOW) == 0.0


class TestSustainedPlateau:
    """Tests for the sustained focus plateau detector."""

    def test_plateau_two_hours_after_drink(self):
        drinks = [make_drink(120, 100)]
        current = current_level(drinks, 5.0, NOW)
        peak = peak_level(drinks, 5.0, NOW)
        assert is_sustained_plateau(drinks, current, peak, NOW) is True

    def test_too_soon_after_drink(self):
        drinks = [make_drink(10, 100)]
        current = current_level(drinks, 5.0, NOW)
        assert is_sustained_plateau(drinks, current, current, NOW) is False

    def test_small_drinks_ignored(self):
        drinks = [make_drink(120, 20)]
        assert is_sustained_plateau(drinks, 20.0, 20.0, NOW) is False

    def test_level_too_far_below_peak(self):
        drinks = [make_drink(120, 100)]
        assert is_sustained_plateau(drinks, 50.0, 100.0, NOW) is False

    def test_window_measured_from_consumption_start(self):
        """Sipping time does not delay the plateau window."""
        drinks = [make_drink(40, 100, consumption_duration=timedelta(minutes=30))]
        assert is_sustained_plateau(drinks, 95.0, 100.0, NOW) is True

    def test_window_closes_four_hours_after_start(self):
        drinks = [make_drink(245, 100, consumption_duration=timedelta(minutes=30))]
        assert is_sustained_plateau(drinks, 60.0, 100.0, NOW) is False

    def test_food_stretches_window(self):
        drinks = [make_drink(260, 200)]
        assert is_sustained_plateau(drinks, 120.0, 150.0, NOW) is False
        assert is_sustained_plateau(drinks, 120.0, 150.0, NOW, duration_multiplier=1.3) is True


class TestStressFactor:
    @pytest.mark.parametrize(
        "level,expected",
        [(None, 0.7), (1, 1.0), (3, 0.9), (6, 0.6), (8, 0.45), (10, 0.3)],
    )
    def test_piecewise_decline(self, level, expected):
        assert stress_factor(level) == pytest.approx(expected)


class TestFoodTiming:
    """Tests for meal-driven absorption and duration."""

    def test_no_meals(self):
        assert food_timing([], NOW) == FoodTiming(absorption=1.0, duration=1.0)

    def test_recent_meal(self):
        timing = food_timing([NOW - timedelta(minutes=10)], NOW)
        assert timing.absorption == pytest.approx(0.7)
        assert timing.duration == pytest.approx(1.3)

    def test_meal_an_hour_ago(self):
        timing = food_timing([NOW - timedelta(hours=1)], NOW)
        assert timing.absorption == pytest.approx(0.825)
        assert timing.duration == pytest.approx(1.2)

    def test_old_and_future_meals_ignored(self):
        meals = [NOW - timedelta(hours=5), NOW + timedelta(minutes=30)]
        assert food_timing(meals, NOW) == FoodTiming()

    def test_meals_compound(self):
        meals = [NOW - timedelta(minutes=10), NOW - timedelta(minutes=20)]
        timing = food_timing(meals, NOW)
        assert timing.absorption == pytest.approx(0.49)
        assert timing.duration == pytest.approx(1.69)

    def test_compounding_bounded(self):
        meals = [NOW - timedelta(minutes=m) for m in (5, 10, 15)]
        timing = food_timing(meals, NOW)
        assert timing.absorption == pytest.approx(0.4)
        assert timing.duration == pytest.approx(1.8)


class TestExerciseFactor:
    def test_absent(self):
        assert exercise_factor(None, NOW) == 1.0

    def test_starting(self):
        event = ExerciseEvent(timestamp=NOW - timedelta(minutes=15), phase="starting")
        assert exercise_factor(event, NOW) == pytest.approx(1.05)
        assert exercise_factor(event, NOW + timedelta(minutes=45)) == pytest.approx(1.1)

    def test_completed(self):
        event = ExerciseEvent(timestamp=NOW - timedelta(minutes=10), phase="completed")
        assert exercise_factor(event, NOW) == pytest.approx(1.2)
        assert exercise_factor(event, NOW + timedelta(hours=5)) == 1.0


class TestSensitivityAndAnxiety:
    @pytest.mark.parametrize(
        "debt,expected", [(0.0, 1.0), (0.5, 1.0), (1.0, 1.1), (2.0, 1.25), (4.0, 1.5)]
    )
    def test_sensitivity_tiers(self, debt, expected):
        assert caffeine_sensitivity_factor(debt) == expected

    def test_anxiety_needs_stress_and_caffeine(self):
        assert anxiety_risk_factor(None, 300.0) == 1.0
        assert anxiety_risk_factor(5, 300.0) == 1.0
        assert anxiety_risk_factor(9, 100.0) == 1.0

    def test_anxiety_penalty(self):
        assert anxiety_risk_factor(8, 175.0) == pytest.approx(0.91)
        assert anxiety_risk_factor(10, 400.0) == pytest.approx(0.7)


class TestFocusAndAbsorption:
    def test_focus_capacity_best_case(self):
        assert focus_capacity(0.0, 1.0, 30) == pytest.approx(1.0)

    def test_focus_capacity_poor_case(self):
        assert focus_capacity(1.0, 0.4, 65) == pytest.approx(0.32)

    def test_absorption_factor(self):
        assert absorption_factor(100.0) == pytest.approx(0.5)
        assert absorption_factor(300.0) == 1.0
        assert absorption_factor(0.0) == 0.0
