# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta

from nutriledger.ledger.models import OnboardingProfile, WeightSample
from nutriledger.nutrition.calculator import (
    MAX_DAILY_CALORIES,
    MIN_DAILY_CALORIES,
    age_on,
    body_mass_index,
    compute_daily_calories,
    compute_daily_macros,
    compute_goal_progress,
    compute_targets,
    compute_weight_change,
    round_half_up,
    weeks_to_goal,
)

ON = date(2024, 6, 1)


def _profile(**overrides) -> OnboardingProfile:
    values = {
        "user_id": "u1",
        "goal": "maintain_weight",
        "birth_date": date(1994, 6, 1),
        "sex": "male",
        "height": 180.0,
        "weight": 80.0,
        "activity_level": "moderate",
        "activity_type": "mixed",
    }
    values.update(overrides)
    return OnboardingProfile(**values)


class TestRounding(unittest.TestCase):
    def test_half_rounds_up(self) -> None:
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(-2.5), -2)
        self.assertEqual(round_half_up(2.49), 2)

    def test_age_is_derived_at_call_time(self) -> None:
        born = date(1994, 6, 2)
        self.assertEqual(age_on(born, date(2024, 6, 1)), 29)
        self.assertEqual(age_on(born, date(2024, 6, 2)), 30)
        self.assertIsNone(age_on(None, ON))


class TestDailyCalories(unittest.TestCase):
    def test_maintenance_male(self) -> None:
        # BMR 1780 * 1.375 = 2447.5
        self.assertEqual(compute_daily_calories(_profile(), 80.0, on=ON), 2448)

    def test_macros_for_maintenance(self) -> None:
        macros = compute_daily_macros(_profile(), 80.0, 2448, on=ON)
        self.assertEqual(macros, {"protein_g": 144, "carbs_g": 284, "fat_g": 82})

    def test_loss_goal_is_below_maintenance(self) -> None:
        base = {
            "sex": "female",
            "birth_date": date(1994, 6, 1),
            "height": 165.0,
            "weight": 70.0,
            "activity_level": "moderate",
            "weekly_rate": 0.5,
        }
        losing = compute_daily_calories(_profile(goal="lose_weight", **base), 70.0, on=ON)
        maintaining = compute_daily_calories(_profile(goal="maintain_weight", **base), 70.0, on=ON)
        self.assertEqual(maintaining, 1953)
        self.assertEqual(losing, 1403)
        self.assertLess(losing, maintaining)

    def test_calories_are_clamped(self) -> None:
        low = _profile(
            sex="female",
            height=150.0,
            weight=45.0,
            activity_level="sedentary",
            goal="lose_weight",
            weekly_rate=1.0,
        )
        self.assertEqual(compute_daily_calories(low, 45.0, on=ON), MIN_DAILY_CALORIES)

        high = _profile(
            birth_date=date(2004, 6, 1),
            height=200.0,
            activity_level="active",
            goal="gain_weight",
            weekly_rate=1.0,
        )
        self.assertEqual(compute_daily_calories(high, 150.0, on=ON), MAX_DAILY_CALORIES)

    def test_current_weight_supersedes_profile_weight(self) -> None:
        profile = _profile(weight=80.0)
        self.assertNotEqual(
            compute_daily_calories(profile, 90.0, on=ON),
            compute_daily_calories(profile, 80.0, on=ON),
        )
        self.assertEqual(
            compute_daily_calories(profile, None, on=ON),
            compute_daily_calories(profile, 80.0, on=ON),
        )

    def test_missing_fields_use_defaults(self) -> None:
        bare = OnboardingProfile(user_id="u1", height=0.0)
        targets = compute_targets(bare, None, on=ON)
        self.assertGreaterEqual(targets.calories, MIN_DAILY_CALORIES)
        self.assertGreater(targets.protein_g, 0)
        self.assertGreaterEqual(targets.carbs_g, 50)
        self.assertEqual(compute_targets(None, None, on=ON), targets)

    def test_every_enum_combination_is_numeric(self) -> None:
        for goal in ("lose_weight", "gain_weight", "maintain_weight", "build_muscle"):
            for sex in ("male", "female", "other"):
                for level in ("sedentary", "moderate", "active"):
                    for kind in ("aerobic", "anaerobic", "mixed"):
                        for experience in ("beginner", "advanced", None):
                            profile = _profile(
                                goal=goal,
                                sex=sex,
                                activity_level=level,
                                activity_type=kind,
                                experience_level=experience,
                                target_weight=75.0,
                                weekly_rate=0.5,
                            )
                            targets = compute_targets(profile, 80.0, on=ON)
                            self.assertGreaterEqual(targets.calories, MIN_DAILY_CALORIES)
                            self.assertLessEqual(targets.calories, MAX_DAILY_CALORIES)

    def test_build_muscle_surplus_depends_on_experience(self) -> None:
        beginner = _profile(goal="build_muscle", experience_level="beginner", target_weight=85.0)
        advanced = _profile(goal="build_muscle", experience_level="advanced", target_weight=85.0)
        cutting = _profile(goal="build_muscle", experience_level="beginner", target_weight=75.0)
        self.assertEqual(compute_daily_calories(beginner, 80.0, on=ON), 2448 + 200)
        self.assertEqual(compute_daily_calories(advanced, 80.0, on=ON), 2448 + 150)
        self.assertEqual(compute_daily_calories(cutting, 80.0, on=ON), 2448 - 250)

    def test_pure(self) -> None:
        profile = _profile(goal="lose_weight", weekly_rate=0.75)
        self.assertEqual(compute_targets(profile, 82.5, on=ON), compute_targets(profile, 82.5, on=ON))


class TestGoalMetrics(unittest.TestCase):
    def test_goal_progress(self) -> None:
        self.assertEqual(compute_goal_progress(85.0, 90.0, 80.0), 50.0)
        self.assertEqual(compute_goal_progress(95.0, 90.0, 80.0), 0.0)
        self.assertEqual(compute_goal_progress(80.0, 90.0, 80.0), 100.0)
        self.assertEqual(compute_goal_progress(78.0, 90.0, 80.0), 80.0)
        self.assertEqual(compute_goal_progress(80.0, 80.0, 80.0), 0.0)
        self.assertEqual(compute_goal_progress(None, 90.0, 80.0), 0.0)

    def test_weight_change_against_previous_sample(self) -> None:
        now = datetime(2024, 6, 1, 8, 0)
        samples = [
            WeightSample(id="a", user_id="u1", weight=82.0, timestamp=now - timedelta(days=2)),
            WeightSample(id="b", user_id="u1", weight=81.25, timestamp=now),
        ]
        self.assertEqual(compute_weight_change(81.25, samples), ("down", 0.8))
        self.assertEqual(compute_weight_change(81.25, samples[:1]), ("none", 0.0))

    def test_weeks_to_goal_and_bmi(self) -> None:
        self.assertEqual(weeks_to_goal(85.0, 80.0, 0.5), 10)
        self.assertIsNone(weeks_to_goal(85.0, 80.0, None))
        self.assertEqual(body_mass_index(80.0, 200.0), 20.0)
        self.assertIsNone(body_mass_index(80.0, 0))


if __name__ == "__main__":
    unittest.main()
