# -*- coding: utf-8 -*-
"""
Derived-metrics calculator.

Daily calorie and macro targets from the Mifflin-St Jeor equation, plus
weight-goal progress helpers. Every function here is pure and total over its
domain: missing or non-positive inputs fall back to conservative defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

from ..ledger.models import (
    ActivityLevel,
    ActivityType,
    ExperienceLevel,
    Goal,
    OnboardingProfile,
    Sex,
    WeightSample,
)
from .models import MacroSplit, NutritionTargets

DEFAULT_SEX = Sex.male
DEFAULT_AGE = 30
DEFAULT_WEIGHT_KG = 70.0
DEFAULT_HEIGHT_CM = 170.0
DEFAULT_ACTIVITY_LEVEL = ActivityLevel.moderate
DEFAULT_ACTIVITY_TYPE = ActivityType.mixed
DEFAULT_GOAL = Goal.maintain_weight
DEFAULT_WEEKLY_RATE = 0.5

ACTIVITY_MULTIPLIERS = {
    ActivityLevel.sedentary: 1.2,
    ActivityLevel.moderate: 1.375,
    ActivityLevel.active: 1.55,
}
UNKNOWN_ACTIVITY_MULTIPLIER = 1.2

KCAL_PER_KG = 7700
MIN_DAILY_CALORIES = 1200
MAX_DAILY_CALORIES = 3000
MIN_CARBS_G = 50
MAX_PROTEIN_G_PER_KG = 2.2


def round_half_up(value: float) -> int:
    """Round halves towards +inf (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def age_on(birth_date: Optional[date], on: Optional[date] = None) -> Optional[int]:
    if birth_date is None:
        return None
    on = on or date.today()
    years = on.year - birth_date.year
    if (on.month, on.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def _positive(value: Optional[float], default: float) -> float:
    if value is None or value <= 0:
        return default
    return float(value)


@dataclass(frozen=True)
class ResolvedInputs:
    sex: Sex
    age: int
    weight: float
    height: float
    activity_level: Optional[ActivityLevel]
    activity_type: ActivityType
    goal: Optional[Goal]
    experience_level: Optional[ExperienceLevel]
    target_weight: float
    weekly_rate: float


def resolve_inputs(
    profile: Optional[OnboardingProfile],
    current_weight: Optional[float],
    *,
    on: Optional[date] = None,
) -> ResolvedInputs:
    p = profile
    weight = _positive(current_weight, _positive(p.weight if p else None, DEFAULT_WEIGHT_KG))
    age = age_on(p.birth_date if p else None, on)
    return ResolvedInputs(
        sex=(p.sex if p and p.sex else DEFAULT_SEX),
        age=age if age and age > 0 else DEFAULT_AGE,
        weight=weight,
        height=_positive(p.height if p else None, DEFAULT_HEIGHT_CM),
        activity_level=(p.activity_level if p and p.activity_level else DEFAULT_ACTIVITY_LEVEL),
        activity_type=(p.activity_type if p and p.activity_type else DEFAULT_ACTIVITY_TYPE),
        goal=(p.goal if p and p.goal else DEFAULT_GOAL),
        experience_level=p.experience_level if p else None,
        target_weight=_positive(p.target_weight if p else None, weight),
        weekly_rate=_positive(p.weekly_rate if p else None, DEFAULT_WEEKLY_RATE),
    )


def basal_metabolic_rate(inputs: ResolvedInputs) -> float:
    base = 10 * inputs.weight + 6.25 * inputs.height - 5 * inputs.age
    return base + 5 if inputs.sex == Sex.male else base - 161


def _goal_adjustment(inputs: ResolvedInputs) -> int:
    weekly_delta = round_half_up(inputs.weekly_rate * KCAL_PER_KG / 7)
    if inputs.goal == Goal.lose_weight:
        return -weekly_delta
    if inputs.goal == Goal.gain_weight:
        return weekly_delta
    if inputs.goal == Goal.build_muscle:
        if inputs.target_weight < inputs.weight:
            return -250
        return 200 if inputs.experience_level == ExperienceLevel.beginner else 150
    return 0


def compute_daily_calories(
    profile: Optional[OnboardingProfile],
    current_weight: Optional[float],
    *,
    on: Optional[date] = None,
) -> int:
    inputs = resolve_inputs(profile, current_weight, on=on)
    multiplier = ACTIVITY_MULTIPLIERS.get(inputs.activity_level, UNKNOWN_ACTIVITY_MULTIPLIER)
    tdee = round_half_up(basal_metabolic_rate(inputs) * multiplier)
    calories = tdee + _goal_adjustment(inputs)
    return max(MIN_DAILY_CALORIES, min(MAX_DAILY_CALORIES, calories))


def compute_daily_macros(
    profile: Optional[OnboardingProfile],
    current_weight: Optional[float],
    daily_calories: int,
    *,
    on: Optional[date] = None,
) -> MacroSplit:
    inputs = resolve_inputs(profile, current_weight, on=on)
    if inputs.goal == Goal.lose_weight:
        protein_per_kg, fat_ratio = 2.0, 0.25
    elif inputs.goal == Goal.build_muscle:
        protein_per_kg, fat_ratio = 1.8, 0.25
    else:
        protein_per_kg, fat_ratio = 1.6, 0.30
    if inputs.activity_type in (ActivityType.anaerobic, ActivityType.mixed):
        protein_per_kg += 0.2

    protein = min(
        round_half_up(inputs.weight * protein_per_kg),
        round_half_up(inputs.weight * MAX_PROTEIN_G_PER_KG),
    )
    fat = round_half_up(daily_calories * fat_ratio / 9)
    carbs = max(round_half_up((daily_calories - protein * 4 - fat * 9) / 4), MIN_CARBS_G)
    return {"protein_g": protein, "carbs_g": carbs, "fat_g": fat}


def compute_targets(
    profile: Optional[OnboardingProfile],
    current_weight: Optional[float],
    *,
    on: Optional[date] = None,
) -> NutritionTargets:
    calories = compute_daily_calories(profile, current_weight, on=on)
    macros = compute_daily_macros(profile, current_weight, calories, on=on)
    return NutritionTargets(calories=calories, **macros)


# ---------------- weight goal ----------------


def compute_goal_progress(
    current: Optional[float],
    start: Optional[float],
    target: Optional[float],
) -> float:
    """Percentage of the start→target distance covered, clamped to [0, 100]."""
    if not current or start is None or target is None or start == target:
        return 0.0
    total = abs(start - target)
    remaining = abs(current - target)
    return min(100.0, max(0.0, (total - remaining) / total * 100))


def compute_weight_change(
    current: Optional[float],
    history: Iterable[WeightSample],
) -> Tuple[str, float]:
    samples: List[WeightSample] = sorted(history, key=lambda s: s.timestamp, reverse=True)
    if not current or len(samples) < 2:
        return "none", 0.0
    diff = current - samples[1].weight
    direction = "up" if diff > 0 else "down" if diff < 0 else "none"
    return direction, round(abs(diff), 1)


def weeks_to_goal(
    current: Optional[float],
    target: Optional[float],
    weekly_rate: Optional[float],
) -> Optional[int]:
    if not weekly_rate or weekly_rate <= 0 or current is None:
        return None
    target = current if target is None else target
    return abs(round_half_up((current - target) / weekly_rate))


def body_mass_index(weight: Optional[float], height_cm: Optional[float]) -> Optional[float]:
    if not weight or not height_cm or weight <= 0 or height_cm <= 0:
        return None
    height_m = height_cm / 100
    return round(weight / (height_m * height_m), 1)
