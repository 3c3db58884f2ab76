# -*- coding: utf-8 -*-
"""Nutrition — Pydantic models for targets and manual overrides."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class NutritionTargets(BaseModel):
    calories: int = Field(..., ge=0, description="kcal/day")
    protein_g: int = Field(..., ge=0)
    carbs_g: int = Field(..., ge=0)
    fat_g: int = Field(..., ge=0)


# Served when no profile has been loaded yet.
FALLBACK_TARGETS = NutritionTargets(calories=2000, protein_g=120, carbs_g=200, fat_g=70)


class CustomNutrition(BaseModel):
    """A manual target row; field names follow the ``custom_nutrition`` table."""

    calories: float = Field(..., ge=1000, le=5000)
    protein: float = Field(..., ge=20, le=300)
    carbs: float = Field(..., ge=20, le=500)
    fat: float = Field(..., ge=20, le=200)

    def to_targets(self) -> NutritionTargets:
        return NutritionTargets(
            calories=int(round(self.calories)),
            protein_g=int(round(self.protein)),
            carbs_g=int(round(self.carbs)),
            fat_g=int(round(self.fat)),
        )

    @classmethod
    def from_targets(cls, targets: NutritionTargets) -> "CustomNutrition":
        return cls(
            calories=targets.calories,
            protein=targets.protein_g,
            carbs=targets.carbs_g,
            fat=targets.fat_g,
        )


class TargetSnapshot(BaseModel):
    targets: Optional[NutritionTargets] = None
    manually_edited: bool = False


class NutritionOverrideRequest(BaseModel):
    calories: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None


class NutritionStateResponse(BaseModel):
    targets: NutritionTargets
    manually_edited: bool
    source: str = Field(..., description="calculated | override | fallback")


MacroSplit = Dict[str, int]
