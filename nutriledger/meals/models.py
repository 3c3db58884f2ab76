# -*- coding: utf-8 -*-
"""Meals — Pydantic models for drafts, products and API payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..ledger.models import Ingredient, MealFact
from ..progress.models import DaySummary


class MealDraft(BaseModel):
    """An unsaved meal from photo analysis, a barcode scan or manual entry."""

    name: str = ""
    calories: float = Field(0.0, ge=0)
    protein_g: float = Field(0.0, ge=0)
    carbs_g: float = Field(0.0, ge=0)
    fat_g: float = Field(0.0, ge=0)
    brand: Optional[str] = None
    image_url: Optional[str] = None
    portion_size: Optional[float] = Field(None, gt=0)
    portion_unit: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)

    @field_validator("calories", "protein_g", "carbs_g", "fat_g", mode="before")
    @classmethod
    def _none_as_zero(cls, value: object) -> object:
        return 0.0 if value is None else value


class ProductFacts(BaseModel):
    """Product lookup result; nutrient values are per 100 g."""

    barcode: str
    name: str = ""
    brand: Optional[str] = None
    image_url: Optional[str] = None
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0


class AnalyzeRequest(BaseModel):
    image_base64: str = Field(..., min_length=1)
    description: str = ""
    request_id: Optional[str] = Field(None, description="Client id used to abandon the job")


class SaveMealRequest(BaseModel):
    draft: MealDraft
    timestamp: Optional[datetime] = None


class ScalePortionRequest(BaseModel):
    draft: MealDraft
    base_size: float = Field(100.0, gt=0)
    size: float = Field(..., gt=0)


class RescaleRequest(BaseModel):
    draft: MealDraft
    ingredients: List[Ingredient]


class MealsForDayResponse(BaseModel):
    date: date
    meals: List[MealFact]
    summary: DaySummary
