# -*- coding: utf-8 -*-
"""Progress — chart buckets, daily summaries and goal progress models."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TimeRange(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    six_months = "6months"
    year = "year"


class Bucket(BaseModel):
    timestamp: datetime = Field(..., description="Bucket start, local wall time")
    value: float = 0.0


class DaySummary(BaseModel):
    date: date
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    meal_count: int = 0


class ChartResponse(BaseModel):
    range: TimeRange
    reference_date: date
    metric: str
    start: datetime
    end: datetime
    buckets: List[Bucket]


class NavigationResponse(BaseModel):
    range: TimeRange
    reference_date: date
    moved: bool


class GoalProgressResponse(BaseModel):
    start_weight: Optional[float] = None
    current_weight: Optional[float] = None
    target_weight: Optional[float] = None
    progress_percent: float = 0.0
    change_direction: str = "none"
    change_amount: float = 0.0
    weeks_to_goal: Optional[int] = None
    bmi: Optional[float] = None
