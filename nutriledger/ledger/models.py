# -*- coding: utf-8 -*-
"""Ledger — Pydantic models for persisted facts and their row mappings."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Goal(str, Enum):
    lose_weight = "lose_weight"
    gain_weight = "gain_weight"
    maintain_weight = "maintain_weight"
    build_muscle = "build_muscle"


class Sex(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class ActivityLevel(str, Enum):
    sedentary = "sedentary"
    moderate = "moderate"
    active = "active"


class ActivityType(str, Enum):
    aerobic = "aerobic"
    anaerobic = "anaerobic"
    mixed = "mixed"


class ExperienceLevel(str, Enum):
    beginner = "beginner"
    advanced = "advanced"


def utc_iso(value: datetime) -> str:
    """Canonical storage form for timestamps. Naive values are local wall time."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.astimezone()


def normalize_birth_date(value: Any, *, today: Optional[date] = None) -> Optional[date]:
    """Persisted ``age`` shows up as a date, an ISO string, or a number of years."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    today = today or date.today()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        years = int(value)
        if years <= 0:
            return None
        try:
            return today.replace(year=today.year - years)
        except ValueError:
            # Feb 29 on a non-leap target year.
            return (today - timedelta(days=1)).replace(year=today.year - years)
    text = str(value).strip()
    if text.replace(".", "", 1).isdigit():
        return normalize_birth_date(float(text), today=today)
    try:
        return parse_ts(text).date() if "T" in text else date.fromisoformat(text[:10])
    except ValueError:
        return None


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return None


class OnboardingProfile(BaseModel):
    user_id: str
    goal: Optional[Goal] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None
    height: Optional[float] = Field(None, description="cm")
    weight: Optional[float] = Field(None, description="kg, informational only")
    activity_level: Optional[ActivityLevel] = None
    activity_type: Optional[ActivityType] = None
    experience_level: Optional[ExperienceLevel] = None
    target_weight: Optional[float] = Field(None, description="kg")
    weekly_rate: Optional[float] = Field(None, description="kg/week")
    created_at: Optional[str] = None

    @field_validator("birth_date", mode="before")
    @classmethod
    def _coerce_birth_date(cls, value: object) -> Optional[date]:
        return normalize_birth_date(value)

    @field_validator("goal", mode="before")
    @classmethod
    def _coerce_goal(cls, value: object) -> Any:
        return _coerce_enum(Goal, value)

    @field_validator("sex", mode="before")
    @classmethod
    def _coerce_sex(cls, value: object) -> Any:
        return _coerce_enum(Sex, value)

    @field_validator("activity_level", mode="before")
    @classmethod
    def _coerce_activity_level(cls, value: object) -> Any:
        return _coerce_enum(ActivityLevel, value)

    @field_validator("activity_type", mode="before")
    @classmethod
    def _coerce_activity_type(cls, value: object) -> Any:
        return _coerce_enum(ActivityType, value)

    @field_validator("experience_level", mode="before")
    @classmethod
    def _coerce_experience_level(cls, value: object) -> Any:
        return _coerce_enum(ExperienceLevel, value)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OnboardingProfile":
        return cls(
            user_id=row["user_id"],
            goal=row.get("goal"),
            birth_date=row.get("age"),
            sex=row.get("gender"),
            height=row.get("height"),
            weight=row.get("weight"),
            activity_level=row.get("activityLevel"),
            activity_type=row.get("activityType"),
            experience_level=row.get("experienceLevel"),
            target_weight=row.get("targetWeight"),
            weekly_rate=row.get("weeklyRate"),
            created_at=row.get("createdAt"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "goal": self.goal.value if self.goal else None,
            "age": self.birth_date.isoformat() if self.birth_date else None,
            "gender": self.sex.value if self.sex else None,
            "height": self.height,
            "weight": self.weight,
            "activityLevel": self.activity_level.value if self.activity_level else None,
            "activityType": self.activity_type.value if self.activity_type else None,
            "experienceLevel": self.experience_level.value if self.experience_level else None,
            "targetWeight": self.target_weight,
            "weeklyRate": self.weekly_rate,
            "createdAt": self.created_at,
        }


# API field name -> onboarding column
PROFILE_COLUMNS: Dict[str, str] = {
    "goal": "goal",
    "birth_date": "age",
    "sex": "gender",
    "height": "height",
    "weight": "weight",
    "activity_level": "activityLevel",
    "activity_type": "activityType",
    "experience_level": "experienceLevel",
    "target_weight": "targetWeight",
    "weekly_rate": "weeklyRate",
}


class WeightSample(BaseModel):
    id: str
    user_id: str
    weight: float = Field(..., gt=0)
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: object) -> datetime:
        return parse_ts(value)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "weight": self.weight,
            "timestamp": utc_iso(self.timestamp),
        }


class Ingredient(BaseModel):
    id: str
    name: str
    amount: float = Field(0.0, ge=0)
    unit: str = "g"
    # Per 100 units of amount.
    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None


class MealFact(BaseModel):
    id: str
    user_id: str
    name: str = ""
    calories: float = Field(0.0, ge=0)
    protein_g: float = Field(0.0, ge=0)
    carbs_g: float = Field(0.0, ge=0)
    fat_g: float = Field(0.0, ge=0)
    timestamp: datetime
    portion_size: Optional[float] = None
    portion_unit: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: object) -> datetime:
        return parse_ts(value)

    @field_validator("calories", "protein_g", "carbs_g", "fat_g", mode="before")
    @classmethod
    def _none_as_zero(cls, value: object) -> object:
        return 0.0 if value is None else value

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MealFact":
        raw_ingredients = row.get("ingredients_json") or "[]"
        try:
            ingredients = json.loads(raw_ingredients) if isinstance(raw_ingredients, str) else raw_ingredients
        except ValueError:
            ingredients = []
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row.get("name") or "",
            calories=row.get("calories"),
            protein_g=row.get("protein_g"),
            carbs_g=row.get("carbs_g"),
            fat_g=row.get("fat_g"),
            timestamp=row["timestamp"],
            portion_size=row.get("portion_size"),
            portion_unit=row.get("portion_unit"),
            ingredients=ingredients or [],
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "timestamp": utc_iso(self.timestamp),
            "portion_size": self.portion_size,
            "portion_unit": self.portion_unit,
            "ingredients_json": json.dumps(
                [i.model_dump() for i in self.ingredients], ensure_ascii=False
            ),
        }
