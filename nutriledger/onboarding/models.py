# -*- coding: utf-8 -*-
"""Onboarding — Pydantic request/response models."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..ledger.models import (
    ActivityLevel,
    ActivityType,
    ExperienceLevel,
    Goal,
    OnboardingProfile,
    Sex,
    normalize_birth_date,
)


class OnboardingAnswers(BaseModel):
    """Questionnaire answers as submitted; completeness is checked separately."""

    goal: Optional[Goal] = None
    birth_date: Optional[date] = None
    sex: Optional[Sex] = None
    height: Optional[float] = Field(None, gt=0, le=300)
    weight: Optional[float] = Field(None, gt=0, le=500)
    activity_level: Optional[ActivityLevel] = None
    activity_type: Optional[ActivityType] = None
    experience_level: Optional[ExperienceLevel] = None
    target_weight: Optional[float] = Field(None, gt=0, le=500)
    weekly_rate: Optional[float] = Field(None, gt=0, le=2)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _coerce_birth_date(cls, value: object) -> Optional[date]:
        return normalize_birth_date(value)


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    onboarding: OnboardingAnswers


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class UserPublic(BaseModel):
    id: str
    email: str
    created_at: str


class AuthResponse(BaseModel):
    user: UserPublic
    token: str
    profile: Optional[OnboardingProfile] = None


class ProfileFieldUpdate(BaseModel):
    field: str
    value: Any = None


class ProfileResponse(BaseModel):
    profile: OnboardingProfile
    age: Optional[int] = None
    current_weight: Optional[float] = None


def missing_fields(answers: OnboardingAnswers) -> Dict[str, str]:
    """Fields a completed questionnaire must carry for the chosen goal."""
    errors: Dict[str, str] = {}
    for name in ("goal", "birth_date", "sex", "height", "weight", "activity_level", "activity_type"):
        if getattr(answers, name) is None:
            errors[name] = "required"
    if answers.goal in (Goal.lose_weight, Goal.gain_weight):
        for name in ("target_weight", "weekly_rate"):
            if getattr(answers, name) is None:
                errors[name] = f"required for {answers.goal.value}"
    if answers.goal == Goal.build_muscle and answers.experience_level is None:
        errors["experience_level"] = "required for build_muscle"
    return errors
