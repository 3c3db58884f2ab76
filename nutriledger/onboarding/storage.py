# -*- coding: utf-8 -*-
"""Onboarding — profile persistence and the account signup saga."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Tuple
from uuid import uuid4

from pydantic import ValidationError

from ..errors import ValidationFailed
from ..identity.provider import IdentityProvider
from ..ledger.models import PROFILE_COLUMNS, OnboardingProfile, WeightSample, utc_iso
from ..ledger.repository import DualWriteRepository
from ..ledger.saga import Saga
from .models import OnboardingAnswers, missing_fields

logger = logging.getLogger(__name__)


def fetch_profile(repository: DualWriteRepository, user_id: str) -> Optional[OnboardingProfile]:
    row = repository.get_local("onboarding", user_id)
    return OnboardingProfile.from_row(row) if row else None


async def save_profile(
    repository: DualWriteRepository,
    profile: OnboardingProfile,
    *,
    await_remote: bool = False,
) -> OnboardingProfile:
    if not profile.created_at:
        profile = profile.model_copy(update={"created_at": utc_iso(datetime.now())})
    await repository.write("onboarding", profile.to_row(), await_remote=await_remote)
    return profile


async def update_field(
    repository: DualWriteRepository,
    user_id: str,
    field: str,
    value: Any,
) -> OnboardingProfile:
    column = PROFILE_COLUMNS.get(field)
    if column is None:
        raise ValidationFailed({field: "unknown profile field"})
    current = fetch_profile(repository, user_id)
    if current is None:
        raise ValidationFailed({"onboarding": "profile not found; complete onboarding first"})
    try:
        candidate = OnboardingAnswers.model_validate({field: value})
    except ValidationError as exc:
        raise ValidationFailed({field: exc.errors()[0].get("msg", "invalid value")}) from exc
    coerced = getattr(candidate, field)
    if coerced is None and value is not None:
        raise ValidationFailed({field: f"invalid value {value!r}"})
    updated = current.model_copy(update={field: coerced})
    await repository.update("onboarding", user_id, {column: updated.to_row()[column]})
    logger.info("Profile field %s updated for %s", field, user_id)
    return updated


def _profile_from_answers(user_id: str, answers: OnboardingAnswers, created_at: str) -> OnboardingProfile:
    return OnboardingProfile(user_id=user_id, created_at=created_at, **answers.model_dump())


async def register_with_onboarding(
    repository: DualWriteRepository,
    identity: IdentityProvider,
    *,
    email: str,
    password: str,
    answers: OnboardingAnswers,
    now: Optional[datetime] = None,
) -> Tuple[str, OnboardingProfile, WeightSample]:
    """
    Create the account and its first ledger rows as one unit.

    Steps: identity, local onboarding row, local initial weight sample, remote
    profile document, remote weight document. Any failure unwinds the
    committed steps in reverse order and raises ``PartialCommitError``.
    """
    errors = missing_fields(answers)
    if errors:
        raise ValidationFailed(errors, message="Onboarding is incomplete")

    now = now or datetime.now()
    created_at = utc_iso(now)
    saga = Saga("signup")

    user_id = await saga.run(
        "create_identity",
        lambda: identity.create_user(email, password),
        compensate=identity.delete_user,
    )
    profile = _profile_from_answers(user_id, answers, created_at)
    profile_row = profile.to_row()
    sample = WeightSample(id=str(uuid4()), user_id=user_id, weight=profile.weight, timestamp=now)
    sample_row = sample.to_row()

    await saga.run(
        "local_onboarding",
        lambda: repository.commit_local("onboarding", profile_row),
        compensate=lambda key: repository.delete_local("onboarding", key),
    )
    await saga.run(
        "local_weight",
        lambda: repository.commit_local("weight", sample_row),
        compensate=lambda key: repository.delete_local("weight", key),
    )
    await saga.run(
        "remote_profile",
        lambda: repository.commit_remote("onboarding", user_id, user_id, profile_row),
        compensate=lambda _: repository.delete_remote("onboarding", user_id, user_id),
    )
    await saga.run(
        "remote_weight",
        lambda: repository.commit_remote("weight", user_id, sample.id, sample_row),
        compensate=lambda _: repository.delete_remote("weight", user_id, sample.id),
    )
    logger.info("Signup completed for %s", user_id)
    return user_id, profile, sample
