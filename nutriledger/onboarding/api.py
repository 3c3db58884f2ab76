# -*- coding: utf-8 -*-
"""Onboarding — API endpoints (profile read + single-field edits)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..context import LedgerContext
from ..deps import get_context
from ..identity.security import get_current_user
from ..nutrition.calculator import age_on
from ..weight.storage import current_weight
from .models import ProfileFieldUpdate, ProfileResponse
from .storage import fetch_profile, update_field

router = APIRouter(prefix="/api/onboarding", tags=["Onboarding"])


def _response(ctx: LedgerContext, user_id: str, profile) -> ProfileResponse:
    return ProfileResponse(
        profile=profile,
        age=age_on(profile.birth_date),
        current_weight=current_weight(ctx.repository, user_id),
    )


@router.get("", response_model=ProfileResponse, summary="Get the onboarding profile")
def get_profile(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    profile = fetch_profile(ctx.repository, user["id"])
    if profile is None:
        raise HTTPException(status_code=404, detail="Onboarding profile not found")
    return _response(ctx, user["id"], profile)


@router.patch("", response_model=ProfileResponse, summary="Edit one profile field")
async def patch_profile(
    request: ProfileFieldUpdate,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    profile = await update_field(ctx.repository, user["id"], request.field, request.value)
    await ctx.on_profile_changed(user["id"])
    return _response(ctx, user["id"], profile)
