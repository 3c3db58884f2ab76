# -*- coding: utf-8 -*-
"""Preferences — API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..context import LedgerContext
from ..deps import get_context
from ..identity.security import get_current_user
from .models import DisplayPreferences
from .storage import get_preferences, save_preferences

router = APIRouter(prefix="/api/preferences", tags=["Preferences"])


@router.get("", response_model=DisplayPreferences, summary="Get display preferences")
def get_display_preferences(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    return get_preferences(ctx.repository, user["id"])


@router.put("", response_model=DisplayPreferences, summary="Replace display preferences")
async def put_display_preferences(
    request: DisplayPreferences,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    return await save_preferences(ctx.repository, user["id"], request)
