# -*- coding: utf-8 -*-
"""Nutrition — API endpoints (daily targets and manual overrides)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..context import LedgerContext
from ..deps import get_context
from ..identity.security import get_current_user
from .models import NutritionOverrideRequest, NutritionStateResponse
from .service import NutritionService

router = APIRouter(prefix="/api/nutrition", tags=["Nutrition"])


def _state(service: NutritionService) -> NutritionStateResponse:
    snapshot = service.store.get()
    return NutritionStateResponse(
        targets=snapshot.targets or service.overrides.current_targets(),
        manually_edited=snapshot.manually_edited,
        source=service.source,
    )


@router.get("/targets", response_model=NutritionStateResponse, summary="Current daily targets")
async def get_targets(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    await ctx.load_user(user["id"])
    return _state(ctx.nutrition(user["id"]))


@router.put("/override", response_model=NutritionStateResponse, summary="Set manual targets")
async def put_override(
    request: NutritionOverrideRequest,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    service = ctx.nutrition(user["id"])
    await service.set_override(request.model_dump())
    return _state(service)


@router.delete("/override", response_model=NutritionStateResponse, summary="Drop manual targets and recalculate")
@router.post("/recalculate", response_model=NutritionStateResponse, summary="Manual recalculation")
async def recalculate(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    await ctx.load_user(user["id"])
    service = ctx.nutrition(user["id"])
    await service.manual_recalculate()
    return _state(service)
