# -*- coding: utf-8 -*-
"""Meals — API endpoints (day log, photo analysis, barcode lookup, portions)."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..context import LedgerContext
from ..deps import get_context
from ..identity.security import get_current_user
from ..ledger.models import MealFact
from ..progress.aggregator import summarize_day
from .barcode import product_to_draft, rescale_from_ingredients, scale_portion
from .models import (
    AnalyzeRequest,
    MealDraft,
    MealsForDayResponse,
    RescaleRequest,
    SaveMealRequest,
    ScalePortionRequest,
)
from .storage import delete_meal, list_for_day, save_meal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meals", tags=["Meals"])


@router.get("", response_model=MealsForDayResponse, summary="Meals logged on one local day")
def list_day(
    day: Optional[date] = Query(default=None, alias="date", description="YYYY-MM-DD, defaults to today"),
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    day = day or date.today()
    meals = list_for_day(ctx.repository, user["id"], day)
    return MealsForDayResponse(date=day, meals=meals, summary=summarize_day(meals, day))


@router.post("", response_model=MealFact, summary="Save a meal draft")
async def create_meal(
    request: SaveMealRequest,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    return await save_meal(ctx.repository, user["id"], request.draft, timestamp=request.timestamp)


@router.delete("/{meal_id}", summary="Delete a meal")
async def remove_meal(
    meal_id: str,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    await delete_meal(ctx.repository, user["id"], meal_id)
    return {"deleted": True}


@router.post("/analyze", response_model=MealDraft, summary="Analyze a meal photo (waits for the job)")
async def analyze(
    request: AnalyzeRequest,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    request_id, poller = ctx.new_poller(request.request_id)
    logger.info("Analysis %s started for %s", request_id, user["id"])
    try:
        return await poller.run(request.image_base64, request.description)
    finally:
        ctx.analysis_jobs.pop(request_id, None)


@router.post("/analyze/{request_id}/abandon", summary="Stop waiting for an analysis job")
def abandon_analysis(
    request_id: str,
    user: dict = Depends(get_current_user),  # noqa: ARG001
    ctx: LedgerContext = Depends(get_context),
):
    return {"abandoned": ctx.abandon(request_id)}


@router.get("/barcode/{code}", response_model=MealDraft, summary="Look up a packaged product")
async def lookup_barcode(
    code: str,
    user: dict = Depends(get_current_user),  # noqa: ARG001
    ctx: LedgerContext = Depends(get_context),
):
    product = await ctx.product_lookup.lookup_barcode(code)
    if product is None:
        raise HTTPException(status_code=404, detail=f"No product found for barcode {code}")
    return product_to_draft(product)


@router.post("/scale", response_model=MealDraft, summary="Scale a draft to a new portion size")
def scale(request: ScalePortionRequest, user: dict = Depends(get_current_user)):  # noqa: ARG001
    return scale_portion(request.draft, request.base_size, request.size)


@router.post("/rescale", response_model=MealDraft, summary="Recompute draft totals from edited ingredients")
def rescale(request: RescaleRequest, user: dict = Depends(get_current_user)):  # noqa: ARG001
    return rescale_from_ingredients(request.draft, request.ingredients)
