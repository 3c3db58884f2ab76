# -*- coding: utf-8 -*-
"""Progress — API endpoints (charts, window navigation, goal progress)."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..context import LedgerContext
from ..deps import get_context
from ..errors import ValidationFailed
from ..identity.security import get_current_user
from ..meals.storage import list_for_day, list_meals
from ..nutrition.calculator import (
    body_mass_index,
    compute_goal_progress,
    compute_weight_change,
    weeks_to_goal,
)
from ..onboarding.storage import fetch_profile
from ..weight.storage import history
from .aggregator import aggregate, step, summarize_day, window_bounds
from .models import ChartResponse, DaySummary, GoalProgressResponse, NavigationResponse, TimeRange

router = APIRouter(prefix="/api/progress", tags=["Progress"])

METRICS = ("calories", "protein_g", "carbs_g", "fat_g")


@router.get("/chart", response_model=ChartResponse, summary="Bucketed intake for one window")
def chart(
    range_: TimeRange = Query(default=TimeRange.week, alias="range"),
    day: Optional[date] = Query(default=None, alias="date", description="Any day inside the window"),
    metric: str = Query(default="calories"),
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    if metric not in METRICS:
        raise ValidationFailed({"metric": f"must be one of {', '.join(METRICS)}"})
    day = day or date.today()
    start, end, _ = window_bounds(range_, day)
    facts = list_meals(ctx.repository, user["id"], start=start.date(), end=(end - timedelta(days=1)).date())
    return ChartResponse(
        range=range_,
        reference_date=day,
        metric=metric,
        start=start,
        end=end,
        buckets=aggregate(range_, day, facts, metric=metric),
    )


@router.get("/navigate", response_model=NavigationResponse, summary="Move the chart window one step")
def navigate(
    range_: TimeRange = Query(default=TimeRange.week, alias="range"),
    day: Optional[date] = Query(default=None, alias="date"),
    direction: int = Query(..., description="1 forward, -1 back"),
    user: dict = Depends(get_current_user),  # noqa: ARG001
):
    if direction not in (1, -1):
        raise ValidationFailed({"direction": "must be 1 or -1"})
    day = day or date.today()
    moved = step(range_, day, direction, datetime.now())
    return NavigationResponse(range=range_, reference_date=moved, moved=moved != day)


@router.get("/summary", response_model=DaySummary, summary="Macro totals for one local day")
def summary(
    day: Optional[date] = Query(default=None, alias="date"),
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    day = day or date.today()
    return summarize_day(list_for_day(ctx.repository, user["id"], day), day)


@router.get("/goal", response_model=GoalProgressResponse, summary="Progress towards the target weight")
async def goal(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    await ctx.load_user(user["id"])
    profile = fetch_profile(ctx.repository, user["id"])
    samples = history(ctx.repository, user["id"])
    current = samples[-1].weight if samples else None
    start = samples[0].weight if samples else (profile.weight if profile else None)
    target = profile.target_weight if profile else None
    direction, amount = compute_weight_change(current, samples)
    return GoalProgressResponse(
        start_weight=start,
        current_weight=current,
        target_weight=target,
        progress_percent=round(compute_goal_progress(current, start, target), 1),
        change_direction=direction,
        change_amount=amount,
        weeks_to_goal=weeks_to_goal(current, target, profile.weekly_rate if profile else None),
        bmi=body_mass_index(current, profile.height if profile else None),
    )
