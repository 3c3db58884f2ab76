# -*- coding: utf-8 -*-
"""Weight — API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..context import LedgerContext
from ..deps import get_context
from ..identity.security import get_current_user
from ..ledger.models import WeightSample
from .models import WeightAddRequest, WeightHistoryResponse
from .storage import add_sample, delete_sample, history

router = APIRouter(prefix="/api/weight", tags=["Weight"])


@router.get("", response_model=WeightHistoryResponse, summary="Weight history, oldest first")
async def list_samples(user: dict = Depends(get_current_user), ctx: LedgerContext = Depends(get_context)):
    await ctx.load_user(user["id"])
    samples = history(ctx.repository, user["id"])
    return WeightHistoryResponse(
        current_weight=samples[-1].weight if samples else None,
        count=len(samples),
        samples=samples,
    )


@router.post("", response_model=WeightSample, summary="Log a weight sample")
async def create_sample(
    request: WeightAddRequest,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    sample = await add_sample(ctx.repository, user["id"], request.weight, request.timestamp)
    await ctx.on_weight_changed(user["id"])
    return sample


@router.delete("/{sample_id}", summary="Delete a weight sample")
async def remove_sample(
    sample_id: str,
    user: dict = Depends(get_current_user),
    ctx: LedgerContext = Depends(get_context),
):
    was_latest = await delete_sample(ctx.repository, user["id"], sample_id)
    if was_latest:
        await ctx.on_weight_changed(user["id"])
    return {"deleted": True, "was_latest": was_latest}
