# -*- coding: utf-8 -*-
"""Barcode product lookup (OpenFoodFacts) and portion arithmetic for drafts."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import ProductLookupFailed, ValidationFailed
from ..ledger.models import Ingredient
from ..nutrition.calculator import round_half_up
from .models import MealDraft, ProductFacts

logger = logging.getLogger(__name__)

DEFAULT_PORTION_G = 100.0


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def product_from_payload(barcode: str, data: Dict[str, Any]) -> Optional[ProductFacts]:
    if data.get("status") != 1:
        return None
    product = data.get("product") or {}
    nutriments = product.get("nutriments") or {}
    return ProductFacts(
        barcode=barcode,
        name=str(product.get("product_name") or ""),
        brand=product.get("brands") or None,
        image_url=product.get("image_url") or None,
        calories=_num(nutriments.get("energy-kcal")),
        protein_g=_num(nutriments.get("proteins")),
        carbs_g=_num(nutriments.get("carbohydrates")),
        fat_g=_num(nutriments.get("fat")),
    )


class ProductLookup:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.openfoodfacts_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.product_lookup_timeout
        self.transport = transport

    async def lookup_barcode(self, code: str) -> Optional[ProductFacts]:
        barcode = (code or "").strip()
        if not barcode.isdigit():
            raise ValidationFailed({"barcode": "must contain digits only"})
        url = f"{self.base_url}/api/v0/product/{barcode}.json"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self.transport
            ) as client:
                resp = await client.get(url)
                if resp.status_code == 404:
                    return None
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("Product lookup for %s failed: %s", barcode, exc)
            raise ProductLookupFailed(f"Product lookup failed: {exc}") from exc
        except ValueError as exc:
            raise ProductLookupFailed("Product lookup returned invalid JSON") from exc
        if not isinstance(data, dict):
            return None
        return product_from_payload(barcode, data)


def product_to_draft(product: ProductFacts) -> MealDraft:
    return MealDraft(
        name=product.name,
        brand=product.brand,
        image_url=product.image_url,
        calories=product.calories,
        protein_g=product.protein_g,
        carbs_g=product.carbs_g,
        fat_g=product.fat_g,
        portion_size=DEFAULT_PORTION_G,
        portion_unit="g",
    )


def scale_portion(draft: MealDraft, base: float, size: float) -> MealDraft:
    """Values of ``draft`` are for a ``base`` portion; return them for ``size``."""
    if base <= 0 or size <= 0:
        raise ValidationFailed({"portion_size": "must be greater than zero"})
    ratio = size / base
    return draft.model_copy(
        update={
            "calories": float(round_half_up(draft.calories * ratio)),
            "protein_g": _round1(draft.protein_g * ratio),
            "carbs_g": _round1(draft.carbs_g * ratio),
            "fat_g": _round1(draft.fat_g * ratio),
            "portion_size": size,
        }
    )


def rescale_from_ingredients(draft: MealDraft, ingredients: List[Ingredient]) -> MealDraft:
    """
    Recompute totals after ingredient amounts were edited.

    Nutrient values on ingredients are per 100 units of amount. When none of
    the edited ingredients carries calories, the original totals are scaled by
    the change in total ingredient weight instead.
    """
    totals = {"calories": 0.0, "protein_g": 0.0, "carbs_g": 0.0, "fat_g": 0.0}
    for ingredient in ingredients:
        factor = ingredient.amount / 100
        for key in totals:
            per_100 = getattr(ingredient, key)
            if per_100:
                totals[key] += per_100 * factor

    if totals["calories"] == 0:
        original_weight = sum(i.amount for i in draft.ingredients) or DEFAULT_PORTION_G
        ratio = sum(i.amount for i in ingredients) / original_weight
        totals = {key: getattr(draft, key) * ratio for key in totals}

    return draft.model_copy(
        update={
            "calories": float(round_half_up(totals["calories"])),
            "protein_g": _round1(totals["protein_g"]),
            "carbs_g": _round1(totals["carbs_g"]),
            "fat_g": _round1(totals["fat_g"]),
            "ingredients": list(ingredients),
        }
    )
