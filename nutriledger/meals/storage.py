# -*- coding: utf-8 -*-
"""Meals — saving drafts, day listings and the mirror feed handler."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..errors import NotFound
from ..ledger.models import MealFact
from ..ledger.repository import DualWriteRepository
from ..progress.aggregator import local_wall_time
from .models import MealDraft

logger = logging.getLogger(__name__)


def list_meals(
    repository: DualWriteRepository,
    user_id: str,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[MealFact]:
    """Meals whose local date lies in [start, end], newest first."""
    meals = [MealFact.from_row(r) for r in repository.read_local("meals", {"user_id": user_id})]
    if start or end:
        lo = datetime.combine(start or date.min, time())
        hi = datetime.combine(end, time()) + timedelta(days=1) if end else datetime.max
        meals = [m for m in meals if lo <= local_wall_time(m.timestamp) < hi]
    meals.sort(key=lambda m: m.timestamp, reverse=True)
    return meals


def list_for_day(repository: DualWriteRepository, user_id: str, day: date) -> List[MealFact]:
    return list_meals(repository, user_id, start=day, end=day)


async def save_meal(
    repository: DualWriteRepository,
    user_id: str,
    draft: MealDraft,
    *,
    timestamp: Optional[datetime] = None,
) -> MealFact:
    meal = MealFact(
        id=str(uuid4()),
        user_id=user_id,
        name=draft.name,
        calories=draft.calories,
        protein_g=draft.protein_g,
        carbs_g=draft.carbs_g,
        fat_g=draft.fat_g,
        timestamp=timestamp or datetime.now(),
        portion_size=draft.portion_size,
        portion_unit=draft.portion_unit,
        ingredients=draft.ingredients,
    )
    await repository.write("meals", meal.to_row())
    logger.info("Meal %s saved for %s (%.0f kcal)", meal.id, user_id, meal.calories)
    return meal


async def delete_meal(repository: DualWriteRepository, user_id: str, meal_id: str) -> None:
    row = repository.get_local("meals", meal_id)
    if row is None or row["user_id"] != user_id:
        raise NotFound(f"Meal {meal_id} not found")
    await repository.delete("meals", meal_id)


def apply_meals_snapshot(
    repository: DualWriteRepository,
    user_id: str,
    snapshot: List[Dict[str, Any]],
) -> int:
    """Upsert every mirrored meal into SQLite. Safe to call repeatedly."""
    applied = 0
    for doc in snapshot:
        try:
            meal = MealFact.from_row({**doc, "user_id": doc.get("user_id") or user_id})
        except (KeyError, ValidationError) as exc:
            logger.warning("Skipping malformed mirrored meal %s: %s", doc.get("id"), exc)
            continue
        if meal.user_id != user_id or repository.is_tombstoned("meals", meal.id):
            continue
        repository.commit_local("meals", meal.to_row())
        applied += 1
    return applied


def subscribe_meals_feed(repository: DualWriteRepository, user_id: str) -> Callable[[], None]:
    if repository.mirror is None:
        return lambda: None

    def _handler(snapshot: List[Dict[str, Any]]) -> None:
        count = apply_meals_snapshot(repository, user_id, snapshot)
        logger.debug("Meals feed for %s applied %d documents", user_id, count)

    return repository.mirror.subscribe(user_id, "meals", _handler)
