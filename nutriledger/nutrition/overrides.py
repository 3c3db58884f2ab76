# -*- coding: utf-8 -*-
"""
Override ledger.

A ``custom_nutrition`` row for a user is authoritative: while it exists,
automatic recalculation re-serves it instead of computing new targets.
Only ``clear_override()`` (a manual recalculation) removes it.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from ..errors import MirrorUnavailable, ValidationFailed
from ..ledger.repository import DualWriteRepository
from .models import FALLBACK_TARGETS, CustomNutrition, NutritionTargets
from .targets import TargetStore

logger = logging.getLogger(__name__)

OverrideValues = Union[Mapping[str, Any], NutritionTargets, CustomNutrition]
Recompute = Callable[[], Awaitable[Any]]

_TARGET_ALIASES = {"protein_g": "protein", "carbs_g": "carbs", "fat_g": "fat"}


def validate_override(values: OverrideValues) -> CustomNutrition:
    """Bounds-check manual targets; raises ``ValidationFailed`` with per-field messages."""
    if isinstance(values, CustomNutrition):
        return values
    if isinstance(values, NutritionTargets):
        raw: Dict[str, Any] = values.model_dump()
    else:
        raw = dict(values)
    data = {_TARGET_ALIASES.get(k, k): v for k, v in raw.items()}
    try:
        return CustomNutrition.model_validate(data)
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc") or ()) or "__root__"
            errors.setdefault(field, err.get("msg") or "invalid value")
        raise ValidationFailed(errors, message="Invalid nutrition values") from exc


class OverrideLedger:
    def __init__(
        self,
        repository: DualWriteRepository,
        store: TargetStore,
        user_id: str,
        recompute: Optional[Recompute] = None,
    ) -> None:
        self.repository = repository
        self.store = store
        self.user_id = user_id
        self._recompute = recompute
        store.bind_override_ledger(self)

    def get_override(self) -> Optional[CustomNutrition]:
        row = self.repository.get_local("custom_nutrition", self.user_id)
        if not row:
            return None
        return CustomNutrition.model_construct(
            calories=row["calories"],
            protein=row["protein"],
            carbs=row["carbs"],
            fat=row["fat"],
        )

    def is_overridden(self) -> bool:
        return self.get_override() is not None

    async def set_override(self, values: OverrideValues) -> NutritionTargets:
        override = validate_override(values)
        generation = self.store.begin()
        await self.repository.write(
            "custom_nutrition",
            {"user_id": self.user_id, **override.model_dump()},
        )
        targets = override.to_targets()
        self.store.set(targets, manually_edited=True, generation=generation)
        logger.info("Manual targets set for %s: %s", self.user_id, targets.model_dump())
        return targets

    async def clear_override(self) -> Any:
        self.store.begin()
        await self.repository.delete("custom_nutrition", self.user_id)
        self.store.reset_manually_edited()
        logger.info("Manual targets cleared for %s", self.user_id)
        if self._recompute is None:
            return None
        return await self._recompute()

    def current_targets(self) -> NutritionTargets:
        override = self.get_override()
        if override is not None:
            return override.to_targets()
        return self.store.get().targets or FALLBACK_TARGETS

    async def adopt_remote(self) -> Optional[NutritionTargets]:
        """Copy a mirror-only override into SQLite. Never called on the critical path."""
        if self.is_overridden() or self.repository.is_tombstoned("custom_nutrition", self.user_id):
            return None
        try:
            rows = await self.repository.read_remote("custom_nutrition", self.user_id)
        except MirrorUnavailable as exc:
            logger.warning("Could not read remote override for %s: %s", self.user_id, exc)
            return None
        if not rows:
            return None
        try:
            override = validate_override(
                {k: rows[0].get(k) for k in ("calories", "protein", "carbs", "fat")}
            )
        except ValidationFailed as exc:
            logger.warning("Ignoring invalid remote override for %s: %s", self.user_id, exc.field_errors)
            return None
        generation = self.store.begin()
        self.repository.commit_local("custom_nutrition", {"user_id": self.user_id, **override.model_dump()})
        targets = override.to_targets()
        self.store.set(targets, manually_edited=True, generation=generation)
        logger.info("Adopted remote manual targets for %s", self.user_id)
        return targets
