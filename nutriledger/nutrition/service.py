# -*- coding: utf-8 -*-
"""
Nutrition service: keeps one user's target store in step with the ledger.

Recalculation triggers (onboarding completion, profile edits, new or deleted
weight samples) all go through ``recalculate()``; while an override row
exists it re-serves the override instead of computing.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..ledger.repository import DualWriteRepository
from ..onboarding.storage import fetch_profile
from ..weight.storage import current_weight
from .calculator import compute_targets
from .models import FALLBACK_TARGETS, NutritionTargets, TargetSnapshot
from .overrides import OverrideLedger, OverrideValues
from .targets import TargetStore

logger = logging.getLogger(__name__)


class NutritionService:
    def __init__(
        self,
        repository: DualWriteRepository,
        user_id: str,
        store: Optional[TargetStore] = None,
    ) -> None:
        self.repository = repository
        self.user_id = user_id
        self.store = store or TargetStore(user_id)
        self.overrides = OverrideLedger(repository, self.store, user_id, recompute=self.recalculate)
        self._computed_source = "fallback"

    @property
    def source(self) -> str:
        """calculated | override | fallback"""
        if self.store.get().manually_edited or self.overrides.is_overridden():
            return "override"
        return self._computed_source

    def compute(self, *, on: Optional[date] = None) -> Optional[NutritionTargets]:
        """Calculator output from local facts, or None before onboarding exists."""
        profile = fetch_profile(self.repository, self.user_id)
        if profile is None:
            return None
        return compute_targets(profile, current_weight(self.repository, self.user_id), on=on)

    async def recalculate(self, *, on: Optional[date] = None) -> TargetSnapshot:
        generation = self.store.begin()
        override = self.overrides.get_override()
        if override is not None:
            self.store.set(override.to_targets(), manually_edited=True, generation=generation)
            return self.store.get()

        targets = self.compute(on=on)
        source = "calculated"
        if targets is None:
            targets, source = FALLBACK_TARGETS, "fallback"
        if self.store.set(targets, manually_edited=False, generation=generation):
            self._computed_source = source
            logger.info("Recalculated targets for %s: %s", self.user_id, targets.model_dump())
        return self.store.get()

    async def manual_recalculate(self) -> TargetSnapshot:
        """Drop any override and compute fresh targets."""
        if self.overrides.is_overridden():
            return await self.overrides.clear_override()
        return await self.recalculate()

    async def ensure_loaded(self) -> TargetSnapshot:
        snapshot = self.store.get()
        if snapshot.targets is None:
            snapshot = await self.recalculate()
        return snapshot

    async def set_override(self, values: OverrideValues) -> TargetSnapshot:
        await self.overrides.set_override(values)
        return self.store.get()
