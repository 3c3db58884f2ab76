# -*- coding: utf-8 -*-
"""Reactive store holding the current daily targets of one signed-in user."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional

from .models import NutritionTargets, TargetSnapshot

if TYPE_CHECKING:
    from .overrides import OverrideLedger

logger = logging.getLogger(__name__)

Subscriber = Callable[[TargetSnapshot], None]


class TargetStore:
    """
    ``get()/subscribe()/set()`` over a ``TargetSnapshot``.

    Writers take a generation number with ``begin()`` before doing work and
    pass it back to ``set()``; a write whose generation is older than the
    newest one handed out is discarded, so the last started write wins.
    """

    def __init__(self, user_id: Optional[str] = None) -> None:
        self.user_id = user_id
        self._state = TargetSnapshot()
        self._subscribers: List[Subscriber] = []
        self._generation = 0
        self._override_ledger: Optional["OverrideLedger"] = None

    def bind_override_ledger(self, ledger: "OverrideLedger") -> None:
        self._override_ledger = ledger

    def get(self) -> TargetSnapshot:
        return self._state.model_copy()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    @property
    def generation(self) -> int:
        return self._generation

    def set(
        self,
        values: NutritionTargets,
        manually_edited: bool,
        *,
        generation: Optional[int] = None,
    ) -> bool:
        if generation is not None and generation < self._generation:
            logger.info(
                "Discarding stale targets for %s (generation %d < %d)",
                self.user_id,
                generation,
                self._generation,
            )
            return False
        self._state = TargetSnapshot(targets=values, manually_edited=manually_edited)
        self._publish()
        return True

    async def set_nutrition_values(self, values: NutritionTargets, is_manual: bool = True) -> None:
        if is_manual:
            if self._override_ledger is None:
                raise RuntimeError("No override ledger bound to this target store")
            await self._override_ledger.set_override(values)
            return
        self.set(values, manually_edited=False, generation=self.begin())

    def reset_manually_edited(self) -> None:
        if not self._state.manually_edited:
            return
        self._state = self._state.model_copy(update={"manually_edited": False})
        self._publish()

    def _publish(self) -> None:
        snapshot = self.get()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as exc:
                logger.error("Target subscriber %r failed: %s", callback, exc)
