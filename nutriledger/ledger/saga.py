# -*- coding: utf-8 -*-
"""Ordered multi-store mutations with reverse-order compensation."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..errors import PartialCommitError

logger = logging.getLogger(__name__)

Action = Callable[[], Union[Any, Awaitable[Any]]]
Compensation = Callable[[Any], Union[Any, Awaitable[Any]]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class _Committed:
    name: str
    result: Any
    compensate: Optional[Compensation]


@dataclass
class Saga:
    """
    A sequence of committed steps, each with an optional compensating action.

    Usage::

        saga = Saga("signup")
        uid = await saga.run("create_identity", create, compensate=destroy)
        await saga.run("local_onboarding", lambda: write(uid), compensate=lambda _: delete(uid))

    When a step raises, every committed step is compensated strictly in reverse
    commit order and ``PartialCommitError`` is raised. A failure of the very
    first step re-raises the original exception since nothing was committed.
    """

    name: str
    committed: List[_Committed] = field(default_factory=list)

    async def run(
        self,
        step: str,
        action: Action,
        compensate: Optional[Compensation] = None,
    ) -> Any:
        try:
            result = await _maybe_await(action())
        except Exception as exc:
            if not self.committed:
                raise
            compensated = await self.compensate()
            logger.error("Saga %s failed at step %s: %s", self.name, step, exc)
            raise PartialCommitError(
                f"{self.name} failed: {exc}",
                failed_step=step,
                compensated=compensated,
            ) from exc
        self.committed.append(_Committed(step, result, compensate))
        return result

    async def compensate(self) -> List[str]:
        done: List[str] = []
        while self.committed:
            entry = self.committed.pop()
            if entry.compensate is None:
                continue
            try:
                await _maybe_await(entry.compensate(entry.result))
                done.append(entry.name)
                logger.info("Saga %s compensated step %s", self.name, entry.name)
            except Exception as exc:  # keep unwinding the remaining steps
                logger.error(
                    "Saga %s compensation for %s failed: %s", self.name, entry.name, exc
                )
        return done
