# -*- coding: utf-8 -*-
"""
Meal photo analysis: HTTP job client and the poll loop that drives it.

The analysis itself runs in an external service: ``POST /analyze`` returns a
``job_id`` and ``GET /status/{job_id}`` reports ``pending``, ``done`` (with a
``result``) or ``error``. The poller turns a finished result into a
``MealDraft``; it never commits anything.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import AnalysisAbandoned, AnalysisFailed, AnalysisTimedOut
from ..ledger.models import Ingredient
from .models import MealDraft

logger = logging.getLogger(__name__)


class AnalysisJobClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.analysis_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.analysis_timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport)

    async def submit_analysis(self, image_base64: str, description: str = "") -> str:
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/analyze",
                    json={"imageBase64": image_base64, "description": description},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise AnalysisFailed(f"Analysis submit failed: {exc}") from exc
        except ValueError as exc:
            raise AnalysisFailed("Analysis service returned invalid JSON") from exc
        job_id = str((data or {}).get("job_id") or "")
        if not job_id:
            raise AnalysisFailed("Missing job_id")
        return job_id

    async def poll_status(self, job_id: str) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/status/{job_id}")
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise AnalysisFailed(f"Analysis status check failed: {exc}") from exc
        except ValueError as exc:
            raise AnalysisFailed("Analysis service returned invalid JSON") from exc
        return data if isinstance(data, dict) else {}


def _ingredients_from_result(raw: Any) -> List[Ingredient]:
    # {name: {portion_g, calories, protein_g, carbs_g, fat_g, ...}}
    if not isinstance(raw, dict):
        return []
    items: List[Ingredient] = []
    for index, (name, details) in enumerate(raw.items()):
        details = details if isinstance(details, dict) else {}
        amount = float(details.get("portion_g") or 0.0)

        # The service reports totals for the portion; ingredients hold per-100 g values.
        def per_100(key: str) -> Optional[float]:
            value = details.get(key)
            if value is None or amount <= 0:
                return None
            return float(value) * 100 / amount

        items.append(
            Ingredient(
                id=f"ingredient-{index}",
                name=str(name),
                amount=amount,
                unit="g",
                calories=per_100("calories"),
                protein_g=per_100("protein_g"),
                carbs_g=per_100("carbs_g"),
                fat_g=per_100("fat_g"),
            )
        )
    return items


def draft_from_result(result: Dict[str, Any], description: str = "") -> MealDraft:
    totals = result.get("totals") or {}
    ingredients = _ingredients_from_result(result.get("ingredients"))
    return MealDraft(
        name=str(result.get("name") or description or "Analyzed meal"),
        calories=totals.get("calories"),
        protein_g=totals.get("protein_g"),
        carbs_g=totals.get("carbs_g"),
        fat_g=totals.get("fat_g"),
        portion_size=sum(i.amount for i in ingredients) or None,
        portion_unit="g" if ingredients else None,
        ingredients=ingredients,
    )


class PollState(str, Enum):
    idle = "idle"
    submitted = "submitted"
    polling = "polling"
    done = "done"
    failed = "failed"
    timed_out = "timed_out"
    abandoned = "abandoned"


_TERMINAL = {PollState.done, PollState.failed, PollState.timed_out, PollState.abandoned}


class AnalysisPoller:
    """
    One analysis run: submit, then poll at a fixed interval for a bounded number
    of attempts. ``abandon()`` may be called from another task at any time.
    """

    def __init__(
        self,
        client: AnalysisJobClient,
        *,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.client = client
        self.interval = settings.analysis_poll_interval if interval is None else interval
        self.max_attempts = settings.analysis_max_attempts if max_attempts is None else max_attempts
        self.state = PollState.idle
        self.job_id: Optional[str] = None
        self.attempts = 0
        self.draft: Optional[MealDraft] = None
        self.error: Optional[str] = None
        self._abandon = asyncio.Event()

    @property
    def finished(self) -> bool:
        return self.state in _TERMINAL

    def abandon(self) -> None:
        if not self.finished:
            self._abandon.set()

    def _transition(self, state: PollState) -> None:
        logger.debug("Analysis job %s: %s -> %s", self.job_id, self.state.value, state.value)
        self.state = state

    def _check_abandoned(self) -> None:
        if self._abandon.is_set():
            self._transition(PollState.abandoned)
            logger.info("Analysis job %s abandoned after %d attempts", self.job_id, self.attempts)
            raise AnalysisAbandoned()

    def _fail(self, message: str) -> None:
        self.error = message
        self._transition(PollState.failed)
        logger.error("Analysis job %s failed: %s", self.job_id, message)
        raise AnalysisFailed(message)

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._abandon.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return

    async def run(self, image_base64: str, description: str = "") -> MealDraft:
        if self.state != PollState.idle:
            raise RuntimeError("An AnalysisPoller can only run once")
        self._check_abandoned()
        try:
            self.job_id = await self.client.submit_analysis(image_base64, description)
        except AnalysisFailed as exc:
            self._fail(exc.message)
        self._transition(PollState.submitted)

        while self.attempts < self.max_attempts:
            await self._sleep()
            self._check_abandoned()
            self._transition(PollState.polling)
            try:
                data = await self.client.poll_status(self.job_id)
            except AnalysisFailed as exc:
                self._fail(exc.message)
            self._check_abandoned()

            status = data.get("status")
            if status == "done":
                result = data.get("result") or {}
                if result.get("error"):
                    self._fail(str(result["error"]))
                self.draft = draft_from_result(result, description)
                self._transition(PollState.done)
                logger.info("Analysis job %s done after %d attempts", self.job_id, self.attempts + 1)
                return self.draft
            if status == "error":
                self._fail(str(data.get("error") or "Analysis failed"))
            self.attempts += 1

        self._transition(PollState.timed_out)
        logger.warning("Analysis job %s timed out after %d attempts", self.job_id, self.attempts)
        raise AnalysisTimedOut(self.attempts)
