# -*- coding: utf-8 -*-
"""
Process-wide ledger context.

Owns the repository, the mirror, the identity provider, the external-service
clients and one ``NutritionService`` (and so one target store) per user.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from .app_db import init_app_db
from .config import settings
from .identity.provider import IdentityProvider, LocalIdentityProvider
from .ledger.repository import DualWriteRepository
from .meals.analysis import AnalysisJobClient, AnalysisPoller
from .meals.barcode import ProductLookup
from .meals.storage import subscribe_meals_feed
from .mirror.store import DocumentMirror
from .nutrition.models import TargetSnapshot
from .nutrition.service import NutritionService
from .nutrition.targets import TargetStore
from .weight.storage import seed_from_profile

logger = logging.getLogger(__name__)


class LedgerContext:
    def __init__(
        self,
        *,
        db_path: Path,
        mirror_root: Path,
        identity: Optional[IdentityProvider] = None,
        analysis_client: Optional[AnalysisJobClient] = None,
        product_lookup: Optional[ProductLookup] = None,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self.db_path = Path(db_path)
        init_app_db(self.db_path)
        self.mirror = DocumentMirror(mirror_root)
        self.identity = identity or LocalIdentityProvider(self.db_path)
        self.repository = DualWriteRepository(self.db_path, self.mirror, self.identity)
        self.analysis_client = analysis_client or AnalysisJobClient()
        self.product_lookup = product_lookup or ProductLookup()
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.analysis_jobs: Dict[str, AnalysisPoller] = {}
        self._services: Dict[str, NutritionService] = {}
        self._feeds: Dict[str, List[Callable[[], None]]] = {}

    @classmethod
    def from_settings(cls) -> "LedgerContext":
        return cls(db_path=settings.db_path, mirror_root=settings.mirror_root)

    # ---------------- per-user services ----------------

    def nutrition(self, user_id: str) -> NutritionService:
        service = self._services.get(user_id)
        if service is None:
            service = NutritionService(self.repository, user_id)
            self._services[user_id] = service
        return service

    def target_store(self, user_id: str) -> TargetStore:
        return self.nutrition(user_id).store

    async def on_profile_changed(self, user_id: str) -> TargetSnapshot:
        return await self.nutrition(user_id).recalculate()

    async def on_weight_changed(self, user_id: str) -> TargetSnapshot:
        return await self.nutrition(user_id).recalculate()

    async def load_user(self, user_id: str) -> TargetSnapshot:
        """First access after sign-in: seed the weight log, start feeds, fill the store."""
        row = self.repository.get_local("onboarding", user_id)
        if row:
            seed_from_profile(self.repository, user_id, row.get("weight"), row.get("createdAt"))
        self.start_feeds(user_id)
        return await self.nutrition(user_id).ensure_loaded()

    # ---------------- mirror feeds ----------------

    def start_feeds(self, user_id: str) -> None:
        if user_id in self._feeds:
            return
        service = self.nutrition(user_id)

        async def _on_settings(snapshot: List[Dict[str, Any]]) -> None:
            await self.repository.sync()
            if any(doc.get("id") == "custom_nutrition" for doc in snapshot):
                await service.overrides.adopt_remote()

        self._feeds[user_id] = [
            subscribe_meals_feed(self.repository, user_id),
            self.mirror.subscribe(user_id, "settings", _on_settings),
        ]
        logger.info("Mirror feeds started for %s", user_id)

    def stop_feeds(self, user_id: str) -> None:
        for unsubscribe in self._feeds.pop(user_id, []):
            unsubscribe()

    # ---------------- meal analysis ----------------

    def new_poller(self, request_id: Optional[str] = None) -> Tuple[str, AnalysisPoller]:
        key = request_id or str(uuid4())
        poller = AnalysisPoller(
            self.analysis_client,
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
        )
        self.analysis_jobs[key] = poller
        return key, poller

    def abandon(self, request_id: str) -> bool:
        poller = self.analysis_jobs.get(request_id)
        if poller is None or poller.finished:
            return False
        poller.abandon()
        return True

    async def close(self) -> None:
        await self.repository.drain()
        await self.mirror.flush()
        for user_id in list(self._feeds):
            self.stop_feeds(user_id)
