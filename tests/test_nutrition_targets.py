# -*- coding: utf-8 -*-

from __future__ import annotations

import shutil
import tempfile
import unittest
from datetime import date, datetime, timedelta
from pathlib import Path

from nutriledger.app_db import init_app_db
from nutriledger.errors import ValidationFailed
from nutriledger.identity.provider import StaticIdentity
from nutriledger.ledger.models import OnboardingProfile
from nutriledger.ledger.repository import DualWriteRepository
from nutriledger.mirror.store import DocumentMirror
from nutriledger.nutrition.calculator import compute_targets
from nutriledger.nutrition.models import FALLBACK_TARGETS, NutritionTargets
from nutriledger.nutrition.service import NutritionService
from nutriledger.nutrition.targets import TargetStore
from nutriledger.onboarding.storage import fetch_profile, update_field
from nutriledger.weight.storage import add_sample, current_weight, delete_sample

OVERRIDE = {"calories": 1800, "protein": 150, "carbs": 180, "fat": 60}


def _profile(user_id: str = "u1") -> OnboardingProfile:
    return OnboardingProfile(
        user_id=user_id,
        goal="lose_weight",
        birth_date=date(1990, 1, 15),
        sex="female",
        height=165.0,
        weight=70.0,
        activity_level="moderate",
        activity_type="aerobic",
        target_weight=62.0,
        weekly_rate=0.5,
        created_at="2024-01-01T08:00:00.000000+00:00",
    )


class _LedgerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = Path(tempfile.mkdtemp(prefix="nutriledger-test-"))
        self.db_path = self._tmp / "ledger.db"
        init_app_db(self.db_path)
        self.repo = DualWriteRepository(self.db_path, None)
        self.repo.commit_local("onboarding", _profile().to_row())
        self.service = NutritionService(self.repo, "u1")

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp, ignore_errors=True)


class TestOverridePrecedence(_LedgerTestCase):
    async def test_recalculation_reserves_override(self) -> None:
        await self.service.recalculate()
        computed = self.service.store.get().targets
        await self.service.set_override(OVERRIDE)
        expected = NutritionTargets(calories=1800, protein_g=150, carbs_g=180, fat_g=60)

        await add_sample(self.repo, "u1", 95.0)
        snapshot = await self.service.recalculate()
        self.assertEqual(snapshot.targets, expected)
        self.assertTrue(snapshot.manually_edited)

        await update_field(self.repo, "u1", "activity_level", "active")
        snapshot = await self.service.recalculate()
        self.assertEqual(snapshot.targets, expected)
        self.assertNotEqual(snapshot.targets, computed)
        self.assertEqual(self.service.source, "override")

    async def test_clear_override_recomputes(self) -> None:
        await self.service.set_override(OVERRIDE)
        snapshot = await self.service.manual_recalculate()
        self.assertFalse(snapshot.manually_edited)
        self.assertIsNone(self.repo.get_local("custom_nutrition", "u1"))
        self.assertEqual(snapshot.targets, compute_targets(fetch_profile(self.repo, "u1"), current_weight(self.repo, "u1")))
        self.assertEqual(self.service.source, "calculated")

    async def test_out_of_range_override_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailed) as ctx:
            await self.service.set_override({**OVERRIDE, "calories": 900, "fat": 250})
        self.assertEqual(set(ctx.exception.field_errors), {"calories", "fat"})
        self.assertIsNone(self.repo.get_local("custom_nutrition", "u1"))
        self.assertFalse(self.service.overrides.is_overridden())

    async def test_targets_aliases_are_accepted(self) -> None:
        targets = NutritionTargets(calories=2100, protein_g=140, carbs_g=230, fat_g=70)
        await self.service.store.set_nutrition_values(targets, is_manual=True)
        row = self.repo.get_local("custom_nutrition", "u1")
        self.assertEqual(row["calories"], 2100)
        self.assertEqual(self.service.overrides.current_targets(), targets)

    async def test_non_manual_values_do_not_write_override(self) -> None:
        targets = NutritionTargets(calories=2100, protein_g=140, carbs_g=230, fat_g=70)
        await self.service.store.set_nutrition_values(targets, is_manual=False)
        self.assertIsNone(self.repo.get_local("custom_nutrition", "u1"))
        self.assertEqual(self.service.store.get().targets, targets)
        self.assertFalse(self.service.store.get().manually_edited)

    async def test_reset_flag_keeps_override_row(self) -> None:
        await self.service.set_override(OVERRIDE)
        self.service.store.reset_manually_edited()
        self.assertFalse(self.service.store.get().manually_edited)
        self.assertIsNotNone(self.repo.get_local("custom_nutrition", "u1"))
        snapshot = await self.service.recalculate()
        self.assertTrue(snapshot.manually_edited)

    async def test_fallback_without_profile(self) -> None:
        service = NutritionService(self.repo, "nobody")
        snapshot = await service.ensure_loaded()
        self.assertEqual(snapshot.targets, FALLBACK_TARGETS)
        self.assertEqual(service.source, "fallback")
        self.assertEqual(service.overrides.current_targets(), FALLBACK_TARGETS)


class TestTargetStore(unittest.TestCase):
    def test_stale_generation_is_discarded(self) -> None:
        store = TargetStore("u1")
        first = store.begin()
        second = store.begin()
        newer = NutritionTargets(calories=1900, protein_g=120, carbs_g=200, fat_g=60)
        older = NutritionTargets(calories=2500, protein_g=150, carbs_g=280, fat_g=80)
        self.assertTrue(store.set(newer, manually_edited=True, generation=second))
        self.assertFalse(store.set(older, manually_edited=False, generation=first))
        self.assertEqual(store.get().targets, newer)
        self.assertTrue(store.get().manually_edited)

    def test_subscribers_get_snapshots(self) -> None:
        store = TargetStore("u1")
        seen = []
        unsubscribe = store.subscribe(seen.append)
        targets = NutritionTargets(calories=1900, protein_g=120, carbs_g=200, fat_g=60)
        store.set(targets, manually_edited=False)
        unsubscribe()
        store.set(FALLBACK_TARGETS, manually_edited=False)
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].targets, targets)

    def test_failing_subscriber_does_not_block_others(self) -> None:
        store = TargetStore("u1")
        seen = []

        def broken(_snapshot) -> None:
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.set(FALLBACK_TARGETS, manually_edited=False)
        self.assertEqual(len(seen), 1)

    def test_starts_empty(self) -> None:
        snapshot = TargetStore().get()
        self.assertIsNone(snapshot.targets)
        self.assertFalse(snapshot.manually_edited)


class TestCurrentWeightPromotion(_LedgerTestCase):
    async def test_deleting_latest_sample_promotes_previous(self) -> None:
        now = datetime.now()
        await add_sample(self.repo, "u1", 80.0, now - timedelta(days=3))
        latest = await add_sample(self.repo, "u1", 76.0, now - timedelta(hours=1))
        snapshot = await self.service.recalculate()
        profile = fetch_profile(self.repo, "u1")
        self.assertEqual(snapshot.targets, compute_targets(profile, 76.0))

        was_latest = await delete_sample(self.repo, "u1", latest.id)
        self.assertTrue(was_latest)
        self.assertEqual(current_weight(self.repo, "u1"), 80.0)
        snapshot = await self.service.recalculate()
        self.assertEqual(snapshot.targets, compute_targets(profile, 80.0))

    async def test_deleting_older_sample_keeps_current(self) -> None:
        now = datetime.now()
        older = await add_sample(self.repo, "u1", 80.0, now - timedelta(days=3))
        await add_sample(self.repo, "u1", 76.0, now - timedelta(hours=1))
        self.assertFalse(await delete_sample(self.repo, "u1", older.id))
        self.assertEqual(current_weight(self.repo, "u1"), 76.0)


class TestRemoteOverrideAdoption(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = Path(tempfile.mkdtemp(prefix="nutriledger-test-"))
        self.db_path = self._tmp / "ledger.db"
        init_app_db(self.db_path)
        self.mirror = DocumentMirror(self._tmp / "mirror")
        self.repo = DualWriteRepository(self.db_path, self.mirror, StaticIdentity("u1"))
        self.repo.commit_local("onboarding", _profile().to_row())
        self.service = NutritionService(self.repo, "u1")

    async def asyncTearDown(self) -> None:
        await self.repo.drain()
        await self.mirror.flush()

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp, ignore_errors=True)

    async def test_mirror_only_override_is_adopted(self) -> None:
        await self.mirror.set("users/u1/settings/custom_nutrition", dict(OVERRIDE))
        targets = await self.service.overrides.adopt_remote()
        self.assertEqual(targets.calories, 1800)
        self.assertIsNotNone(self.repo.get_local("custom_nutrition", "u1"))
        self.assertTrue(self.service.store.get().manually_edited)

    async def test_invalid_remote_override_is_ignored(self) -> None:
        await self.mirror.set("users/u1/settings/custom_nutrition", {**OVERRIDE, "calories": 99999})
        self.assertIsNone(await self.service.overrides.adopt_remote())
        self.assertIsNone(self.repo.get_local("custom_nutrition", "u1"))

    async def test_cleared_override_is_not_readopted(self) -> None:
        await self.service.set_override(OVERRIDE)
        await self.repo.drain()
        self.assertIsNotNone(await self.mirror.get("users/u1/settings/custom_nutrition"))

        # Remote delete cannot go through yet; the stale mirror copy must not come back.
        self.mirror.online = False
        await self.service.overrides.clear_override()
        await self.repo.drain()
        self.mirror.online = True
        self.assertIsNone(await self.service.overrides.adopt_remote())
        self.assertIsNone(self.repo.get_local("custom_nutrition", "u1"))

        self.assertEqual(await self.repo.sync(), 1)
        self.assertIsNone(await self.mirror.get("users/u1/settings/custom_nutrition"))
        self.assertFalse(self.repo.is_tombstoned("custom_nutrition", "u1"))


if __name__ == "__main__":
    unittest.main()
