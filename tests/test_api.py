# -*- coding: utf-8 -*-

from __future__ import annotations

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

ONBOARDING = {
    "goal": "lose_weight",
    "birth_date": "1992-04-20",
    "sex": "female",
    "height": 165,
    "weight": 70,
    "activity_level": "moderate",
    "activity_type": "aerobic",
    "target_weight": 62,
    "weekly_rate": 0.5,
}


class TestLedgerApi(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._tmp = Path(tempfile.mkdtemp(prefix="nutriledger-test-"))
        data_root = cls._tmp / "data"
        os.environ["NUTRILEDGER_DATA_ROOT"] = str(data_root)
        os.environ["NUTRILEDGER_DB_PATH"] = str(data_root / "ledger.db")
        os.environ["NUTRILEDGER_MIRROR_ROOT"] = str(data_root / "mirror")
        os.environ["NUTRILEDGER_JWT_SECRET"] = "test-secret"
        # Nothing listens here; analysis and product calls fail fast.
        os.environ["ANALYSIS_BASE_URL"] = "http://127.0.0.1:1"
        os.environ["OPENFOODFACTS_BASE_URL"] = "http://127.0.0.1:1"

        # Ensure settings/app reflect the env vars above.
        for name in list(sys.modules.keys()):
            if name.startswith("nutriledger."):
                sys.modules.pop(name, None)

        from nutriledger.api import app  # noqa: WPS433 (import inside test for env control)

        cls.client = TestClient(app)
        cls.client.__enter__()

    @classmethod
    def tearDownClass(cls) -> None:
        cls.client.__exit__(None, None, None)
        shutil.rmtree(cls._tmp, ignore_errors=True)

    def _register(self, email: str) -> dict:
        resp = self.client.post(
            "/api/auth/register",
            json={"email": email, "password": "password123", "onboarding": ONBOARDING},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def _headers(self, email: str) -> dict:
        return {"Authorization": f"Bearer {self._register(email)['token']}"}

    def test_health_is_public(self) -> None:
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")

    def test_context_is_built_at_startup(self) -> None:
        from nutriledger.deps import get_context

        self.assertEqual(get_context.cache_info().currsize, 1)
        self.assertTrue(get_context().mirror.online)

    def test_auth_required(self) -> None:
        self.assertEqual(self.client.get("/api/nutrition/targets").status_code, 401)
        resp = self.client.get("/api/nutrition/targets", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["code"], "UNAUTHORIZED")

    def test_register_login_and_me(self) -> None:
        data = self._register("ayala@example.com")
        self.assertEqual(data["user"]["email"], "ayala@example.com")
        self.assertEqual(data["profile"]["goal"], "lose_weight")
        self.assertEqual(data["profile"]["birth_date"], "1992-04-20")

        resp = self.client.post("/api/auth/login", json={"email": "ayala@example.com", "password": "password123"})
        self.assertEqual(resp.status_code, 200)
        token = resp.json()["token"]
        me = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.json()["id"], data["user"]["id"])

        bad = self.client.post("/api/auth/login", json={"email": "ayala@example.com", "password": "wrong-password"})
        self.assertEqual(bad.status_code, 401)

        dup = self.client.post(
            "/api/auth/register",
            json={"email": "ayala@example.com", "password": "password123", "onboarding": ONBOARDING},
        )
        self.assertEqual(dup.status_code, 409)
        self.assertEqual(dup.json()["code"], "CONFLICT")

    def test_incomplete_onboarding_is_rejected(self) -> None:
        partial = {k: v for k, v in ONBOARDING.items() if k != "weekly_rate"}
        resp = self.client.post(
            "/api/auth/register",
            json={"email": "partial@example.com", "password": "password123", "onboarding": partial},
        )
        self.assertEqual(resp.status_code, 422)
        self.assertIn("weekly_rate", resp.json()["details"]["fields"])
        login = self.client.post("/api/auth/login", json={"email": "partial@example.com", "password": "password123"})
        self.assertEqual(login.status_code, 401)

    def test_targets_follow_weight_and_profile(self) -> None:
        headers = self._headers("weights@example.com")
        initial = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertEqual(initial["source"], "calculated")
        self.assertFalse(initial["manually_edited"])
        self.assertGreaterEqual(initial["targets"]["calories"], 1200)

        sample = self.client.post("/api/weight", json={"weight": 90}, headers=headers).json()
        heavier = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertGreater(heavier["targets"]["calories"], initial["targets"]["calories"])

        history = self.client.get("/api/weight", headers=headers).json()
        self.assertEqual(history["count"], 2)
        self.assertEqual(history["current_weight"], 90)

        resp = self.client.delete(f"/api/weight/{sample['id']}", headers=headers)
        self.assertEqual(resp.json(), {"deleted": True, "was_latest": True})
        restored = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertEqual(restored["targets"], initial["targets"])

        resp = self.client.patch("/api/onboarding", json={"field": "activity_level", "value": "active"}, headers=headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["profile"]["activity_level"], "active")
        self.assertEqual(resp.json()["current_weight"], 70)
        active = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertGreater(active["targets"]["calories"], initial["targets"]["calories"])

        resp = self.client.patch("/api/onboarding", json={"field": "favourite_food", "value": "hummus"}, headers=headers)
        self.assertEqual(resp.status_code, 422)

    def test_override_survives_recalculation_until_cleared(self) -> None:
        headers = self._headers("override@example.com")
        computed = self.client.get("/api/nutrition/targets", headers=headers).json()["targets"]
        override = {"calories": 1850, "protein": 140, "carbs": 190, "fat": 65}

        resp = self.client.put("/api/nutrition/override", json=override, headers=headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["source"], "override")
        expected = {"calories": 1850, "protein_g": 140, "carbs_g": 190, "fat_g": 65}
        self.assertEqual(resp.json()["targets"], expected)

        self.client.post("/api/weight", json={"weight": 85}, headers=headers)
        self.client.patch("/api/onboarding", json={"field": "height", "value": 175}, headers=headers)
        state = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertEqual(state["targets"], expected)
        self.assertTrue(state["manually_edited"])

        cleared = self.client.post("/api/nutrition/recalculate", headers=headers).json()
        self.assertEqual(cleared["source"], "calculated")
        self.assertFalse(cleared["manually_edited"])
        self.assertNotEqual(cleared["targets"], expected)
        self.assertNotEqual(cleared["targets"], computed)

    def test_override_bounds(self) -> None:
        headers = self._headers("bounds@example.com")
        resp = self.client.put(
            "/api/nutrition/override",
            json={"calories": 800, "protein": 140, "carbs": 190, "fat": 65},
            headers=headers,
        )
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(list(resp.json()["details"]["fields"]), ["calories"])
        state = self.client.get("/api/nutrition/targets", headers=headers).json()
        self.assertEqual(state["source"], "calculated")

    def test_meal_log_and_progress(self) -> None:
        headers = self._headers("meals@example.com")
        draft = {"name": "Shakshuka", "calories": 420, "protein_g": 24, "carbs_g": 18, "fat_g": 28}
        first = self.client.post("/api/meals", json={"draft": draft, "timestamp": "2024-03-11T08:30:00"}, headers=headers)
        self.assertEqual(first.status_code, 200, first.text)
        self.client.post(
            "/api/meals",
            json={"draft": {**draft, "name": "Falafel", "calories": 380}, "timestamp": "2024-03-11T13:00:00"},
            headers=headers,
        )

        day = self.client.get("/api/meals", params={"date": "2024-03-11"}, headers=headers).json()
        self.assertEqual([m["name"] for m in day["meals"]], ["Falafel", "Shakshuka"])
        self.assertEqual(day["summary"]["calories"], 800)
        self.assertEqual(day["summary"]["meal_count"], 2)

        chart = self.client.get("/api/progress/chart", params={"range": "week", "date": "2024-03-13"}, headers=headers).json()
        self.assertEqual(len(chart["buckets"]), 7)
        self.assertEqual([b["value"] for b in chart["buckets"]], [0, 800, 0, 0, 0, 0, 0])

        year = self.client.get("/api/progress/chart", params={"range": "year", "date": "2024-03-13"}, headers=headers).json()
        self.assertEqual(len(year["buckets"]), 12)
        self.assertEqual(year["buckets"][2]["value"], 800)

        bad_metric = self.client.get("/api/progress/chart", params={"metric": "sodium"}, headers=headers)
        self.assertEqual(bad_metric.status_code, 422)

        summary = self.client.get("/api/progress/summary", params={"date": "2024-03-11"}, headers=headers).json()
        self.assertEqual(summary["protein_g"], 48)

        resp = self.client.delete(f"/api/meals/{first.json()['id']}", headers=headers)
        self.assertEqual(resp.status_code, 200)
        again = self.client.delete(f"/api/meals/{first.json()['id']}", headers=headers)
        self.assertEqual(again.status_code, 404)
        day = self.client.get("/api/meals", params={"date": "2024-03-11"}, headers=headers).json()
        self.assertEqual(day["summary"]["calories"], 380)

    def test_navigation(self) -> None:
        headers = self._headers("nav@example.com")
        today = self.client.get("/api/progress/navigate", params={"range": "day", "direction": 1}, headers=headers).json()
        self.assertFalse(today["moved"])
        back = self.client.get(
            "/api/progress/navigate",
            params={"range": "month", "date": "2024-03-31", "direction": -1},
            headers=headers,
        ).json()
        self.assertEqual(back["reference_date"], "2024-02-29")
        self.assertTrue(back["moved"])

    def test_goal_progress(self) -> None:
        headers = self._headers("goal@example.com")
        self.client.post("/api/weight", json={"weight": 66}, headers=headers)
        goal = self.client.get("/api/progress/goal", headers=headers).json()
        self.assertEqual(goal["start_weight"], 70)
        self.assertEqual(goal["current_weight"], 66)
        self.assertEqual(goal["progress_percent"], 50.0)
        self.assertEqual(goal["change_direction"], "down")
        self.assertEqual(goal["change_amount"], 4.0)
        self.assertEqual(goal["weeks_to_goal"], 8)

    def test_portion_endpoints(self) -> None:
        headers = self._headers("portions@example.com")
        draft = {"name": "Yogurt", "calories": 97, "protein_g": 9, "carbs_g": 3.6, "fat_g": 5, "portion_size": 100}
        scaled = self.client.post("/api/meals/scale", json={"draft": draft, "size": 200}, headers=headers).json()
        self.assertEqual(scaled["calories"], 194)
        self.assertEqual(scaled["carbs_g"], 7.2)
        self.assertEqual(scaled["portion_size"], 200)

        bad = self.client.get("/api/meals/barcode/not-a-code", headers=headers)
        self.assertEqual(bad.status_code, 422)
        down = self.client.get("/api/meals/barcode/7290000000017", headers=headers)
        self.assertEqual(down.status_code, 502)

        abandoned = self.client.post("/api/meals/analyze/unknown/abandon", headers=headers).json()
        self.assertEqual(abandoned, {"abandoned": False})

    def test_preferences(self) -> None:
        headers = self._headers("prefs@example.com")
        prefs = self.client.get("/api/preferences", headers=headers).json()
        self.assertTrue(all(prefs.values()))
        updated = {**prefs, "show_fat_bar": False}
        self.assertEqual(self.client.put("/api/preferences", json=updated, headers=headers).json(), updated)
        self.assertFalse(self.client.get("/api/preferences", headers=headers).json()["show_fat_bar"])


if __name__ == "__main__":
    unittest.main()
