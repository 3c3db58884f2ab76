from __future__ import annotations

import os
from pathlib import Path
from typing import List


class Settings:
    """Centralized configuration for the nutrition ledger service."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        repo_root = base_dir.parent
        data_root_default = repo_root / "data"

        self.data_root: Path = Path(
            os.environ.get("NUTRILEDGER_DATA_ROOT") or data_root_default
        ).expanduser()
        self.db_path: Path = Path(
            os.environ.get("NUTRILEDGER_DB_PATH") or (self.data_root / "foodTracker_v3.db")
        ).expanduser()
        # Remote mirror (document store). Defaults to a sibling directory of the local DB.
        self.mirror_root: Path = Path(
            os.environ.get("NUTRILEDGER_MIRROR_ROOT") or (self.data_root / "mirror")
        ).expanduser()

        # In production you MUST set NUTRILEDGER_JWT_SECRET.
        self.jwt_secret: str = os.environ.get("NUTRILEDGER_JWT_SECRET") or "dev-secret-change-me"
        self.token_ttl_days: int = int(os.environ.get("NUTRILEDGER_TOKEN_TTL_DAYS") or "7")

        # ---- Meal analysis job ----
        self.analysis_base_url: str = os.environ.get(
            "ANALYSIS_BASE_URL", "http://127.0.0.1:5000"
        )
        self.analysis_poll_interval: float = float(
            os.environ.get("ANALYSIS_POLL_INTERVAL") or "3"
        )
        self.analysis_max_attempts: int = int(
            os.environ.get("ANALYSIS_MAX_ATTEMPTS") or "20"
        )
        self.analysis_timeout: float = float(os.environ.get("ANALYSIS_TIMEOUT") or "30")

        # ---- Product lookup ----
        self.openfoodfacts_base_url: str = os.environ.get(
            "OPENFOODFACTS_BASE_URL", "https://world.openfoodfacts.org"
        )
        self.product_lookup_timeout: float = float(
            os.environ.get("OPENFOODFACTS_TIMEOUT") or "10"
        )

        cors = os.environ.get("NUTRILEDGER_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [
                origin.strip() for origin in cors.split(",") if origin.strip()
            ]


settings = Settings()
