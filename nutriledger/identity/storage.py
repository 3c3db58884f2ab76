# -*- coding: utf-8 -*-
"""Identity: the local ``users`` table behind ``LocalIdentityProvider``."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from ..app_db import db_conn
from ..errors import Conflict
from ..ledger.models import utc_iso

_COLUMNS = "id, email, password_hash, created_at"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def insert_user(db_path: Path, email: str, password_hash: str) -> Dict[str, Any]:
    row = {
        "id": str(uuid4()),
        "email": normalize_email(email),
        "password_hash": password_hash,
        "created_at": utc_iso(datetime.now()),
    }
    try:
        with db_conn(db_path) as conn:
            conn.execute(
                f"INSERT INTO users ({_COLUMNS}) VALUES (:id, :email, :password_hash, :created_at)",
                row,
            )
    except sqlite3.IntegrityError as exc:
        raise Conflict("Email already registered", details={"email": row["email"]}) from exc
    return row


def find_user(
    db_path: Path,
    *,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Look a user up by exactly one of ``user_id`` or ``email``."""
    if (user_id is None) == (email is None):
        raise ValueError("pass exactly one of user_id or email")
    column, value = ("id", user_id) if user_id is not None else ("email", normalize_email(email))
    with db_conn(db_path) as conn:
        row = conn.execute(f"SELECT {_COLUMNS} FROM users WHERE {column} = ?", (value,)).fetchone()
    return dict(row) if row else None


def remove_user(db_path: Path, user_id: str) -> bool:
    with db_conn(db_path) as conn:
        return conn.execute("DELETE FROM users WHERE id = ?", (user_id,)).rowcount > 0
