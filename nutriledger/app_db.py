# -*- coding: utf-8 -*-
"""Local ledger database — SQLite schema, additive migrations and helpers."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple

logger = logging.getLogger(__name__)

# (table, column, declaration, backfill SQL expression)
_ADDITIVE_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("onboarding", "createdAt", "TEXT", "CURRENT_TIMESTAMP"),
    ("meals", "portion_size", "REAL", "NULL"),
    ("meals", "portion_unit", "TEXT", "NULL"),
    ("meals", "ingredients_json", "TEXT", "'[]'"),
]


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _column_names(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row["name"] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}


def _apply_additive_migrations(conn: sqlite3.Connection) -> None:
    for table, column, decl, backfill in _ADDITIVE_COLUMNS:
        if column in _column_names(conn, table):
            continue
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl};")
        if backfill != "NULL":
            conn.execute(f"UPDATE {table} SET {column} = {backfill} WHERE {column} IS NULL;")
        logger.info("Added column %s.%s", table, column)


def init_app_db(db_path: Path) -> None:
    conn = connect(db_path)
    try:
        cur = conn.cursor()
        # Base onboarding table predates createdAt; the migration step adds it.
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS onboarding (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id          TEXT UNIQUE,
                goal             TEXT,
                age              TEXT,
                gender           TEXT,
                height           REAL,
                weight           REAL,
                activityLevel    TEXT,
                activityType     TEXT,
                experienceLevel  TEXT,
                targetWeight     REAL,
                weeklyRate       REAL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS weight (
                id        TEXT PRIMARY KEY,
                user_id   TEXT NOT NULL,
                weight    REAL NOT NULL,
                timestamp TEXT NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_weight_user_ts ON weight(user_id, timestamp);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS meals (
                id         TEXT PRIMARY KEY,
                user_id    TEXT NOT NULL,
                name       TEXT,
                calories   INTEGER,
                protein_g  INTEGER,
                carbs_g    INTEGER,
                fat_g      INTEGER,
                timestamp  TEXT NOT NULL
            );
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_meals_user_ts ON meals(user_id, timestamp);"
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS custom_nutrition (
                user_id  TEXT PRIMARY KEY,
                calories REAL,
                protein  REAL,
                fat      REAL,
                carbs    REAL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS display_preferences (
                user_id              TEXT PRIMARY KEY,
                show_calories_circle INTEGER NOT NULL DEFAULT 1,
                show_protein_bar     INTEGER NOT NULL DEFAULT 1,
                show_fat_bar         INTEGER NOT NULL DEFAULT 1,
                show_carbs_bar       INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )
        _apply_additive_migrations(conn)
        conn.commit()
    finally:
        conn.close()


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
