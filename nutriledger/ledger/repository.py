# -*- coding: utf-8 -*-
"""
Dual-write repository.

Every mutation is committed to SQLite first. The matching mirror write is
issued right after as a tracked background task unless the caller asks to
await it. Mirror failures on background writes are logged and queued; they
are retried by ``sync()``. Reads on the critical path only touch SQLite.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from ..app_db import db_conn
from ..errors import MirrorUnavailable, NotFound
from ..mirror.store import SERVER_TIMESTAMP, DocumentMirror

if TYPE_CHECKING:
    from ..identity.provider import IdentityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitySpec:
    name: str
    table: str
    key: str
    columns: Tuple[str, ...]
    # Mirror collection under users/<uid>; None means the user document itself.
    collection: Optional[str] = None
    # Fixed document id inside the collection (settings documents).
    doc_id: Optional[str] = None

    def mirror_path(self, user_id: str, key: str) -> str:
        if self.collection is None:
            return f"users/{user_id}"
        return f"users/{user_id}/{self.collection}/{self.doc_id or key}"


ENTITIES: Dict[str, EntitySpec] = {
    "onboarding": EntitySpec(
        name="onboarding",
        table="onboarding",
        key="user_id",
        columns=(
            "user_id",
            "goal",
            "age",
            "gender",
            "height",
            "weight",
            "activityLevel",
            "activityType",
            "experienceLevel",
            "targetWeight",
            "weeklyRate",
            "createdAt",
        ),
    ),
    "weight": EntitySpec(
        name="weight",
        table="weight",
        key="id",
        columns=("id", "user_id", "weight", "timestamp"),
        collection="weight",
    ),
    "meals": EntitySpec(
        name="meals",
        table="meals",
        key="id",
        columns=(
            "id",
            "user_id",
            "name",
            "calories",
            "protein_g",
            "carbs_g",
            "fat_g",
            "timestamp",
            "portion_size",
            "portion_unit",
            "ingredients_json",
        ),
        collection="meals",
    ),
    "custom_nutrition": EntitySpec(
        name="custom_nutrition",
        table="custom_nutrition",
        key="user_id",
        columns=("user_id", "calories", "protein", "fat", "carbs"),
        collection="settings",
        doc_id="custom_nutrition",
    ),
    "display_preferences": EntitySpec(
        name="display_preferences",
        table="display_preferences",
        key="user_id",
        columns=(
            "user_id",
            "show_calories_circle",
            "show_protein_bar",
            "show_fat_bar",
            "show_carbs_bar",
        ),
        collection="settings",
        doc_id="display_preferences",
    ),
}


def entity_spec(entity: str) -> EntitySpec:
    try:
        return ENTITIES[entity]
    except KeyError:
        raise ValueError(f"Unknown entity: {entity}") from None


@dataclass
class PendingRemote:
    op: str  # "set" | "delete"
    entity: str
    user_id: str
    key: str
    data: Optional[Dict[str, Any]] = None


class DualWriteRepository:
    def __init__(
        self,
        db_path: Path,
        mirror: Optional[DocumentMirror],
        identity: Optional[IdentityProvider] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.mirror = mirror
        self.identity = identity
        self.pending: List[PendingRemote] = []
        self._tasks: Set[asyncio.Task] = set()
        # Deleted locally, remote delete not yet applied.
        self._tombstones: Set[Tuple[str, str]] = set()

    # ---------------- local store ----------------

    def _filter(self, spec: EntitySpec, values: Dict[str, Any]) -> Dict[str, Any]:
        return {k: values[k] for k in spec.columns if k in values}

    def commit_local(self, entity: str, values: Dict[str, Any]) -> str:
        """Upsert a row by its key. Re-applying the same row is a no-op."""
        spec = entity_spec(entity)
        row = self._filter(spec, values)
        if spec.key not in row or row[spec.key] in (None, ""):
            raise ValueError(f"{entity}: missing key column {spec.key}")
        cols = list(row.keys())
        placeholders = ", ".join("?" for _ in cols)
        updates = ", ".join(f"{c} = excluded.{c}" for c in cols if c != spec.key)
        sql = f"INSERT INTO {spec.table} ({', '.join(cols)}) VALUES ({placeholders})"
        sql += f" ON CONFLICT({spec.key}) DO UPDATE SET {updates}" if updates else f" ON CONFLICT({spec.key}) DO NOTHING"
        with db_conn(self.db_path) as conn:
            conn.execute(sql, [row[c] for c in cols])
        return str(row[spec.key])

    def update_local(self, entity: str, key: str, patch: Dict[str, Any]) -> bool:
        spec = entity_spec(entity)
        row = {k: v for k, v in self._filter(spec, patch).items() if k != spec.key}
        if not row:
            return self.get_local(entity, key) is not None
        assignments = ", ".join(f"{c} = ?" for c in row)
        with db_conn(self.db_path) as conn:
            cur = conn.execute(
                f"UPDATE {spec.table} SET {assignments} WHERE {spec.key} = ?",
                [*row.values(), key],
            )
            return cur.rowcount > 0

    def delete_local(self, entity: str, key: str) -> bool:
        spec = entity_spec(entity)
        with db_conn(self.db_path) as conn:
            cur = conn.execute(f"DELETE FROM {spec.table} WHERE {spec.key} = ?", (key,))
            return cur.rowcount > 0

    def read_local(
        self,
        entity: str,
        where: Optional[Dict[str, Any]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        spec = entity_spec(entity)
        where = where or {}
        for col in list(where) + ([order_by] if order_by else []):
            if col not in spec.columns:
                raise ValueError(f"{entity}: unknown column {col}")
        sql = f"SELECT * FROM {spec.table}"
        if where:
            sql += " WHERE " + " AND ".join(f"{c} = ?" for c in where)
        if order_by:
            sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        with db_conn(self.db_path) as conn:
            rows = conn.execute(sql, list(where.values())).fetchall()
        return [dict(r) for r in rows]

    def get_local(self, entity: str, key: str) -> Optional[Dict[str, Any]]:
        spec = entity_spec(entity)
        rows = self.read_local(entity, {spec.key: key})
        return rows[0] if rows else None

    def is_tombstoned(self, entity: str, key: str) -> bool:
        return (entity, key) in self._tombstones

    # ---------------- remote mirror ----------------

    def _remote_enabled(self) -> bool:
        if self.mirror is None:
            return False
        if self.identity is None or self.identity.current_user_id() is None:
            return False
        return True

    @staticmethod
    def _document(spec: EntitySpec, data: Dict[str, Any]) -> Dict[str, Any]:
        if spec.name == "onboarding":
            profile = {k: v for k, v in data.items() if k not in ("user_id", "createdAt")}
            doc: Dict[str, Any] = {"onboarding": profile, "updatedAt": SERVER_TIMESTAMP}
            if "createdAt" in data:
                doc["createdAt"] = data["createdAt"] or SERVER_TIMESTAMP
            return doc
        return {**data, "updatedAt": SERVER_TIMESTAMP}

    async def commit_remote(self, entity: str, user_id: str, key: str, data: Dict[str, Any]) -> None:
        spec = entity_spec(entity)
        if self.mirror is None:
            raise MirrorUnavailable("No remote mirror configured")
        await self.mirror.set(spec.mirror_path(user_id, key), self._document(spec, data), merge=True)

    async def delete_remote(self, entity: str, user_id: str, key: str) -> None:
        spec = entity_spec(entity)
        if self.mirror is None:
            raise MirrorUnavailable("No remote mirror configured")
        await self.mirror.delete(spec.mirror_path(user_id, key))

    async def _apply(self, item: PendingRemote) -> None:
        if item.op == "delete":
            await self.delete_remote(item.entity, item.user_id, item.key)
            self._tombstones.discard((item.entity, item.key))
        else:
            await self.commit_remote(item.entity, item.user_id, item.key, item.data or {})

    async def _background(self, item: PendingRemote) -> None:
        try:
            await self._apply(item)
        except MirrorUnavailable as exc:
            logger.warning("Remote %s of %s/%s deferred: %s", item.op, item.entity, item.key, exc)
            self.pending.append(item)
        except Exception as exc:
            logger.error("Remote %s of %s/%s failed, queued for retry: %s", item.op, item.entity, item.key, exc)
            self.pending.append(item)

    async def _remote(self, item: PendingRemote, await_remote: bool) -> None:
        if not self._remote_enabled():
            logger.debug("Local-only mode; skipping remote %s of %s", item.op, item.entity)
            return
        if await_remote:
            await self._apply(item)
            return
        task = asyncio.get_running_loop().create_task(self._background(item))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every outstanding background remote commit."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def sync(self) -> int:
        """Retry deferred remote commits in order; returns how many went through."""
        await self.drain()
        if not self._remote_enabled():
            return 0
        queued, self.pending = self.pending, []
        done = 0
        for index, item in enumerate(queued):
            try:
                await self._apply(item)
                done += 1
            except Exception as exc:
                logger.warning("Remote sync stopped at %s/%s: %s", item.entity, item.key, exc)
                self.pending = queued[index:] + self.pending
                break
        if done:
            logger.info("Synced %d deferred remote commits", done)
        return done

    async def read_remote(self, entity: str, user_id: str) -> List[Dict[str, Any]]:
        spec = entity_spec(entity)
        if self.mirror is None:
            raise MirrorUnavailable("No remote mirror configured")
        if spec.collection is None:
            doc = await self.mirror.get(f"users/{user_id}")
            if not doc or not isinstance(doc.get("onboarding"), dict):
                return []
            row = dict(doc["onboarding"])
            row["user_id"] = user_id
            if doc.get("createdAt"):
                row["createdAt"] = doc["createdAt"]
            return [row]
        if spec.doc_id:
            doc = await self.mirror.get(spec.mirror_path(user_id, spec.doc_id))
            return [dict(doc, user_id=user_id)] if doc else []
        docs = await self.mirror.list(f"users/{user_id}/{spec.collection}")
        return [dict(d, user_id=d.get("user_id") or user_id) for d in docs]

    # ---------------- dual write ----------------

    async def write(self, entity: str, values: Dict[str, Any], *, await_remote: bool = False) -> str:
        spec = entity_spec(entity)
        row = self._filter(spec, values)
        if spec.key == "id" and not row.get("id"):
            row["id"] = str(uuid4())
        key = self.commit_local(entity, row)
        logger.info("Committed %s %s locally", entity, key)
        await self._remote(PendingRemote("set", entity, str(row["user_id"]), key, row), await_remote)
        return key

    async def update(
        self,
        entity: str,
        key: str,
        patch: Dict[str, Any],
        *,
        await_remote: bool = False,
    ) -> Dict[str, Any]:
        spec = entity_spec(entity)
        if not self.update_local(entity, key, patch):
            raise NotFound(f"{entity} {key} not found")
        row = self.get_local(entity, key) or {}
        changed = {k: v for k, v in self._filter(spec, patch).items() if k != spec.key}
        if spec.key == "id":
            changed["user_id"] = row["user_id"]
        await self._remote(PendingRemote("set", entity, str(row["user_id"]), key, changed), await_remote)
        return row

    async def delete(self, entity: str, key: str, *, await_remote: bool = False) -> bool:
        row = self.get_local(entity, key)
        if row is None:
            return False
        self.delete_local(entity, key)
        if self._remote_enabled():
            self._tombstones.add((entity, key))
        logger.info("Deleted %s %s locally", entity, key)
        await self._remote(PendingRemote("delete", entity, str(row["user_id"]), key), await_remote)
        return True
