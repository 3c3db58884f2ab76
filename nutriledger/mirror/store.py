# -*- coding: utf-8 -*-
"""
Remote mirror: a JSON document store with merge-writes and a live feed.

Documents are addressed by slash-separated paths. ``users/<uid>`` is stored at
``<root>/users/<uid>.json`` and a record in a subcollection, e.g.
``users/<uid>/meals/<id>``, at ``<root>/users/<uid>/meals/<id>.json``.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from ..errors import MirrorUnavailable

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Placeholder replaced by the mirror clock when a document is committed."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

Snapshot = List[Dict[str, Any]]
FeedHandler = Callable[[Snapshot], Union[None, Awaitable[None]]]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _resolve_sentinels(value: Any, stamp: str) -> Any:
    if isinstance(value, _ServerTimestamp):
        return stamp
    if isinstance(value, dict):
        return {k: _resolve_sentinels(v, stamp) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_sentinels(v, stamp) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _split(path: str) -> List[str]:
    parts = [p for p in path.strip("/").split("/")]
    if not parts or any(not p or p in {".", ".."} for p in parts):
        raise ValueError(f"Invalid document path: {path!r}")
    return parts


class DocumentMirror:
    def __init__(self, root: Path, *, clock: Optional[Callable[[], str]] = None) -> None:
        self.root = Path(root)
        self.online = True
        self._clock = clock or _utc_now_iso
        self._subscribers: Dict[Tuple[str, str], List[FeedHandler]] = {}
        self._feed_tasks: Set[asyncio.Task] = set()

    # ---------------- paths ----------------

    def _doc_file(self, path: str) -> Path:
        parts = _split(path)
        return self.root.joinpath(*parts[:-1]) / f"{parts[-1]}.json"

    def _collection_dir(self, path: str) -> Path:
        return self.root.joinpath(*_split(path))

    def _check_online(self) -> None:
        if not self.online:
            raise MirrorUnavailable("Remote mirror is offline")

    # ---------------- documents ----------------

    def _read_file(self, fp: Path) -> Optional[Dict[str, Any]]:
        if not fp.exists():
            return None
        try:
            raw = json.loads(fp.read_text(encoding="utf-8"))
        except OSError as exc:
            raise MirrorUnavailable(f"Mirror read failed: {exc}") from exc
        except ValueError:
            logger.warning("Ignoring unreadable mirror document %s", fp)
            return None
        return raw if isinstance(raw, dict) else None

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        self._check_online()
        return self._read_file(self._doc_file(path))

    async def set(self, path: str, data: Dict[str, Any], *, merge: bool = True) -> Dict[str, Any]:
        self._check_online()
        fp = self._doc_file(path)
        resolved = _resolve_sentinels(data, self._clock())
        if merge:
            current = self._read_file(fp) or {}
            resolved = _deep_merge(current, resolved)
        try:
            fp.parent.mkdir(parents=True, exist_ok=True)
            tmp = fp.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(resolved, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(fp)
        except OSError as exc:
            raise MirrorUnavailable(f"Mirror write failed: {exc}") from exc
        self._notify(path)
        return resolved

    async def delete(self, path: str) -> bool:
        self._check_online()
        fp = self._doc_file(path)
        if not fp.exists():
            return False
        try:
            fp.unlink()
        except OSError as exc:
            raise MirrorUnavailable(f"Mirror delete failed: {exc}") from exc
        self._notify(path)
        return True

    def _snapshot(self, collection_path: str) -> Snapshot:
        folder = self._collection_dir(collection_path)
        if not folder.is_dir():
            return []
        docs: Snapshot = []
        for fp in sorted(folder.glob("*.json")):
            raw = self._read_file(fp)
            if raw is None:
                continue
            raw.setdefault("id", fp.stem)
            docs.append(raw)
        return docs

    async def list(self, collection_path: str) -> Snapshot:
        self._check_online()
        return self._snapshot(collection_path)

    # ---------------- live feed ----------------

    def subscribe(self, user_id: str, collection: str, handler: FeedHandler) -> Callable[[], None]:
        """Call ``handler`` with the full collection snapshot on every change under it."""
        key = (user_id, collection)
        self._subscribers.setdefault(key, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(key) or []
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def _notify(self, path: str) -> None:
        parts = _split(path)
        if len(parts) < 4 or parts[0] != "users":
            return
        key = (parts[1], parts[2])
        handlers = list(self._subscribers.get(key) or [])
        if not handlers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        for handler in handlers:
            task = loop.create_task(self._deliver(handler, key))
            self._feed_tasks.add(task)
            task.add_done_callback(self._feed_tasks.discard)

    async def _deliver(self, handler: FeedHandler, key: Tuple[str, str]) -> None:
        try:
            # Read at delivery time so a late handler never sees an older state.
            snapshot = self._snapshot(f"users/{key[0]}/{key[1]}")
            result = handler(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error("Mirror feed handler for %s/%s failed: %s", key[0], key[1], exc)

    async def flush(self) -> None:
        """Wait until every pending feed delivery has run."""
        while self._feed_tasks:
            await asyncio.gather(*list(self._feed_tasks))
