"""JSON document collections on top of fsspec.

Each collection is a single JSON file holding ``{"updated_at", "items"}``.
Writers hold a per-collection lock for the whole read-modify-write cycle so
an upsert is atomic within the process.
"""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

import fsspec

from galley_core.errors import PersistenceError

_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(uri: str) -> threading.RLock:
    with _LOCKS_GUARD:
        lock = _LOCKS.get(uri)
        if lock is None:
            lock = threading.RLock()
            _LOCKS[uri] = lock
        return lock


@contextmanager
def collection_lock(uri: str) -> Iterator[None]:
    lock = _lock_for(uri)
    with lock:
        yield


def load_items(uri: str) -> list[dict[str, Any]]:
    try:
        fs, path = fsspec.core.url_to_fs(uri)
        if not fs.exists(path):
            return []
        with fs.open(path, "rb") as handle:
            payload = json.loads(handle.read().decode("utf-8"))
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"Failed to read {uri}") from exc
    items = payload.get("items", []) if isinstance(payload, dict) else []
    return [item for item in items if isinstance(item, dict)]


def save_items(uri: str, items: Iterable[dict[str, Any]]) -> str:
    payload = {
        "updated_at": datetime.now(timezone.utc).isoformat(),
        "items": list(items),
    }
    try:
        fs, path = fsspec.core.url_to_fs(uri)
        parent = "/".join(path.split("/")[:-1])
        if parent:
            fs.makedirs(parent, exist_ok=True)
        with fs.open(path, "wb") as handle:
            handle.write(json.dumps(payload, ensure_ascii=True).encode("utf-8"))
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(f"Failed to write {uri}") from exc
    return uri
