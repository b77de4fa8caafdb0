"""
Continue-watching and watchlist persistence.

Both lists live as JSON strings in a key-value store. Every write goes through
``store.update``, a read-merge-write under the store's lock, so concurrent
callers never lose each other's updates. Unparseable values count as empty.
"""
from __future__ import annotations
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .base import ResumeEntry
from .ports import KeyValueStore

log = logging.getLogger("reelbox.playback")

CONTINUE_WATCHING_KEY = "AG Movies-continue-watching"
WATCHLIST_KEY = "AG Movies-watchlist"

MAX_ENTRIES = 10
MIN_SAVE_SECONDS = 30
FINISHED_RATIO = 0.95
MIN_RESUME_SECONDS = 30


# ──────────────────────────────
#  Key-value stores
# ──────────────────────────────
class MemoryStore:
    def __init__(self, data: dict[str, str] | None = None):
        self.data = dict(data or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self.data[key] = value

    def update(self, key: str, fn: Callable[[Optional[str]], Optional[str]]) -> None:
        with self._lock:
            value = fn(self.data.get(key))
            if value is not None:
                self.data[key] = value


# One lock per file, shared by every JsonFileStore pointing at it
_file_locks: dict[Path, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _file_locks_guard:
        return _file_locks.setdefault(key, threading.Lock())


class JsonFileStore:
    """All keys in one JSON object on disk, replaced atomically on every write."""

    def __init__(self, path: str | Path):
        self.file = Path(path)
        self._lock = _lock_for(self.file)

    def _read(self) -> dict:
        if not self.file.exists():
            return {}
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.error(f"Unreadable store {self.file}, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        self.file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.file.parent, prefix=f".{self.file.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.file)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.update(key, lambda _: value)

    def update(self, key: str, fn: Callable[[Optional[str]], Optional[str]]) -> None:
        with self._lock:
            data = self._read()
            current = data.get(key)
            value = fn(current if isinstance(current, str) else None)
            if value is None:
                return
            data[key] = value
            self._write(data)


def _parse_list(raw: Optional[str], key: str) -> list:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError as e:
        log.error(f"Error parsing {key!r} data: {e}")
        return []
    if not isinstance(data, list):
        log.error(f"Ignoring {key!r}: expected a list, got {type(data).__name__}")
        return []
    return data


# ──────────────────────────────
#  Resume / progress
# ──────────────────────────────
class ResumeStore:
    def __init__(self, store: KeyValueStore, *, key: str = CONTINUE_WATCHING_KEY):
        self.store = store
        self.key = key

    def _entries(self, raw: Optional[str]) -> list[ResumeEntry]:
        out = []
        for item in _parse_list(raw, self.key):
            try:
                out.append(ResumeEntry.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError):
                log.warning(f"Skipping malformed resume entry: {item!r}")
        return out

    def entries(self, limit: int | None = None) -> list[ResumeEntry]:
        out = self._entries(self.store.get(self.key))
        return out[:limit] if limit is not None else out

    def _modify(self, fn: Callable[[list[ResumeEntry]], Optional[list[ResumeEntry]]]):
        def apply(raw):
            entries = fn(self._entries(raw))
            if entries is None:
                return None
            return json.dumps([e.to_dict() for e in entries])

        self.store.update(self.key, apply)

    def save_progress(self, content_id: str, current_time: float, duration: float,
                      snapshot: dict | None = None) -> bool:
        """Record a position; returns False when the save was skipped."""
        if current_time < MIN_SAVE_SECONDS:
            return False
        if not duration or duration <= 0 or current_time / duration > FINISHED_RATIO:
            return False

        content_id = str(content_id)
        entry = ResumeEntry(
            movie_id=content_id,
            current_time=current_time,
            duration=duration,
            last_watched=datetime.now(timezone.utc).isoformat(),
            movie=snapshot,
        )

        def put_first(entries):
            kept = [e for e in entries if e.movie_id != content_id]
            return [entry, *kept][:MAX_ENTRIES]

        self._modify(put_first)
        return True

    def get_last_watched_time(self, content_id: str) -> float:
        content_id = str(content_id)
        for entry in self.entries():
            if entry.movie_id == content_id:
                return entry.current_time or 0.0
        return 0.0

    def resume_position(self, content_id: str, start_time: float = 0) -> float:
        """Where playback should jump on entry; 0 means stay at the start."""
        if start_time:
            return 0.0
        last = self.get_last_watched_time(content_id)
        return last if last > MIN_RESUME_SECONDS else 0.0

    def remove(self, content_id: str) -> None:
        content_id = str(content_id)

        def drop(entries):
            kept = [e for e in entries if e.movie_id != content_id]
            return kept if len(kept) != len(entries) else None

        self._modify(drop)


# ──────────────────────────────
#  Watchlist (saved items)
# ──────────────────────────────
class Watchlist:
    def __init__(self, store: KeyValueStore, *, key: str = WATCHLIST_KEY):
        self.store = store
        self.key = key

    def _items(self, raw: Optional[str]) -> list[dict]:
        return [i for i in _parse_list(raw, self.key) if isinstance(i, dict) and "id" in i]

    def items(self) -> list[dict]:
        return self._items(self.store.get(self.key))

    def add(self, item: dict) -> bool:
        added = False

        def append(raw):
            nonlocal added
            items = self._items(raw)
            if any(str(i["id"]) == str(item["id"]) for i in items):
                return None
            added = True
            return json.dumps([*items, item])

        self.store.update(self.key, append)
        return added

    def remove(self, item_id: str) -> None:
        self.store.update(self.key, lambda raw: json.dumps(
            [i for i in self._items(raw) if str(i["id"]) != str(item_id)]))

    def contains(self, item_id: str) -> bool:
        return any(str(i["id"]) == str(item_id) for i in self.items())

    def clear(self) -> None:
        self.store.update(self.key, lambda raw: "[]")
