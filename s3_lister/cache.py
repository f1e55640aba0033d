from __future__ import annotations
"""Persisted record of prefixes whose direct files were fully listed.

The in-memory map is authoritative for the duration of a run. Every
:meth:`TraversalCache.set` schedules a background write of the whole map so
the next run can pick up where this one stopped; losing the latest writes
only means some files are emitted again, never that files are missed.
"""
from concurrent.futures import ThreadPoolExecutor
import hashlib
import json
import logging
import os
from pathlib import Path
import threading
from typing import Any

LOGGER = logging.getLogger(__name__)

COMPLETE = "1"
BUCKETS_KEY_PREFIX = "@buckets:"


def cache_key(bucket_name: str, prefix: str) -> str:
    return f"{bucket_name}:{prefix}"


def credentials_hash(access_key: str | None, secret_key: str | None, length: int = 8) -> str:
    digest = hashlib.md5(f"{access_key or ''}{secret_key or ''}".encode("utf-8")).hexdigest()
    return digest[:length]


def default_cache_path(access_key: str | None, secret_key: str | None) -> Path:
    """Return the per-credential cache file in the working directory."""

    return Path(f"s3lister.{credentials_hash(access_key, secret_key)}.cache")


class TraversalCache:
    """Thread-safe string map backed by a JSON file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._entries: dict[str, str] = {}
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-writer")
        self._closed = False
        self._persist_pending = False
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> TraversalCache:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable cache file %s", self._path)
            return
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring malformed cache file %s", self._path)
            return
        self._entries = {
            str(key): value for key, value in data.items() if isinstance(value, str) and value
        }
        LOGGER.debug("Loaded %d cache entries from %s", len(self._entries), self._path)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: str = COMPLETE) -> None:
        with self._lock:
            self._entries[key] = value
        self._schedule_persist()

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, sort_keys=True))

    def clear(self) -> None:
        """Drop every entry and delete the cache file."""

        with self._lock:
            self._entries = {}
        self._drain()
        with self._write_lock:
            try:
                self._path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                LOGGER.warning("Unable to delete cache file %s: %s", self._path, exc)

    def sync(self) -> None:
        """Write the current map to disk before returning."""

        self._persist()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.shutdown(wait=True)
        self._persist()

    def _drain(self) -> None:
        if self._closed:
            return
        try:
            self._writer.submit(lambda: None).result()
        except RuntimeError:
            return

    def _schedule_persist(self) -> None:
        with self._lock:
            if self._closed or self._persist_pending:
                return
            self._persist_pending = True
        try:
            self._writer.submit(self._background_persist)
        except RuntimeError:
            # Executor already shut down; close() performs the final write.
            return

    def _background_persist(self) -> None:
        with self._lock:
            self._persist_pending = False
        self._persist()

    def _persist(self) -> None:
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        with self._write_lock:
            with self._lock:
                snapshot = dict(self._entries)
            if not snapshot and not self._path.exists():
                return
            payload = json.dumps(snapshot, indent=2, sort_keys=True)
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self._path)
            except OSError as exc:
                # Persist best-effort; the in-memory map stays authoritative.
                LOGGER.debug("Unable to write cache file %s: %s", self._path, exc)
