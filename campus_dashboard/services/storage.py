"""Key-value storage backends used by the log store.

Two scopes exist:
- persistent storage, shared by every session of the app on this machine
  (the log buffer lives here)
- session storage, private to one page/session lifetime (the session id
  lives here)

Backends store strings only; callers do their own JSON encoding. Every
backend raises on failure; the log store decides what a failure means.
"""
from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Optional, Protocol

from campus_dashboard.utils.helpers import data_app_path


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store; lives exactly as long as the object does."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Persistent store backed by one JSON object file.

    The whole file is rewritten on each `set` (write to a temp file, then
    os.replace) so a crash mid-write leaves the previous version intact.
    Other processes writing the same file are not coordinated: last writer
    wins.
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path) if path is not None else default_store_path()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = self._path.read_text(encoding="utf-8-sig")
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = str(value)
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if data.pop(key, None) is not None:
                self._write_all(data)


class FletClientStorage:
    """Adapter over `page.client_storage` (persists per client device)."""

    def __init__(self, page: Any, *, prefix: str = "campus_dashboard."):
        self._storage = page.client_storage
        self._prefix = prefix

    def get(self, key: str) -> Optional[str]:
        value = self._storage.get(self._prefix + key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        self._storage.set(self._prefix + key, str(value))

    def remove(self, key: str) -> None:
        self._storage.remove(self._prefix + key)


class FletSessionStorage:
    """Adapter over `page.session` (lives as long as the user session)."""

    def __init__(self, page: Any):
        self._session = page.session

    def get(self, key: str) -> Optional[str]:
        value = self._session.get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        self._session.set(key, str(value))

    def remove(self, key: str) -> None:
        self._session.remove(key)


def default_store_path() -> Path:
    # data_app/log/error_store.json
    return data_app_path("error_store.json", folder_name="data_app/log")
