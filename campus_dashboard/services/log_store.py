from __future__ import annotations

import json
import platform as _py_platform
import sys
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from campus_dashboard.core.errors import normalize_error, report_internal_failure
from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.models import LogEntry, LogStoreConfig, clean_context
from campus_dashboard.core.platform import PlatformErrorSource
from campus_dashboard.core.severity import Severity
from campus_dashboard.services.remote_sink import RemoteSink
from campus_dashboard.services.storage import JsonFileStore, KeyValueStore, MemoryStore
from campus_dashboard.utils.helpers import timestamped_id

LOGS_KEY = "errorLogs"
SESSION_KEY = "errorLoggerSessionId"

SOURCE_GLOBAL = "Global Error Handler"
SOURCE_ASYNC_REJECTION = "Unhandled Async Rejection"


def _default_user_agent() -> str:
    return f"Python/{_py_platform.python_version()} ({sys.platform})"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class LogStore:
    """
    Bounded, persisted, session-correlated history of failures.

    The buffer is a FIFO ring: once it holds more than `max_logs` entries
    the oldest are dropped, whatever their severity. After every mutation
    the whole buffer is written back to persistent storage.

    Failures of the store's own I/O (storage, JSON, remote sink) are only
    reported to the logger; they never come back through `capture`.
    """

    def __init__(
        self,
        config: LogStoreConfig | None = None,
        *,
        storage: KeyValueStore | None = None,
        session_storage: KeyValueStore | None = None,
        remote_sink: RemoteSink | None = None,
        platform: PlatformErrorSource | None = None,
        user_agent: Callable[[], str] | None = None,
        url: Callable[[], str] | None = None,
    ):
        self._config = config or LogStoreConfig()
        self._storage = storage if storage is not None else JsonFileStore()
        self._session_storage = (
            session_storage if session_storage is not None else MemoryStore()
        )
        self._remote_sink = remote_sink or RemoteSink()
        self._user_agent = user_agent or _default_user_agent
        self._url = url or (lambda: "app://local")
        self._logger = get_logger("campus_dashboard.errors")
        self._lock = threading.RLock()
        self._logs: deque[LogEntry] = deque()
        self._platform: PlatformErrorSource | None = None

        self._session_id = self._get_or_create_session_id()
        self._load_from_storage()

        if platform is not None:
            self.attach(platform)

    # --- properties ----------------------------------------------------------

    @property
    def config(self) -> LogStoreConfig:
        return self._config

    @property
    def session_id(self) -> str:
        return self._session_id

    # --- session / hydration -------------------------------------------------

    def _get_or_create_session_id(self) -> str:
        try:
            session_id = self._session_storage.get(SESSION_KEY)
            if not session_id:
                session_id = timestamped_id("session")
                self._session_storage.set(SESSION_KEY, session_id)
            return session_id
        except Exception as ex:
            report_internal_failure("Session storage unavailable", ex)
            return timestamped_id("session")

    def _load_from_storage(self) -> None:
        if not self._config.enable_persistence:
            return

        try:
            raw = self._storage.get(LOGS_KEY)
            if not raw:
                return
            records = json.loads(raw)
        except Exception as ex:
            report_internal_failure("Failed to load logs from storage", ex)
            return

        if not isinstance(records, list):
            report_internal_failure(
                "Failed to load logs from storage",
                ValueError(f"expected a JSON array, got {type(records).__name__}"),
            )
            return

        loaded: list[LogEntry] = []
        for record in records:
            if not isinstance(record, Mapping):
                continue
            try:
                loaded.append(LogEntry.from_dict(record))
            except (KeyError, TypeError, ValueError):
                continue

        limit = max(int(self._config.max_logs), 0)
        with self._lock:
            self._logs = deque(loaded[-limit:] if limit else [])

    def _save_to_storage(self) -> None:
        if not self._config.enable_persistence:
            return
        with self._lock:
            payload = [entry.to_dict() for entry in self._logs]
        try:
            self._storage.set(LOGS_KEY, json.dumps(payload, ensure_ascii=False))
        except Exception as ex:
            report_internal_failure("Failed to save logs to storage", ex)

    # --- capture -------------------------------------------------------------

    def capture(
        self, error: Any, context: Mapping[str, Any] | None = None
    ) -> str:
        """Record one failure and return its id.

        `context["severity"]` and `context["source"]` pick the entry's
        severity (default medium) and source (default "Unknown"); every other
        key lands in `additional_data`.
        """

        try:
            normalized = normalize_error(error)
            ctx = dict(context or {})
            severity = Severity.coerce(ctx.pop("severity", None))
            source = str(ctx.pop("source", None) or "Unknown").strip() or "Unknown"
            extra = clean_context(ctx)

            entry = LogEntry(
                id=timestamped_id("error"),
                timestamp=_now_iso(),
                message=normalized.message,
                stack=normalized.stack,
                source=source,
                severity=severity,
                session_id=self._session_id,
                user_agent=self._snapshot(self._user_agent, "Unknown"),
                url=self._snapshot(self._url, ""),
                additional_data=extra or None,
            )
        except Exception as ex:
            report_internal_failure("Failed to log error", ex)
            return f"error-fallback-{int(time.time() * 1000)}"

        with self._lock:
            self._logs.append(entry)
            limit = max(int(self._config.max_logs), 0)
            while len(self._logs) > limit:
                self._logs.popleft()
            config = self._config

        if config.enable_console_log:
            self._mirror_to_logger(entry)

        if config.enable_persistence:
            self._save_to_storage()

        if config.enable_remote_sink and config.remote_endpoint:
            self._remote_sink.send(entry, config.remote_endpoint, config.api_key)

        return entry.id

    @staticmethod
    def _snapshot(provider: Callable[[], str], default: str) -> str:
        try:
            return str(provider() or default)
        except Exception:
            return default

    def _mirror_to_logger(self, entry: LogEntry) -> None:
        try:
            details: dict[str, Any] = {
                "message": entry.message,
                "source": entry.source,
                "severity": entry.severity.value,
            }
            if entry.additional_data:
                details["additionalData"] = entry.additional_data
            self._logger.error("Error logged: %s", details)
            if entry.stack:
                self._logger.debug("%s stack:\n%s", entry.id, entry.stack)
        except Exception:
            pass

    # --- queries -------------------------------------------------------------

    def all(self) -> list[LogEntry]:
        with self._lock:
            return list(self._logs)

    def by_severity(self, severity: Severity | str) -> list[LogEntry]:
        sev = Severity.coerce(severity)
        with self._lock:
            return [e for e in self._logs if e.severity is sev]

    def unresolved(self) -> list[LogEntry]:
        with self._lock:
            return [e for e in self._logs if not e.resolved]

    def current_session(self) -> list[LogEntry]:
        with self._lock:
            return [e for e in self._logs if e.session_id == self._session_id]

    def get(self, entry_id: str) -> Optional[LogEntry]:
        with self._lock:
            for entry in self._logs:
                if entry.id == entry_id:
                    return entry
        return None

    # --- mutations -----------------------------------------------------------

    def resolve(self, entry_id: str) -> bool:
        """Mark an entry resolved. True if the id exists (even if already resolved)."""
        with self._lock:
            for index, entry in enumerate(self._logs):
                if entry.id == entry_id:
                    self._logs[index] = entry.resolved_copy()
                    break
            else:
                return False
        self._save_to_storage()
        return True

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()
        self._save_to_storage()

    def export(self) -> str:
        with self._lock:
            payload = [entry.to_dict() for entry in self._logs]
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def update_config(self, **changes: Any) -> LogStoreConfig:
        """Merge `changes` onto the current config (no range validation)."""
        with self._lock:
            self._config = replace(self._config, **changes)
            return self._config

    # --- platform capture ----------------------------------------------------

    def attach(self, source: PlatformErrorSource) -> None:
        """Start feeding platform-level failures straight into `capture`."""
        self.detach()
        source.install(self._on_platform_exception, self._on_platform_rejection)
        self._platform = source

    def detach(self) -> None:
        if self._platform is not None:
            self._platform.uninstall()
            self._platform = None

    def _on_platform_exception(
        self, exc: BaseException, metadata: Mapping[str, Any]
    ) -> None:
        self.capture(exc, {"source": SOURCE_GLOBAL, **metadata})

    def _on_platform_rejection(self, exc: BaseException) -> None:
        self.capture(exc, {"source": SOURCE_ASYNC_REJECTION})

    def close(self) -> None:
        self.detach()
        self._remote_sink.close()
