from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from campus_dashboard.core.models import LogStoreConfig
from campus_dashboard.utils.helpers import data_app_path

DEFAULT_CONFIG_TOML = """[APPLICATION]
# "production" keeps stack traces out of the fallback page.
environment = "production"

[ERROR_LOG]
# - max_logs: ring-buffer capacity; oldest entries are dropped first
# - console: mirror each captured error to the application log
# - persistence: keep the buffer across restarts (data_app/log/error_store.json)
max_logs = 100
console = true
persistence = true

[REMOTE_SINK]
# Optional off-device shipping of each captured error (best-effort, no retry).
# Env overrides: CAMPUS_DASHBOARD_REMOTE_ENDPOINT, CAMPUS_DASHBOARD_API_KEY
enabled = false
endpoint = ""
api_key = ""
timeout = 10

[API]
# REST backend of the dashboard (tasks, reminders, schedules).
base_url = "http://127.0.0.1:8000/api"
verify_ssl = true
timeout = 15

[TOAST]
# duration_ms <= 0 keeps toasts until dismissed.
duration_ms = 5000
max_toasts = 5
"""


def get_config_path() -> Path:
    # Stored under: data_app/settings/config.toml
    return data_app_path("config.toml", folder_name="data_app/settings")


def ensure_default_config() -> tuple[Path, bool, str | None]:
    """Ensure config.toml exists; create with defaults if missing.

    Returns:
        (path, created_template, error_message)
    """
    path = get_config_path()
    if path.exists():
        return path, False, None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
        return path, True, None
    except Exception as ex:
        return path, False, str(ex)


def load_config_toml() -> tuple[dict[str, Any], Path, str | None]:
    """Load the application config TOML from data_app/settings/config.toml.

    Returns:
        (config_dict, path, error_message)
    """
    path, _created, err = ensure_default_config()
    if err:
        return {}, path, err

    try:
        raw = path.read_text(encoding="utf-8-sig")
        return tomllib.loads(raw or ""), path, None
    except Exception as ex:
        return {}, path, str(ex)


def _section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    sec = cfg.get(name) if isinstance(cfg, dict) else None
    return sec if isinstance(sec, dict) else {}


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    s = str(value or "").strip().lower()
    if s in ("true", "1", "yes", "y", "on"):
        return True
    if s in ("false", "0", "no", "n", "off"):
        return False
    return default


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _clamp(value: int, low: int, high: int, fallback: int) -> int:
    if value < low:
        return fallback
    return min(value, high)


@dataclass(frozen=True)
class ApplicationConfig:
    environment: str = "production"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


@dataclass(frozen=True)
class RemoteSinkConfig:
    enabled: bool = False
    endpoint: str = ""
    api_key: str = ""
    timeout: int = 10


@dataclass(frozen=True)
class ToastConfig:
    duration_ms: int = 5000
    max_toasts: int = 5


def get_application_config() -> tuple[ApplicationConfig, str | None]:
    cfg, _path, err = load_config_toml()
    if err:
        return ApplicationConfig(), err

    env = str(_section(cfg, "APPLICATION").get("environment") or "production").strip()
    return ApplicationConfig(environment=env or "production"), None


def get_remote_sink_config() -> tuple[RemoteSinkConfig, str | None]:
    """Read [REMOTE_SINK]; env vars override the endpoint and API key."""

    env_endpoint = str(os.environ.get("CAMPUS_DASHBOARD_REMOTE_ENDPOINT", "") or "").strip()
    env_key = str(os.environ.get("CAMPUS_DASHBOARD_API_KEY", "") or "").strip()

    cfg, _path, err = load_config_toml()
    sec = _section(cfg, "REMOTE_SINK") if not err else {}

    endpoint = env_endpoint or str(sec.get("endpoint") or "").strip()
    enabled = _as_bool(sec.get("enabled"), False) or bool(env_endpoint)

    return (
        RemoteSinkConfig(
            enabled=enabled and bool(endpoint),
            endpoint=endpoint,
            api_key=env_key or str(sec.get("api_key") or "").strip(),
            timeout=_clamp(_as_int(sec.get("timeout"), 10), 1, 120, 10),
        ),
        err,
    )


def get_log_store_config() -> tuple[LogStoreConfig, str | None]:
    """Build the LogStore config from [ERROR_LOG] and [REMOTE_SINK]."""

    cfg, _path, err = load_config_toml()
    sec = _section(cfg, "ERROR_LOG") if not err else {}
    remote, _remote_err = get_remote_sink_config()

    return (
        LogStoreConfig(
            max_logs=_clamp(_as_int(sec.get("max_logs"), 100), 1, 10_000, 100),
            enable_console_log=_as_bool(sec.get("console"), True),
            enable_persistence=_as_bool(sec.get("persistence"), True),
            enable_remote_sink=remote.enabled,
            remote_endpoint=remote.endpoint or None,
            api_key=remote.api_key or None,
        ),
        err,
    )


def get_toast_config() -> tuple[ToastConfig, str | None]:
    cfg, _path, err = load_config_toml()
    if err:
        return ToastConfig(), err

    sec = _section(cfg, "TOAST")
    duration_ms = _as_int(sec.get("duration_ms"), 5000)
    max_toasts = _clamp(_as_int(sec.get("max_toasts"), 5), 1, 20, 5)
    return ToastConfig(duration_ms=min(duration_ms, 600_000), max_toasts=max_toasts), None


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = "http://127.0.0.1:8000/api"
    verify_ssl: bool = True
    timeout: int = 15


def get_api_config() -> tuple[ApiConfig, str | None]:
    cfg, _path, err = load_config_toml()
    if err:
        return ApiConfig(), err

    sec = _section(cfg, "API")
    base_url = str(sec.get("base_url") or "").strip() or ApiConfig.base_url
    return (
        ApiConfig(
            base_url=base_url.rstrip("/"),
            verify_ssl=_as_bool(sec.get("verify_ssl"), True),
            timeout=_clamp(_as_int(sec.get("timeout"), 15), 1, 300, 15),
        ),
        None,
    )
