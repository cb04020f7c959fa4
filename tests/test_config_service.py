from __future__ import annotations

from campus_dashboard.services.config_service import (
    DEFAULT_CONFIG_TOML,
    ApiConfig,
    ensure_default_config,
    get_api_config,
    get_application_config,
    get_config_path,
    get_log_store_config,
    get_remote_sink_config,
    get_toast_config,
)


def _write_config(text: str) -> None:
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_default_config_is_created_once(tmp_path):
    path, created, err = ensure_default_config()
    assert created is True
    assert err is None
    assert path.is_relative_to(tmp_path)
    assert path.read_text(encoding="utf-8") == DEFAULT_CONFIG_TOML

    _path, created_again, _err = ensure_default_config()
    assert created_again is False


def test_defaults_from_template():
    cfg, err = get_log_store_config()
    assert err is None
    assert cfg.max_logs == 100
    assert cfg.enable_console_log is True
    assert cfg.enable_persistence is True
    assert cfg.enable_remote_sink is False
    assert cfg.remote_endpoint is None

    app, _ = get_application_config()
    assert app.is_production is True

    toast, _ = get_toast_config()
    assert (toast.duration_ms, toast.max_toasts) == (5000, 5)

    api, _ = get_api_config()
    assert api == ApiConfig()


def test_values_are_read_and_clamped():
    _write_config(
        """
[APPLICATION]
environment = "development"

[ERROR_LOG]
max_logs = 50000
console = "no"
persistence = 0

[TOAST]
duration_ms = 0
max_toasts = 99

[API]
base_url = "https://campus.example/api/"
verify_ssl = false
timeout = 0
"""
    )

    cfg, _ = get_log_store_config()
    assert cfg.max_logs == 10_000
    assert cfg.enable_console_log is False
    assert cfg.enable_persistence is False

    app, _ = get_application_config()
    assert app.is_production is False

    toast, _ = get_toast_config()
    assert toast.duration_ms == 0
    assert toast.max_toasts == 20

    api, _ = get_api_config()
    assert api.base_url == "https://campus.example/api"
    assert api.verify_ssl is False
    assert api.timeout == 15


def test_non_positive_capacity_falls_back_to_default():
    _write_config("[ERROR_LOG]\nmax_logs = 0\n")
    cfg, _ = get_log_store_config()
    assert cfg.max_logs == 100


def test_remote_sink_needs_an_endpoint_to_be_enabled():
    _write_config('[REMOTE_SINK]\nenabled = true\nendpoint = ""\n')
    remote, _ = get_remote_sink_config()
    assert remote.enabled is False

    _write_config(
        '[REMOTE_SINK]\nenabled = true\nendpoint = "https://logs.example"\napi_key = "k"\n'
    )
    cfg, _ = get_log_store_config()
    assert cfg.enable_remote_sink is True
    assert cfg.remote_endpoint == "https://logs.example"
    assert cfg.api_key == "k"


def test_env_overrides_endpoint_and_key(monkeypatch):
    monkeypatch.setenv("CAMPUS_DASHBOARD_REMOTE_ENDPOINT", "https://env.example/logs")
    monkeypatch.setenv("CAMPUS_DASHBOARD_API_KEY", "env-key")

    remote, err = get_remote_sink_config()
    assert err is None
    assert remote.enabled is True
    assert remote.endpoint == "https://env.example/logs"
    assert remote.api_key == "env-key"


def test_broken_toml_returns_defaults_and_the_error():
    _write_config("[ERROR_LOG\nmax_logs = ")

    cfg, err = get_log_store_config()
    assert err
    assert cfg.max_logs == 100

    api, api_err = get_api_config()
    assert api_err
    assert api == ApiConfig()
