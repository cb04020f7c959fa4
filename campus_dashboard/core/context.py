from __future__ import annotations

from dataclasses import dataclass

import flet as ft

from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.platform import PlatformErrorSource
from campus_dashboard.services.config_service import (
    ApplicationConfig,
    ToastConfig,
    get_application_config,
    get_log_store_config,
    get_remote_sink_config,
    get_toast_config,
)
from campus_dashboard.services.dispatcher import Dispatcher
from campus_dashboard.services.log_store import LogStore
from campus_dashboard.services.remote_sink import RemoteSink
from campus_dashboard.services.storage import (
    FletClientStorage,
    FletSessionStorage,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
)


@dataclass(slots=True)
class AppContext:
    """Shared application context.

    Holds the one LogStore and one Dispatcher of this app session; every
    component receives the context instead of reaching for globals.
    """

    page: ft.Page
    app: ApplicationConfig
    toast_config: ToastConfig
    log_store: LogStore
    dispatcher: Dispatcher
    logger_name: str = "campus_dashboard"
    owns_log_store: bool = True

    def close(self) -> None:
        # A store shared by the whole process outlives any one session.
        if self.owns_log_store:
            self.log_store.close()


def _persistent_store(page: ft.Page) -> KeyValueStore:
    # In browser mode several users share this process; keep their logs apart.
    if getattr(page, "web", False) and getattr(page, "client_storage", None) is not None:
        return FletClientStorage(page)
    return JsonFileStore()


def _session_store(page: ft.Page) -> KeyValueStore:
    if getattr(page, "session", None) is not None:
        return FletSessionStorage(page)
    return MemoryStore()


def build_context(
    page: ft.Page,
    *,
    logger_name: str = "campus_dashboard",
    platform: PlatformErrorSource | None = None,
    log_store: LogStore | None = None,
) -> AppContext:
    """Wire the LogStore and Dispatcher of one app session.

    Pass `log_store` to reuse a process-wide store (desktop mode); the
    context then leaves closing it to its owner. `platform` hooks are only
    installed on a store built here.
    """
    logger = get_logger(logger_name)

    app_cfg, app_err = get_application_config()
    toast_cfg, _toast_err = get_toast_config()
    log_cfg, log_err = get_log_store_config()
    remote_cfg, _remote_err = get_remote_sink_config()
    for err in (app_err, log_err):
        if err:
            logger.warning("Config could not be read, using defaults: %s", err)

    owns_log_store = log_store is None
    if log_store is None:
        log_store = LogStore(
            log_cfg,
            storage=_persistent_store(page),
            session_storage=_session_store(page),
            remote_sink=RemoteSink(timeout=float(remote_cfg.timeout)),
            platform=platform,
            user_agent=lambda: getattr(page, "client_user_agent", None) or "",
            url=lambda: getattr(page, "route", None) or "/",
        )
    dispatcher = Dispatcher(log_store, navigate=page.go)

    return AppContext(
        page=page,
        app=app_cfg,
        toast_config=toast_cfg,
        log_store=log_store,
        dispatcher=dispatcher,
        logger_name=logger_name,
        owns_log_store=owns_log_store,
    )


def build_process_store(platform: PlatformErrorSource | None = None) -> LogStore:
    """The one LogStore that receives interpreter-level failures of this process."""
    log_cfg, _log_err = get_log_store_config()
    remote_cfg, _remote_err = get_remote_sink_config()
    return LogStore(
        log_cfg,
        storage=JsonFileStore(),
        session_storage=MemoryStore(),
        remote_sink=RemoteSink(timeout=float(remote_cfg.timeout)),
        platform=platform,
    )
