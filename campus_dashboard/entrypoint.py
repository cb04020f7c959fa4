from __future__ import annotations

import asyncio
from functools import partial

import flet as ft

from campus_dashboard.app import DashboardApp
from campus_dashboard.components.toast_host import ToastHost
from campus_dashboard.core.context import build_context, build_process_store
from campus_dashboard.core.platform import PythonErrorSource
from campus_dashboard.core.safe import safe_event
from campus_dashboard.services.log_store import LogStore
from campus_dashboard.utils.helpers import get_data_app_dir


def _main(page: ft.Page, platform: PythonErrorSource, process_store: LogStore) -> None:
    page.title = "Campus Dashboard"
    page.padding = 8
    page.theme_mode = ft.ThemeMode.LIGHT
    page.bgcolor = ft.Colors.BLUE_GREY_50

    # Browser sessions share this process: each keeps its own client-side
    # log, while interpreter-level failures stay with the process store.
    if page.web:
        ctx = build_context(page, logger_name="campus_dashboard")
    else:
        ctx = build_context(page, logger_name="campus_dashboard", log_store=process_store)

    async def _hook_loop():
        # The Flet event loop only exists once the session is running.
        platform.attach_loop(asyncio.get_running_loop())

    page.run_task(_hook_loop)

    toasts = ToastHost(
        ctx.dispatcher,
        default_duration_ms=ctx.toast_config.duration_ms,
        max_toasts=ctx.toast_config.max_toasts,
    )
    page.overlay.append(
        ft.Container(content=toasts, right=16, top=16)
    )
    page.add(DashboardApp(ctx))

    def _on_disconnect(_e=None):
        ctx.close()

    page.on_disconnect = safe_event(_on_disconnect, label="page.on_disconnect")
    page.update()


def run() -> None:
    # Ensure the data folders exist before the first session writes to them.
    get_data_app_dir(folder_name="data_app/log")
    get_data_app_dir(folder_name="data_app/settings")

    platform = PythonErrorSource()
    process_store = build_process_store(platform)
    try:
        ft.app(target=partial(_main, platform=platform, process_store=process_store))
    finally:
        process_store.close()
