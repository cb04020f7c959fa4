from __future__ import annotations

import asyncio
from typing import Any

import flet as ft

from campus_dashboard.components.error_boundary import ErrorBoundary
from campus_dashboard.components.error_dashboard import ErrorDashboard
from campus_dashboard.core.context import AppContext
from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.models import DispatchConfig
from campus_dashboard.core.safe import safe_update
from campus_dashboard.services.api_client import ApiClient, report_api_failure
from campus_dashboard.services.config_service import get_api_config

TASKS_ENDPOINT = "/tasks"

# Failures of the tasks panel take over its ErrorBoundary.
ESCALATE = DispatchConfig(escalate=True)


def _panel(content: ft.Control, *, title: str, expand: bool | int | None = None) -> ft.Container:
    return ft.Container(
        content=ft.Column(
            [ft.Text(title, size=12, weight=ft.FontWeight.W_600), content],
            spacing=10,
            expand=True,
        ),
        expand=expand,
        bgcolor=ft.Colors.WHITE,
        padding=ft.padding.all(10),
        border=ft.border.all(1, ft.Colors.BLACK12),
        border_radius=10,
    )


class DashboardApp(ft.Container):
    """Tasks panel (guarded by an ErrorBoundary) next to the error log view."""

    def __init__(self, ctx: AppContext, api: ApiClient | None = None):
        super().__init__(expand=True)
        self._dispatcher = ctx.dispatcher
        self._logger = get_logger("dashboard")

        if api is None:
            api_cfg, _api_err = get_api_config()
            api = ApiClient(api_cfg, ctx.dispatcher)
        self._api = api

        self.tasks_list = ft.ListView(spacing=4, expand=True)
        self.status_text = ft.Text("", size=11, color=ft.Colors.BLUE_GREY_700)
        self.progress = ft.ProgressBar(height=4, visible=False)
        self.load_button = ft.ElevatedButton("Load tasks", icon=ft.Icons.CLOUD_DOWNLOAD)

        tasks_body = ft.Column(
            [
                ft.Row(
                    [
                        self.load_button,
                        self.status_text,
                    ],
                    spacing=10,
                ),
                self.progress,
                self.tasks_list,
            ],
            expand=True,
        )
        self.boundary = ErrorBoundary(
            tasks_body,
            self._dispatcher,
            show_details=not ctx.app.is_production,
        )
        self.load_button.on_click = self.boundary.guard(self.load_tasks)

        self.error_dashboard = ErrorDashboard(self._dispatcher)

        header = ft.Container(
            padding=ft.padding.symmetric(horizontal=10, vertical=10),
            bgcolor=ft.Colors.WHITE,
            border=ft.border.all(1, ft.Colors.BLACK12),
            border_radius=10,
            content=ft.Row(
                [
                    ft.Icon(ft.Icons.SCHOOL, size=26),
                    ft.Text("Campus Dashboard", size=20, weight=ft.FontWeight.BOLD),
                ],
                spacing=8,
            ),
        )

        self.content = ft.Column(
            [
                header,
                ft.Row(
                    [
                        _panel(self.boundary, title="Tasks", expand=1),
                        _panel(self.error_dashboard, title="Error log", expand=2),
                    ],
                    expand=True,
                    spacing=12,
                    vertical_alignment=ft.CrossAxisAlignment.START,
                ),
            ],
            spacing=12,
            expand=True,
        )

    def _set_loading(self, loading: bool, status: str = "") -> None:
        self.progress.visible = loading
        self.status_text.value = status
        safe_update(self)

    def _render_tasks(self, tasks: Any) -> None:
        items = tasks if isinstance(tasks, list) else []
        self.tasks_list.controls = [
            ft.ListTile(
                leading=ft.Icon(
                    ft.Icons.CHECK_CIRCLE if t.get("done") else ft.Icons.RADIO_BUTTON_UNCHECKED
                ),
                title=ft.Text(str(t.get("title") or "Untitled")),
                subtitle=ft.Text(str(t.get("due") or "")),
            )
            for t in items
            if isinstance(t, dict)
        ]
        self.status_text.value = f"{len(self.tasks_list.controls)} task(s)"
        self._logger.info("Loaded %d task(s)", len(self.tasks_list.controls))

    def _fetch_tasks(self) -> Any:
        """Blocking GET; API failures are reported and escalated, then None."""
        try:
            return self._api.get_json(TASKS_ENDPOINT)
        except Exception as ex:
            report_api_failure(self._dispatcher, ex, TASKS_ENDPOINT, ESCALATE)
            return None

    def _show_result(self, tasks: Any) -> None:
        if tasks is None:
            self.status_text.value = "Could not load tasks"
        else:
            self._render_tasks(tasks)

    async def _load_tasks_async(self) -> None:
        self._set_loading(True, "Loading…")
        try:
            # The request runs off the loop; reporting happens back on it.
            tasks = await asyncio.to_thread(self._api.get_json, TASKS_ENDPOINT)
        except Exception as ex:
            report_api_failure(self._dispatcher, ex, TASKS_ENDPOINT, ESCALATE)
            tasks = None

        try:
            self._show_result(tasks)
        except Exception as ex:
            self._dispatcher.handle_async(ex, "tasks.load", ESCALATE)
        finally:
            self._set_loading(False, self.status_text.value or "")
            self.error_dashboard.refresh()

    def load_tasks(self, e=None) -> None:
        page = getattr(e, "page", None) or self.page

        runner = getattr(page, "run_task", None)
        if callable(runner):
            runner(self._load_tasks_async)
            return

        # No event loop available: run inline; failures reach the boundary
        # through guard().
        self._show_result(self._fetch_tasks())
        self.error_dashboard.refresh()
        safe_update(self)
