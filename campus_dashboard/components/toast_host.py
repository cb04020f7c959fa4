from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

import flet as ft

from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.models import ToastAction, ToastOptions
from campus_dashboard.core.safe import safe_update
from campus_dashboard.services.dispatcher import Dispatcher
from campus_dashboard.utils.helpers import timestamped_id
from campus_dashboard.utils.ui_helpers import variant_style

DEFAULT_DURATION_MS = 5000
MAX_TOASTS = 5


@dataclass
class _ToastItem:
    id: str
    control: ft.Control
    timer: Any = None


class ToastHost(ft.Column):
    """Stack of transient notices; the toast channel's renderer.

    While mounted it owns the dispatcher's toast channel. Each toast hides
    itself after its duration (ms, <= 0 means sticky). Unmounting cancels
    every pending auto-dismiss.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        default_duration_ms: int = DEFAULT_DURATION_MS,
        max_toasts: int = MAX_TOASTS,
        run_task: Callable[..., Any] | None = None,
        width: int | float | None = 380,
    ):
        super().__init__(controls=[], spacing=8, width=width, tight=True)
        self._dispatcher = dispatcher
        self._default_duration_ms = default_duration_ms
        self._max_toasts = max(1, int(max_toasts))
        self._run_task = run_task
        self._items: list[_ToastItem] = []
        self._logger = get_logger("ui.toast")

    # --- lifecycle -------------------------------------------------------------

    def did_mount(self):
        self._dispatcher.register_toast_callback(self.show_options)

    def will_unmount(self):
        self._dispatcher.register_toast_callback(None)
        for item in self._items:
            self._cancel_timer(item)

    # --- public API --------------------------------------------------------------

    @property
    def toast_ids(self) -> list[str]:
        return [item.id for item in self._items]

    def show_options(self, options: ToastOptions) -> None:
        """Toast channel subscriber."""
        self.show(
            title=options.title,
            description=options.description,
            variant=options.variant.value,
            duration=options.duration,
            action=options.action,
        )

    def show(
        self,
        *,
        title: str,
        description: str | None = None,
        variant: str = "info",
        duration: Optional[int] = None,
        action: ToastAction | None = None,
    ) -> str:
        if not title and not description:
            self._logger.warning("Toast must have at least title or description")
            return ""

        toast_id = timestamped_id("toast")
        item = _ToastItem(
            id=toast_id,
            control=self._build(toast_id, title, description, variant, action),
        )
        self._items.append(item)
        while len(self._items) > self._max_toasts:
            self._cancel_timer(self._items.pop(0))

        duration_ms = self._default_duration_ms if duration is None else duration
        if duration_ms > 0:
            item.timer = self._schedule_dismiss(toast_id, duration_ms)

        self._sync_controls()
        return toast_id

    def dismiss(self, toast_id: str) -> None:
        for index, item in enumerate(self._items):
            if item.id == toast_id:
                self._cancel_timer(item)
                del self._items[index]
                self._sync_controls()
                return

    def clear(self) -> None:
        for item in self._items:
            self._cancel_timer(item)
        self._items = []
        self._sync_controls()

    # --- internals ---------------------------------------------------------------

    def _sync_controls(self) -> None:
        self.controls = [item.control for item in self._items]
        safe_update(self)

    def _schedule_dismiss(self, toast_id: str, duration_ms: int) -> Any:
        async def _runner():
            await asyncio.sleep(duration_ms / 1000.0)
            self.dismiss(toast_id)

        runner = self._run_task or getattr(self.page, "run_task", None)
        if not callable(runner):
            return None
        try:
            return runner(_runner)
        except Exception:
            self._logger.exception("Could not schedule toast auto-dismiss")
            return None

    @staticmethod
    def _cancel_timer(item: _ToastItem) -> None:
        timer, item.timer = item.timer, None
        if timer is not None and hasattr(timer, "cancel"):
            timer.cancel()

    def _build(
        self,
        toast_id: str,
        title: str,
        description: str | None,
        variant: str,
        action: ToastAction | None,
    ) -> ft.Control:
        bgcolor, text_color, icon = variant_style(variant)

        texts: list[ft.Control] = [
            ft.Text(title, size=13, weight=ft.FontWeight.W_600, color=text_color)
        ]
        if description:
            texts.append(ft.Text(description, size=12, color=text_color))
        if action is not None:

            def _on_action(_e=None):
                try:
                    action.on_click()
                finally:
                    self.dismiss(toast_id)

            texts.append(
                ft.Row([ft.OutlinedButton(action.label, on_click=_on_action)])
            )

        return ft.Container(
            key=toast_id,
            content=ft.Row(
                controls=[
                    ft.Icon(icon, color=text_color, size=20),
                    ft.Column(texts, spacing=4, expand=True, tight=True),
                    ft.IconButton(
                        ft.Icons.CLOSE,
                        icon_size=16,
                        tooltip="Close",
                        on_click=lambda _e: self.dismiss(toast_id),
                    ),
                ],
                vertical_alignment=ft.CrossAxisAlignment.START,
            ),
            bgcolor=bgcolor,
            padding=ft.padding.all(12),
            border=ft.border.all(1, ft.Colors.BLACK12),
            border_radius=10,
            shadow=ft.BoxShadow(blur_radius=8, color=ft.Colors.BLACK12),
        )
