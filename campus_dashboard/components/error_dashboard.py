from __future__ import annotations

from datetime import datetime
from pathlib import Path

import flet as ft

from campus_dashboard.core.safe import safe_event, safe_update
from campus_dashboard.core.severity import Severity, variant_for
from campus_dashboard.services.dispatcher import Dispatcher
from campus_dashboard.services.log_report import entries_frame, filter_entries
from campus_dashboard.utils.helpers import data_app_path
from campus_dashboard.utils.ui_helpers import open_dialog, snack, variant_style

_FILTER_OPTIONS = ["all", "unresolved", *[s.value for s in Severity]]


class ErrorDashboard(ft.Column):
    """Table of captured errors with stats, filters and resolve/clear/export."""

    def __init__(self, dispatcher: Dispatcher, *, max_rows: int = 200, expand: bool = True):
        self._dispatcher = dispatcher
        self._max_rows = max(1, int(max_rows))

        self.total_text = ft.Text("0", size=20, weight=ft.FontWeight.W_600)
        self.unresolved_text = ft.Text("0", size=20, weight=ft.FontWeight.W_600)
        self.severity_row = ft.Row(spacing=6, wrap=True)

        self.filter_dd = ft.Dropdown(
            label="Show",
            value="all",
            width=160,
            options=[ft.dropdown.Option(v) for v in _FILTER_OPTIONS],
            on_change=safe_event(lambda _e: self.refresh(), label="errors.filter"),
        )
        self.search_tf = ft.TextField(
            label="Search",
            width=240,
            dense=True,
            on_change=safe_event(lambda _e: self.refresh(), label="errors.search"),
        )

        self.table = ft.DataTable(
            columns=[
                ft.DataColumn(ft.Text("Time")),
                ft.DataColumn(ft.Text("Severity")),
                ft.DataColumn(ft.Text("Source")),
                ft.DataColumn(ft.Text("Message")),
                ft.DataColumn(ft.Text("Status")),
            ],
            rows=[],
            column_spacing=16,
            heading_row_height=36,
            data_row_min_height=32,
        )

        toolbar = ft.Row(
            controls=[
                self.filter_dd,
                self.search_tf,
                ft.IconButton(
                    ft.Icons.REFRESH,
                    tooltip="Refresh",
                    on_click=safe_event(lambda _e: self.refresh(), label="errors.refresh"),
                ),
                ft.OutlinedButton(
                    "Export",
                    icon=ft.Icons.DOWNLOAD,
                    on_click=safe_event(lambda _e: self.export(), label="errors.export"),
                ),
                ft.OutlinedButton(
                    "Clear",
                    icon=ft.Icons.DELETE_OUTLINE,
                    on_click=safe_event(lambda _e: self.confirm_clear(), label="errors.clear"),
                ),
            ],
            wrap=True,
            spacing=8,
        )

        stats = ft.Row(
            controls=[
                self._stat_card("Total", self.total_text),
                self._stat_card("Unresolved", self.unresolved_text),
                ft.Container(content=self.severity_row, expand=True),
            ],
            spacing=10,
        )

        super().__init__(
            controls=[
                stats,
                toolbar,
                ft.Column([self.table], scroll=ft.ScrollMode.AUTO, expand=True),
            ],
            spacing=10,
            expand=expand,
        )

    @staticmethod
    def _stat_card(label: str, value: ft.Text) -> ft.Control:
        return ft.Container(
            content=ft.Column([ft.Text(label, size=11, color=ft.Colors.BLACK54), value], spacing=2),
            padding=ft.padding.all(10),
            border=ft.border.all(1, ft.Colors.BLACK12),
            border_radius=10,
            bgcolor=ft.Colors.WHITE,
        )

    def did_mount(self):
        self.refresh()

    # --- actions -----------------------------------------------------------------

    def refresh(self) -> None:
        store = self._dispatcher.log_store
        entries = filter_entries(
            store.all(),
            severity="" if self.filter_dd.value == "all" else str(self.filter_dd.value or ""),
            text=str(self.search_tf.value or ""),
        )
        frame = entries_frame(entries).head(self._max_rows)

        self.table.rows = [self._row(record) for record in frame.to_dict("records")]

        stats = self._dispatcher.get_stats()
        self.total_text.value = str(stats.total)
        self.unresolved_text.value = str(stats.unresolved)
        self.severity_row.controls = [
            self._severity_chip(s.value, stats.by_severity.get(s.value, 0)) for s in Severity
        ]
        safe_update(self)

    def resolve(self, entry_id: str) -> bool:
        ok = self._dispatcher.log_store.resolve(entry_id)
        self.refresh()
        return ok

    def clear(self) -> None:
        self._dispatcher.clear_logs()
        self.refresh()

    def confirm_clear(self) -> None:
        page = self.page

        def _close(_e=None):
            dlg.open = False
            safe_update(page)

        def _confirm(_e=None):
            _close()
            self.clear()
            snack(page, "Error log cleared", kind="success")

        dlg = ft.AlertDialog(
            modal=True,
            title=ft.Text("Clear error log"),
            content=ft.Text("Delete every captured error? This cannot be undone."),
            actions=[
                ft.TextButton("Cancel", on_click=_close),
                ft.ElevatedButton("Clear", on_click=_confirm),
            ],
        )
        if not open_dialog(page, dlg):
            self.clear()

    def export(self, path: str | Path | None = None) -> Path:
        """Write the JSON export to `path` (default: data_app/log/error-logs-<date>.json)."""
        if path is None:
            stamp = datetime.now().strftime("%Y-%m-%d")
            path = data_app_path(f"error-logs-{stamp}.json", folder_name="data_app/log")
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(self._dispatcher.export_logs(), encoding="utf-8")
        snack(self.page, f"Exported to {out}", kind="success")
        return out

    # --- rendering -----------------------------------------------------------------

    @staticmethod
    def _severity_chip(severity: str, count: int) -> ft.Control:
        bgcolor, text_color, _icon = variant_style(variant_for(severity).value)
        return ft.Container(
            content=ft.Text(f"{severity}: {count}", size=11, color=text_color),
            bgcolor=bgcolor,
            padding=ft.padding.symmetric(horizontal=8, vertical=4),
            border_radius=12,
        )

    def _row(self, record: dict) -> ft.DataRow:
        entry_id = str(record["id"])
        if record["resolved"]:
            status: ft.Control = ft.Text("Resolved", size=12, color=ft.Colors.GREEN_700)
        else:
            status = ft.TextButton(
                "Resolve",
                on_click=safe_event(
                    lambda _e, i=entry_id: self.resolve(i), label="errors.resolve"
                ),
            )
        return ft.DataRow(
            cells=[
                ft.DataCell(ft.Text(str(record["timestamp"])[:19].replace("T", " "), size=12)),
                ft.DataCell(ft.Text(str(record["severity"]), size=12)),
                ft.DataCell(ft.Text(str(record["source"]), size=12)),
                ft.DataCell(ft.Text(str(record["message"]), size=12, selectable=True)),
                ft.DataCell(status),
            ]
        )
