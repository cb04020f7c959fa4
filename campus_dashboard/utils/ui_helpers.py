from __future__ import annotations

from typing import Any

import flet as ft


def open_dialog(page: Any, dlg: ft.AlertDialog) -> bool:
    """Open an AlertDialog in a best-effort, non-silent way.

    Tries `page.open(dlg)` first, then falls back to setting `page.dialog`.
    If both fail a snack is shown instead.

    Returns:
        True if a dialog open attempt was made successfully, else False.
    """

    if page is None or dlg is None:
        return False

    try:
        page.open(dlg)
        return True
    except Exception as ex_open:
        try:
            page.dialog = dlg
            dlg.open = True
            page.update()
            return True
        except Exception as ex_fallback:
            msg = (
                "Failed to open dialog "
                f"(open={type(ex_open).__name__}: {ex_open!r}; "
                f"fallback={type(ex_fallback).__name__}: {ex_fallback!r})"
            )
            snack(page, msg, kind="error")
            return False


def variant_style(variant: str | None) -> tuple[str, str, str]:
    """Return (bgcolor, text_color, icon) for a toast variant."""
    normalized = str(variant or "").strip().lower()

    if normalized in ("destructive", "error"):
        return ft.Colors.RED_50, ft.Colors.RED_900, ft.Icons.ERROR_OUTLINE
    if normalized in ("warning", "warn"):
        return ft.Colors.AMBER_50, ft.Colors.BROWN_900, ft.Icons.WARNING_AMBER
    if normalized == "success":
        return ft.Colors.GREEN_50, ft.Colors.GREEN_900, ft.Icons.CHECK_CIRCLE_OUTLINE
    if normalized == "info":
        return ft.Colors.BLUE_50, ft.Colors.BLUE_900, ft.Icons.INFO_OUTLINE
    return ft.Colors.WHITE, ft.Colors.BLACK87, ft.Icons.ERROR_OUTLINE


def snack(page: Any, message: str, kind: str | None = None) -> None:
    """Show a SnackBar message (best-effort).

    Used for confirmations outside the error pipeline (export done, logs
    cleared); failures go through the toast channel instead.
    """
    try:
        bgcolor, text_color, _icon = variant_style(
            "destructive" if kind == "error" else kind
        )
        sb = ft.SnackBar(ft.Text(str(message), color=text_color), bgcolor=bgcolor)

        overlay = getattr(page, "overlay", None)
        if isinstance(overlay, list) and sb not in overlay:
            overlay.append(sb)
        sb.open = True
        page.update()
    except Exception:
        # Never crash UI thread for a toast
        pass
