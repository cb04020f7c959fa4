from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import flet as ft
import httpx


class ErrorType(str, Enum):
    GENERIC = "generic"
    NETWORK = "network"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not-found"
    SERVER = "server"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class PageStyle:
    icon: str
    color: str
    title: str
    message: str
    actions: tuple[str, ...]
    # any of: retry, home, back, login


PAGE_STYLES: dict[ErrorType, PageStyle] = {
    ErrorType.NETWORK: PageStyle(
        ft.Icons.WIFI_OFF,
        ft.Colors.BLUE_500,
        "Connection problem",
        "We can't reach the server. Check your internet connection and try again.",
        ("retry", "home"),
    ),
    ErrorType.AUTH: PageStyle(
        ft.Icons.LOCK_CLOCK,
        ft.Colors.RED_500,
        "Session expired",
        "Your session has expired. Please sign in again to continue.",
        ("login", "home"),
    ),
    ErrorType.PERMISSION: PageStyle(
        ft.Icons.SHIELD_OUTLINED,
        ft.Colors.ORANGE_500,
        "Access denied",
        "You don't have permission to view this page or perform this action.",
        ("back", "home"),
    ),
    ErrorType.NOT_FOUND: PageStyle(
        ft.Icons.SEARCH_OFF,
        ft.Colors.GREY_500,
        "Page not found",
        "The page you are looking for doesn't exist or has been moved.",
        ("back", "home"),
    ),
    ErrorType.SERVER: PageStyle(
        ft.Icons.DNS_OUTLINED,
        ft.Colors.RED_500,
        "Server error",
        "Something went wrong on our side. We're working on it.",
        ("retry", "home"),
    ),
    ErrorType.VALIDATION: PageStyle(
        ft.Icons.RULE,
        ft.Colors.AMBER_700,
        "Invalid data",
        "Some of the entered data is not valid. Please check the required fields.",
        ("back", "retry"),
    ),
    ErrorType.TIMEOUT: PageStyle(
        ft.Icons.HOURGLASS_BOTTOM,
        ft.Colors.ORANGE_500,
        "Request timed out",
        "The request took longer than expected. Please try again.",
        ("retry", "home"),
    ),
    ErrorType.GENERIC: PageStyle(
        ft.Icons.WARNING_AMBER_ROUNDED,
        ft.Colors.RED_500,
        "Something went wrong",
        "Sorry for the inconvenience. The problem has been recorded.",
        ("retry", "home"),
    ),
}


def classify_error_type(error: BaseException | None) -> ErrorType:
    """Pick a fallback page for an exception."""
    if error is None:
        return ErrorType.GENERIC
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return ErrorType.TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 401:
            return ErrorType.AUTH
        if status == 403:
            return ErrorType.PERMISSION
        if status == 404:
            return ErrorType.NOT_FOUND
        if status >= 500:
            return ErrorType.SERVER
        return ErrorType.GENERIC
    if isinstance(error, (ConnectionError, httpx.TransportError)):
        return ErrorType.NETWORK
    if isinstance(error, PermissionError):
        return ErrorType.PERMISSION
    if isinstance(error, (ValueError, KeyError)):
        return ErrorType.VALIDATION
    return ErrorType.GENERIC


class ErrorPage(ft.Container):
    """Full-page fallback view shown in place of a failed subtree."""

    def __init__(
        self,
        *,
        error_type: ErrorType | str = ErrorType.GENERIC,
        title: str | None = None,
        message: str | None = None,
        error_id: str | None = None,
        error: BaseException | None = None,
        show_details: bool = False,
        on_retry: Callable[[], Any] | None = None,
        on_home: Callable[[], Any] | None = None,
        on_back: Callable[[], Any] | None = None,
        on_login: Callable[[], Any] | None = None,
        on_report: Callable[[], Any] | None = None,
    ):
        try:
            self.error_type = ErrorType(error_type)
        except ValueError:
            self.error_type = ErrorType.GENERIC
        style = PAGE_STYLES[self.error_type]

        self.title_text = title or style.title
        self.message_text = message or style.message

        handlers = {
            "retry": ("Try again", ft.Icons.REFRESH, on_retry),
            "home": ("Home", ft.Icons.HOME_OUTLINED, on_home),
            "back": ("Go back", ft.Icons.ARROW_BACK, on_back),
            "login": ("Sign in", ft.Icons.LOGIN, on_login),
        }
        buttons: list[ft.Control] = []
        for name in style.actions:
            label, icon, callback = handlers[name]
            if callback is None:
                continue
            buttons.append(
                ft.ElevatedButton(
                    label, icon=icon, on_click=lambda _e, cb=callback: cb()
                )
            )
        if on_report is not None:
            buttons.append(
                ft.TextButton(
                    "Report problem",
                    icon=ft.Icons.MAIL_OUTLINE,
                    on_click=lambda _e: on_report(),
                )
            )
        self.action_labels = [getattr(b, "text", None) for b in buttons]

        body: list[ft.Control] = [
            ft.Icon(style.icon, size=64, color=style.color),
            ft.Text(self.title_text, size=22, weight=ft.FontWeight.W_600),
            ft.Text(self.message_text, size=14, color=ft.Colors.BLACK54),
        ]
        if error_id:
            body.append(
                ft.Text(f"Error ID: {error_id}", size=11, selectable=True, color=ft.Colors.BLACK45)
            )
        if show_details and error is not None:
            body.append(
                ft.Container(
                    content=ft.Text(
                        f"{type(error).__name__}: {error}",
                        size=11,
                        selectable=True,
                        font_family="monospace",
                    ),
                    bgcolor=ft.Colors.GREY_100,
                    padding=ft.padding.all(8),
                    border_radius=6,
                )
            )
        body.append(ft.Row(buttons, alignment=ft.MainAxisAlignment.CENTER, wrap=True))

        super().__init__(
            content=ft.Column(
                body,
                horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                alignment=ft.MainAxisAlignment.CENTER,
                spacing=12,
            ),
            alignment=ft.alignment.center,
            padding=ft.padding.all(24),
            expand=True,
        )
