from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import flet as ft

from campus_dashboard.components.error_pages import ErrorPage, ErrorType, classify_error_type
from campus_dashboard.core.errors import format_exception_stack
from campus_dashboard.core.models import DispatchConfig, ErrorContext
from campus_dashboard.core.safe import safe_update
from campus_dashboard.core.severity import Severity
from campus_dashboard.services.dispatcher import Dispatcher


class ErrorBoundary(ft.Container):
    """Swaps its child for a full-page ErrorPage when a failure is escalated.

    While mounted it owns the dispatcher's boundary channel. Failures raised
    by handlers wrapped with `guard()` are dispatched with escalate=True;
    the channel callback is the only thing that flips the boundary into its
    failed state, so one exception yields exactly one log entry.
    """

    def __init__(
        self,
        content: ft.Control,
        dispatcher: Dispatcher,
        *,
        error_type: ErrorType | str | None = None,
        show_details: bool = False,
        support_email: str = "support@example.com",
        on_error: Callable[[BaseException, str], Any] | None = None,
        expand: bool | int | None = True,
    ):
        super().__init__(content=content, expand=expand)
        self._child = content
        self._dispatcher = dispatcher
        self._error_type = error_type
        self._show_details = show_details
        self._support_email = support_email
        self._on_error = on_error

        self.has_error = False
        self.error: BaseException | None = None
        self.error_id: str | None = None

    def did_mount(self):
        self._dispatcher.register_boundary_callback(self.show_error)

    def will_unmount(self):
        self._dispatcher.register_boundary_callback(None)

    def show_error(self, error: BaseException, error_id: str) -> None:
        """Boundary channel subscriber."""
        self.has_error = True
        self.error = error
        self.error_id = error_id or None

        self.content = ErrorPage(
            error_type=self._error_type or classify_error_type(error),
            error_id=self.error_id,
            error=error,
            show_details=self._show_details,
            on_retry=self.reset,
            on_home=self.go_home,
            on_back=self.reset,
            on_login=lambda: self._dispatcher.navigate("/login"),
            on_report=self.report,
        )
        safe_update(self)

        if self._on_error is not None:
            self._on_error(error, error_id)

    def guard(self, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Wrap a child event handler so its failures escalate to this boundary."""

        def _wrapped(e: Any) -> Any:
            try:
                return handler(e)
            except Exception as ex:
                self._dispatcher.handle(
                    ex,
                    DispatchConfig(
                        escalate=True,
                        notify_channel=False,
                        severity=Severity.HIGH,
                        context=ErrorContext(source="ErrorBoundary"),
                    ),
                )
                return None

        return _wrapped

    def reset(self) -> None:
        self.has_error = False
        self.error = None
        self.error_id = None
        self.content = self._child
        safe_update(self)

    def go_home(self) -> None:
        self.reset()
        self._dispatcher.navigate("/")

    def report_url(self) -> str:
        error = self.error
        message = str(error) if error is not None else ""
        stack = (format_exception_stack(error) if error is not None else None) or ""
        subject = f"Error Report: {self.error_id}"
        body = (
            f"Error ID: {self.error_id}\n\n"
            f"Error Message: {message}\n\n"
            f"Stack Trace:\n{stack}"
        )
        return f"mailto:{self._support_email}?subject={quote(subject)}&body={quote(body)}"

    def report(self) -> None:
        page = self.page
        if page is not None:
            page.launch_url(self.report_url())
