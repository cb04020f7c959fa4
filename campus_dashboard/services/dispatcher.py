from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

import httpx

from campus_dashboard.core.errors import (
    NormalizedError,
    normalize_error,
    report_internal_failure,
)
from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.models import (
    DEFAULT_DISPATCH,
    DispatchConfig,
    DisplayOptions,
    ErrorContext,
    LogEntry,
    ToastAction,
    ToastOptions,
)
from campus_dashboard.core.severity import Severity, default_title, variant_for
from campus_dashboard.services.log_store import LogStore

T = TypeVar("T")

ToastCallback = Callable[[ToastOptions], None]
BoundaryCallback = Callable[[BaseException, str], None]

RECENT_LIMIT = 10

_CONNECTIVITY_MARKERS = (
    "fetch",
    "network",
    "Failed to fetch",
    "NetworkError",
    "Connection",
)
_CONNECTIVITY_TYPES = (ConnectionError, TimeoutError, httpx.TransportError)

NETWORK_TITLE = "Connection error"
NETWORK_CONNECTIVITY_COPY = (
    "A problem occurred while connecting to the server. "
    "Check your internet connection and try again."
)
NETWORK_SERVER_COPY = "Could not reach the server. Please try again."


class ChannelSlot(Generic[T]):
    """
    A named subscription point holding at most one subscriber.

    Setting a subscriber replaces the previous one (last owner wins);
    setting None clears the slot. There is no fan-out.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscriber: Optional[T] = None

    @property
    def subscriber(self) -> Optional[T]:
        return self._subscriber

    @property
    def registered(self) -> bool:
        return self._subscriber is not None

    def set(self, subscriber: Optional[T]) -> None:
        self._subscriber = subscriber


@dataclass(frozen=True)
class ErrorStats:
    total: int
    unresolved: int
    by_severity: dict[str, int] = field(default_factory=dict)
    recent: list[LogEntry] = field(default_factory=list)


def is_connectivity_error(error: NormalizedError) -> bool:
    if any(marker in error.message for marker in _CONNECTIVITY_MARKERS):
        return True
    if error.name == "TypeError":
        return True
    return isinstance(error.cause, _CONNECTIVITY_TYPES)


class Dispatcher:
    """
    Single entry point for reporting failures from anywhere in the app.

    Per call it decides whether to log (LogStore), notify (toast channel)
    and/or escalate (boundary channel). Callers never need to know which
    UI collaborators are currently mounted; with nothing registered a
    dispatch simply logs.
    """

    def __init__(
        self,
        log_store: LogStore,
        *,
        navigate: Callable[[str], Any] | None = None,
    ):
        self._log_store = log_store
        self._navigate = navigate
        self._toast: ChannelSlot[ToastCallback] = ChannelSlot("toast")
        self._boundary: ChannelSlot[BoundaryCallback] = ChannelSlot("boundary")
        self._logger = get_logger("campus_dashboard.dispatcher")

    @property
    def log_store(self) -> LogStore:
        return self._log_store

    @property
    def toast_channel(self) -> ChannelSlot[ToastCallback]:
        return self._toast

    @property
    def boundary_channel(self) -> ChannelSlot[BoundaryCallback]:
        return self._boundary

    def register_toast_callback(self, callback: ToastCallback | None) -> None:
        self._toast.set(callback)

    def register_boundary_callback(self, callback: BoundaryCallback | None) -> None:
        self._boundary.set(callback)

    def set_navigator(self, navigate: Callable[[str], Any] | None) -> None:
        self._navigate = navigate

    def navigate(self, route: str) -> None:
        if self._navigate is None:
            self._logger.info("Navigation to %s requested but no navigator is set", route)
            return
        try:
            self._navigate(route)
        except Exception as ex:
            report_internal_failure(f"Navigation to {route} failed", ex)

    # --- core ----------------------------------------------------------------

    def handle(
        self,
        error: Any,
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        """Route one failure through log / toast / boundary. Returns the log id
        ("" when logging is disabled for this call)."""

        normalized = normalize_error(error)
        final = DEFAULT_DISPATCH.merged(config)
        severity = Severity.coerce(final.severity)
        context = final.context or ErrorContext()
        display = display or DisplayOptions()

        error_id = ""
        if final.log_error:
            error_id = self._log_store.capture(
                normalized,
                {
                    **context.to_data(),
                    "source": context.source or "ErrorManager",
                    "severity": severity,
                },
            )

        toast = self._toast.subscriber
        if final.notify_channel and toast is not None:
            options = ToastOptions(
                title=display.title or default_title(final.severity),
                description=display.description or normalized.message,
                action=display.action,
                duration=display.duration,
                variant=variant_for(final.severity),
            )
            try:
                toast(options)
            except Exception as ex:
                report_internal_failure("Toast subscriber failed", ex)

        boundary = self._boundary.subscriber
        if final.escalate and boundary is not None:
            try:
                boundary(normalized.as_exception(), error_id)
            except Exception as ex:
                report_internal_failure("Boundary subscriber failed", ex)

        return error_id

    # --- specialised wrappers ------------------------------------------------
    # Wrapper defaults are merged first, so caller config wins on every key.

    def handle_async(
        self,
        error: Any,
        operation: str,
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        defaults = DispatchConfig(
            context=ErrorContext(operation=operation, kind="async")
        )
        return self.handle(error, defaults.merged(config), display)

    def handle_network(
        self,
        error: Any,
        endpoint: str,
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        normalized = normalize_error(error)
        defaults = DispatchConfig(
            severity=Severity.HIGH,
            context=ErrorContext(endpoint=endpoint, kind="network"),
        )
        copy = (
            NETWORK_CONNECTIVITY_COPY
            if is_connectivity_error(normalized)
            else NETWORK_SERVER_COPY
        )
        shown = (display or DisplayOptions()).with_defaults(
            DisplayOptions(title=NETWORK_TITLE, description=copy)
        )
        return self.handle(normalized, defaults.merged(config), shown)

    def handle_validation(
        self,
        errors: str | Mapping[str, str],
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        if isinstance(errors, str):
            message = errors
            recorded: str | dict[str, str] = errors
        else:
            recorded = {str(k): str(v) for k, v in errors.items()}
            message = ", ".join(recorded.values())

        defaults = DispatchConfig(
            severity=Severity.LOW,
            context=ErrorContext(kind="validation", validation_errors=recorded),
        )
        shown = (display or DisplayOptions()).with_defaults(
            DisplayOptions(title="Validation error", description=message)
        )
        return self.handle(message, defaults.merged(config), shown)

    def handle_auth(
        self,
        error: Any,
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        defaults = DispatchConfig(
            severity=Severity.HIGH,
            context=ErrorContext(kind="authentication"),
        )
        shown = (display or DisplayOptions()).with_defaults(
            DisplayOptions(
                title="Authentication error",
                description="Your session has expired. Please sign in again.",
                action=ToastAction(label="Sign in", on_click=lambda: self.navigate("/login")),
            )
        )
        return self.handle(error, defaults.merged(config), shown)

    def handle_permission(
        self,
        resource: str,
        config: DispatchConfig | None = None,
        display: DisplayOptions | None = None,
    ) -> str:
        defaults = DispatchConfig(
            severity=Severity.MEDIUM,
            context=ErrorContext(kind="permission", resource=resource),
        )
        shown = (display or DisplayOptions()).with_defaults(
            DisplayOptions(
                title="Permission error",
                description=f"You do not have permission to access {resource}",
            )
        )
        return self.handle(
            f"Not authorized to access {resource}", defaults.merged(config), shown
        )

    # --- log store passthroughs ----------------------------------------------

    def get_stats(self) -> ErrorStats:
        """Recomputed from the log store on every call."""
        logs = self._log_store.all()
        counts = Counter(entry.severity.value for entry in logs)
        return ErrorStats(
            total=len(logs),
            unresolved=len(self._log_store.unresolved()),
            by_severity=dict(counts),
            recent=logs[-RECENT_LIMIT:],
        )

    def clear_logs(self) -> None:
        self._log_store.clear()

    def export_logs(self) -> str:
        return self._log_store.export()
