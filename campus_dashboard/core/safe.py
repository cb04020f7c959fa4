from __future__ import annotations

import functools
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from campus_dashboard.core.errors import normalize_error
from campus_dashboard.core.logging import get_logger
from campus_dashboard.core.severity import Severity

if TYPE_CHECKING:
    from campus_dashboard.services.dispatcher import Dispatcher
    from campus_dashboard.services.log_store import LogStore

T = TypeVar("T")


def safe_event(
    handler: Callable[[Any], Any] | None,
    *,
    label: str,
    dispatcher: "Dispatcher | None" = None,
    swallow: bool = True,
) -> Callable[[Any], Any]:
    """Wrap a Flet event handler with consistent failure reporting.

    With a dispatcher the failure is dispatched as an async-operation error
    named `label` (logged and toasted); without one it is only logged.
    """

    logger = get_logger("ui")

    def _wrapped(e: Any) -> Any:
        if handler is None:
            return None
        try:
            return handler(e)
        except Exception as ex:
            if dispatcher is not None:
                dispatcher.handle_async(ex, label)
            else:
                logger.exception("Unhandled exception in %s", label)
            if not swallow:
                raise
            return None

    return _wrapped


def safe_update(control: Any) -> None:
    """Best-effort update for a control/page."""

    try:
        if control is not None:
            control.update()
    except Exception:
        pass


class ErrorHandler:
    """Per-component error state.

    Keeps the last failure and its log id so a component can render an
    inline error, and forwards every failure to the log store.
    """

    def __init__(
        self,
        log_store: "LogStore",
        *,
        context: Mapping[str, Any] | None = None,
        severity: Severity | str = Severity.MEDIUM,
        on_error: Callable[[BaseException, str], Any] | None = None,
    ):
        self._log_store = log_store
        self._context = dict(context or {})
        self._severity = Severity.coerce(severity)
        self._on_error = on_error
        self.error: Optional[BaseException] = None
        self.error_id: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def handle(self, error: Any, **context: Any) -> str:
        normalized = normalize_error(error)
        merged = {
            **self._context,
            **context,
            "severity": context.get("severity") or self._severity,
        }
        error_id = self._log_store.capture(normalized, merged)

        self.error = normalized.as_exception()
        self.error_id = error_id

        if self._on_error is not None:
            self._on_error(self.error, error_id)
        return error_id

    def clear(self) -> None:
        self.error = None
        self.error_id = None


def guarded_operation(
    fn: Callable[..., T] | Callable[..., Awaitable[T]],
    log_store: "LogStore",
    *,
    context: Mapping[str, Any] | None = None,
    severity: Severity | str = Severity.MEDIUM,
    on_error: Callable[[BaseException, str], Any] | None = None,
) -> Callable[..., Any]:
    """Wrap a sync or async callable so failures are captured, not raised.

    The wrapper returns the callable's result, or None after a failure.
    The failure is recorded with source "guarded_operation" and the
    function name and call arguments in its context.
    """

    def _record(ex: Exception, args: tuple[Any, ...]) -> None:
        error_id = log_store.capture(
            ex,
            {
                **dict(context or {}),
                "source": "guarded_operation",
                "severity": Severity.coerce(severity),
                "function_name": getattr(fn, "__name__", None) or "anonymous",
                "args": list(args),
            },
        )
        if on_error is not None:
            on_error(ex, error_id)

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def _async_wrapped(*args: Any, **kwargs: Any) -> Any:
            try:
                return await fn(*args, **kwargs)
            except Exception as ex:
                _record(ex, args)
                return None

        return _async_wrapped

    @functools.wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as ex:
            _record(ex, args)
            return None

    return _wrapped
