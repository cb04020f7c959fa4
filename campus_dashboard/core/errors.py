from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Optional

from campus_dashboard.core.logging import get_logger

UNKNOWN_ERROR = "Unknown error"


def format_exception_stack(exc: BaseException) -> Optional[str]:
    """Formatted traceback for an exception object, or None if it never raised."""

    try:
        if exc.__traceback__ is None:
            return None
        return "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ).rstrip()
    except Exception:
        return None


@dataclass(frozen=True)
class NormalizedError:
    """The single internal error value every entry point converts into.

    Callers may hand the pipeline either a raw message or an exception;
    everything downstream only ever sees this.
    """

    message: str
    name: str = "Error"
    stack: Optional[str] = None
    cause: Optional[BaseException] = None

    def as_exception(self) -> BaseException:
        """The original exception, or a RuntimeError carrying the message."""
        if self.cause is not None:
            return self.cause
        return RuntimeError(self.message)


def normalize_error(error: Any) -> NormalizedError:
    """Convert `str | BaseException | NormalizedError` into a NormalizedError.

    Empty messages fall back to the exception class name, then to
    "Unknown error", so an entry never carries a blank message.
    """

    if isinstance(error, NormalizedError):
        return error

    if isinstance(error, BaseException):
        name = type(error).__name__
        try:
            message = str(error).strip()
        except Exception:
            message = ""
        return NormalizedError(
            message=message or name or UNKNOWN_ERROR,
            name=name,
            stack=format_exception_stack(error),
            cause=error,
        )

    if isinstance(error, str):
        return NormalizedError(message=error.strip() or UNKNOWN_ERROR)

    return NormalizedError(message=UNKNOWN_ERROR)


def report_internal_failure(
    where: str,
    exc: BaseException,
    *,
    logger_name: str = "campus_dashboard.pipeline",
) -> None:
    """Report a failure of the pipeline's own I/O to the logger only.

    Storage, JSON parse and remote-sink failures end here. They must never
    be fed back into the log store, so this function neither raises nor
    touches any store.
    """

    try:
        get_logger(logger_name).error("%s: %s: %s", where, type(exc).__name__, exc)
    except Exception:
        pass
