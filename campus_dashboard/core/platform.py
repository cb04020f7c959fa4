from __future__ import annotations

import asyncio
import sys
import threading
import traceback
from collections.abc import Callable
from types import TracebackType
from typing import Any, Optional, Protocol

from campus_dashboard.core.errors import report_internal_failure

ExceptionCallback = Callable[[BaseException, dict[str, Any]], None]
RejectionCallback = Callable[[BaseException], None]


class PlatformErrorSource(Protocol):
    """
    Capability interface for runtime-level failure hooks.

    `on_exception` receives uncaught synchronous exceptions plus location
    metadata (filename/lineno/colno when known); `on_rejection` receives
    failures of background async work nobody awaited.
    """

    def install(
        self, on_exception: ExceptionCallback, on_rejection: RejectionCallback
    ) -> None: ...

    def uninstall(self) -> None: ...


def frame_metadata(tb: Optional[TracebackType]) -> dict[str, Any]:
    """filename/lineno/colno of the innermost frame of a traceback."""
    try:
        frames = traceback.extract_tb(tb) if tb is not None else []
    except Exception:
        return {}
    if not frames:
        return {}
    last = frames[-1]
    return {
        "filename": last.filename,
        "lineno": last.lineno,
        "colno": getattr(last, "colno", None),
    }



class _HookRegistry:
    """Process-wide owner of the interpreter and event-loop failure hooks.

    sys.excepthook, threading.excepthook and a loop's exception handler are
    global, so they are installed once no matter how many sources are
    active. Each failure goes to exactly one source: the most recently
    installed one that is still active. Sources may leave in any order; the
    original hooks come back when the last one leaves.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._sources: list[PythonErrorSource] = []
        self._hooked = False
        self._prev_sys_hook: Any = None
        self._prev_thread_hook: Any = None
        # loop -> (previous handler, sources attached to that loop)
        self._loops: dict[asyncio.AbstractEventLoop, tuple[Any, list[PythonErrorSource]]] = {}

    @property
    def sources(self) -> list["PythonErrorSource"]:
        with self._lock:
            return list(self._sources)

    def register(self, source: "PythonErrorSource") -> None:
        with self._lock:
            if source in self._sources:
                return
            self._sources.append(source)
            if not self._hooked:
                self._prev_sys_hook = sys.excepthook
                sys.excepthook = self._sys_hook
                self._prev_thread_hook = threading.excepthook
                threading.excepthook = self._thread_hook
                self._hooked = True

    def unregister(self, source: "PythonErrorSource") -> None:
        with self._lock:
            if source in self._sources:
                self._sources.remove(source)
            for loop in [lp for lp, (_p, srcs) in self._loops.items() if source in srcs]:
                self.detach_loop(source, loop)
            if self._sources or not self._hooked:
                return
            # Someone hooked on top of us: stay in the chain as a pass-through.
            if sys.excepthook != self._sys_hook or threading.excepthook != self._thread_hook:
                return
            sys.excepthook = self._prev_sys_hook or sys.__excepthook__
            threading.excepthook = self._prev_thread_hook or threading.__excepthook__
            self._prev_sys_hook = None
            self._prev_thread_hook = None
            self._hooked = False

    def attach_loop(
        self, source: "PythonErrorSource", loop: asyncio.AbstractEventLoop
    ) -> None:
        with self._lock:
            if loop not in self._loops:
                self._loops[loop] = (loop.get_exception_handler(), [])
                loop.set_exception_handler(self._loop_handler)
            _prev, sources = self._loops[loop]
            if source not in sources:
                sources.append(source)

    def detach_loop(
        self, source: "PythonErrorSource", loop: asyncio.AbstractEventLoop
    ) -> None:
        with self._lock:
            if loop not in self._loops:
                return
            prev, sources = self._loops[loop]
            if source in sources:
                sources.remove(source)
            if sources:
                return
            del self._loops[loop]
            try:
                if loop.get_exception_handler() == self._loop_handler:
                    loop.set_exception_handler(prev)
            except Exception as ex:
                report_internal_failure("PythonErrorSource.detach_loop", ex)

    # --- hooks -------------------------------------------------------------

    def _owner(self) -> Optional["PythonErrorSource"]:
        with self._lock:
            return self._sources[-1] if self._sources else None

    def _sys_hook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        owner = self._owner()
        if owner is not None and not issubclass(exc_type, KeyboardInterrupt):
            owner._emit_exception(exc, tb)
        prev = self._prev_sys_hook or sys.__excepthook__
        prev(exc_type, exc, tb)

    def _thread_hook(self, args: Any) -> None:
        owner = self._owner()
        if (
            owner is not None
            and args.exc_type is not SystemExit
            and args.exc_value is not None
        ):
            owner._emit_exception(args.exc_value, args.exc_traceback)
        prev = self._prev_thread_hook or threading.__excepthook__
        prev(args)

    def _loop_handler(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        with self._lock:
            prev, sources = self._loops.get(loop, (None, []))
            owner = sources[-1] if sources else None

        if owner is not None:
            exc = context.get("exception")
            if not isinstance(exc, BaseException):
                exc = RuntimeError(str(context.get("message") or "Unhandled async error"))
            owner._emit_rejection(exc)

        if prev is not None:
            prev(loop, context)
        else:
            loop.default_exception_handler(context)


_REGISTRY = _HookRegistry()


class PythonErrorSource:
    """Hooks CPython's global failure entry points.

    - sys.excepthook: uncaught exceptions on the main thread
    - threading.excepthook: uncaught exceptions on worker threads
    - asyncio loop exception handler: exceptions of tasks/callbacks nobody
      retrieved ("Task exception was never retrieved")

    The hooks are process-wide and shared through one registry; when
    several sources are installed only the newest receives failures.
    Previous hooks are chained, so default printing still happens.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._on_exception: ExceptionCallback | None = None
        self._on_rejection: RejectionCallback | None = None
        self._hooked_loop: asyncio.AbstractEventLoop | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(
        self, on_exception: ExceptionCallback, on_rejection: RejectionCallback
    ) -> None:
        if self._installed:
            self.uninstall()

        self._on_exception = on_exception
        self._on_rejection = on_rejection
        _REGISTRY.register(self)
        self._installed = True

        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self.attach_loop(loop)

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Hook an event loop that did not exist (or was not running) at install."""
        if not self._installed or loop is self._hooked_loop:
            return
        if self._hooked_loop is not None:
            _REGISTRY.detach_loop(self, self._hooked_loop)
        _REGISTRY.attach_loop(self, loop)
        self._hooked_loop = loop

    def uninstall(self) -> None:
        if not self._installed:
            return
        _REGISTRY.unregister(self)
        self._hooked_loop = None
        self._on_exception = None
        self._on_rejection = None
        self._installed = False

    def _emit_exception(self, exc: BaseException, tb: Optional[TracebackType]) -> None:
        callback = self._on_exception
        if callback is None:
            return
        try:
            callback(exc, frame_metadata(tb))
        except Exception as ex:
            report_internal_failure("PythonErrorSource.on_exception", ex)

    def _emit_rejection(self, exc: BaseException) -> None:
        callback = self._on_rejection
        if callback is None:
            return
        try:
            callback(exc)
        except Exception as ex:
            report_internal_failure("PythonErrorSource.on_rejection", ex)
