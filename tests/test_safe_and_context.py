from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from campus_dashboard.core.context import build_context, build_process_store
from campus_dashboard.core.errors import NormalizedError, normalize_error
from campus_dashboard.core.models import ErrorContext
from campus_dashboard.core.safe import ErrorHandler, guarded_operation, safe_event, safe_update
from campus_dashboard.core.severity import Severity
from campus_dashboard.services.storage import FletSessionStorage, JsonFileStore
from campus_dashboard.utils.helpers import timestamped_id
from tests.fakes import DictStorage, FakePlatformSource


# --- errors / ids ----------------------------------------------------------


def test_normalize_error_variants():
    assert normalize_error("  spaced  ").message == "spaced"
    assert normalize_error(None).message == "Unknown error"

    exc = ValueError("bad")
    normalized = normalize_error(exc)
    assert (normalized.message, normalized.name, normalized.cause) == ("bad", "ValueError", exc)
    assert normalized.stack is None
    assert normalized.as_exception() is exc

    already = NormalizedError(message="x")
    assert normalize_error(already) is already
    assert isinstance(already.as_exception(), RuntimeError)


def test_timestamped_id_shape():
    prefix, millis, suffix = timestamped_id("error").split("-")
    assert prefix == "error"
    assert millis.isdigit()
    assert len(suffix) == 9


def test_error_context_from_mapping():
    ctx = ErrorContext.of({"type": "network", "endpoint": "/x", "attempt": 3})
    assert ctx.kind == "network"
    assert ctx.endpoint == "/x"
    assert ctx.extra == {"attempt": 3}
    assert ctx.to_data() == {"attempt": 3, "endpoint": "/x", "type": "network"}


def test_error_context_merge_prefers_the_overlay():
    base = ErrorContext(kind="network", endpoint="/a", extra={"a": 1, "b": 1})
    merged = base.merged(ErrorContext(endpoint="/b", extra={"b": 2}))
    assert merged.kind == "network"
    assert merged.endpoint == "/b"
    assert merged.extra == {"a": 1, "b": 2}


# --- safe_event / safe_update ----------------------------------------------


def test_safe_event_dispatches_failures(dispatcher, store):
    def handler(_e):
        raise RuntimeError("click failed")

    assert safe_event(handler, label="save.click", dispatcher=dispatcher)(None) is None

    [entry] = store.all()
    assert entry.additional_data == {"operation": "save.click", "type": "async"}


def test_safe_event_without_dispatcher_logs(caplog):
    def handler(_e):
        raise RuntimeError("click failed")

    with caplog.at_level(logging.ERROR):
        safe_event(handler, label="save.click")(None)

    assert "Unhandled exception in save.click" in caplog.text


def test_safe_event_can_reraise():
    def handler(_e):
        raise RuntimeError("click failed")

    with pytest.raises(RuntimeError):
        safe_event(handler, label="x", swallow=False)(None)


def test_safe_event_passes_through_results():
    assert safe_event(lambda e: e + 1, label="x")(1) == 2
    assert safe_event(None, label="x")(1) is None


def test_safe_update_swallows_failures():
    class Broken:
        def update(self):
            raise AssertionError("not on a page")

    safe_update(Broken())
    safe_update(None)


# --- ErrorHandler ------------------------------------------------------------


def test_error_handler_tracks_last_error(store):
    seen = []
    handler = ErrorHandler(
        store,
        context={"source": "TaskForm"},
        severity="high",
        on_error=lambda err, error_id: seen.append(error_id),
    )

    error_id = handler.handle(ValueError("title required"), field="title")

    assert handler.has_error
    assert str(handler.error) == "title required"
    assert handler.error_id == error_id == seen[0]

    [entry] = store.all()
    assert entry.source == "TaskForm"
    assert entry.severity is Severity.HIGH
    assert entry.additional_data == {"field": "title"}

    handler.clear()
    assert not handler.has_error
    assert handler.error_id is None


def test_error_handler_per_call_severity_wins(store):
    ErrorHandler(store).handle("oops", severity="critical")
    assert store.all()[0].severity is Severity.CRITICAL


# --- guarded_operation -------------------------------------------------------


def test_guarded_sync_operation(store):
    def divide(a, b):
        return a / b

    safe_divide = guarded_operation(divide, store, context={"screen": "grades"})

    assert safe_divide(6, 3) == 2
    assert safe_divide(1, 0) is None

    [entry] = store.all()
    assert entry.source == "guarded_operation"
    assert entry.additional_data == {"screen": "grades", "function_name": "divide", "args": [1, 0]}


async def test_guarded_async_operation(store):
    failures = []

    async def fetch_schedule(week):
        raise ConnectionError(f"week {week} unavailable")

    safe_fetch = guarded_operation(
        fetch_schedule, store, severity="high", on_error=lambda e, i: failures.append(i)
    )

    assert await safe_fetch(12) is None

    [entry] = store.all()
    assert entry.message == "week 12 unavailable"
    assert entry.severity is Severity.HIGH
    assert failures == [entry.id]


# --- build_context -----------------------------------------------------------


def test_build_context_wires_one_store_and_dispatcher():
    routes = []
    page = SimpleNamespace(
        web=False,
        session=DictStorage(),
        client_user_agent="Flet/desktop",
        route="/tasks",
        go=routes.append,
    )
    platform = FakePlatformSource()

    ctx = build_context(page, platform=platform)
    try:
        assert ctx.dispatcher.log_store is ctx.log_store
        assert isinstance(ctx.log_store._storage, JsonFileStore)
        assert isinstance(ctx.log_store._session_storage, FletSessionStorage)
        assert page.session.get("errorLoggerSessionId") == ctx.log_store.session_id

        error_id = ctx.dispatcher.handle("wired")
        entry = ctx.log_store.get(error_id)
        assert entry.user_agent == "Flet/desktop"
        assert entry.url == "/tasks"

        ctx.dispatcher.navigate("/login")
        assert routes == ["/login"]

        platform.on_rejection(RuntimeError("background"))
        assert len(ctx.log_store.all()) == 2
    finally:
        ctx.close()

    assert platform.uninstalled is True


def test_build_context_can_share_the_process_store():
    platform = FakePlatformSource()
    process_store = build_process_store(platform)
    page = SimpleNamespace(web=False, session=DictStorage(), route="/", go=lambda route: None)

    try:
        ctx = build_context(page, log_store=process_store)
        assert ctx.log_store is process_store
        assert ctx.owns_log_store is False

        ctx.dispatcher.handle("from the session")
        platform.on_exception(RuntimeError("from the interpreter"), {})

        # Closing the session leaves the process hooks in place.
        ctx.close()
        assert platform.uninstalled is False
        assert [e.message for e in process_store.all()] == [
            "from the session",
            "from the interpreter",
        ]
    finally:
        process_store.close()

    assert platform.uninstalled is True


def test_build_context_without_platform_installs_no_hooks():
    page = SimpleNamespace(web=True, client_storage=DictStorage(), session=DictStorage(), go=lambda route: None)

    ctx = build_context(page)
    try:
        assert ctx.owns_log_store is True
        assert ctx.log_store._platform is None
    finally:
        ctx.close()
