from __future__ import annotations

import json
import logging

import pytest

from campus_dashboard.core.models import LogStoreConfig
from campus_dashboard.core.severity import Severity
from campus_dashboard.services.log_store import (
    LOGS_KEY,
    SESSION_KEY,
    SOURCE_ASYNC_REJECTION,
    SOURCE_GLOBAL,
    LogStore,
)
from campus_dashboard.services.storage import MemoryStore
from tests.fakes import FailingStore, FakePlatformSource


def test_capture_builds_entry_with_defaults(store):
    entry_id = store.capture(ValueError("bad input"))

    [entry] = store.all()
    assert entry.id == entry_id
    assert entry_id.startswith("error-")
    assert entry.message == "bad input"
    assert entry.severity is Severity.MEDIUM
    assert entry.source == "Unknown"
    assert entry.session_id == store.session_id
    assert entry.user_agent == "pytest-agent"
    assert entry.url == "/tests"
    assert entry.resolved is False
    assert entry.additional_data is None


def test_capture_accepts_plain_strings_and_blank_messages(store):
    store.capture("  disk quota exceeded  ")
    store.capture("")
    store.capture(KeyError())

    messages = [e.message for e in store.all()]
    assert messages == ["disk quota exceeded", "Unknown error", "KeyError"]


def test_capture_reads_severity_and_source_from_context(store):
    store.capture(
        "boom",
        {"severity": "critical", "source": "Scheduler", "week": 12, "callback": print},
    )

    [entry] = store.all()
    assert entry.severity is Severity.CRITICAL
    assert entry.source == "Scheduler"
    assert entry.additional_data == {"week": 12}


def test_unserializable_context_values_are_stringified(store):
    marker = object()
    store.capture("boom", {"thing": marker})

    [entry] = store.all()
    assert entry.additional_data == {"thing": str(marker)}


def test_raised_exception_keeps_its_stack(store):
    try:
        raise RuntimeError("exploded")
    except RuntimeError as ex:
        store.capture(ex)

    [entry] = store.all()
    assert entry.stack is not None
    assert "RuntimeError: exploded" in entry.stack


def test_bounded_fifo_evicts_oldest_first(make_store):
    store = make_store(max_logs=5)
    for i in range(8):
        store.capture(f"e{i}", {"severity": "critical" if i == 0 else "low"})

    assert [e.message for e in store.all()] == ["e3", "e4", "e5", "e6", "e7"]


def test_capacity_eviction_scenario(make_store):
    store = make_store(max_logs=3)
    for message in ("a", "b", "c", "d"):
        store.capture(message)

    assert [e.message for e in store.all()] == ["b", "c", "d"]


def test_resolve_is_idempotent(store):
    entry_id = store.capture("flaky")
    store.capture("other")

    assert store.resolve("missing") is False
    assert all(not e.resolved for e in store.all())

    assert store.resolve(entry_id) is True
    assert store.resolve(entry_id) is True
    assert [e.message for e in store.unresolved()] == ["other"]
    assert store.get(entry_id).resolved is True


def test_resolve_keeps_other_fields(store):
    entry_id = store.capture("flaky", {"source": "Tasks"})
    before = store.get(entry_id)

    store.resolve(entry_id)
    after = store.get(entry_id)

    assert after.resolved is True
    assert (after.id, after.message, after.source, after.timestamp) == (
        before.id,
        before.message,
        before.source,
        before.timestamp,
    )


def test_severity_filters_partition_all(store):
    for i, sev in enumerate(["low", "high", "medium", "low", "critical", "high"]):
        store.capture(f"e{i}", {"severity": sev})

    ids = []
    for sev in Severity:
        ids.extend(e.id for e in store.by_severity(sev))

    assert sorted(ids) == sorted(e.id for e in store.all())
    assert len(ids) == len(set(ids))
    assert [e.message for e in store.by_severity("low")] == ["e0", "e3"]


def test_current_session_excludes_hydrated_entries_from_other_sessions(storage):
    first = LogStore(storage=storage, session_storage=MemoryStore())
    first.capture("from first session")

    second = LogStore(storage=storage, session_storage=MemoryStore())
    second.capture("from second session")

    assert [e.message for e in second.all()] == [
        "from first session",
        "from second session",
    ]
    assert [e.message for e in second.current_session()] == ["from second session"]


def test_session_id_is_reused_within_a_session(storage):
    session = MemoryStore()
    a = LogStore(storage=storage, session_storage=session)
    b = LogStore(storage=storage, session_storage=session)

    assert a.session_id == b.session_id
    assert session.get(SESSION_KEY) == a.session_id
    assert a.session_id.startswith("session-")


def test_session_storage_failure_still_yields_an_id(storage):
    store = LogStore(storage=storage, session_storage=FailingStore())
    assert store.session_id.startswith("session-")


def test_every_mutation_rewrites_storage(store, storage):
    entry_id = store.capture("one")
    assert [r["message"] for r in json.loads(storage.get(LOGS_KEY))] == ["one"]

    store.resolve(entry_id)
    assert json.loads(storage.get(LOGS_KEY))[0]["resolved"] is True

    store.clear()
    assert json.loads(storage.get(LOGS_KEY)) == []
    assert store.all() == []


def test_hydration_trims_to_capacity_and_skips_malformed(storage):
    records = [
        {"id": f"error-{i}", "message": f"m{i}", "severity": "low", "resolved": False}
        for i in range(5)
    ]
    records.insert(2, {"message": "no id"})
    records.insert(3, "not an object")
    storage.set(LOGS_KEY, json.dumps(records))

    store = LogStore(LogStoreConfig(max_logs=3), storage=storage, session_storage=MemoryStore())

    assert [e.message for e in store.all()] == ["m2", "m3", "m4"]


def test_corrupt_storage_is_reported_but_never_captured(storage, caplog):
    storage.set(LOGS_KEY, "{not json")

    with caplog.at_level(logging.ERROR):
        store = LogStore(storage=storage, session_storage=MemoryStore())

    assert store.all() == []
    assert "Failed to load logs from storage" in caplog.text


def test_storage_write_failure_does_not_recurse(caplog):
    store = LogStore(storage=FailingStore(), session_storage=MemoryStore())

    with caplog.at_level(logging.ERROR):
        entry_id = store.capture("first")

    assert [e.id for e in store.all()] == [entry_id]
    assert "Failed to save logs to storage" in caplog.text


def test_persistence_disabled_skips_storage(make_store, storage):
    store = make_store(enable_persistence=False)
    store.capture("kept in memory")

    assert storage.get(LOGS_KEY) is None
    assert len(store.all()) == 1


def test_console_mirror_can_be_disabled(make_store, caplog):
    quiet = make_store(enable_console_log=False)
    with caplog.at_level(logging.ERROR, logger="campus_dashboard.errors"):
        quiet.capture("silent")
    assert "Error logged" not in caplog.text

    loud = make_store()
    with caplog.at_level(logging.ERROR, logger="campus_dashboard.errors"):
        loud.capture("noisy")
    assert "noisy" in caplog.text


def test_remote_sink_receives_only_the_new_entry(make_store, sink):
    store = make_store(
        enable_remote_sink=True, remote_endpoint="https://logs.example/ingest", api_key="k1"
    )
    store.capture("first")
    second_id = store.capture("second")

    assert len(sink.sent) == 2
    entry, endpoint, api_key = sink.sent[-1]
    assert entry.id == second_id
    assert endpoint == "https://logs.example/ingest"
    assert api_key == "k1"


def test_remote_sink_needs_an_endpoint(make_store, sink):
    store = make_store(enable_remote_sink=True)
    store.capture("nowhere to send")
    assert sink.sent == []


def test_update_config_merges(store, sink):
    store.update_config(enable_remote_sink=True, remote_endpoint="https://x.example")

    assert store.config.max_logs == 100
    assert store.config.enable_remote_sink is True

    store.capture("shipped")
    assert len(sink.sent) == 1


def test_shrinking_capacity_applies_on_next_capture(store):
    for i in range(5):
        store.capture(f"e{i}")

    store.update_config(max_logs=2)
    store.capture("e5")

    assert [e.message for e in store.all()] == ["e4", "e5"]


def test_export_is_a_json_array_of_wire_records(store):
    store.capture("boom", {"severity": "high", "endpoint": "/api/tasks"})

    exported = json.loads(store.export())

    assert len(exported) == 1
    record = exported[0]
    assert record["message"] == "boom"
    assert record["severity"] == "high"
    assert record["sessionId"] == store.session_id
    assert record["additionalData"] == {"endpoint": "/api/tasks"}


def test_queries_return_copies(store):
    store.capture("one")
    snapshot = store.all()
    snapshot.clear()
    assert len(store.all()) == 1


def test_platform_failures_bypass_the_dispatcher(store):
    source = FakePlatformSource()
    store.attach(source)

    source.on_exception(ZeroDivisionError("division by zero"), {"filename": "app.py", "lineno": 7, "colno": 3})
    source.on_rejection(RuntimeError("task blew up"))

    sync_entry, async_entry = store.all()
    assert sync_entry.source == SOURCE_GLOBAL
    assert sync_entry.additional_data == {"filename": "app.py", "lineno": 7, "colno": 3}
    assert async_entry.source == SOURCE_ASYNC_REJECTION
    assert async_entry.message == "task blew up"


def test_platform_source_passed_at_construction_is_attached(storage):
    source = FakePlatformSource()
    store = LogStore(storage=storage, session_storage=MemoryStore(), platform=source)

    source.on_rejection(RuntimeError("late failure"))
    assert [e.message for e in store.all()] == ["late failure"]

    store.close()
    assert source.uninstalled is True


@pytest.mark.parametrize("capacity", [1, 2, 10])
def test_capacity_holds_for_any_overflow(make_store, capacity):
    store = make_store(max_logs=capacity)
    total = capacity + 4
    for i in range(total):
        store.capture(f"e{i}")

    assert [e.message for e in store.all()] == [f"e{i}" for i in range(4, total)]
