from __future__ import annotations

from campus_dashboard.services.log_report import (
    ENTRY_COLUMNS,
    entries_frame,
    filter_entries,
    severity_summary,
)


def _fill(store):
    store.capture("Timetable failed to load", {"severity": "high", "source": "Schedule"})
    store.capture("Missing title", {"severity": "low", "source": "TaskForm"})
    store.capture("Grades endpoint 500", {"severity": "high", "source": "Grades"})
    store.resolve(store.all()[0].id)
    return store.all()


def test_entries_frame_is_newest_first(store):
    entries = _fill(store)
    df = entries_frame(entries)

    assert list(df.columns) == ENTRY_COLUMNS
    assert list(df["message"]) == [e.message for e in reversed(entries)]


def test_entries_frame_of_nothing_keeps_columns():
    df = entries_frame([])
    assert df.empty
    assert list(df.columns) == ENTRY_COLUMNS


def test_severity_summary_counts_every_level(store):
    summary = severity_summary(_fill(store))

    assert list(summary.index) == ["low", "medium", "high", "critical"]
    assert summary.loc["high", "total"] == 2
    assert summary.loc["high", "unresolved"] == 1
    assert summary.loc["low", "unresolved"] == 1
    assert summary.loc["critical", "total"] == 0


def test_severity_summary_of_nothing_is_all_zero():
    summary = severity_summary([])
    assert summary["total"].sum() == 0
    assert len(summary) == 4


def test_filter_entries(store):
    entries = _fill(store)

    assert [e.source for e in filter_entries(entries, severity="high")] == ["Schedule", "Grades"]
    assert [e.source for e in filter_entries(entries, severity="unresolved")] == ["TaskForm", "Grades"]
    assert [e.source for e in filter_entries(entries, text="GRADES")] == ["Grades"]
    assert [e.source for e in filter_entries(entries, severity="high", text="timetable")] == ["Schedule"]
    assert filter_entries(entries) == entries
