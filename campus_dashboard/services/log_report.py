"""Tabular views over captured log entries (pandas)."""
from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from campus_dashboard.core.models import LogEntry
from campus_dashboard.core.severity import Severity

ENTRY_COLUMNS: list[str] = [
    "id",
    "timestamp",
    "severity",
    "source",
    "message",
    "resolved",
    "session_id",
]


def entries_frame(entries: Iterable[LogEntry]) -> pd.DataFrame:
    """One row per entry, newest first."""
    rows = [
        {
            "id": e.id,
            "timestamp": e.timestamp,
            "severity": e.severity.value,
            "source": e.source,
            "message": e.message,
            "resolved": e.resolved,
            "session_id": e.session_id,
        }
        for e in entries
    ]
    df = pd.DataFrame(rows, columns=ENTRY_COLUMNS)
    if df.empty:
        return df
    return df.iloc[::-1].reset_index(drop=True)


def severity_summary(entries: Iterable[LogEntry]) -> pd.DataFrame:
    """Total and unresolved counts for every severity, including empty ones."""
    df = entries_frame(entries)
    levels = [s.value for s in Severity]
    if df.empty:
        return pd.DataFrame(
            {"total": [0] * len(levels), "unresolved": [0] * len(levels)},
            index=pd.Index(levels, name="severity"),
        )

    total = df["severity"].value_counts().reindex(levels, fill_value=0)
    unresolved = (
        df.loc[~df["resolved"], "severity"].value_counts().reindex(levels, fill_value=0)
    )
    out = pd.DataFrame({"total": total, "unresolved": unresolved})
    out.index.name = "severity"
    return out.astype(int)


def filter_entries(
    entries: list[LogEntry], *, severity: str = "", text: str = ""
) -> list[LogEntry]:
    """Case-insensitive text search over message/source plus a severity filter."""
    needle = str(text or "").strip().lower()
    wanted = str(severity or "").strip().lower()
    out: list[LogEntry] = []
    for e in entries:
        if wanted == "unresolved":
            if e.resolved:
                continue
        elif wanted and e.severity.value != wanted:
            continue
        if needle and needle not in e.message.lower() and needle not in e.source.lower():
            continue
        out.append(e)
    return out
