from __future__ import annotations

from typing import Any

import pytest

from campus_dashboard.core.models import LogStoreConfig
from campus_dashboard.services.dispatcher import Dispatcher
from campus_dashboard.services.log_store import LogStore
from campus_dashboard.services.storage import MemoryStore
from tests.fakes import RecordingSink


@pytest.fixture(autouse=True)
def _isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CAMPUS_DASHBOARD_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("CAMPUS_DASHBOARD_REMOTE_ENDPOINT", raising=False)
    monkeypatch.delenv("CAMPUS_DASHBOARD_API_KEY", raising=False)


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_store(storage, sink):
    def _make(**config: Any) -> LogStore:
        return LogStore(
            LogStoreConfig(**config),
            storage=storage,
            session_storage=MemoryStore(),
            remote_sink=sink,
            user_agent=lambda: "pytest-agent",
            url=lambda: "/tests",
        )

    return _make


@pytest.fixture
def store(make_store) -> LogStore:
    return make_store()


@pytest.fixture
def dispatcher(store) -> Dispatcher:
    return Dispatcher(store)
