from __future__ import annotations

import asyncio
import json
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

from campus_dashboard.core.errors import report_internal_failure
from campus_dashboard.core.models import LogEntry


def build_headers(api_key: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


class RemoteSink:
    """Best-effort shipper of single log entries to an HTTP endpoint.

    `send()` never blocks and never raises: the POST runs on the running
    asyncio loop (through a worker thread) when there is one, otherwise on a
    single background thread. There is no retry; a failed POST is reported
    to the logger and dropped.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        transport: httpx.BaseTransport | None = None,
    ):
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Any] = set()

    def post(self, entry: LogEntry, endpoint: str, api_key: str | None = None) -> bool:
        """Blocking POST of one entry. Returns True on a 2xx response."""

        client_kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(float(self._timeout)),
            "verify": bool(self._verify_ssl),
        }
        if self._transport is not None:
            client_kwargs["transport"] = self._transport

        try:
            with httpx.Client(**client_kwargs) as client:
                response = client.post(
                    endpoint,
                    headers=build_headers(api_key),
                    content=json.dumps(entry.to_dict(), ensure_ascii=False),
                )
                response.raise_for_status()
            return True
        except Exception as ex:
            report_internal_failure("Failed to send error to remote endpoint", ex)
            return False

    def send(self, entry: LogEntry, endpoint: str, api_key: str | None = None) -> None:
        """Fire-and-forget variant of post()."""

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        try:
            if loop is not None:
                task = loop.create_task(
                    asyncio.to_thread(self.post, entry, endpoint, api_key)
                )
            else:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix="remote-sink"
                    )
                task = self._executor.submit(self.post, entry, endpoint, api_key)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        except Exception as ex:
            report_internal_failure("Failed to schedule remote log delivery", ex)

    def flush(self, timeout: float | None = None) -> None:
        """Wait for thread-pool deliveries (loop tasks finish with their loop)."""
        for task in list(self._pending):
            if isinstance(task, Future):
                try:
                    task.result(timeout=timeout)
                except Exception as ex:
                    report_internal_failure("Remote log delivery did not finish", ex)

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
