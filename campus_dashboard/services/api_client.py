from __future__ import annotations

from typing import Any

import httpx

from campus_dashboard.core.models import DispatchConfig
from campus_dashboard.services.config_service import ApiConfig
from campus_dashboard.services.dispatcher import Dispatcher


def build_url(base_url: str, endpoint: str) -> str:
    base = str(base_url or "").strip().rstrip("/")
    path = str(endpoint or "").strip()
    if path.startswith(("http://", "https://")):
        return path
    return f"{base}/{path.lstrip('/')}"


def fetch_json(
    url: str,
    *,
    verify_ssl: bool | None = None,
    timeout: int | float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Any:
    """GET `url` and decode its JSON body. Raises httpx errors on failure."""

    client_kwargs: dict[str, object] = {}
    if verify_ssl is not None:
        client_kwargs["verify"] = bool(verify_ssl)
    if timeout is not None:
        client_kwargs["timeout"] = httpx.Timeout(float(timeout))
    if transport is not None:
        client_kwargs["transport"] = transport

    with httpx.Client(**client_kwargs) as client:
        response = client.get(url)
        response.raise_for_status()
        return response.json()


class ApiClient:
    """Thin REST client for the dashboard backend.

    `get_json` raises; `load` reports failures through the dispatcher and
    returns None, which is what UI call sites want.
    """

    def __init__(
        self,
        config: ApiConfig,
        dispatcher: Dispatcher,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        self._config = config
        self._dispatcher = dispatcher
        self._transport = transport

    def get_json(self, endpoint: str) -> Any:
        return fetch_json(
            build_url(self._config.base_url, endpoint),
            verify_ssl=self._config.verify_ssl,
            timeout=self._config.timeout,
            transport=self._transport,
        )

    def load(self, endpoint: str, config: DispatchConfig | None = None) -> Any:
        try:
            return self.get_json(endpoint)
        except Exception as ex:
            report_api_failure(self._dispatcher, ex, endpoint, config)
            return None


def _validation_errors(response: httpx.Response) -> dict[str, str] | str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, dict) and errors:
        return {str(k): str(v) for k, v in errors.items()}
    if isinstance(payload, dict) and payload.get("detail"):
        return str(payload["detail"])
    return None


def report_api_failure(
    dispatcher: Dispatcher,
    exc: BaseException,
    endpoint: str,
    config: DispatchConfig | None = None,
) -> str:
    """Route a failed REST call to the matching dispatcher wrapper.

    `config` is merged over the wrapper defaults, e.g. escalate=True for
    calls whose failure should take over an ErrorBoundary.
    """

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 401:
            return dispatcher.handle_auth(exc, config)
        if status == 403:
            return dispatcher.handle_permission(endpoint, config)
        if status in (400, 422):
            errors = _validation_errors(exc.response)
            if errors:
                return dispatcher.handle_validation(errors, config)
    return dispatcher.handle_network(exc, endpoint, config)
