from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional

from campus_dashboard.core.severity import Severity, ToastVariant


def json_safe(value: Any) -> Any:
    """Return `value` if it survives json.dumps, else its str()."""
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def clean_context(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop None/callable values and stringify anything not JSON-serializable."""
    cleaned: dict[str, Any] = {}
    for key, value in (data or {}).items():
        if value is None or callable(value):
            continue
        cleaned[str(key)] = json_safe(value)
    return cleaned


@dataclass(frozen=True)
class LogEntry:
    """
    Immutable record of one captured failure.

    Only `resolved` ever changes, and only by replacing the entry with a
    resolved copy (see LogStore.resolve).
    """

    id: str
    timestamp: str
    # ISO-8601, UTC.

    message: str
    source: str
    severity: Severity
    session_id: str
    user_agent: str
    url: str
    stack: Optional[str] = None
    additional_data: Optional[dict[str, Any]] = None
    resolved: bool = False

    def resolved_copy(self) -> "LogEntry":
        return self if self.resolved else replace(self, resolved=True)

    def to_dict(self) -> dict[str, Any]:
        """Persisted/wire representation (camelCase keys)."""
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "message": self.message,
            "source": self.source,
            "severity": self.severity.value,
            "sessionId": self.session_id,
            "userAgent": self.user_agent,
            "url": self.url,
            "resolved": self.resolved,
        }
        if self.stack is not None:
            data["stack"] = self.stack
        if self.additional_data:
            data["additionalData"] = self.additional_data
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LogEntry":
        """Rebuild an entry from its persisted form.

        Raises KeyError/TypeError for records missing an id or message.
        """
        extra = data.get("additionalData")
        return cls(
            id=str(data["id"]),
            timestamp=str(data.get("timestamp") or ""),
            message=str(data["message"]),
            source=str(data.get("source") or "Unknown"),
            severity=Severity.coerce(data.get("severity")),
            session_id=str(data.get("sessionId") or ""),
            user_agent=str(data.get("userAgent") or "Unknown"),
            url=str(data.get("url") or ""),
            stack=data.get("stack"),
            additional_data=dict(extra) if isinstance(extra, Mapping) else None,
            resolved=bool(data.get("resolved", False)),
        )


@dataclass(frozen=True)
class ErrorContext:
    """Structured caller context attached to a dispatched failure.

    The typed fields cover what the dispatcher wrappers know about; `extra`
    is the open extension bag for anything else a call site wants recorded.
    """

    source: Optional[str] = None
    kind: Optional[str] = None
    # async | network | validation | authentication | permission
    operation: Optional[str] = None
    endpoint: Optional[str] = None
    resource: Optional[str] = None
    validation_errors: Optional[str | dict[str, str]] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merged(self, other: "ErrorContext | None") -> "ErrorContext":
        """Overlay `other` onto self; `other` wins wherever it is set."""
        if other is None:
            return self
        changes: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(other, f.name)
            if value is not None:
                changes[f.name] = value
        changes["extra"] = {**self.extra, **other.extra}
        return replace(self, **changes)

    def to_data(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        for f in fields(self):
            if f.name in ("extra", "kind"):
                continue
            data[f.name] = getattr(self, f.name)
        data["type"] = self.kind
        return clean_context(data)

    @classmethod
    def of(cls, value: "ErrorContext | Mapping[str, Any] | None") -> "ErrorContext":
        """Accept an ErrorContext or a plain mapping (unknown keys go to extra)."""
        if value is None:
            return cls()
        if isinstance(value, ErrorContext):
            return value
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, item in value.items():
            if key == "type":
                kwargs["kind"] = item
            elif key in known:
                kwargs[key] = item
            else:
                extra[key] = item
        return cls(**kwargs, extra=extra)


@dataclass(frozen=True)
class LogStoreConfig:
    max_logs: int = 100
    enable_console_log: bool = True
    enable_persistence: bool = True
    enable_remote_sink: bool = False
    remote_endpoint: Optional[str] = None
    api_key: Optional[str] = None


@dataclass(frozen=True)
class DispatchConfig:
    """Per-call policy for Dispatcher.handle*. Every field is optional so a
    partial config can be merged onto wrapper and global defaults."""

    log_error: Optional[bool] = None
    notify_channel: Optional[bool] = None
    escalate: Optional[bool] = None
    severity: Optional[Severity | str] = None
    context: Optional[ErrorContext] = None

    def merged(self, other: "DispatchConfig | None") -> "DispatchConfig":
        if other is None:
            return self
        base_ctx = self.context or ErrorContext()
        return DispatchConfig(
            log_error=self.log_error if other.log_error is None else other.log_error,
            notify_channel=(
                self.notify_channel
                if other.notify_channel is None
                else other.notify_channel
            ),
            escalate=self.escalate if other.escalate is None else other.escalate,
            severity=self.severity if other.severity is None else other.severity,
            context=base_ctx.merged(other.context),
        )


DEFAULT_DISPATCH = DispatchConfig(
    log_error=True,
    notify_channel=True,
    escalate=False,
    severity=Severity.MEDIUM,
    context=ErrorContext(),
)


@dataclass(frozen=True)
class ToastAction:
    label: str
    on_click: Callable[[], Any]


@dataclass(frozen=True)
class DisplayOptions:
    title: Optional[str] = None
    description: Optional[str] = None
    action: Optional[ToastAction] = None
    duration: Optional[int] = None
    # Milliseconds; None lets the toast renderer pick its default.

    def with_defaults(self, defaults: "DisplayOptions") -> "DisplayOptions":
        """Fill unset fields from `defaults`; own values always win."""
        return DisplayOptions(
            title=self.title or defaults.title,
            description=self.description or defaults.description,
            action=self.action or defaults.action,
            duration=self.duration if self.duration is not None else defaults.duration,
        )


@dataclass(frozen=True)
class ToastOptions:
    title: str
    variant: ToastVariant
    description: Optional[str] = None
    action: Optional[ToastAction] = None
    duration: Optional[int] = None
