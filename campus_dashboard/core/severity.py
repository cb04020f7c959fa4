from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """
    Four-level failure classification.

    Drives both the logging policy of a dispatch and the colour of the
    toast that reports it.
    """

    LOW = "low"            # Validation / informational
    MEDIUM = "medium"      # Default, unclassified
    HIGH = "high"          # Network, authentication
    CRITICAL = "critical"  # Escalation-worthy

    @classmethod
    def coerce(cls, value: "Severity | str | None") -> "Severity":
        """Map a severity or its string name to a member; unknown → MEDIUM."""
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


class ToastVariant(str, Enum):
    DESTRUCTIVE = "destructive"
    WARNING = "warning"
    INFO = "info"


_DEFAULT_TITLES: dict[Severity, str] = {
    Severity.CRITICAL: "Critical error",
    Severity.HIGH: "Serious error",
    Severity.MEDIUM: "Warning",
    Severity.LOW: "Notice",
}


def _recognised(severity: Severity | str | None) -> Severity | None:
    if isinstance(severity, Severity):
        return severity
    try:
        return Severity(str(severity or "").strip().lower())
    except ValueError:
        return None


def variant_for(severity: Severity | str | None) -> ToastVariant:
    # Unrecognised values fall through to INFO, not to the MEDIUM default.
    sev = _recognised(severity)
    if sev is None:
        return ToastVariant.INFO
    if sev in (Severity.CRITICAL, Severity.HIGH):
        return ToastVariant.DESTRUCTIVE
    if sev is Severity.MEDIUM:
        return ToastVariant.WARNING
    return ToastVariant.INFO


def default_title(severity: Severity | str | None) -> str:
    # Same fallback as variant_for, so title and colour agree.
    return _DEFAULT_TITLES[_recognised(severity) or Severity.LOW]
