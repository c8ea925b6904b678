"""Log sinks receiving workflow status lines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Protocol

import structlog

Severity = Literal["info", "success", "warning", "error", "step"]

LOGGER = structlog.get_logger("court_booking_agent.run")


class RunLogger(Protocol):
    """Callable sink accepting ``(severity, message, detail)``."""

    def __call__(self, severity: Severity, message: str, detail: Any = None) -> None:
        ...


class StructlogRunLogger:
    """Forward workflow lines to structlog."""

    def __init__(self, logger: Any = None) -> None:
        self._logger = logger or LOGGER

    def __call__(self, severity: Severity, message: str, detail: Any = None) -> None:
        fields = {"severity": severity}
        if detail is not None:
            fields["detail"] = detail
        if severity == "warning":
            self._logger.warning(message, **fields)
        elif severity == "error":
            self._logger.error(message, **fields)
        else:
            self._logger.info(message, **fields)


@dataclass(frozen=True)
class LogEntry:
    severity: Severity
    message: str
    detail: Any = None


class RecordingRunLogger:
    """Keep every line in memory, optionally forwarding to another sink."""

    def __init__(self, forward: Optional[RunLogger] = None) -> None:
        self.entries: List[LogEntry] = []
        self._forward = forward

    def __call__(self, severity: Severity, message: str, detail: Any = None) -> None:
        self.entries.append(LogEntry(severity, message, detail))
        if self._forward is not None:
            self._forward(severity, message, detail)

    def messages(self, severity: Optional[Severity] = None) -> List[str]:
        return [entry.message for entry in self.entries if severity is None or entry.severity == severity]
