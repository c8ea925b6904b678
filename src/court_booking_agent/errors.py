"""Error kinds raised by the booking workflow."""

from __future__ import annotations

from typing import Optional, Sequence


class BookingError(Exception):
    """Base class for every failure the workflow reports."""


class ConfigurationError(BookingError):
    """A required configuration value is missing or invalid."""


class SessionStateError(BookingError):
    """A session operation was called out of order."""


class NetworkError(BookingError):
    """Transport failure or an out-of-tolerance HTTP status."""

    def __init__(self, operation: str, message: str, *, status_code: Optional[int] = None) -> None:
        self.operation = operation
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{operation} failed{status}: {message}")


class NoEligibleSlotError(BookingError):
    """No candidate slot matched the hour preferences."""

    def __init__(
        self,
        *,
        target_date: str,
        hour_preferences: Sequence[str],
        court_preferences: Sequence[str],
        candidates: int,
        mock: bool = False,
    ) -> None:
        self.target_date = target_date
        self.hour_preferences = list(hour_preferences)
        self.court_preferences = list(court_preferences)
        self.candidates = candidates
        self.mock = mock
        prefix = "Mock mode: no" if mock else "No"
        super().__init__(
            f"{prefix} eligible slot for {target_date}: {candidates} candidate(s) considered, "
            f"hour preferences={self.hour_preferences}, court preferences={self.court_preferences}"
        )
