"""Utilities for resolving the reservation target date."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .config import BookingConfig
    from .settings import HttpSettings

logger = logging.getLogger(__name__)

DEFAULT_ADVANCE_DAYS = 7
DEFAULT_DATE_TEMPLATE = "DD/MM/YYYY"
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class TargetDate:
    """The calendar day to book, with its site-specific renderings."""

    value: date
    request_template: str = DEFAULT_DATE_TEMPLATE
    data_endpoint_template: str = DEFAULT_DATE_TEMPLATE

    @property
    def iso(self) -> str:
        return format_date(self.value, "YYYY-MM-DD")

    @property
    def display(self) -> str:
        return format_date(self.value, "DD/MM/YYYY")

    @property
    def request(self) -> str:
        return format_date(self.value, self.request_template)

    @property
    def data_endpoint(self) -> str:
        return format_date(self.value, self.data_endpoint_template)


def format_date(value: date, template: str) -> str:
    """Render ``value`` by substituting the ``DD``, ``MM`` and ``YYYY`` tokens."""
    return (
        template.replace("DD", f"{value.day:02d}")
        .replace("MM", f"{value.month:02d}")
        .replace("YYYY", f"{value.year:04d}")
    )


def get_zone(timezone_name: str) -> ZoneInfo:
    """Return a ZoneInfo instance, defaulting to UTC on failure."""
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %s, falling back to UTC", timezone_name)
        return ZoneInfo("UTC")


def today_in_timezone(timezone_name: str) -> date:
    return datetime.now(tz=get_zone(timezone_name)).date()


def coerce_advance(value: Any) -> int:
    """Day offset from today; non-numeric or missing values give the default."""
    if value is None or isinstance(value, bool):
        return DEFAULT_ADVANCE_DAYS
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return DEFAULT_ADVANCE_DAYS


def parse_explicit_date(text: str) -> date:
    cleaned = text.strip()
    try:
        if not ISO_DATE_RE.match(cleaned):
            raise ValueError(cleaned)
        return date.fromisoformat(cleaned)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid reservation_date {text!r}: expected YYYY-MM-DD") from exc


def resolve_target_date(
    config: "BookingConfig",
    settings: "HttpSettings",
    today: Optional[date] = None,
) -> TargetDate:
    """Compute the single date this run books.

    An explicit ``reservation_date`` wins; otherwise the date is
    ``today + booking_advance`` in the configured timezone.
    """
    if config.reservation_date:
        value = parse_explicit_date(config.reservation_date)
    else:
        today = today or today_in_timezone(config.timezone)
        try:
            value = today + timedelta(days=coerce_advance(config.booking_advance))
        except (OverflowError, ValueError) as exc:
            raise ConfigurationError(
                f"booking_advance {config.booking_advance!r} puts the date out of range"
            ) from exc

    page = settings.endpoints.reservation_page
    request_template = page.date_format or DEFAULT_DATE_TEMPLATE
    return TargetDate(
        value=value,
        request_template=request_template,
        data_endpoint_template=page.data_date_format or request_template,
    )
