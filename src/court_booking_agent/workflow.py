"""Top-level booking workflow: resolve date, fetch, score, submit."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

import httpx
import structlog

from .config import BookingConfig
from .date_window import TargetDate, resolve_target_date
from .errors import ConfigurationError, NoEligibleSlotError
from .http_client import ReservationSession
from .models import BookingOutcome, Slot, SlotSource
from .run_log import RunLogger
from .scoring import select_best
from .settings import HttpSettings, build_http_settings

LOGGER = structlog.get_logger(__name__)


def _no_eligible_slot(config: BookingConfig, target: TargetDate, candidates: int, *, mock: bool) -> NoEligibleSlotError:
    return NoEligibleSlotError(
        target_date=target.iso,
        hour_preferences=config.hour_preferences,
        court_preferences=config.courts.preferences,
        candidates=candidates,
        mock=mock,
    )


def mock_slots(config: BookingConfig, settings: HttpSettings) -> List[Slot]:
    """Slots configured for mock mode, labelled like extracted ones."""
    available = settings.mock_data.available_slots if settings.mock_data else []
    return [
        Slot(
            court_id=entry.court_id,
            court_name=entry.court_name or config.courts.label_for(entry.court_id) or entry.court_id or "unknown",
            hour=entry.hour,
            slot_id=entry.slot_id,
            source=SlotSource.MOCK,
            raw=entry.model_dump(),
        )
        for entry in available
    ]


def require_live_fields(config: BookingConfig, settings: HttpSettings) -> None:
    missing = []
    if not (settings.endpoints.login.url or config.login_url):
        missing.append("login_url")
    if not (settings.base_url or config.member_url):
        missing.append("member_url")
    if not config.username:
        missing.append("username")
    if config.password is None:
        missing.append("password")
    if missing:
        raise ConfigurationError(f"Missing required configuration for live mode: {', '.join(missing)}")


async def run_mock(config: BookingConfig, settings: HttpSettings, target: TargetDate, log: RunLogger) -> BookingOutcome:
    """Score the configured slot list without touching the network."""
    log("step", "HTTP mock mode enabled, simulating without network calls.")
    slots = mock_slots(config, settings)
    selection = select_best(slots, config, log)
    if selection is None:
        raise _no_eligible_slot(config, target, len(slots), mock=True)

    slot = selection.slot
    log("success", f"Simulation: slot {slot.hour} selected on {slot.court_name or slot.court_id}.")
    if config.test_mode:
        log("info", "Test and mock modes active: no real reservation made.")
    if settings.mock_data and settings.mock_data.on_success_message:
        log("info", settings.mock_data.on_success_message)
    return BookingOutcome(target=target, selection=selection, submitted=False, details={"mode": "mock"})


async def run_live(
    config: BookingConfig,
    settings: HttpSettings,
    target: TargetDate,
    log: RunLogger,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> BookingOutcome:
    """Login, fetch, score and submit over one session."""
    require_live_fields(config, settings)
    async with ReservationSession(config, settings, log, client=client) as session:
        await session.login()
        context = await session.fetch_context(target)
        selection = select_best(context.slots, config, log)
        if selection is None:
            raise _no_eligible_slot(config, target, len(context.slots), mock=False)

        slot = selection.slot
        court_label = slot.court_name or config.courts.label_for(slot.court_id) or slot.court_id
        log("success", f"Selected slot: {slot.hour} on {court_label} (court {slot.court_id or 'n/a'}).")
        response = await session.submit(context, selection)

    log("success", "HTTP workflow finished.")
    details = {"mode": "live", "test_mode": config.test_mode}
    if response is not None:
        details["status_code"] = response.status_code
    return BookingOutcome(target=target, selection=selection, submitted=response is not None, details=details)


async def run(
    config: BookingConfig,
    log: RunLogger,
    *,
    client: Optional[httpx.AsyncClient] = None,
    today: Optional[date] = None,
) -> BookingOutcome:
    """Execute one booking run and return its outcome.

    Every failure propagates; the caller decides on exit status or retries.
    """
    settings = build_http_settings(config)
    target = resolve_target_date(config, settings, today=today)
    log("info", f"Target reservation date: {target.display}")
    LOGGER.info("workflow.start", mode=settings.mode, target_date=target.iso, test_mode=config.test_mode)

    if settings.mode == "mock":
        return await run_mock(config, settings, target, log)
    return await run_live(config, settings, target, log, client=client)
