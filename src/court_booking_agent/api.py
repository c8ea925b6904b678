"""FastAPI front end that runs one booking at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .config import BookingConfig
from .errors import ConfigurationError, NetworkError, NoEligibleSlotError
from .run_log import RecordingRunLogger, StructlogRunLogger
from .workflow import run

logger = logging.getLogger(__name__)

app = FastAPI(title="Court Booking Agent", version="0.1.0")

_RUN_LOCK = asyncio.Lock()


class LogLine(BaseModel):
    severity: str
    message: str


class SelectedSlot(BaseModel):
    hour: str
    court_id: Optional[str] = None
    court_name: str
    slot_id: Optional[str] = None
    fallback: bool
    matched_preference: Optional[str] = None
    difference_minutes: int


class ReservationResponse(BaseModel):
    """Response schema for the /reservations endpoint."""

    target_date: str
    slot: SelectedSlot
    submitted: bool
    log: List[LogLine]


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "busy": _RUN_LOCK.locked()}


@app.post("/reservations", response_model=ReservationResponse)
async def create_reservation(config: BookingConfig) -> ReservationResponse:
    """Run the booking workflow; concurrent requests wait their turn."""
    recorder = RecordingRunLogger(forward=StructlogRunLogger())
    async with _RUN_LOCK:
        logger.info("Starting queued booking run")
        try:
            outcome = await run(config, recorder)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except NoEligibleSlotError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except NetworkError as exc:
            logger.warning("Booking run failed during %s", exc.operation)
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    slot = outcome.selection.slot
    return ReservationResponse(
        target_date=outcome.target.iso,
        slot=SelectedSlot(
            hour=slot.hour,
            court_id=slot.court_id,
            court_name=slot.court_name,
            slot_id=slot.slot_id,
            fallback=slot.fallback,
            matched_preference=slot.matched_preference,
            difference_minutes=slot.difference_minutes,
        ),
        submitted=outcome.submitted,
        log=[LogLine(severity=entry.severity, message=entry.message) for entry in recorder.entries],
    )
