"""Shared data models used across the booking workflow."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .date_window import TargetDate


class SlotSource(str, Enum):
    """Where a slot was discovered."""

    CONTENT = "content"
    DATA_ENDPOINT = "data-endpoint"
    MOCK = "mock"


@dataclass(frozen=True)
class Slot:
    """One bookable (court, hour) combination."""

    court_id: Optional[str]
    court_name: str
    hour: str
    slot_id: Optional[str] = None
    source: SlotSource = SlotSource.CONTENT
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
    fallback: bool = False
    matched_preference: Optional[str] = None
    difference_minutes: int = 0


@dataclass(frozen=True)
class FormSnapshot:
    """Action, method and field values harvested from a page form."""

    action: Optional[str] = None
    method: str = "POST"
    fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HourScore:
    """Result of ranking an hour label against the preference list."""

    score: float = math.inf
    fallback: bool = False
    matched_preference: Optional[str] = None
    difference_minutes: int = 0

    @property
    def eligible(self) -> bool:
        return math.isfinite(self.score)


@dataclass(frozen=True)
class Selection:
    """Winning slot with the scores that put it first."""

    slot: Slot
    court_score: int
    hour_score: HourScore
    candidates: int


@dataclass(frozen=True)
class ReservationContext:
    """Everything one reservation-page fetch produced."""

    form: FormSnapshot
    slots: List[Slot]
    target: TargetDate


@dataclass(frozen=True)
class BookingOutcome:
    """Summary of a finished workflow run."""

    target: TargetDate
    selection: Selection
    submitted: bool
    details: Dict[str, Any] = field(default_factory=dict)
