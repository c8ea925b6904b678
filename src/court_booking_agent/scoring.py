"""Rank candidate slots against the configured hour and court preferences."""

from __future__ import annotations

import dataclasses
import re
from typing import Iterable, List, Optional, Sequence

import structlog

from .config import BookingConfig
from .models import HourScore, Selection, Slot
from .run_log import RunLogger

LOGGER = structlog.get_logger(__name__)

FALLBACK_WINDOW_MINUTES = 30

_H_FORMAT = re.compile(r"^(\d{1,2})\s*h\s*(\d{2})$")
_COLON_FORMAT = re.compile(r"^(\d{1,2}):(\d{2})$")
_COMPACT_FORMAT = re.compile(r"^(\d{3,4})$")
_CANONICAL = re.compile(r"^(\d{2}):(\d{2})$")

UNSCOREABLE = HourScore()


def normalise_hour(value: object) -> Optional[str]:
    """Canonicalise ``14h00``, ``14:00`` and ``1400`` to ``HH:MM``.

    Other shapes come back stripped but otherwise untouched.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    lower = raw.lower()
    for pattern in (_H_FORMAT, _COLON_FORMAT):
        match = pattern.match(lower)
        if match:
            return f"{match.group(1).zfill(2)}:{match.group(2)}"
    match = _COMPACT_FORMAT.match(lower)
    if match:
        digits = match.group(1).zfill(4)
        return f"{digits[:2]}:{digits[2:]}"
    return raw


def hour_to_minutes(value: object) -> Optional[int]:
    """Minutes since midnight, or ``None`` when not a valid time of day."""
    normalised = normalise_hour(value)
    if normalised is None:
        return None
    match = _CANONICAL.match(normalised)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def score_hour(hour: object, preferences: Sequence[str]) -> HourScore:
    """Score an hour label; lower is better, ``inf`` means not eligible."""
    candidate_minutes = hour_to_minutes(hour)
    if candidate_minutes is None:
        return UNSCOREABLE

    normalised = normalise_hour(hour)
    for index, preference in enumerate(preferences):
        if normalise_hour(preference) == normalised:
            return HourScore(score=index, fallback=False, matched_preference=preference, difference_minutes=0)

    best = UNSCOREABLE
    for index, preference in enumerate(preferences):
        preference_minutes = hour_to_minutes(preference)
        if preference_minutes is None:
            continue
        difference = abs(preference_minutes - candidate_minutes)
        if difference > FALLBACK_WINDOW_MINUTES:
            continue
        score = len(preferences) + difference + index / 100
        if score < best.score:
            best = HourScore(
                score=score,
                fallback=True,
                matched_preference=preference,
                difference_minutes=difference,
            )
    return best


def score_court(court_id: Optional[str], preferences: Sequence[str], use_court_preferences: bool) -> int:
    if not use_court_preferences or not preferences:
        return 0
    key = "" if court_id is None else str(court_id)
    for index, preference in enumerate(preferences):
        if str(preference) == key:
            return index
    return len(preferences) + 1


def select_best(
    slots: Iterable[Slot],
    config: BookingConfig,
    log: Optional[RunLogger] = None,
) -> Optional[Selection]:
    """Pick the winning slot, or ``None`` when nothing is eligible.

    Court preference dominates hour preference; ties keep input order.
    """
    candidates = list(slots)
    hour_preferences = list(config.hour_preferences)
    court_preferences = list(config.courts.preferences)

    scored: List[Selection] = []
    for slot in candidates:
        hour_score = score_hour(slot.hour, hour_preferences)
        if not hour_score.eligible:
            continue
        court_score = score_court(slot.court_id, court_preferences, config.use_court_preferences)
        scored.append(Selection(slot=slot, court_score=court_score, hour_score=hour_score, candidates=len(candidates)))

    LOGGER.debug("scoring.ranked", candidates=len(candidates), eligible=len(scored))
    if not scored:
        if log is not None:
            log("warning", "No slot matches the preferred hours exactly or within the fallback window.")
        return None

    scored.sort(key=lambda entry: (entry.court_score, entry.hour_score.score))
    best = scored[0]
    winner = dataclasses.replace(
        best.slot,
        fallback=best.hour_score.fallback,
        matched_preference=best.hour_score.matched_preference,
        difference_minutes=best.hour_score.difference_minutes,
    )
    if winner.fallback and log is not None:
        log(
            "warning",
            f"No preferred hour available, selecting {winner.hour} "
            f"({winner.difference_minutes} minutes from {winner.matched_preference or 'n/a'}).",
        )
    return dataclasses.replace(best, slot=winner)
