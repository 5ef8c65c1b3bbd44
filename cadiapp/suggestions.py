from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Sequence

from sqlalchemy.orm import Session

from cadiapp.availability import load_caddie, requested_window, resolve_for_caddie
from cadiapp.time_utils import Interval, minutes_to_hhmm


SEARCH_HORIZON_DAYS = 14
MAX_DAYS_WITH_AVAILABILITY = 2
MAX_SUGGESTIONS = 6


@dataclass(frozen=True)
class Suggestion:
    date: date
    block: Interval
    suggested: Interval
    distance_minutes: int

    def as_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "start": minutes_to_hhmm(self.block.start),
            "end": minutes_to_hhmm(self.block.end),
            "suggested_start": minutes_to_hhmm(self.suggested.start),
            "suggested_end": minutes_to_hhmm(self.suggested.end),
            "distance_minutes": self.distance_minutes,
        }


def closest_placement(block: Interval, requested: Interval) -> Interval:
    """Slide the requested duration inside `block` as near as possible to the requested start."""
    duration = requested.duration
    start = min(max(requested.start, block.start), block.end - duration)
    return Interval(start, start + duration)


def rank_day_blocks(free: Sequence[Interval], requested: Interval) -> List[tuple[Interval, Interval, int]]:
    ranked = []
    for block in free:
        if block.duration < requested.duration:
            continue
        placement = closest_placement(block, requested)
        ranked.append((block, placement, abs(placement.start - requested.start)))
    ranked.sort(key=lambda item: (item[2], item[0].start))
    return ranked


def suggest_alternatives(
    db: Session,
    caddie_id: int,
    requested_date: date,
    club_id: int,
    start_time: str,
    end_time: str,
) -> dict:
    """
    Nearby alternatives for a window that does not fit.

    Days are scanned forward from the requested date, so earlier dates always
    come first; within a day blocks closer to the requested start win.
    """
    requested = requested_window(start_time, end_time)
    caddie = load_caddie(db, caddie_id)

    suggestions: List[Suggestion] = []
    days_found = 0
    is_available = False
    for offset in range(SEARCH_HORIZON_DAYS):
        day = requested_date + timedelta(days=offset)
        result = resolve_for_caddie(db, caddie, day, club_id, requested if offset == 0 else None)
        if offset == 0:
            is_available = bool(result.fits)

        ranked = rank_day_blocks(result.free, requested)
        if not ranked:
            continue

        days_found += 1
        for block, placement, distance in ranked:
            suggestions.append(Suggestion(date=day, block=block, suggested=placement, distance_minutes=distance))
        if days_found >= MAX_DAYS_WITH_AVAILABILITY or len(suggestions) >= MAX_SUGGESTIONS:
            break

    return {
        "requested": {"date": requested_date.isoformat(), **requested.as_dict()},
        "is_available": is_available,
        "alternatives": [s.as_dict() for s in suggestions[:MAX_SUGGESTIONS]],
    }


def check_availability(
    db: Session,
    caddie_id: int,
    requested_date: date,
    club_id: int,
    start_time: str,
    end_time: str,
) -> dict:
    """One round trip for the booking form: the fitting block, or the best alternative."""
    requested = requested_window(start_time, end_time)
    caddie = load_caddie(db, caddie_id)
    result = resolve_for_caddie(db, caddie, requested_date, club_id, requested)
    if result.fits:
        return {"available": True, "available_block": result.containing.as_dict()}

    alternatives = suggest_alternatives(db, caddie_id, requested_date, club_id, start_time, end_time)["alternatives"]
    if alternatives:
        return {"available": False, "next_available": alternatives[0]}
    return {"available": False}
